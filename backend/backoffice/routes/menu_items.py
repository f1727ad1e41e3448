# Overview: Flask API routes for the stock-tracked menu item registry.

from flask import Blueprint, current_app, jsonify, request

from ..decorators import json_body, pop_actor, translate_errors
from ..services import inventory_service

menu_items_bp = Blueprint("menu_items", __name__, url_prefix="/api/menu-items")


def _flag(name: str) -> bool:
    return (request.args.get(name) or "").strip().lower() in ("1", "true", "yes")


@menu_items_bp.post("")
@translate_errors("create menu item")
def create_menu_item_route():
    data = json_body()
    actor_id = pop_actor(data)
    item = inventory_service.create_menu_item(data, actor_id=actor_id)
    current_app.logger.info("Menu item %s created (%s)", item.id, item.name)
    return jsonify({"menu_item": item.to_dict()}), 201


@menu_items_bp.get("")
@translate_errors("list menu items")
def list_menu_items_route():
    """?tracked_only=true limits the list to stock-tracked items."""
    items = inventory_service.list_menu_items(tracked_only=_flag("tracked_only"))
    return jsonify({"menu_items": [i.to_dict() for i in items]}), 200


@menu_items_bp.get("/<int:menu_item_id>")
@translate_errors("get menu item")
def get_menu_item_route(menu_item_id: int):
    return jsonify({"menu_item": inventory_service.get_menu_item(menu_item_id).to_dict()}), 200
