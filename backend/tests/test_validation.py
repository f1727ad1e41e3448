# Overview: Pytest coverage for input parsing and the error taxonomy.

from datetime import date
from decimal import Decimal

import pytest

from backoffice.models import Supplier
from backoffice.services.supplier_service import SUPPLIER_CREATE_POLICY
from backoffice.time_utils import parse_iso_datetime, to_utc_z
from backoffice.validation import (
    ConflictError,
    LedgerError,
    NotFoundError,
    UnderflowError,
    ValidationError,
    clean_text,
    money_str,
    parse_date,
    parse_money,
    parse_quantity,
    validate_payload,
)


class TestParseMoney:
    @pytest.mark.parametrize("raw,expected", [
        (100, Decimal("100.00")),
        ("550.5", Decimal("550.50")),
        (0.1, Decimal("0.10")),
        (Decimal("12.34"), Decimal("12.34")),
        (" 7 ", Decimal("7.00")),
    ])
    def test_accepts_numbers_and_numeric_strings(self, raw, expected):
        assert parse_money(raw, "amount") == expected

    @pytest.mark.parametrize("raw", ["abc", "", True, [], "1e3", "12.345", float("inf")])
    def test_rejects_malformed(self, raw):
        with pytest.raises(ValidationError):
            parse_money(raw, "amount")

    def test_negative_rejected_unless_allowed(self):
        with pytest.raises(ValidationError, match="must be >= 0"):
            parse_money("-1", "start_cash")
        assert parse_money("-1", "difference", allow_negative=True) == Decimal("-1.00")

    def test_zero_rejected_when_strictly_positive(self):
        with pytest.raises(ValidationError, match="must be > 0"):
            parse_money(0, "amount", allow_zero=False)

    def test_none_is_required(self):
        with pytest.raises(ValidationError, match="amount is required"):
            parse_money(None, "amount")


class TestParseQuantity:
    def test_integer_forms(self):
        assert parse_quantity(5, "quantity") == 5
        assert parse_quantity("12", "quantity") == 12

    @pytest.mark.parametrize("raw", [1.5, 2.0, "2.0", "1e2", True, "x"])
    def test_rejects_non_integers(self, raw):
        with pytest.raises(ValidationError):
            parse_quantity(raw, "quantity")

    def test_minimum(self):
        with pytest.raises(ValidationError, match="non-negative"):
            parse_quantity(-1, "quantity")
        with pytest.raises(ValidationError, match=">= 1"):
            parse_quantity(0, "quantity", minimum=1)


class TestDatesAndText:
    def test_parse_date_strict(self):
        assert parse_date("2026-01-31", "adjustment_date") == date(2026, 1, 31)
        for bad in ("2026-1-31", "31/01/2026", "2026-02-30", "2026-01-31T10:00", "2026-W01-1", "20260131"):
            with pytest.raises(ValidationError, match="YYYY-MM-DD"):
                parse_date(bad, "adjustment_date")
        with pytest.raises(ValidationError, match="required"):
            parse_date("  ", "adjustment_date")

    def test_clean_text(self):
        assert clean_text("  hi ", "note") == "hi"
        assert clean_text("   ", "note") is None
        with pytest.raises(ValidationError, match="reason is required"):
            clean_text("", "reason", required=True)
        with pytest.raises(ValidationError, match="max length"):
            clean_text("x" * 6, "ref", max_length=5)

    def test_utc_rendering(self):
        dt = parse_iso_datetime("2026-01-31T10:00:00.250000+02:00")
        assert to_utc_z(dt) == "2026-01-31T08:00:00Z"
        assert to_utc_z(dt, precise=True) == "2026-01-31T08:00:00.250000Z"

    def test_money_str(self):
        assert money_str(Decimal("5")) == "5.00"
        assert money_str(None) is None


class TestErrorTaxonomy:
    def test_statuses(self):
        assert ValidationError.http_status == 400
        assert UnderflowError.http_status == 400
        assert NotFoundError.http_status == 404
        assert ConflictError.http_status == 409

    def test_underflow_is_a_validation_error(self):
        assert issubclass(UnderflowError, ValidationError)
        assert issubclass(ConflictError, LedgerError)


class TestValidatePayload:
    def test_rejects_unknown_fields(self, app):
        with pytest.raises(ValidationError, match="Field not allowed: is_active"):
            validate_payload(
                model=Supplier, payload={"name": "A", "is_active": False},
                policy=SUPPLIER_CREATE_POLICY, partial=False,
            )

    def test_requires_fields_on_create(self, app):
        with pytest.raises(ValidationError, match="Missing required fields: name"):
            validate_payload(model=Supplier, payload={}, policy=SUPPLIER_CREATE_POLICY, partial=False)

    def test_blank_optional_text_becomes_null(self, app):
        patch = validate_payload(
            model=Supplier, payload={"name": " Acme ", "phone": "  "},
            policy=SUPPLIER_CREATE_POLICY, partial=False,
        )
        assert patch == {"name": "Acme", "phone": None}
