# backend/backoffice/config.py
from __future__ import annotations
import os


def _env_int(name: str, default: int) -> int:
    raw = (os.environ.get(name) or "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    raw = (os.environ.get(name) or "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


class Config:
    # SQLite DB stored in backend/instance/backoffice.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///backoffice.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()

    # Shift history paging (the Z-report screen shows the last 10 by default)
    SHIFT_HISTORY_DEFAULT_LIMIT = _env_int("SHIFT_HISTORY_DEFAULT_LIMIT", 10)
    SHIFT_HISTORY_MAX_LIMIT = _env_int("SHIFT_HISTORY_MAX_LIMIT", 200)

    # Aggregate transaction retry policy (lock timeouts, stale version_id)
    LEDGER_RETRY_ATTEMPTS = _env_int("LEDGER_RETRY_ATTEMPTS", 3)
    LEDGER_RETRY_BACKOFF = _env_float("LEDGER_RETRY_BACKOFF", 0.05)

    # Browser origins allowed to call the API (comma-separated)
    CORS_ALLOWED_ORIGINS = tuple(
        o.strip()
        for o in os.environ.get(
            "CORS_ALLOWED_ORIGINS",
            "http://localhost:5173,http://127.0.0.1:5173,http://localhost:4173,http://127.0.0.1:4173",
        ).split(",")
        if o.strip()
    )
