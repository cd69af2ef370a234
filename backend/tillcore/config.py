# backend/tillcore/config.py
from __future__ import annotations
import os


def _env_bool(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///tillcore.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    # Fallbacks used when a store row leaves pricing configuration unset.
    # 700 bps = 7%
    DEFAULT_TAX_RATE_BPS = int(os.environ.get("DEFAULT_TAX_RATE_BPS", "700"))
    DEFAULT_VAT_ENABLED = _env_bool("DEFAULT_VAT_ENABLED", True)
    DEFAULT_PAYMENT_METHOD = os.environ.get("DEFAULT_PAYMENT_METHOD", "CASH")

    # Voiding a bill writes RETURN movements that put the sold units back.
    VOID_RESTORES_STOCK = _env_bool("VOID_RESTORES_STOCK", True)

    MOVEMENT_LIST_LIMIT = 100
