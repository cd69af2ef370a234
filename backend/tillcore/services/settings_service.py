# Overview: Store provisioning and per-store pricing configuration (tax rate, VAT, payment default).

from __future__ import annotations

from flask import current_app

from ..extensions import db
from ..models import Store
from ..validation import (
    ValidationError,
    coerce_bool,
    coerce_int,
    coerce_str,
    enforce_rules_pricing_settings,
)
from .concurrency import commit_or_rollback
from .pricing import PricingConfig, normalize_payment_method


PRICING_FIELDS = {"tax_rate_bps", "vat_enabled", "default_payment_method"}


class SettingsError(ValueError):
    pass


class SettingsNotFoundError(SettingsError):
    pass


def get_store(store_id: int) -> Store:
    store = db.session.get(Store, store_id)
    if store is None:
        raise SettingsNotFoundError("Store not found")
    return store


def create_store(
    *,
    name: str,
    code: str | None = None,
    tax_rate_bps: int | None = None,
    vat_enabled: bool | None = None,
    default_payment_method: str | None = None,
) -> Store:
    """Create a store, filling pricing fields from the app-level defaults."""
    cfg = current_app.config
    patch = {
        "tax_rate_bps": cfg["DEFAULT_TAX_RATE_BPS"] if tax_rate_bps is None else tax_rate_bps,
        "vat_enabled": cfg["DEFAULT_VAT_ENABLED"] if vat_enabled is None else vat_enabled,
        "default_payment_method": normalize_payment_method(
            default_payment_method or cfg["DEFAULT_PAYMENT_METHOD"]
        ),
    }
    enforce_rules_pricing_settings(patch)

    if code and db.session.query(Store).filter_by(code=code).first():
        raise SettingsError(f"Store code '{code}' already exists")

    store = Store(name=name, code=code, **patch)
    db.session.add(store)
    commit_or_rollback()
    return store


def get_pricing_config(store_id: int) -> PricingConfig:
    """Fresh PricingConfig for a store; what a new cart session snapshots."""
    return PricingConfig.from_store(get_store(store_id))


def get_pricing_settings(store_id: int) -> dict:
    store = get_store(store_id)
    return {
        "store_id": store.id,
        "tax_rate_bps": store.tax_rate_bps,
        "vat_enabled": store.vat_enabled,
        "default_payment_method": store.default_payment_method,
    }


def _parse_pricing_patch(payload: dict) -> dict:
    unknown = set(payload) - PRICING_FIELDS
    if unknown:
        raise ValidationError(f"Unknown pricing fields: {sorted(unknown)}")

    patch = {}
    if "tax_rate_bps" in payload:
        patch["tax_rate_bps"] = coerce_int("tax_rate_bps", payload["tax_rate_bps"])
    if "vat_enabled" in payload:
        patch["vat_enabled"] = coerce_bool("vat_enabled", payload["vat_enabled"])
    if "default_payment_method" in payload:
        method = coerce_str("default_payment_method", payload["default_payment_method"], max_length=32)
        patch["default_payment_method"] = method.upper() if method else method

    enforce_rules_pricing_settings(patch)
    return patch


def update_pricing_settings(store_id: int, payload: dict, *, user_id: int | None = None) -> dict:
    """
    Partial update of the store's pricing configuration.

    Open cart sessions keep the config they snapshotted; terminals pick up
    the change on their next session or an explicit refresh.
    """
    if not isinstance(payload, dict):
        raise ValidationError("Payload must be a JSON object")

    patch = _parse_pricing_patch(payload)
    store = get_store(store_id)
    for key, value in patch.items():
        setattr(store, key, value)
    commit_or_rollback()

    current_app.logger.info(
        "Pricing settings updated for store %s by user=%s: %s",
        store_id,
        user_id,
        sorted(patch),
    )
    return get_pricing_settings(store_id)
