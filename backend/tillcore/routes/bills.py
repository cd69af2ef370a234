# Overview: Flask API routes for checkout and bills; parses input and returns JSON responses.

# backend/tillcore/routes/bills.py
"""Bill API routes: checkout commit, history, void"""

from flask import Blueprint, request, jsonify, g, current_app

from ..services import checkout_service
from ..services.checkout_schemas import (
    BillNotFoundError,
    CheckoutError,
    CheckoutPayload,
    CheckoutValidationError,
)
from ..services.stock_ledger import InsufficientStockError, StockError
from ..validation import ValidationError, coerce_int, coerce_str
from ..decorators import require_identity


bills_bp = Blueprint("bills", __name__, url_prefix="/api/bills")


@bills_bp.post("/")
@require_identity
def create_bill_route():
    """
    Commit a checkout: one Bill, one Sale, one SALE movement per line.

    Returns 201 {"bill", "sale"}; 400 on validation; 409 when any line is
    short on stock (details.items lists every offending product).
    """
    try:
        payload = CheckoutPayload.from_dict(request.get_json(silent=True))
        bill, sale = checkout_service.commit_checkout(
            store_id=g.store_id,
            user_id=g.user_id,
            payload=payload,
        )
        return jsonify({"bill": bill.to_dict(), "sale": sale.to_dict()}), 201

    except CheckoutValidationError as e:
        return jsonify({"error": str(e), "details": e.details}), 400
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except InsufficientStockError as e:
        return jsonify({"error": str(e), "details": e.details}), 409
    except (CheckoutError, StockError) as e:
        return jsonify({"error": str(e), "details": e.details}), 400
    except Exception:
        current_app.logger.exception("Failed to commit checkout")
        return jsonify({"error": "Internal server error"}), 500


@bills_bp.get("/")
@require_identity
def list_bills_route():
    """List the store's bills, newest first."""
    try:
        limit = coerce_int("limit", request.args.get("limit"), minimum=1, required=False) or 100
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400

    bills = checkout_service.list_bills(
        store_id=g.store_id,
        status=request.args.get("status"),
        limit=min(limit, 500),
    )
    return jsonify({
        "items": [bill.to_dict(include_items=False) for bill in bills],
        "count": len(bills),
    }), 200


@bills_bp.get("/<int:bill_id>")
@require_identity
def get_bill_route(bill_id: int):
    try:
        bill = checkout_service.get_bill(store_id=g.store_id, bill_id=bill_id)
    except BillNotFoundError as e:
        return jsonify({"error": str(e)}), 404
    return jsonify({"bill": bill.to_dict()}), 200


@bills_bp.post("/<int:bill_id>/void")
@require_identity
def void_bill_route(bill_id: int):
    """
    Void a completed bill and its sale.

    Stock is returned only when VOID_RESTORES_STOCK is on.
    """
    data = request.get_json(silent=True) or {}
    try:
        reason = coerce_str("reason", data.get("reason"), max_length=255, required=True)
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400

    try:
        bill = checkout_service.void_bill(
            store_id=g.store_id,
            bill_id=bill_id,
            user_id=g.user_id,
            reason=reason,
        )
        return jsonify({"bill": bill.to_dict()}), 200

    except BillNotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except (CheckoutError, StockError) as e:
        return jsonify({"error": str(e), "details": e.details}), 400
    except Exception:
        current_app.logger.exception("Failed to void bill")
        return jsonify({"error": "Internal server error"}), 500
