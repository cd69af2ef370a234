# backend/tillcore/routes/stock.py
"""
Stock management routes.

All routes require X-User-Id / X-Store-Id.
- adjust: manual add/subtract/set with a movement type (ADJUSTMENT, DAMAGED, RETURN, RESTOCK)
- restock: receive units into stock
- movements: append-only history, newest first

SALE movements are never written here; only checkout creates them.
"""
from flask import Blueprint, request, jsonify, g, current_app

from ..services import stock_ledger
from ..services.stock_ledger import InsufficientStockError, StockConflictError, StockError
from ..validation import ValidationError, coerce_int, coerce_str
from ..decorators import require_identity


stock_bp = Blueprint("stock", __name__, url_prefix="/api/stock")


@stock_bp.post("/adjust")
@require_identity
def adjust_stock_route():
    """
    Adjust stock for one product.

    Body: {product_id, adjustment_type: add|subtract|set, quantity,
           reason?, notes?, movement_type?}
    """
    data = request.get_json(silent=True) or {}

    try:
        product_id = coerce_int("product_id", data.get("product_id"), minimum=1)
        adjustment_type = coerce_str("adjustment_type", data.get("adjustment_type"), required=True).lower()
        quantity = coerce_int("quantity", data.get("quantity"), minimum=0)
        reason = coerce_str("reason", data.get("reason"), max_length=255)
        notes = coerce_str("notes", data.get("notes"))
        movement_type = coerce_str("movement_type", data.get("movement_type"), max_length=16)
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400

    try:
        product, movement = stock_ledger.adjust(
            store_id=g.store_id,
            product_id=product_id,
            user_id=g.user_id,
            adjustment_type=adjustment_type,
            quantity=quantity,
            reason=reason,
            notes=notes,
            movement_type=movement_type,
        )
        return jsonify({"product": product.to_dict(), "movement": movement.to_dict()}), 201

    except InsufficientStockError as e:
        return jsonify({"error": str(e), "details": e.details}), 409
    except StockConflictError as e:
        return jsonify({"error": str(e), "details": e.details}), 409
    except StockError as e:
        return jsonify({"error": str(e), "details": e.details}), 400
    except Exception:
        current_app.logger.exception("Failed to adjust stock")
        return jsonify({"error": "Internal server error"}), 500


@stock_bp.post("/restock")
@require_identity
def restock_route():
    data = request.get_json(silent=True) or {}

    try:
        product_id = coerce_int("product_id", data.get("product_id"), minimum=1)
        quantity = coerce_int("quantity", data.get("quantity"), minimum=1)
        notes = coerce_str("notes", data.get("notes"))
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400

    try:
        product, movement = stock_ledger.restock(
            store_id=g.store_id,
            product_id=product_id,
            user_id=g.user_id,
            quantity=quantity,
            notes=notes,
        )
        return jsonify({"product": product.to_dict(), "movement": movement.to_dict()}), 201

    except StockError as e:
        return jsonify({"error": str(e), "details": e.details}), 400
    except Exception:
        current_app.logger.exception("Failed to restock")
        return jsonify({"error": "Internal server error"}), 500


@stock_bp.get("/movements")
@require_identity
def list_movements_route():
    """Stock history for the store, optionally one product or movement type."""
    default_limit = current_app.config.get("MOVEMENT_LIST_LIMIT", 100)
    try:
        product_id = coerce_int("product_id", request.args.get("product_id"), minimum=1, required=False)
        limit = coerce_int("limit", request.args.get("limit"), minimum=1, required=False) or default_limit
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400

    try:
        movements = stock_ledger.list_movements(
            store_id=g.store_id,
            product_id=product_id,
            movement_type=request.args.get("movement_type"),
            limit=min(limit, 1000),
        )
    except StockError as e:
        return jsonify({"error": str(e), "details": e.details}), 404

    return jsonify({
        "items": [m.to_dict() for m in movements],
        "count": len(movements),
    }), 200
