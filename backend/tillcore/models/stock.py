from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


MOVEMENT_SALE = "SALE"
MOVEMENT_RESTOCK = "RESTOCK"
MOVEMENT_ADJUSTMENT = "ADJUSTMENT"
MOVEMENT_RETURN = "RETURN"
MOVEMENT_DAMAGED = "DAMAGED"

MOVEMENT_TYPES = (
    MOVEMENT_SALE,
    MOVEMENT_RESTOCK,
    MOVEMENT_ADJUSTMENT,
    MOVEMENT_RETURN,
    MOVEMENT_DAMAGED,
)


class StockMovement(db.Model):
    """
    Append-only audit entry for a stock quantity change.

    One row per affected product per checkout, void or manual adjustment.
    Rows are never updated or deleted; they are the only history of stock.
    """
    __tablename__ = "stock_movements"
    __table_args__ = (
        db.Index("ix_stock_movements_store_created", "store_id", "created_at"),
        db.Index("ix_stock_movements_product_created", "product_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False)

    movement_type = db.Column(db.String(16), nullable=False, index=True)

    quantity_change = db.Column(db.Integer, nullable=False)  # Signed
    previous_quantity = db.Column(db.Integer, nullable=False)
    new_quantity = db.Column(db.Integer, nullable=False)

    user_id = db.Column(db.Integer, nullable=True)
    reason = db.Column(db.String(255), nullable=True)
    notes = db.Column(db.Text, nullable=True)

    # Set for SALE and void RETURN movements
    bill_id = db.Column(db.Integer, db.ForeignKey("bills.id"), nullable=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    product = db.relationship("Product")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "store_id": self.store_id,
            "product_id": self.product_id,
            "product_name": self.product.name if self.product else None,
            "movement_type": self.movement_type,
            "quantity_change": self.quantity_change,
            "previous_quantity": self.previous_quantity,
            "new_quantity": self.new_quantity,
            "user_id": self.user_id,
            "reason": self.reason,
            "notes": self.notes,
            "bill_id": self.bill_id,
            "created_at": to_utc_z(self.created_at),
        }
