from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


BILL_STATUS_COMPLETED = "COMPLETED"
BILL_STATUS_VOIDED = "VOIDED"


def _percent(value) -> float:
    return float(value) if value is not None else 0.0


class TotalsMixin:
    """Money breakdown shared by Bill and Sale (all amounts in cents)."""

    subtotal_cents = db.Column(db.Integer, nullable=False)
    discount_cents = db.Column(db.Integer, nullable=False, default=0)
    discount_percent = db.Column(db.Numeric(7, 3), nullable=False, default=0)
    surcharge_cents = db.Column(db.Integer, nullable=False, default=0)
    surcharge_percent = db.Column(db.Numeric(7, 3), nullable=False, default=0)
    tax_cents = db.Column(db.Integer, nullable=False, default=0)
    total_cents = db.Column(db.Integer, nullable=False)

    payment_method = db.Column(db.String(32), nullable=False, default="CASH")
    amount_received_cents = db.Column(db.Integer, nullable=False)
    change_cents = db.Column(db.Integer, nullable=False, default=0)

    def totals_dict(self) -> dict:
        return {
            "subtotal_cents": self.subtotal_cents,
            "discount_cents": self.discount_cents,
            "discount_percent": _percent(self.discount_percent),
            "surcharge_cents": self.surcharge_cents,
            "surcharge_percent": _percent(self.surcharge_percent),
            "tax_cents": self.tax_cents,
            "total_cents": self.total_cents,
            "payment_method": self.payment_method,
            "amount_received_cents": self.amount_received_cents,
            "change_cents": self.change_cents,
        }


class LineSnapshotMixin:
    """
    Frozen copy of a cart line taken at checkout.

    product_name and unit_price_cents are copied, never joined, so editing
    the product afterwards cannot rewrite history.
    """

    product_name = db.Column(db.String(255), nullable=False)
    quantity = db.Column(db.Integer, nullable=False)
    unit_price_cents = db.Column(db.Integer, nullable=False)
    discount_cents = db.Column(db.Integer, nullable=False, default=0)
    total_cents = db.Column(db.Integer, nullable=False)

    def line_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "product_name": self.product_name,
            "quantity": self.quantity,
            "unit_price_cents": self.unit_price_cents,
            "discount_cents": self.discount_cents,
            "total_cents": self.total_cents,
        }


class Bill(TotalsMixin, db.Model):
    """
    Customer-facing record of a completed checkout.

    Created exactly once by the checkout service. The only permitted
    mutation afterwards is status COMPLETED -> VOIDED (with void audit).
    """
    __tablename__ = "bills"
    __table_args__ = (
        db.UniqueConstraint("store_id", "bill_number", name="uq_bills_store_number"),
        db.Index("ix_bills_store_status_created", "store_id", "status", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False, index=True)
    bill_number = db.Column(db.String(64), nullable=False)
    user_id = db.Column(db.Integer, nullable=False, index=True)

    status = db.Column(db.String(16), nullable=False, default=BILL_STATUS_COMPLETED, index=True)

    customer_name = db.Column(db.String(255), nullable=True)
    notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    # Void audit trail
    voided_by_user_id = db.Column(db.Integer, nullable=True)
    voided_at = db.Column(db.DateTime(timezone=True), nullable=True)
    void_reason = db.Column(db.String(255), nullable=True)

    items = db.relationship(
        "BillItem",
        backref="bill",
        lazy=True,
        order_by="BillItem.id",
        cascade="all, delete-orphan",
    )

    def to_dict(self, include_items: bool = True) -> dict:
        data = {
            "id": self.id,
            "store_id": self.store_id,
            "bill_number": self.bill_number,
            "user_id": self.user_id,
            "status": self.status,
            "customer_name": self.customer_name,
            "notes": self.notes,
            "created_at": to_utc_z(self.created_at),
            "voided_by_user_id": self.voided_by_user_id,
            "voided_at": to_utc_z(self.voided_at) if self.voided_at else None,
            "void_reason": self.void_reason,
        }
        data.update(self.totals_dict())
        if include_items:
            data["items"] = [item.to_dict() for item in self.items]
        return data


class BillItem(LineSnapshotMixin, db.Model):
    __tablename__ = "bill_items"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    bill_id = db.Column(db.Integer, db.ForeignKey("bills.id"), nullable=False, index=True)
    # No relationship to Product on purpose: the snapshot columns are the record.
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False)

    def to_dict(self) -> dict:
        data = self.line_dict()
        data["bill_id"] = self.bill_id
        return data


class Sale(TotalsMixin, db.Model):
    """
    Reporting projection of a checkout, written in the same transaction as
    its Bill and voided together with it.
    """
    __tablename__ = "sales"
    __table_args__ = (
        db.UniqueConstraint("store_id", "sale_number", name="uq_sales_store_number"),
        db.Index("ix_sales_store_status_created", "store_id", "status", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False, index=True)
    sale_number = db.Column(db.String(64), nullable=False)
    bill_id = db.Column(db.Integer, db.ForeignKey("bills.id"), nullable=False, unique=True)
    user_id = db.Column(db.Integer, nullable=False, index=True)

    status = db.Column(db.String(16), nullable=False, default=BILL_STATUS_COMPLETED, index=True)
    payment_status = db.Column(db.String(16), nullable=False, default="PAID")

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    voided_at = db.Column(db.DateTime(timezone=True), nullable=True)

    bill = db.relationship("Bill", backref=db.backref("sale", uselist=False))
    items = db.relationship(
        "SaleItem",
        backref="sale",
        lazy=True,
        order_by="SaleItem.id",
        cascade="all, delete-orphan",
    )

    def to_dict(self, include_items: bool = True) -> dict:
        data = {
            "id": self.id,
            "store_id": self.store_id,
            "sale_number": self.sale_number,
            "bill_id": self.bill_id,
            "user_id": self.user_id,
            "status": self.status,
            "payment_status": self.payment_status,
            "created_at": to_utc_z(self.created_at),
            "voided_at": to_utc_z(self.voided_at) if self.voided_at else None,
        }
        data.update(self.totals_dict())
        if include_items:
            data["items"] = [item.to_dict() for item in self.items]
        return data


class SaleItem(LineSnapshotMixin, db.Model):
    __tablename__ = "sale_items"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False)

    def to_dict(self) -> dict:
        data = self.line_dict()
        data["sale_id"] = self.sale_id
        return data
