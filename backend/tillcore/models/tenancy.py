from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


class Store(db.Model):
    """
    Store (tenant) carrying the pricing configuration the checkout core reads.

    Provisioning happens elsewhere; this row is the resolved configuration
    for one isolated store. A cart session snapshots tax_rate_bps and
    vat_enabled when it is opened.
    """
    __tablename__ = "stores"
    __table_args__ = (
        db.UniqueConstraint("code", name="uq_stores_code"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), nullable=False)
    code = db.Column(db.String(32), nullable=True, index=True)

    # Pricing configuration
    tax_rate_bps = db.Column(db.Integer, nullable=False, default=700)  # Basis points (e.g., 700 = 7%)
    vat_enabled = db.Column(db.Boolean, nullable=False, default=True)
    default_payment_method = db.Column(db.String(32), nullable=False, default="CASH")

    created_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
    )

    def __repr__(self) -> str:
        return f"<Store id={self.id} name={self.name!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "code": self.code,
            "tax_rate_bps": self.tax_rate_bps,
            "vat_enabled": self.vat_enabled,
            "default_payment_method": self.default_payment_method,
            "created_at": to_utc_z(self.created_at),
        }
