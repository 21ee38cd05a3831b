from __future__ import annotations

from ..extensions import db
from ..services.pricing_service import micros_to_percent
from medpos.time_utils import to_utc_z, to_iso_date

MEDICINE_CATEGORIES = (
    "TABLET",
    "CAPSULE",
    "SYRUP",
    "INJECTION",
    "OINTMENT",
    "DROPS",
    "INHALER",
    "OTHER",
)


class Medicine(db.Model):
    """
    Catalog item: one medicine batch in a tenant's inventory.

    MULTI-TENANT: Medicines are scoped to tenants via tenant_id.
    Batch numbers are unique within a tenant, not globally.

    STOCK INVARIANTS:
    - quantity is never negative (CHECK constraint + conditional decrement)
    - only committed sales decrement quantity, via catalog_service.decrement_quantity
    - a medicine referenced by a sale line is deactivated, never deleted

    Money is stored in cents; discount in millionths of a percent
    (12_345_000 = 12.345%).
    """
    __tablename__ = "medicines"
    __table_args__ = (
        db.UniqueConstraint("tenant_id", "batch_number", name="uq_medicines_tenant_batch"),
        db.Index("ix_medicines_tenant_name", "tenant_id", "name"),
        db.Index("ix_medicines_tenant_category", "tenant_id", "category"),
        db.Index("ix_medicines_tenant_quantity", "tenant_id", "quantity"),
        db.Index("ix_medicines_expiry_date", "expiry_date"),
        db.CheckConstraint("quantity >= 0", name="quantity_non_negative"),
        db.CheckConstraint("price_cents >= 0", name="price_non_negative"),
        db.CheckConstraint("mrp_cents >= 0", name="mrp_non_negative"),
        db.CheckConstraint("discount_micros >= 0 AND discount_micros <= 100000000", name="discount_micros_range"),
        db.CheckConstraint("low_stock_threshold >= 0", name="low_stock_threshold_non_negative"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    tenant_id = db.Column(db.Integer, db.ForeignKey("tenants.id"), nullable=False, index=True)

    name = db.Column(db.String(255), nullable=False)
    # Stored uppercased
    batch_number = db.Column(db.String(64), nullable=False)
    category = db.Column(db.String(16), nullable=False)

    quantity = db.Column(db.Integer, nullable=False, default=0)
    price_cents = db.Column(db.Integer, nullable=False)
    mrp_cents = db.Column(db.Integer, nullable=False)
    discount_micros = db.Column(db.Integer, nullable=False, default=0)

    expiry_date = db.Column(db.Date, nullable=False)
    low_stock_threshold = db.Column(db.Integer, nullable=False, default=5)

    supplier = db.Column(db.String(255), nullable=True)
    description = db.Column(db.Text, nullable=True)

    is_active = db.Column(db.Boolean, nullable=False, default=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    tenant = db.relationship("Tenant", backref=db.backref("medicines", lazy=True))
    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return (
            f"<Medicine id={self.id} batch={self.batch_number!r} "
            f"qty={self.quantity} tenant_id={self.tenant_id}>"
        )

    def to_dict(self, today=None, expiring_soon_days: int = 30) -> dict:
        from ..services import stock_guard

        data = {
            "id": self.id,
            "tenant_id": self.tenant_id,
            "name": self.name,
            "batch_number": self.batch_number,
            "category": self.category,
            "quantity": self.quantity,
            "price_cents": self.price_cents,
            "mrp_cents": self.mrp_cents,
            "discount_micros": self.discount_micros,
            "discount_percent": micros_to_percent(self.discount_micros),
            "expiry_date": to_iso_date(self.expiry_date),
            "low_stock_threshold": self.low_stock_threshold,
            "supplier": self.supplier,
            "description": self.description,
            "is_active": self.is_active,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
        if today is not None:
            data.update({
                "is_expired": stock_guard.is_expired(self, today),
                "is_low_stock": stock_guard.is_low_stock(self),
                "is_out_of_stock": stock_guard.is_out_of_stock(self),
                "expiring_soon": stock_guard.expiring_soon(self, today, expiring_soon_days),
            })
        return data
