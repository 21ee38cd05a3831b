from __future__ import annotations

from ..extensions import db
from medpos.time_utils import to_utc_z

class Tenant(db.Model):
    """
    Multi-tenant root: every store owner is a Tenant.

    WHY: Shared-database multi-tenancy with strict isolation.
    Medicines, sales, users and the bill sequence all carry tenant_id,
    and no query in the service layer runs without one.

    DESIGN:
    - tenant_id is always passed explicitly into services (never read from
      ambient request state below the route layer)
    - timezone decides the store's local "today" for expiry checks
    """
    __tablename__ = "tenants"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    store_name = db.Column(db.String(100), nullable=False)
    store_address = db.Column(db.String(200), nullable=True)
    phone = db.Column(db.String(15), nullable=True)
    gst_number = db.Column(db.String(32), nullable=True)

    # IANA timezone name, e.g. "Asia/Kolkata"
    timezone = db.Column(db.String(64), nullable=False, default="UTC")

    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)

    created_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
    )
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    def __repr__(self) -> str:
        return f"<Tenant id={self.id} store_name={self.store_name!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "store_name": self.store_name,
            "store_address": self.store_address,
            "phone": self.phone,
            "gst_number": self.gst_number,
            "timezone": self.timezone,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
