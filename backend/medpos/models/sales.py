from __future__ import annotations

from sqlalchemy import event
from sqlalchemy.orm import Session

from ..extensions import db
from ..errors import ImmutableRecordError
from ..services.pricing_service import micros_to_percent
from medpos.time_utils import to_utc_z

PAYMENT_METHODS = ("CASH", "CARD", "UPI", "ONLINE")
PAYMENT_STATUSES = ("PENDING", "COMPLETED", "FAILED")


class Sale(db.Model):
    """
    Bill: immutable audit record of one committed sale.

    WHY: A sale is written exactly once by billing_service.create_sale,
    together with the stock decrements it causes. It is never updated or
    deleted afterwards (enforced by the before_flush guard below).

    TOTALS (all cents):
    - subtotal_cents = sum(line.line_total_cents)
    - total_cents = subtotal_cents - discount_cents + tax_cents
    """
    __tablename__ = "sales"
    __table_args__ = (
        db.UniqueConstraint("tenant_id", "bill_number", name="uq_sales_tenant_bill_number"),
        db.Index("ix_sales_bill_number", "bill_number"),
        db.Index("ix_sales_tenant_created", "tenant_id", "created_at"),
        db.CheckConstraint("subtotal_cents >= 0", name="subtotal_non_negative"),
        db.CheckConstraint("discount_cents >= 0", name="discount_non_negative"),
        db.CheckConstraint("tax_cents >= 0", name="tax_non_negative"),
        db.CheckConstraint("total_cents >= 0", name="total_non_negative"),
        db.CheckConstraint(
            "total_cents = subtotal_cents - discount_cents + tax_cents",
            name="total_consistent",
        ),
        db.CheckConstraint(
            "payment_method IN ('CASH', 'CARD', 'UPI', 'ONLINE')",
            name="payment_method_valid",
        ),
        db.CheckConstraint(
            "payment_status IN ('PENDING', 'COMPLETED', 'FAILED')",
            name="payment_status_valid",
        ),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    tenant_id = db.Column(db.Integer, db.ForeignKey("tenants.id"), nullable=False, index=True)

    # Human-readable bill number (e.g., "BILL-000042"), unique per tenant
    bill_number = db.Column(db.String(32), nullable=False)

    customer_name = db.Column(db.String(255), nullable=False)
    customer_mobile = db.Column(db.String(15), nullable=True)
    customer_email = db.Column(db.String(255), nullable=True)

    subtotal_cents = db.Column(db.Integer, nullable=False)
    discount_cents = db.Column(db.Integer, nullable=False, default=0)
    tax_cents = db.Column(db.Integer, nullable=False, default=0)
    total_cents = db.Column(db.Integer, nullable=False)

    payment_method = db.Column(db.String(16), nullable=False, default="CASH")
    # Point of sale: always COMPLETED at creation (no gateway integration)
    payment_status = db.Column(db.String(16), nullable=False, default="COMPLETED", index=True)

    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    tenant = db.relationship("Tenant", backref=db.backref("sales", lazy=True))
    lines = db.relationship(
        "SaleLine",
        back_populates="sale",
        order_by="SaleLine.position",
        lazy="selectin",
    )

    def to_dict(self, include_lines: bool = True) -> dict:
        data = {
            "id": self.id,
            "tenant_id": self.tenant_id,
            "bill_number": self.bill_number,
            "customer_name": self.customer_name,
            "customer_mobile": self.customer_mobile,
            "customer_email": self.customer_email,
            "subtotal_cents": self.subtotal_cents,
            "discount_cents": self.discount_cents,
            "tax_cents": self.tax_cents,
            "total_cents": self.total_cents,
            "payment_method": self.payment_method,
            "payment_status": self.payment_status,
            "created_by_user_id": self.created_by_user_id,
            "created_at": to_utc_z(self.created_at),
            "line_count": len(self.lines),
        }
        if include_lines:
            data["lines"] = [line.to_dict() for line in self.lines]
        return data


class SaleLine(db.Model):
    """
    One line of a bill.

    Name, batch, price, MRP and discount are frozen copies of the catalog row
    at sale time, so later catalog edits never rewrite history.
    line_total_cents = round_half_up(unit_price_cents * quantity * (100% - discount)),
    with the discount held in millionths of a percent (discount_micros).
    """
    __tablename__ = "sale_lines"
    __table_args__ = (
        db.UniqueConstraint("sale_id", "position", name="uq_sale_lines_sale_position"),
        db.CheckConstraint("quantity >= 1", name="quantity_positive"),
        db.CheckConstraint("unit_price_cents >= 0", name="unit_price_non_negative"),
        db.CheckConstraint("mrp_cents >= 0", name="mrp_non_negative"),
        db.CheckConstraint("discount_micros >= 0 AND discount_micros <= 100000000", name="discount_micros_range"),
        db.CheckConstraint("line_total_cents >= 0", name="line_total_non_negative"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=False, index=True)
    position = db.Column(db.Integer, nullable=False)

    medicine_id = db.Column(db.Integer, db.ForeignKey("medicines.id"), nullable=False, index=True)
    medicine_name = db.Column(db.String(255), nullable=False)
    batch_number = db.Column(db.String(64), nullable=False)

    quantity = db.Column(db.Integer, nullable=False)
    unit_price_cents = db.Column(db.Integer, nullable=False)
    mrp_cents = db.Column(db.Integer, nullable=False)
    discount_micros = db.Column(db.Integer, nullable=False, default=0)
    line_total_cents = db.Column(db.Integer, nullable=False)

    sale = db.relationship("Sale", back_populates="lines")
    medicine = db.relationship("Medicine")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "position": self.position,
            "medicine_id": self.medicine_id,
            "medicine_name": self.medicine_name,
            "batch_number": self.batch_number,
            "quantity": self.quantity,
            "unit_price_cents": self.unit_price_cents,
            "mrp_cents": self.mrp_cents,
            "discount_micros": self.discount_micros,
            "discount_percent": micros_to_percent(self.discount_micros),
            "line_total_cents": self.line_total_cents,
        }


class BillSequence(db.Model):
    """
    Per-tenant bill counter.

    next_number is the number the next committed sale will receive.
    Incremented with a single atomic UPDATE inside the billing transaction.
    """
    __tablename__ = "bill_sequences"
    __table_args__ = (
        db.CheckConstraint("next_number >= 1", name="next_number_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    tenant_id = db.Column(db.Integer, db.ForeignKey("tenants.id"), nullable=False, unique=True)
    next_number = db.Column(db.Integer, nullable=False, default=1)


@event.listens_for(Session, "before_flush")
def _reject_ledger_mutations(session, flush_context, instances):
    """Committed sales are append-only: no updates, no deletes, no new lines."""
    for obj in session.deleted:
        if isinstance(obj, (Sale, SaleLine)):
            raise ImmutableRecordError(
                "Sales are immutable and cannot be deleted",
                details={"entity": type(obj).__name__, "id": obj.id},
            )

    for obj in session.dirty:
        if isinstance(obj, (Sale, SaleLine)) and session.is_modified(obj, include_collections=False):
            raise ImmutableRecordError(
                "Sales are immutable and cannot be modified",
                details={"entity": type(obj).__name__, "id": obj.id},
            )

    for obj in session.new:
        if isinstance(obj, SaleLine) and obj.sale is not None and obj.sale not in session.new:
            raise ImmutableRecordError(
                "Lines cannot be added to a committed sale",
                details={"entity": "SaleLine", "sale_id": obj.sale.id},
            )
