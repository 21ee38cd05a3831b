# Overview: Sale ledger; append-only storage and tenant-scoped reads of committed bills.

from __future__ import annotations

from datetime import datetime

from sqlalchemy import func

from ..extensions import db
from ..models import Sale
from .pricing_service import verify_sale_totals
"""
Sale Ledger Invariants (authoritative)

- Append-only: insert_sale is the only write path; no update/delete exists.
- insert_sale never commits. It runs inside the caller's unit of work so the
  sale and its stock decrements land in the same transaction.
- Every read takes tenant_id explicitly and filters on it.
- A sale is only inserted when its totals match a fresh recomputation.
"""


def insert_sale(sale: Sale) -> Sale:
    """Stage a fully built sale (with lines) in the current transaction."""
    if not sale.lines:
        raise ValueError("sale must have at least one line")
    verify_sale_totals(sale)

    db.session.add(sale)
    db.session.flush()
    return sale


def count_sales(tenant_id: int) -> int:
    return int(
        db.session.query(func.count(Sale.id))
        .filter(Sale.tenant_id == tenant_id)
        .scalar() or 0
    )


def get_sale(tenant_id: int, sale_id: int) -> Sale | None:
    return (
        db.session.query(Sale)
        .filter(Sale.tenant_id == tenant_id, Sale.id == sale_id)
        .first()
    )


def get_sale_by_number(tenant_id: int, bill_number: str) -> Sale | None:
    return (
        db.session.query(Sale)
        .filter(Sale.tenant_id == tenant_id, Sale.bill_number == bill_number.strip().upper())
        .first()
    )


def list_sales(
    tenant_id: int,
    *,
    start: datetime | None = None,
    end: datetime | None = None,
    customer_name: str | None = None,
    page: int | None = None,
    per_page: int | None = None,
) -> dict:
    """
    Tenant-scoped bill listing, newest first, with optional pagination.

    Date bounds are inclusive and apply to created_at.
    customer_name matches case-insensitively anywhere in the name.
    """
    query = db.session.query(Sale).filter(Sale.tenant_id == tenant_id)
    if start:
        query = query.filter(Sale.created_at >= start)
    if end:
        query = query.filter(Sale.created_at <= end)
    if customer_name:
        query = query.filter(Sale.customer_name.ilike(f"%{customer_name.strip()}%"))

    query = query.order_by(Sale.created_at.desc(), Sale.id.desc())

    if page is None:
        sales = query.all()
        return {
            "items": [s.to_dict(include_lines=False) for s in sales],
            "count": len(sales),
        }

    per_page = min(per_page or 20, 100)
    page = max(page, 1)

    total = query.count()
    total_pages = (total + per_page - 1) // per_page if total > 0 else 1
    sales = query.offset((page - 1) * per_page).limit(per_page).all()

    return {
        "items": [s.to_dict(include_lines=False) for s in sales],
        "count": len(sales),
        "pagination": {
            "page": page,
            "per_page": per_page,
            "total": total,
            "total_pages": total_pages,
            "has_next": page < total_pages,
            "has_prev": page > 1,
        },
    }
