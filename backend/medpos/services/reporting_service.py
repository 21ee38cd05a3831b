# Overview: Read-only reporting projections over committed sales and the current catalog.

from __future__ import annotations

import calendar
from datetime import date, datetime, timedelta

from flask import current_app
from sqlalchemy import func

from ..extensions import db
from ..models import Medicine, Sale, SaleLine
from medpos.time_utils import parse_iso_datetime, to_iso_date, to_utc_z, utcnow
from . import stock_guard
from .catalog_service import list_medicines
from .tenant_service import tenant_today

"""
Reporting is a pure consumer: nothing here writes, and every query filters
on the tenant_id it was given. Only committed sales exist in the ledger, so
every sale row counts.
"""

GROUP_FORMATS = {
    "day": "%Y-%m-%d",
    "week": "%Y-W%W",
    "month": "%Y-%m",
}


class ReportError(Exception):
    """Raised when report parameters are invalid."""
    pass


def parse_report_range(start, end) -> tuple[datetime, datetime]:
    if not start or not end:
        raise ReportError("start and end are required")
    try:
        start_dt = start if isinstance(start, datetime) else parse_iso_datetime(start)
        end_dt = end if isinstance(end, datetime) else parse_iso_datetime(end)
    except ValueError:
        raise ReportError("start and end must be ISO-8601 dates")
    # A bare end date covers the whole day
    if isinstance(end, str) and len(end.strip()) == 10:
        end_dt = end_dt + timedelta(days=1) - timedelta(microseconds=1)
    if start_dt > end_dt:
        raise ReportError("start must be before end")
    return start_dt, end_dt


def _average(total: int, count: int) -> int:
    # half-up integer division
    return (total + count // 2) // count if count else 0


def _months_before(day: date, months: int) -> date:
    month_index = day.year * 12 + (day.month - 1) - months
    year, month = divmod(month_index, 12)
    month += 1
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, min(day.day, last_day))


def sales_report(tenant_id: int, start, end, group_by: str = "day") -> dict:
    """
    Sales rolled up per day, week, or month between start and end (inclusive).

    Each row: sales_count, revenue_cents, discount_cents, tax_cents,
    average_order_value_cents. The summary covers the whole range.
    """
    fmt = GROUP_FORMATS.get(group_by)
    if fmt is None:
        raise ReportError("group_by must be day, week, or month")
    start_dt, end_dt = parse_report_range(start, end)

    period_expr = func.strftime(fmt, Sale.created_at)

    rows = (
        db.session.query(
            period_expr.label("period"),
            func.count(Sale.id).label("sales_count"),
            func.coalesce(func.sum(Sale.total_cents), 0).label("revenue_cents"),
            func.coalesce(func.sum(Sale.discount_cents), 0).label("discount_cents"),
            func.coalesce(func.sum(Sale.tax_cents), 0).label("tax_cents"),
        )
        .filter(
            Sale.tenant_id == tenant_id,
            Sale.created_at >= start_dt,
            Sale.created_at <= end_dt,
        )
        .group_by("period")
        .order_by("period")
        .all()
    )

    report_rows = []
    for row in rows:
        count = int(row.sales_count or 0)
        revenue = int(row.revenue_cents or 0)
        report_rows.append({
            "period": row.period,
            "sales_count": count,
            "revenue_cents": revenue,
            "discount_cents": int(row.discount_cents or 0),
            "tax_cents": int(row.tax_cents or 0),
            "average_order_value_cents": _average(revenue, count),
        })

    total_sales = sum(r["sales_count"] for r in report_rows)
    total_revenue = sum(r["revenue_cents"] for r in report_rows)

    return {
        "group_by": group_by,
        "start": to_utc_z(start_dt),
        "end": to_utc_z(end_dt),
        "rows": report_rows,
        "summary": {
            "total_sales": total_sales,
            "total_revenue_cents": total_revenue,
            "total_discount_cents": sum(r["discount_cents"] for r in report_rows),
            "total_tax_cents": sum(r["tax_cents"] for r in report_rows),
            "average_order_value_cents": _average(total_revenue, total_sales),
        },
    }


def daily_sales(tenant_id: int, days: int = 30) -> list[dict]:
    """Per-day sales count and revenue over the last `days` days (UTC dates)."""
    if days < 1:
        raise ReportError("days must be at least 1")
    since = utcnow() - timedelta(days=days)
    day_expr = func.strftime("%Y-%m-%d", Sale.created_at)

    rows = (
        db.session.query(
            day_expr.label("day"),
            func.count(Sale.id).label("sales_count"),
            func.coalesce(func.sum(Sale.total_cents), 0).label("revenue_cents"),
        )
        .filter(Sale.tenant_id == tenant_id, Sale.created_at >= since)
        .group_by("day")
        .order_by("day")
        .all()
    )
    return [
        {"date": row.day, "sales_count": int(row.sales_count), "revenue_cents": int(row.revenue_cents)}
        for row in rows
    ]


def top_medicines(tenant_id: int, days: int = 30, limit: int = 10) -> list[dict]:
    """Best sellers by quantity over the last `days` days."""
    if days < 1:
        raise ReportError("days must be at least 1")
    if limit < 1:
        raise ReportError("limit must be at least 1")
    since = utcnow() - timedelta(days=days)

    rows = (
        db.session.query(
            SaleLine.medicine_id,
            SaleLine.medicine_name,
            func.sum(SaleLine.quantity).label("quantity_sold"),
            func.sum(SaleLine.line_total_cents).label("revenue_cents"),
            func.count(func.distinct(Sale.id)).label("bill_count"),
        )
        .join(Sale, SaleLine.sale_id == Sale.id)
        .filter(Sale.tenant_id == tenant_id, Sale.created_at >= since)
        .group_by(SaleLine.medicine_id, SaleLine.medicine_name)
        .order_by(func.sum(SaleLine.quantity).desc(), SaleLine.medicine_id.asc())
        .limit(limit)
        .all()
    )
    return [
        {
            "medicine_id": row.medicine_id,
            "medicine_name": row.medicine_name,
            "quantity_sold": int(row.quantity_sold or 0),
            "revenue_cents": int(row.revenue_cents or 0),
            "bill_count": int(row.bill_count or 0),
        }
        for row in rows
    ]


def inventory_report(
    tenant_id: int,
    *,
    category: str | None = None,
    stock_status: str | None = None,
    today: date | None = None,
) -> dict:
    """Current catalog with stock counts and inventory value (price * quantity)."""
    listing = list_medicines(
        tenant_id,
        category=category,
        stock_status=stock_status,
        sort_by="name",
        sort_order="asc",
        today=today,
    )
    items = listing["items"]

    out_of_stock = sum(1 for m in items if m["is_out_of_stock"])
    low_stock = sum(1 for m in items if m["is_low_stock"])

    return {
        "summary": {
            "total_items": len(items),
            "total_quantity": sum(m["quantity"] for m in items),
            "inventory_value_cents": sum(m["price_cents"] * m["quantity"] for m in items),
            "out_of_stock_count": out_of_stock,
            "low_stock_count": low_stock,
            "in_stock_count": len(items) - out_of_stock,
        },
        "items": items,
    }


def expiry_report(tenant_id: int, months: int = 6, today: date | None = None) -> dict:
    """Medicines that expired within the last `months` months, grouped by expiry month."""
    if months < 1:
        raise ReportError("months must be at least 1")
    if today is None:
        today = tenant_today(tenant_id)
    start = _months_before(today, months)
    soon_days = current_app.config.get("EXPIRING_SOON_DAYS", 30)

    medicines = (
        db.session.query(Medicine)
        .filter(
            Medicine.tenant_id == tenant_id,
            Medicine.expiry_date >= start,
            Medicine.expiry_date <= today,
        )
        .order_by(Medicine.expiry_date.asc(), Medicine.id.asc())
        .all()
    )

    by_month: dict[str, list] = {}
    for medicine in medicines:
        key = medicine.expiry_date.strftime("%Y-%m")
        by_month.setdefault(key, []).append(medicine)

    breakdown = [
        {
            "month": month,
            "count": len(rows),
            "quantity": sum(m.quantity for m in rows),
            "value_cents": sum(m.price_cents * m.quantity for m in rows),
            "medicines": [m.to_dict(today=today, expiring_soon_days=soon_days) for m in rows],
        }
        for month, rows in by_month.items()
    ]

    return {
        "start": to_iso_date(start),
        "end": to_iso_date(today),
        "summary": {
            "total_expiring": len(medicines),
            "monthly_breakdown": breakdown,
        },
    }


def dashboard_summary(tenant_id: int, today: date | None = None) -> dict:
    if today is None:
        today = tenant_today(tenant_id)
    soon_days = current_app.config.get("EXPIRING_SOON_DAYS", 30)

    medicines = (
        db.session.query(Medicine)
        .filter(Medicine.tenant_id == tenant_id, Medicine.is_active.is_(True))
        .all()
    )

    day_start = datetime(today.year, today.month, today.day)
    month_start = datetime(today.year, today.month, 1)

    def _sales_since(since: datetime):
        count, revenue = (
            db.session.query(func.count(Sale.id), func.coalesce(func.sum(Sale.total_cents), 0))
            .filter(Sale.tenant_id == tenant_id, Sale.created_at >= since)
            .one()
        )
        return int(count or 0), int(revenue or 0)

    today_count, today_revenue = _sales_since(day_start)
    _, month_revenue = _sales_since(month_start)

    return {
        "total_medicines": len(medicines),
        "low_stock_count": sum(1 for m in medicines if stock_guard.is_low_stock(m)),
        "out_of_stock_count": sum(1 for m in medicines if stock_guard.is_out_of_stock(m)),
        "expiring_soon_count": sum(1 for m in medicines if stock_guard.expiring_soon(m, today, soon_days)),
        "expired_count": sum(1 for m in medicines if stock_guard.is_expired(m, today)),
        "today_sales_count": today_count,
        "today_revenue_cents": today_revenue,
        "month_revenue_cents": month_revenue,
        "total_bills": int(
            db.session.query(func.count(Sale.id)).filter(Sale.tenant_id == tenant_id).scalar() or 0
        ),
    }
