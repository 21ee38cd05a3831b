"""
Stock guard: pure sellability rules for catalog items.

No I/O and no session access; callers pass the row they already hold and
the calendar date to compare against. Expiry is day-granular and inclusive:
an item whose expiry_date is today can still be sold.
"""

from __future__ import annotations

from datetime import date, timedelta

from ..errors import ExpiredItem, InsufficientStock


def is_expired(item, today: date) -> bool:
    return item.expiry_date < today


def is_out_of_stock(item) -> bool:
    return item.quantity == 0


def is_low_stock(item) -> bool:
    return 0 < item.quantity <= item.low_stock_threshold


def expiring_soon(item, today: date, days: int = 30) -> bool:
    """Not yet expired, but expires within `days` days of today."""
    return today <= item.expiry_date <= today + timedelta(days=days)


def can_sell(item, requested_qty: int, today: date) -> bool:
    """True iff there is enough stock for requested_qty and the item is not expired."""
    return item.quantity >= requested_qty and item.expiry_date >= today


def check_sellable(item, requested_qty: int, today: date, line: int | None = None) -> None:
    """
    Raise the specific rejection when can_sell() is False.

    Expiry is reported before stock, so an expired item with plenty of
    quantity is rejected as ExpiredItem rather than InsufficientStock.
    """
    if can_sell(item, requested_qty, today):
        return

    if is_expired(item, today):
        raise ExpiredItem(
            f"Cannot sell expired medicine: {item.name}",
            details={
                "medicine_id": item.id,
                "batch_number": item.batch_number,
                "expiry_date": item.expiry_date.isoformat(),
            },
            line=line,
        )

    raise InsufficientStock(
        f"Insufficient stock for {item.name}. Available: {item.quantity}",
        details={
            "medicine_id": item.id,
            "requested_quantity": requested_qty,
            "available_quantity": item.quantity,
        },
        line=line,
    )
