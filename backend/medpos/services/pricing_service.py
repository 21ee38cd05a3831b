"""
Pricing engine: deterministic bill arithmetic in integer cents.

Discounts are held in millionths of a percent (discount_micros), so
12.345% is 12_345_000 and 100% is 100_000_000.

Line total:  round_half_up(unit_price_cents * quantity * (FULL_DISCOUNT - discount_micros) / FULL_DISCOUNT)
Subtotal:    sum(line totals)
Total:       subtotal - discount_cents + tax_cents

Everything is integer math, so identical inputs give identical outputs on
every platform. Out-of-range input is rejected with InvalidInput, never
clamped.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Iterable

from ..errors import InvalidInput

# Units per 1% of discount
PERCENT_SCALE = 1_000_000
FULL_DISCOUNT = 100 * PERCENT_SCALE

# Maximum price: 9,999,999.99 (999,999,999 cents)
MAX_PRICE_CENTS = 999_999_999


@dataclass(frozen=True)
class BillTotals:
    subtotal_cents: int
    discount_cents: int
    tax_cents: int
    total_cents: int


def _is_int(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _is_plain_digits(text: str) -> bool:
    # str.isdigit() also accepts superscripts and other Unicode digits
    return text.isascii() and text.isdigit()


def parse_cents(value, field: str, *, line: int | None = None, default: int | None = None) -> int:
    """
    Parse a non-negative amount in cents.

    Accepts ints and plain digit strings. Floats, decimals, scientific
    notation and negative values are rejected.
    """
    if value is None:
        if default is not None:
            return default
        raise InvalidInput(f"{field} is required", details={"field": field}, line=line)

    if isinstance(value, str):
        stripped = value.strip()
        if not _is_plain_digits(stripped):
            raise InvalidInput(f"{field} must be a whole number of cents", details={"field": field}, line=line)
        value = int(stripped)

    if not _is_int(value):
        raise InvalidInput(f"{field} must be a whole number of cents", details={"field": field}, line=line)
    if value < 0:
        raise InvalidInput(f"{field} must be >= 0", details={"field": field, "value": value}, line=line)
    if value > MAX_PRICE_CENTS:
        raise InvalidInput(f"{field} cannot exceed {MAX_PRICE_CENTS}", details={"field": field}, line=line)
    return value


def parse_quantity(value, *, line: int | None = None, field: str = "quantity", minimum: int = 1) -> int:
    if isinstance(value, str) and _is_plain_digits(value.strip()):
        value = int(value.strip())
    if not _is_int(value):
        raise InvalidInput(f"{field} must be an integer", details={"field": field}, line=line)
    if value < minimum:
        raise InvalidInput(
            f"{field} must be at least {minimum}",
            details={"field": field, "value": value},
            line=line,
        )
    return value


def parse_discount_percent(value, *, line: int | None = None, field: str = "discount_percent") -> int:
    """
    Convert a discount percentage in [0, 100] to millionths of a percent.

    12.5 -> 12_500_000, "12.345" -> 12_345_000. Digits beyond the sixth
    decimal place are rounded half-up.
    """
    if isinstance(value, bool) or value is None:
        raise InvalidInput(f"{field} must be a number", details={"field": field}, line=line)

    try:
        if isinstance(value, Decimal):
            pct = value
        elif isinstance(value, int):
            pct = Decimal(value)
        elif isinstance(value, float):
            # str() gives the shortest repr, so 12.5 stays exactly 12.5
            pct = Decimal(str(value))
        elif isinstance(value, str):
            pct = Decimal(value.strip())
        else:
            raise InvalidInput(f"{field} must be a number", details={"field": field}, line=line)
    except InvalidOperation:
        raise InvalidInput(f"{field} must be a number", details={"field": field}, line=line)

    if not pct.is_finite():
        raise InvalidInput(f"{field} must be a number", details={"field": field}, line=line)
    if pct < 0 or pct > 100:
        raise InvalidInput(
            f"{field} must be between 0 and 100",
            details={"field": field, "value": str(value)},
            line=line,
        )

    return int((pct * PERCENT_SCALE).to_integral_value(rounding=ROUND_HALF_UP))


def micros_to_percent(micros: int) -> str:
    """12_500_000 -> "12.50", 12_345_000 -> "12.345"; at least two decimals."""
    whole, _, frac = f"{Decimal(micros) / PERCENT_SCALE:.6f}".partition(".")
    frac = frac.rstrip("0").ljust(2, "0")
    return f"{whole}.{frac}"


def line_total_cents(unit_price_cents: int, quantity: int, discount_micros: int, *, line: int | None = None) -> int:
    """price * quantity * (1 - discount/100), rounded to the nearest cent (half-up)."""
    if not _is_int(unit_price_cents) or unit_price_cents < 0:
        raise InvalidInput("unit price must be a non-negative integer of cents", line=line)
    if not _is_int(quantity) or quantity < 1:
        raise InvalidInput("quantity must be at least 1", details={"value": quantity}, line=line)
    if not _is_int(discount_micros) or not 0 <= discount_micros <= FULL_DISCOUNT:
        raise InvalidInput("discount must be between 0 and 100 percent", details={"value": discount_micros}, line=line)

    numerator = unit_price_cents * quantity * (FULL_DISCOUNT - discount_micros)
    # nearest-cent rounding (half-up)
    return (numerator + FULL_DISCOUNT // 2) // FULL_DISCOUNT


def bill_totals(line_totals: Iterable[int], discount_cents: int = 0, tax_cents: int = 0) -> BillTotals:
    totals = list(line_totals)
    if not totals:
        raise InvalidInput("A bill needs at least one line")
    for amount, field in ((discount_cents, "discount_cents"), (tax_cents, "tax_cents")):
        if not _is_int(amount) or amount < 0:
            raise InvalidInput(f"{field} must be a non-negative integer", details={"field": field})

    subtotal = sum(totals)
    if discount_cents > subtotal:
        raise InvalidInput(
            "discount_cents cannot exceed the subtotal",
            details={"field": "discount_cents", "subtotal_cents": subtotal, "discount_cents": discount_cents},
        )

    return BillTotals(
        subtotal_cents=subtotal,
        discount_cents=discount_cents,
        tax_cents=tax_cents,
        total_cents=subtotal - discount_cents + tax_cents,
    )


def verify_sale_totals(sale) -> None:
    """
    Recompute every stored total from the sale's own fields.

    Raises InvalidInput if any line total or bill total differs from a
    fresh computation.
    """
    recomputed = []
    for line in sale.lines:
        expected = line_total_cents(line.unit_price_cents, line.quantity, line.discount_micros)
        if expected != line.line_total_cents:
            raise InvalidInput(
                "Line total does not match its price, quantity and discount",
                details={"position": line.position, "expected": expected, "stored": line.line_total_cents},
            )
        recomputed.append(expected)

    totals = bill_totals(recomputed, sale.discount_cents, sale.tax_cents)
    if (totals.subtotal_cents, totals.total_cents) != (sale.subtotal_cents, sale.total_cents):
        raise InvalidInput(
            "Bill totals do not match its lines",
            details={
                "expected_subtotal_cents": totals.subtotal_cents,
                "expected_total_cents": totals.total_cents,
            },
        )
