# Overview: Billing transaction coordinator; validates, prices, numbers and commits one sale atomically.

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date
from enum import Enum

from flask import current_app

from ..models import PAYMENT_METHODS, Sale, SaleLine
from ..errors import BillingError, InvalidInput, NotFound
from medpos.time_utils import local_today
from .catalog_service import decrement_quantity, lock_medicines
from .concurrency import run_with_retry, unit_of_work
from .ledger_service import insert_sale
from .numbering_service import next_bill_number
from .pricing_service import bill_totals, line_total_cents, parse_cents, parse_discount_percent, parse_quantity
from .stock_guard import check_sellable
from .tenant_service import TenantAccessError, require_active_tenant

"""
Billing Invariants (authoritative)

- One sale = one unit of work. Validation, pricing, numbering, the ledger
  insert and every stock decrement commit together or not at all.
- Validation runs against rows locked for this transaction, so no other
  sale can change their quantity between the check and the decrement.
- The decrement is conditional (quantity >= amount) even after the check.
- Prices are always taken from the locked catalog row, never from the client.
- tenant_id is passed explicitly into every catalog and ledger call.
"""

MOBILE_PATTERN = re.compile(r"^[0-9]{10,15}$")
EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
MAX_LINES = 500


class BillingState(str, Enum):
    STARTED = "STARTED"
    VALIDATING = "VALIDATING"
    PRICING = "PRICING"
    NUMBERING = "NUMBERING"
    COMMITTING = "COMMITTING"
    COMMITTED = "COMMITTED"
    ABORTED = "ABORTED"


@dataclass(frozen=True)
class CustomerInfo:
    name: str
    mobile: str | None = None
    email: str | None = None


@dataclass(frozen=True)
class SaleLineRequest:
    medicine_id: int
    quantity: int
    # Overrides the catalog discount for this line when given
    discount_percent: object = None


@dataclass(frozen=True)
class _ParsedLine:
    medicine_id: int
    quantity: int
    discount_micros: int | None


@dataclass(frozen=True)
class _ParsedRequest:
    customer: CustomerInfo
    lines: tuple
    discount_cents: int
    tax_cents: int
    payment_method: str


class _Progress:
    """Tracks the coordinator state across retries so aborts can name it."""

    def __init__(self):
        self.state = BillingState.STARTED
        self.failed_in: BillingState | None = None

    def advance(self, state: BillingState) -> None:
        self.state = state

    def abort(self) -> None:
        self.failed_in = self.state
        self.state = BillingState.ABORTED


# =============================================================================
# Input validation (before any storage work)
# =============================================================================

def _clean_optional(value, field: str) -> str | None:
    if value is None:
        return None
    if not isinstance(value, str):
        raise InvalidInput(f"{field} must be a string", details={"field": field})
    value = value.strip()
    return value or None


def _validate_customer(customer) -> CustomerInfo:
    if not isinstance(customer, CustomerInfo):
        raise InvalidInput("customer is required", details={"field": "customer"})

    name = customer.name.strip() if isinstance(customer.name, str) else ""
    if not name:
        raise InvalidInput("Customer name is required", details={"field": "customer_name"})
    if len(name) > 255:
        raise InvalidInput("Customer name exceeds max length 255", details={"field": "customer_name"})

    mobile = _clean_optional(customer.mobile, "customer_mobile")
    if mobile is not None and not MOBILE_PATTERN.match(mobile):
        raise InvalidInput("Customer mobile must be 10-15 digits", details={"field": "customer_mobile"})

    email = _clean_optional(customer.email, "customer_email")
    if email is not None:
        email = email.lower()
        if len(email) > 255 or not EMAIL_PATTERN.match(email):
            raise InvalidInput("Customer email is not valid", details={"field": "customer_email"})

    return CustomerInfo(name=name, mobile=mobile, email=email)


def _validate_lines(lines) -> tuple:
    if lines is None or isinstance(lines, (str, bytes)):
        raise InvalidInput("At least one line is required", details={"field": "items"})
    lines = list(lines)
    if not lines:
        raise InvalidInput("At least one line is required", details={"field": "items"})
    if len(lines) > MAX_LINES:
        raise InvalidInput(f"A bill cannot have more than {MAX_LINES} lines", details={"field": "items"})

    parsed = []
    for idx, line in enumerate(lines):
        if not isinstance(line, SaleLineRequest):
            raise InvalidInput("Malformed line", line=idx)

        medicine_id = line.medicine_id
        if isinstance(medicine_id, bool) or not isinstance(medicine_id, int) or medicine_id < 1:
            raise InvalidInput("medicine_id must be a positive integer", details={"field": "medicine_id"}, line=idx)

        quantity = parse_quantity(line.quantity, line=idx)

        micros = None
        if line.discount_percent is not None:
            micros = parse_discount_percent(line.discount_percent, line=idx)

        parsed.append(_ParsedLine(medicine_id=medicine_id, quantity=quantity, discount_micros=micros))
    return tuple(parsed)


def _validate_request(customer, lines, discount_cents, tax_cents, payment_method) -> _ParsedRequest:
    method = payment_method.strip().upper() if isinstance(payment_method, str) else None
    if method not in PAYMENT_METHODS:
        raise InvalidInput(
            f"payment_method must be one of: {', '.join(PAYMENT_METHODS)}",
            details={"field": "payment_method"},
        )

    return _ParsedRequest(
        customer=_validate_customer(customer),
        lines=_validate_lines(lines),
        discount_cents=parse_cents(discount_cents, "discount_cents", default=0),
        tax_cents=parse_cents(tax_cents, "tax_cents", default=0),
        payment_method=method,
    )


# =============================================================================
# Transaction
# =============================================================================

def _load_tenant_today(tenant_id: int, today: date | None) -> date:
    try:
        tenant = require_active_tenant(tenant_id)
    except TenantAccessError as exc:
        raise NotFound(str(exc), details={"tenant_id": tenant_id})
    return today if today is not None else local_today(tenant.timezone)


def _attempt(
    tenant_id: int,
    request: _ParsedRequest,
    *,
    created_by_user_id: int | None,
    today: date | None,
    progress: _Progress,
) -> Sale:
    progress.advance(BillingState.STARTED)
    try:
        with unit_of_work():
            progress.advance(BillingState.VALIDATING)
            sale_day = _load_tenant_today(tenant_id, today)

            # medicine_id -> (first line index, total requested quantity)
            wanted: dict[int, list] = {}
            for idx, line in enumerate(request.lines):
                entry = wanted.setdefault(line.medicine_id, [idx, 0])
                entry[1] += line.quantity

            medicines = lock_medicines(tenant_id, wanted.keys())
            for idx, line in enumerate(request.lines):
                if line.medicine_id not in medicines:
                    raise NotFound(
                        "Medicine not found",
                        details={"medicine_id": line.medicine_id},
                        line=idx,
                    )
            for medicine_id, (first_idx, total_qty) in wanted.items():
                check_sellable(medicines[medicine_id], total_qty, sale_day, line=first_idx)

            progress.advance(BillingState.PRICING)
            sale_lines = []
            for idx, line in enumerate(request.lines):
                medicine = medicines[line.medicine_id]
                micros = line.discount_micros if line.discount_micros is not None else medicine.discount_micros
                sale_lines.append(SaleLine(
                    position=idx + 1,
                    medicine_id=medicine.id,
                    medicine_name=medicine.name,
                    batch_number=medicine.batch_number,
                    quantity=line.quantity,
                    unit_price_cents=medicine.price_cents,
                    mrp_cents=medicine.mrp_cents,
                    discount_micros=micros,
                    line_total_cents=line_total_cents(medicine.price_cents, line.quantity, micros, line=idx),
                ))
            totals = bill_totals(
                [sl.line_total_cents for sl in sale_lines],
                request.discount_cents,
                request.tax_cents,
            )

            progress.advance(BillingState.NUMBERING)
            bill_number = next_bill_number(tenant_id)

            progress.advance(BillingState.COMMITTING)
            sale = Sale(
                tenant_id=tenant_id,
                bill_number=bill_number,
                customer_name=request.customer.name,
                customer_mobile=request.customer.mobile,
                customer_email=request.customer.email,
                subtotal_cents=totals.subtotal_cents,
                discount_cents=totals.discount_cents,
                tax_cents=totals.tax_cents,
                total_cents=totals.total_cents,
                payment_method=request.payment_method,
                payment_status="COMPLETED",
                created_by_user_id=created_by_user_id,
                lines=sale_lines,
            )
            insert_sale(sale)

            for medicine_id, (first_idx, total_qty) in wanted.items():
                decrement_quantity(tenant_id, medicine_id, total_qty, line=first_idx)
    except BillingError as exc:
        progress.abort()
        if exc.state is None:
            exc.state = progress.failed_in.value
        current_app.logger.info(
            "Sale aborted in state %s: tenant_id=%s code=%s error=%s",
            progress.failed_in.value, tenant_id, exc.code, exc.message,
        )
        raise
    except BaseException:
        progress.abort()
        current_app.logger.warning(
            "Sale cancelled in state %s: tenant_id=%s",
            progress.failed_in.value, tenant_id,
        )
        raise

    progress.advance(BillingState.COMMITTED)
    current_app.logger.info(
        "Sale committed: tenant_id=%s bill_number=%s total_cents=%s lines=%s",
        tenant_id, bill_number, totals.total_cents, len(sale_lines),
    )
    return sale


def create_sale(
    tenant_id: int,
    customer: CustomerInfo,
    lines,
    *,
    discount_cents=0,
    tax_cents=0,
    payment_method: str = "CASH",
    created_by_user_id: int | None = None,
    today: date | None = None,
) -> Sale:
    """
    Create one bill: validate, price, number, persist and decrement stock
    as a single atomic unit of work.

    Args:
        tenant_id: owner of the catalog and of the resulting bill
        customer: CustomerInfo(name, mobile=None, email=None)
        lines: SaleLineRequest items, in bill order
        discount_cents / tax_cents: flat bill-level amounts in cents
        today: date expiry is checked against (default: tenant's local date)

    Returns:
        The committed Sale.

    Raises:
        InvalidInput, NotFound, ExpiredItem, InsufficientStock: nothing persisted
        StorageFailure: contention persisted past the retry budget
    """
    if not tenant_id:
        raise InvalidInput("tenant_id is required", details={"field": "tenant_id"})

    request = _validate_request(customer, lines, discount_cents, tax_cents, payment_method)
    progress = _Progress()

    def _op():
        return _attempt(
            tenant_id,
            request,
            created_by_user_id=created_by_user_id,
            today=today,
            progress=progress,
        )

    try:
        return run_with_retry(
            _op,
            attempts=current_app.config.get("BILLING_RETRY_ATTEMPTS", 3),
            backoff_base=current_app.config.get("BILLING_RETRY_BACKOFF", 0.05),
        )
    except BillingError as exc:
        if exc.state is None and progress.failed_in is not None:
            exc.state = progress.failed_in.value
        raise
