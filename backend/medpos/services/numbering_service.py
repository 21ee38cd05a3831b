# Overview: Bill number allocation from a per-tenant sequence row.

from __future__ import annotations

from flask import current_app
from sqlalchemy import update

from ..extensions import db
from ..models import BillSequence
from .ledger_service import count_sales


def format_bill_number(number: int, prefix: str | None = None, pad: int | None = None) -> str:
    if prefix is None:
        prefix = current_app.config.get("BILL_NUMBER_PREFIX", "BILL")
    if pad is None:
        pad = current_app.config.get("BILL_NUMBER_PAD", 6)
    return f"{prefix}-{number:0{pad}d}"


def next_bill_number(tenant_id: int) -> str:
    """
    Allocate the next bill number for a tenant, e.g. "BILL-000042".

    Must run inside the caller's unit of work: the increment commits or
    rolls back together with the sale that uses the number, so a number
    only ever becomes visible on a committed sale.

    The increment is a single UPDATE ... SET next_number = next_number + 1,
    which takes the row lock on databases that have one. The first sale of
    a tenant creates the row, seeded from the existing ledger count; two
    first sales racing each other collide on the unique tenant_id and the
    loser's IntegrityError is retried by the unit of work.
    """
    if not tenant_id:
        raise ValueError("tenant_id is required")

    stmt = (
        update(BillSequence)
        .where(BillSequence.tenant_id == tenant_id)
        .values(next_number=BillSequence.next_number + 1)
        .execution_options(synchronize_session=False)
    )

    result = db.session.execute(stmt)
    if result.rowcount:
        current = (
            db.session.query(BillSequence.next_number)
            .filter(BillSequence.tenant_id == tenant_id)
            .scalar()
        )
        next_num = current - 1
    else:
        next_num = count_sales(tenant_id) + 1
        db.session.add(BillSequence(tenant_id=tenant_id, next_number=next_num + 1))
        db.session.flush()

    return format_bill_number(next_num)
