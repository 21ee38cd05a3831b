# backend/medpos/services/catalog_service.py
"""
Catalog Service with Multi-Tenant Support

MULTI-TENANT: Every function takes tenant_id explicitly and filters on it.
A medicine that belongs to another tenant behaves exactly like one that
does not exist.

Two kinds of callers:
- billing_service, inside its unit of work: lock_medicines() and
  decrement_quantity(). These never commit.
- catalog management (routes, CLI): create/update/restock/delete/list.
  These commit on their own and are not transactional with sales.
"""
from __future__ import annotations

from datetime import date, timedelta

from flask import current_app
from sqlalchemy import or_, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db
from ..models import Medicine, SaleLine
from ..errors import InsufficientStock, InvalidInput
from ..validation import (
    ConflictError,
    ModelValidationPolicy,
    ValidationError,
    enforce_rules_medicine,
    validate_payload,
)
from .concurrency import lock_for_update
from .pricing_service import parse_discount_percent
from .tenant_service import log_cross_tenant_attempt, tenant_today

MEDICINE_POLICY = ModelValidationPolicy(
    writable_fields={
        "name", "batch_number", "category", "quantity", "price_cents", "mrp_cents",
        "discount_micros", "expiry_date", "low_stock_threshold", "supplier", "description",
        "is_active",
    },
    required_on_create={"name", "batch_number", "category", "quantity", "price_cents", "mrp_cents", "expiry_date"},
)

SORTABLE_FIELDS = {
    "name": Medicine.name,
    "created_at": Medicine.created_at,
    "expiry_date": Medicine.expiry_date,
    "quantity": Medicine.quantity,
    "price_cents": Medicine.price_cents,
}

STOCK_STATUSES = ("in_stock", "low_stock", "out_of_stock")
EXPIRY_STATUSES = ("expired", "expiring", "safe")


class MedicineNotFoundError(LookupError):
    """Raised by catalog management when a medicine is not visible to the tenant."""
    pass


# =============================================================================
# Billing-side access (runs inside the caller's transaction)
# =============================================================================

def find_by_id(tenant_id: int, medicine_id: int, *, include_inactive: bool = False) -> Medicine | None:
    query = db.session.query(Medicine).filter(
        Medicine.id == medicine_id,
        Medicine.tenant_id == tenant_id,
    )
    if not include_inactive:
        query = query.filter(Medicine.is_active.is_(True))
    medicine = query.first()
    if medicine is None:
        _note_foreign_lookup(tenant_id, medicine_id)
    return medicine


def lock_medicines(tenant_id: int, medicine_ids) -> dict[int, Medicine]:
    """
    Load and lock the tenant's active medicines with the given ids.

    Rows are locked in ascending id order so two sales touching the same
    items cannot deadlock each other. populate_existing() refreshes any
    instance already in the identity map, so validation never sees a
    stale quantity. Ids that are missing from the result are absent,
    inactive, or owned by another tenant.
    """
    ids = sorted(set(medicine_ids))
    if not ids:
        return {}

    query = (
        db.session.query(Medicine)
        .filter(
            Medicine.tenant_id == tenant_id,
            Medicine.id.in_(ids),
            Medicine.is_active.is_(True),
        )
        .order_by(Medicine.id.asc())
        .populate_existing()
    )
    rows = lock_for_update(query).all()
    found = {m.id: m for m in rows}

    for missing in set(ids) - set(found):
        _note_foreign_lookup(tenant_id, missing)
    return found


def decrement_quantity(tenant_id: int, medicine_id: int, amount: int, *, line: int | None = None) -> None:
    """
    Conditionally take `amount` units off a medicine's stock.

    A single UPDATE ... WHERE quantity >= amount; zero rows affected means
    the stock was not there, and InsufficientStock aborts the caller's
    transaction. Never commits.
    """
    if not isinstance(amount, int) or isinstance(amount, bool) or amount < 1:
        raise InvalidInput("decrement amount must be a positive integer", details={"value": amount}, line=line)

    stmt = (
        update(Medicine)
        .where(
            Medicine.id == medicine_id,
            Medicine.tenant_id == tenant_id,
            Medicine.quantity >= amount,
        )
        .values(
            quantity=Medicine.quantity - amount,
            version_id=Medicine.version_id + 1,
        )
        .execution_options(synchronize_session="fetch")
    )
    result = db.session.execute(stmt)
    if result.rowcount != 1:
        raise InsufficientStock(
            "Stock changed before the sale could be committed",
            details={"medicine_id": medicine_id, "requested_quantity": amount},
            line=line,
        )


def _note_foreign_lookup(tenant_id: int, medicine_id: int) -> None:
    owner = db.session.query(Medicine.tenant_id).filter(Medicine.id == medicine_id).scalar()
    if owner is not None and owner != tenant_id:
        log_cross_tenant_attempt(
            f"Medicine {medicine_id} belongs to tenant {owner}",
            tenant_id=tenant_id,
            medicine_id=medicine_id,
        )


# =============================================================================
# Catalog management
# =============================================================================

def _normalize_payload(payload: dict | None) -> dict:
    """Accept discount_percent from clients and store it as discount_micros."""
    data = dict(payload or {})
    if "discount_percent" in data:
        if "discount_micros" in data:
            raise ValidationError("Send either discount_percent or discount_micros, not both")
        raw = data.pop("discount_percent")
        if raw is not None:
            try:
                data["discount_micros"] = parse_discount_percent(raw)
            except InvalidInput as exc:
                raise ValidationError(str(exc))
    return data


def get_medicine(tenant_id: int, medicine_id: int) -> Medicine:
    medicine = find_by_id(tenant_id, medicine_id, include_inactive=True)
    if medicine is None:
        raise MedicineNotFoundError("Medicine not found")
    return medicine


def _ensure_batch_free(tenant_id: int, batch_number: str, exclude_id: int | None = None) -> None:
    query = db.session.query(Medicine.id).filter(
        Medicine.tenant_id == tenant_id,
        Medicine.batch_number == batch_number,
    )
    if exclude_id is not None:
        query = query.filter(Medicine.id != exclude_id)
    if query.first():
        raise ConflictError("Medicine with this batch number already exists")


def create_medicine(tenant_id: int, payload: dict) -> Medicine:
    patch = validate_payload(
        model=Medicine,
        payload=_normalize_payload(payload),
        policy=MEDICINE_POLICY,
        partial=False,
    )
    enforce_rules_medicine(patch)
    _ensure_batch_free(tenant_id, patch["batch_number"])

    patch.setdefault("discount_micros", 0)
    patch.setdefault("low_stock_threshold", current_app.config.get("DEFAULT_LOW_STOCK_THRESHOLD", 5))

    medicine = Medicine(tenant_id=tenant_id, **patch)
    db.session.add(medicine)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ConflictError("Medicine with this batch number already exists")
    return medicine


def update_medicine(tenant_id: int, medicine_id: int, payload: dict) -> Medicine:
    """
    Partial catalog edit (price corrections, quantity corrections, metadata).

    Not transactional with sales: a concurrent sale that commits first
    makes this edit fail its version check (StaleDataError) rather than
    silently overwrite the decrement.
    """
    medicine = get_medicine(tenant_id, medicine_id)
    patch = validate_payload(
        model=Medicine,
        payload=_normalize_payload(payload),
        policy=MEDICINE_POLICY,
        partial=True,
    )
    enforce_rules_medicine(patch)

    if "batch_number" in patch and patch["batch_number"] != medicine.batch_number:
        _ensure_batch_free(tenant_id, patch["batch_number"], exclude_id=medicine.id)

    for k, v in patch.items():
        setattr(medicine, k, v)

    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ConflictError("Medicine with this batch number already exists")
    except StaleDataError:
        db.session.rollback()
        raise ConflictError("Medicine was changed by another request, reload and try again")
    return medicine


def bulk_update_medicines(tenant_id: int, items) -> list[Medicine]:
    """
    Apply several partial edits in one commit: all of them or none.

    Each item is {"id": <medicine id>, ...fields}, validated exactly like
    update_medicine. Errors name the failing item by its index. An id that
    is missing or owned by another tenant fails the whole batch.
    """
    if not isinstance(items, list) or not items:
        raise ValidationError("medicines must be a non-empty list")
    max_items = current_app.config.get("MAX_BULK_UPDATE_ITEMS", 100)
    if len(items) > max_items:
        raise ValidationError(f"At most {max_items} medicines can be updated at once")

    patches = []
    seen = set()
    for index, item in enumerate(items):
        if not isinstance(item, dict):
            raise ValidationError(f"medicines[{index}]: each item must be an object")
        fields = dict(item)
        medicine_id = fields.pop("id", None)
        if isinstance(medicine_id, bool) or not isinstance(medicine_id, int):
            raise ValidationError(f"medicines[{index}]: id must be an integer")
        if medicine_id in seen:
            raise ValidationError(f"medicines[{index}]: medicine {medicine_id} listed twice")
        seen.add(medicine_id)

        try:
            patch = validate_payload(
                model=Medicine,
                payload=_normalize_payload(fields),
                policy=MEDICINE_POLICY,
                partial=True,
            )
            enforce_rules_medicine(patch)
        except ValidationError as exc:
            raise ValidationError(f"medicines[{index}]: {exc}")
        patches.append((index, medicine_id, patch))

    medicines = []
    try:
        for index, medicine_id, patch in patches:
            medicine = find_by_id(tenant_id, medicine_id, include_inactive=True)
            if medicine is None:
                raise MedicineNotFoundError(f"medicines[{index}]: Medicine not found")
            for k, v in patch.items():
                setattr(medicine, k, v)
            medicines.append(medicine)
        db.session.commit()
    except MedicineNotFoundError:
        db.session.rollback()
        raise
    except IntegrityError:
        db.session.rollback()
        raise ConflictError("Medicine with this batch number already exists")
    except StaleDataError:
        db.session.rollback()
        raise ConflictError("Medicine was changed by another request, reload and try again")

    current_app.logger.info("Bulk updated %s medicine(s) for tenant %s", len(medicines), tenant_id)
    return medicines


def list_categories(tenant_id: int) -> list[str]:
    """Distinct categories in use across the tenant's active medicines, sorted."""
    rows = (
        db.session.query(Medicine.category)
        .filter(Medicine.tenant_id == tenant_id, Medicine.is_active.is_(True))
        .distinct()
        .order_by(Medicine.category.asc())
        .all()
    )
    return [category for (category,) in rows]


def restock(tenant_id: int, medicine_id: int, amount) -> Medicine:
    if isinstance(amount, bool) or not isinstance(amount, int) or amount < 1:
        raise ValidationError("amount must be a positive integer")

    medicine = get_medicine(tenant_id, medicine_id)
    db.session.execute(
        update(Medicine)
        .where(Medicine.id == medicine.id, Medicine.tenant_id == tenant_id)
        .values(quantity=Medicine.quantity + amount, version_id=Medicine.version_id + 1)
        .execution_options(synchronize_session="fetch")
    )
    db.session.commit()
    return medicine


def delete_medicine(tenant_id: int, medicine_id: int) -> str:
    """
    Remove a medicine from the catalog.

    Medicines referenced by any bill are deactivated instead of deleted so
    historical bills keep a valid reference. Returns "deactivated" or
    "deleted".
    """
    medicine = get_medicine(tenant_id, medicine_id)

    referenced = (
        db.session.query(SaleLine.id)
        .filter(SaleLine.medicine_id == medicine.id)
        .first()
    )
    if referenced:
        medicine.is_active = False
        db.session.commit()
        return "deactivated"

    db.session.delete(medicine)
    db.session.commit()
    return "deleted"


def _apply_expiry_filter(query, expiry_status: str, today: date, soon_days: int):
    horizon = today + timedelta(days=soon_days)
    if expiry_status == "expired":
        return query.filter(Medicine.expiry_date < today)
    if expiry_status == "expiring":
        return query.filter(Medicine.expiry_date >= today, Medicine.expiry_date <= horizon)
    if expiry_status == "safe":
        return query.filter(Medicine.expiry_date > horizon)
    raise ValidationError(f"expiry_status must be one of: {', '.join(EXPIRY_STATUSES)}")


def _apply_stock_filter(query, stock_status: str):
    if stock_status == "out_of_stock":
        return query.filter(Medicine.quantity == 0)
    if stock_status == "low_stock":
        return query.filter(Medicine.quantity > 0, Medicine.quantity <= Medicine.low_stock_threshold)
    if stock_status == "in_stock":
        return query.filter(Medicine.quantity > 0)
    raise ValidationError(f"stock_status must be one of: {', '.join(STOCK_STATUSES)}")


def list_medicines(
    tenant_id: int,
    *,
    category: str | None = None,
    stock_status: str | None = None,
    expiry_status: str | None = None,
    search: str | None = None,
    include_inactive: bool = False,
    sort_by: str = "created_at",
    sort_order: str = "desc",
    page: int | None = None,
    per_page: int | None = None,
    today: date | None = None,
) -> dict:
    """
    Tenant-scoped catalog listing with optional filters and pagination.

    Returns:
        Dict with 'items', 'count', and pagination metadata if paginated.
    """
    if today is None:
        today = tenant_today(tenant_id)
    soon_days = current_app.config.get("EXPIRING_SOON_DAYS", 30)

    query = db.session.query(Medicine).filter(Medicine.tenant_id == tenant_id)
    if not include_inactive:
        query = query.filter(Medicine.is_active.is_(True))

    if category and category.lower() != "all":
        query = query.filter(Medicine.category == category.upper())
    if stock_status:
        query = _apply_stock_filter(query, stock_status)
    if expiry_status:
        query = _apply_expiry_filter(query, expiry_status, today, soon_days)
    if search:
        term = f"%{search.strip()}%"
        query = query.filter(or_(
            Medicine.name.ilike(term),
            Medicine.batch_number.ilike(term),
            Medicine.supplier.ilike(term),
        ))

    column = SORTABLE_FIELDS.get(sort_by)
    if column is None:
        raise ValidationError(f"sort_by must be one of: {', '.join(sorted(SORTABLE_FIELDS))}")
    ordering = column.asc() if sort_order == "asc" else column.desc()
    query = query.order_by(ordering, Medicine.id.asc())

    def _dump(rows):
        return [m.to_dict(today=today, expiring_soon_days=soon_days) for m in rows]

    if page is None:
        medicines = query.all()
        return {"items": _dump(medicines), "count": len(medicines)}

    per_page = min(per_page or 20, 100)
    page = max(page, 1)

    total = query.count()
    total_pages = (total + per_page - 1) // per_page if total > 0 else 1
    medicines = query.offset((page - 1) * per_page).limit(per_page).all()

    return {
        "items": _dump(medicines),
        "count": len(medicines),
        "pagination": {
            "page": page,
            "per_page": per_page,
            "total": total,
            "total_pages": total_pages,
            "has_next": page < total_pages,
            "has_prev": page > 1,
        },
    }


def low_stock_medicines(tenant_id: int) -> list[Medicine]:
    """Active medicines with 0 < quantity <= low_stock_threshold; out-of-stock rows are not low stock."""
    return (
        db.session.query(Medicine)
        .filter(
            Medicine.tenant_id == tenant_id,
            Medicine.is_active.is_(True),
            Medicine.quantity > 0,
            Medicine.quantity <= Medicine.low_stock_threshold,
        )
        .order_by(Medicine.quantity.asc(), Medicine.name.asc())
        .all()
    )


def expiring_medicines(tenant_id: int, days: int, today: date | None = None) -> list[Medicine]:
    """Active medicines that expire between today and today + days (inclusive)."""
    if today is None:
        today = tenant_today(tenant_id)
    return (
        db.session.query(Medicine)
        .filter(
            Medicine.tenant_id == tenant_id,
            Medicine.is_active.is_(True),
            Medicine.expiry_date >= today,
            Medicine.expiry_date <= today + timedelta(days=days),
        )
        .order_by(Medicine.expiry_date.asc(), Medicine.name.asc())
        .all()
    )
