# Overview: Flask API routes for medicine catalog operations; parses input and returns JSON responses.

# backend/medpos/routes/medicines.py
"""
Medicine catalog routes with multi-tenant support.

MULTI-TENANT: All catalog operations are scoped to the caller's tenant.
The tenant_id is taken from g.tenant_id (set by @require_auth) and passed
explicitly into catalog_service.

SECURITY: All routes require authentication.
- Read operations are open to every user of the tenant
- Write operations require the OWNER role
"""
from flask import Blueprint, current_app, request, g

from ..services import catalog_service
from ..services.catalog_service import MedicineNotFoundError
from ..services.tenant_service import tenant_today
from ..validation import ValidationError, ConflictError
from ..decorators import require_auth, require_owner

medicines_bp = Blueprint("medicines", __name__, url_prefix="/api/medicines")


def _serialize(medicine) -> dict:
    return medicine.to_dict(
        today=tenant_today(medicine.tenant_id),
        expiring_soon_days=current_app.config.get("EXPIRING_SOON_DAYS", 30),
    )


@medicines_bp.get("")
@require_auth
def list_medicines_route():
    """
    List medicines with optional filters and pagination.

    Query params:
    - category: TABLET, SYRUP, ... or "all"
    - stock_status: in_stock | low_stock | out_of_stock
    - expiry_status: expired | expiring | safe
    - search: matches name, batch number, or supplier
    - include_inactive: "true" to include deactivated medicines
    - sort_by / sort_order: e.g. sort_by=expiry_date&sort_order=asc
    - page: int (optional) - page number (1-indexed). If omitted, returns all items.
    - per_page: int (optional) - items per page (default 20, max 100)
    """
    try:
        return catalog_service.list_medicines(
            g.tenant_id,
            category=request.args.get("category"),
            stock_status=request.args.get("stock_status"),
            expiry_status=request.args.get("expiry_status"),
            search=request.args.get("search"),
            include_inactive=request.args.get("include_inactive", "").lower() == "true",
            sort_by=request.args.get("sort_by", "created_at"),
            sort_order=request.args.get("sort_order", "desc"),
            page=request.args.get("page", type=int),
            per_page=request.args.get("per_page", type=int),
        )
    except ValidationError as e:
        return {"error": str(e)}, 400


@medicines_bp.post("")
@require_auth
@require_owner
def create_medicine_route():
    """
    Create a new medicine batch in the caller's catalog.

    Money fields are integer cents; discount may be sent as
    discount_percent (e.g. 12.5) or discount_micros, millionths of a
    percent (e.g. 12500000).
    """
    payload = request.get_json(silent=True) or {}

    try:
        medicine = catalog_service.create_medicine(g.tenant_id, payload)
    except ValidationError as e:
        return {"error": str(e)}, 400
    except ConflictError as e:
        return {"error": str(e)}, 409

    return {"medicine": _serialize(medicine)}, 201


@medicines_bp.get("/categories")
@require_auth
def list_categories_route():
    categories = catalog_service.list_categories(g.tenant_id)
    return {"items": categories, "count": len(categories)}


@medicines_bp.put("/bulk/update")
@require_auth
@require_owner
def bulk_update_medicines_route():
    """
    Edit several medicines at once.

    Body: {"medicines": [{"id": 1, "price_cents": 5200}, ...]}. Either every
    edit is saved or none is.
    """
    payload = request.get_json(silent=True)
    items = payload.get("medicines") if isinstance(payload, dict) else None

    try:
        medicines = catalog_service.bulk_update_medicines(g.tenant_id, items)
    except MedicineNotFoundError as e:
        return {"error": str(e)}, 404
    except ValidationError as e:
        return {"error": str(e)}, 400
    except ConflictError as e:
        return {"error": str(e)}, 409

    return {"updated": len(medicines), "items": [_serialize(m) for m in medicines]}


@medicines_bp.get("/<int:medicine_id>")
@require_auth
def get_medicine_route(medicine_id: int):
    try:
        medicine = catalog_service.get_medicine(g.tenant_id, medicine_id)
    except MedicineNotFoundError:
        return {"error": "Medicine not found"}, 404
    return {"medicine": _serialize(medicine)}


@medicines_bp.patch("/<int:medicine_id>")
@medicines_bp.put("/<int:medicine_id>")
@require_auth
@require_owner
def update_medicine_route(medicine_id: int):
    payload = request.get_json(silent=True) or {}

    try:
        medicine = catalog_service.update_medicine(g.tenant_id, medicine_id, payload)
    except MedicineNotFoundError:
        return {"error": "Medicine not found"}, 404
    except ValidationError as e:
        return {"error": str(e)}, 400
    except ConflictError as e:
        return {"error": str(e)}, 409

    return {"medicine": _serialize(medicine)}


@medicines_bp.post("/<int:medicine_id>/restock")
@require_auth
@require_owner
def restock_medicine_route(medicine_id: int):
    """Body: {"amount": <positive int>}"""
    payload = request.get_json(silent=True) or {}

    try:
        medicine = catalog_service.restock(g.tenant_id, medicine_id, payload.get("amount"))
    except MedicineNotFoundError:
        return {"error": "Medicine not found"}, 404
    except ValidationError as e:
        return {"error": str(e)}, 400

    return {"medicine": _serialize(medicine)}


@medicines_bp.delete("/<int:medicine_id>")
@require_auth
@require_owner
def delete_medicine_route(medicine_id: int):
    """
    Delete a medicine.

    Medicines that appear on any bill are deactivated instead, so the
    response says which one happened.
    """
    try:
        outcome = catalog_service.delete_medicine(g.tenant_id, medicine_id)
    except MedicineNotFoundError:
        return {"error": "Medicine not found"}, 404

    return {"id": medicine_id, "result": outcome}
