# Overview: Flask API routes for bills; parses input and returns JSON responses.

# backend/medpos/routes/bills.py
"""
Bill API routes.

POST /api/bills is the only way a sale enters the system. The route only
translates JSON into CustomerInfo / SaleLineRequest values; every rule
lives in billing_service.create_sale.

Rejections render BillingError.to_dict():
    {"error": message, "code": code, "details": {..., "line": index}}
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..errors import BillingError, InvalidInput
from ..services import billing_service, ledger_service
from ..services.billing_service import CustomerInfo, SaleLineRequest
from ..decorators import require_auth
from medpos.time_utils import parse_iso_datetime


bills_bp = Blueprint("bills", __name__, url_prefix="/api/bills")


def _error_response(exc: BillingError):
    return jsonify(exc.to_dict()), exc.http_status


def _parse_id(value):
    if isinstance(value, str) and value.strip().isascii() and value.strip().isdigit():
        return int(value.strip())
    return value


def _parse_items(items) -> list[SaleLineRequest]:
    if not isinstance(items, list) or not items:
        raise InvalidInput("At least one item is required", details={"field": "items"})

    parsed = []
    for idx, item in enumerate(items):
        if not isinstance(item, dict):
            raise InvalidInput("Each item must be an object", line=idx)
        parsed.append(SaleLineRequest(
            medicine_id=_parse_id(item.get("medicine_id")),
            quantity=item.get("quantity"),
            discount_percent=item.get("discount_percent"),
        ))
    return parsed


@bills_bp.post("")
@require_auth
def create_bill_route():
    """
    Create a bill: validate stock and expiry, price, number, persist and
    decrement inventory in one transaction.

    Body:
        customer_name, customer_mobile?, customer_email?,
        items: [{medicine_id, quantity, discount_percent?}],
        discount_cents?, tax_cents?, payment_method?
    """
    data = request.get_json(silent=True)
    try:
        if not isinstance(data, dict):
            raise InvalidInput("Invalid JSON payload")

        sale = billing_service.create_sale(
            g.tenant_id,
            CustomerInfo(
                name=data.get("customer_name"),
                mobile=data.get("customer_mobile"),
                email=data.get("customer_email"),
            ),
            _parse_items(data.get("items")),
            discount_cents=data.get("discount_cents", 0),
            tax_cents=data.get("tax_cents", 0),
            payment_method=data.get("payment_method") or "CASH",
            created_by_user_id=g.current_user.id,
        )
        return jsonify({"bill": sale.to_dict(), "message": "Bill created successfully"}), 201

    except BillingError as e:
        return _error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create bill")
        return jsonify({"error": "Internal server error"}), 500


@bills_bp.get("")
@require_auth
def list_bills_route():
    """
    List bills, newest first.

    Query params:
    - start / end: ISO-8601 date or datetime (inclusive)
    - customer: case-insensitive match on customer name
    - page / per_page: pagination (default 20, max 100)
    """
    try:
        start = parse_iso_datetime(request.args.get("start"))
        end = parse_iso_datetime(request.args.get("end"))
    except ValueError:
        return jsonify({"error": "start and end must be ISO-8601 dates"}), 400

    result = ledger_service.list_sales(
        g.tenant_id,
        start=start,
        end=end,
        customer_name=request.args.get("customer"),
        page=request.args.get("page", type=int),
        per_page=request.args.get("per_page", type=int),
    )
    return jsonify(result), 200


@bills_bp.get("/<int:bill_id>")
@require_auth
def get_bill_route(bill_id: int):
    sale = ledger_service.get_sale(g.tenant_id, bill_id)
    if not sale:
        return jsonify({"error": "Bill not found"}), 404
    return jsonify({"bill": sale.to_dict()}), 200


@bills_bp.get("/number/<string:bill_number>")
@require_auth
def get_bill_by_number_route(bill_number: str):
    sale = ledger_service.get_sale_by_number(g.tenant_id, bill_number)
    if not sale:
        return jsonify({"error": "Bill not found"}), 404
    return jsonify({"bill": sale.to_dict()}), 200
