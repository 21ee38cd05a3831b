import io

from flask import Blueprint, jsonify, request, send_file, g

from medpos.decorators import require_auth
from medpos.services import export_service, reporting_service

XLSX_MIMETYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"

reports_bp = Blueprint("reports", __name__, url_prefix="/api/reports")


@reports_bp.get("/sales")
@require_auth
def sales_report():
    try:
        report = reporting_service.sales_report(
            g.tenant_id,
            request.args.get("start"),
            request.args.get("end"),
            group_by=request.args.get("group_by", "day"),
        )
        return jsonify(report), 200
    except reporting_service.ReportError as exc:
        return jsonify({"error": str(exc)}), 400


@reports_bp.get("/inventory")
@require_auth
def inventory_report():
    try:
        report = reporting_service.inventory_report(
            g.tenant_id,
            category=request.args.get("category"),
            stock_status=request.args.get("stock_status"),
        )
        return jsonify(report), 200
    except ValueError as exc:
        return jsonify({"error": str(exc)}), 400


@reports_bp.get("/expiry")
@require_auth
def expiry_report():
    months = request.args.get("months", default=6, type=int)
    try:
        report = reporting_service.expiry_report(g.tenant_id, months=months)
        return jsonify(report), 200
    except reporting_service.ReportError as exc:
        return jsonify({"error": str(exc)}), 400


@reports_bp.get("/dashboard")
@require_auth
def dashboard():
    return jsonify(reporting_service.dashboard_summary(g.tenant_id)), 200


@reports_bp.get("/daily-sales")
@require_auth
def daily_sales():
    days = request.args.get("days", default=30, type=int)
    try:
        return jsonify({"items": reporting_service.daily_sales(g.tenant_id, days=days)}), 200
    except reporting_service.ReportError as exc:
        return jsonify({"error": str(exc)}), 400


@reports_bp.get("/top-medicines")
@require_auth
def top_medicines():
    days = request.args.get("days", default=30, type=int)
    limit = request.args.get("limit", default=10, type=int)
    try:
        items = reporting_service.top_medicines(g.tenant_id, days=days, limit=limit)
        return jsonify({"items": items}), 200
    except reporting_service.ReportError as exc:
        return jsonify({"error": str(exc)}), 400


@reports_bp.get("/export/medicines")
@require_auth
def export_medicines():
    data = export_service.medicines_workbook(g.tenant_id)
    return send_file(
        io.BytesIO(data),
        mimetype=XLSX_MIMETYPE,
        as_attachment=True,
        download_name="medicines.xlsx",
    )


@reports_bp.get("/export/sales")
@require_auth
def export_sales():
    start = request.args.get("start")
    end = request.args.get("end")
    try:
        data = export_service.sales_workbook(g.tenant_id, start, end)
    except reporting_service.ReportError as exc:
        return jsonify({"error": str(exc)}), 400
    return send_file(
        io.BytesIO(data),
        mimetype=XLSX_MIMETYPE,
        as_attachment=True,
        download_name=f"sales-{start}-to-{end}.xlsx",
    )
