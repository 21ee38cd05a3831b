# Overview: Spreadsheet (xlsx) exports of the catalog and of committed bills.

from __future__ import annotations

import io

from openpyxl import Workbook
from openpyxl.styles import Font, PatternFill

from ..extensions import db
from ..models import Medicine, Sale
from .pricing_service import micros_to_percent
from .reporting_service import parse_report_range

MEDICINE_COLUMNS = [
    ("Medicine Name", 30),
    ("Batch No", 15),
    ("Category", 15),
    ("Quantity", 10),
    ("Price", 12),
    ("MRP", 12),
    ("Discount %", 12),
    ("Supplier", 20),
    ("Expiry Date", 15),
    ("Added Date", 15),
]

SALES_COLUMNS = [
    ("Bill No", 15),
    ("Date", 12),
    ("Customer Name", 25),
    ("Customer Mobile", 15),
    ("Items Count", 12),
    ("Subtotal", 12),
    ("Discount", 12),
    ("Tax", 12),
    ("Total", 12),
    ("Payment Method", 15),
]

HEADER_FILL = PatternFill(fill_type="solid", fgColor="FFE6E6FA")


def cents_to_amount(cents: int) -> str:
    """2550 -> "25.50". Strings keep the exact value in the sheet."""
    sign = "-" if cents < 0 else ""
    cents = abs(cents)
    return f"{sign}{cents // 100}.{cents % 100:02d}"


def _new_sheet(title: str, columns):
    wb = Workbook()
    ws = wb.active
    ws.title = title
    ws.append([header for header, _ in columns])
    for idx, (_, width) in enumerate(columns, start=1):
        cell = ws.cell(row=1, column=idx)
        cell.font = Font(bold=True)
        cell.fill = HEADER_FILL
        ws.column_dimensions[cell.column_letter].width = width
    return wb, ws


def _to_bytes(wb: Workbook) -> bytes:
    buf = io.BytesIO()
    wb.save(buf)
    return buf.getvalue()


def medicines_workbook(tenant_id: int) -> bytes:
    """All active medicines of a tenant, by name."""
    wb, ws = _new_sheet("Medicines", MEDICINE_COLUMNS)

    medicines = (
        db.session.query(Medicine)
        .filter(Medicine.tenant_id == tenant_id, Medicine.is_active.is_(True))
        .order_by(Medicine.name.asc(), Medicine.id.asc())
        .all()
    )
    for m in medicines:
        ws.append([
            m.name,
            m.batch_number,
            m.category,
            m.quantity,
            cents_to_amount(m.price_cents),
            cents_to_amount(m.mrp_cents),
            micros_to_percent(m.discount_micros),
            m.supplier or "N/A",
            m.expiry_date.isoformat(),
            m.created_at.date().isoformat() if m.created_at else "",
        ])

    return _to_bytes(wb)


def sales_workbook(tenant_id: int, start, end) -> bytes:
    """Committed bills of a tenant between start and end (inclusive), oldest first."""
    start_dt, end_dt = parse_report_range(start, end)
    wb, ws = _new_sheet("Sales Report", SALES_COLUMNS)

    sales = (
        db.session.query(Sale)
        .filter(
            Sale.tenant_id == tenant_id,
            Sale.created_at >= start_dt,
            Sale.created_at <= end_dt,
        )
        .order_by(Sale.created_at.asc(), Sale.id.asc())
        .all()
    )

    total_cents = 0
    for s in sales:
        total_cents += s.total_cents
        ws.append([
            s.bill_number,
            s.created_at.date().isoformat() if s.created_at else "",
            s.customer_name,
            s.customer_mobile or "N/A",
            len(s.lines),
            cents_to_amount(s.subtotal_cents),
            cents_to_amount(s.discount_cents),
            cents_to_amount(s.tax_cents),
            cents_to_amount(s.total_cents),
            s.payment_method,
        ])

    ws.append([])
    ws.append(["Total Sales", len(sales), "", "", "", "", "", "Total Revenue", cents_to_amount(total_cents)])
    ws.cell(row=ws.max_row, column=1).font = Font(bold=True)

    return _to_bytes(wb)
