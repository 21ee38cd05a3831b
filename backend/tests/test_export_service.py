# Overview: Pytest coverage for xlsx exports of the catalog and of committed bills.

import io
from datetime import datetime

import pytest
from openpyxl import load_workbook

from medpos.services import export_service
from medpos.services.billing_service import CustomerInfo, SaleLineRequest, create_sale
from medpos.services.reporting_service import ReportError
from medpos.time_utils import utcnow


def _rows(data: bytes):
    wb = load_workbook(io.BytesIO(data))
    ws = wb.active
    return ws.title, [list(row) for row in ws.iter_rows(values_only=True)]


class TestCentsToAmount:
    @pytest.mark.parametrize("cents,expected", [
        (0, "0.00"),
        (5, "0.05"),
        (2550, "25.50"),
        (123456, "1234.56"),
        (-75, "-0.75"),
    ])
    def test_formats_exact_amounts(self, cents, expected):
        assert export_service.cents_to_amount(cents) == expected


class TestMedicinesWorkbook:
    def test_lists_active_medicines_by_name(self, db_session, tenant_a, medicine_a, medicine_b, make_medicine):
        make_medicine(tenant_a, name="Zinc Tablets", discount_micros=12_500_000, supplier="Cipla")
        make_medicine(tenant_a, name="Aspirin", is_active=False)

        title, rows = _rows(export_service.medicines_workbook(tenant_a.id))

        assert title == "Medicines"
        assert rows[0] == [header for header, _ in export_service.MEDICINE_COLUMNS]
        assert [row[0] for row in rows[1:]] == ["Paracetamol 500mg", "Zinc Tablets"]

        paracetamol, zinc = rows[1], rows[2]
        assert paracetamol[1:7] == ["PCM-A1", "TABLET", 10, "50.00", "55.00", "0.00"]
        assert paracetamol[7] == "N/A"
        assert paracetamol[8] == "2099-12-31"
        assert zinc[6] == "12.50"
        assert zinc[7] == "Cipla"

    def test_header_is_styled(self, db_session, tenant_a):
        wb = load_workbook(io.BytesIO(export_service.medicines_workbook(tenant_a.id)))
        cell = wb.active["A1"]
        assert cell.font.bold is True
        assert cell.fill.fgColor.rgb == "FFE6E6FA"


class TestSalesWorkbook:
    def test_bills_and_totals_row(self, db_session, tenant_a, medicine_a, medicine_b, tenant_b):
        today = utcnow().date()
        create_sale(
            tenant_a.id,
            CustomerInfo(name="Ravi", mobile="9123456789"),
            [SaleLineRequest(medicine_a.id, 2), SaleLineRequest(medicine_a.id, 1, 10)],
            tax_cents=250,
            payment_method="CARD",
            today=today,
        )
        create_sale(tenant_a.id, CustomerInfo(name="Walk-in"), [SaleLineRequest(medicine_a.id, 1)], today=today)
        create_sale(tenant_b.id, CustomerInfo(name="Other Store"), [SaleLineRequest(medicine_b.id, 1)], today=today)

        start = today.isoformat()
        title, rows = _rows(export_service.sales_workbook(tenant_a.id, start, start))

        assert title == "Sales Report"
        assert rows[0] == [header for header, _ in export_service.SALES_COLUMNS]

        first, second = rows[1], rows[2]
        assert first[0] == "BILL-000001"
        assert first[1] == start
        assert first[2:5] == ["Ravi", "9123456789", 2]
        # 2 x 50.00 + 1 x 50.00 at 10% off = 145.00, plus 2.50 tax
        assert first[5:10] == ["145.00", "0.00", "2.50", "147.50", "CARD"]
        assert second[0] == "BILL-000002"
        assert second[3] == "N/A"

        assert all(value is None for value in rows[3])
        totals = rows[4]
        assert totals[0] == "Total Sales"
        assert totals[1] == 2
        assert totals[7:9] == ["Total Revenue", "197.50"]

    def test_empty_range_still_has_totals(self, db_session, tenant_a):
        _, rows = _rows(export_service.sales_workbook(tenant_a.id, "2020-01-01", "2020-01-31"))
        assert rows[-1][:2] == ["Total Sales", 0]

    def test_requires_valid_range(self, db_session, tenant_a):
        with pytest.raises(ReportError):
            export_service.sales_workbook(tenant_a.id, None, "2020-01-31")
        with pytest.raises(ReportError):
            export_service.sales_workbook(tenant_a.id, datetime(2021, 1, 1), datetime(2020, 1, 1))
