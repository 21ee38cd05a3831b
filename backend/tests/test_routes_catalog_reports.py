# Overview: Pytest coverage for the medicine catalog API, report endpoints, exports and health.

import io

import pytest
from openpyxl import load_workbook
from sqlalchemy.exc import IntegrityError

from medpos.models import Medicine
from medpos.time_utils import utcnow

NEW_MEDICINE = {
    "name": "Montelukast 10mg",
    "batch_number": "mtk-10",
    "category": "tablet",
    "quantity": 30,
    "price_cents": 2500,
    "mrp_cents": 2800,
    "discount_percent": 5,
    "expiry_date": "2030-06-30",
    "supplier": "Sun Pharma",
}


class TestMedicineRoutes:
    def test_create_and_fetch(self, client, headers_a):
        created = client.post("/api/medicines", json=NEW_MEDICINE, headers=headers_a)
        assert created.status_code == 201
        medicine = created.get_json()["medicine"]
        assert medicine["discount_micros"] == 5_000_000
        assert medicine["discount_percent"] == "5.00"
        assert medicine["is_low_stock"] is False
        assert medicine["expiring_soon"] is False

        fetched = client.get(f"/api/medicines/{medicine['id']}", headers=headers_a)
        assert fetched.status_code == 200
        assert fetched.get_json()["medicine"]["batch_number"] == "MTK-10"

    def test_create_validation_and_conflict(self, client, headers_a, medicine_a):
        bad = client.post("/api/medicines", json={**NEW_MEDICINE, "quantity": -1}, headers=headers_a)
        assert bad.status_code == 400

        dup = client.post("/api/medicines", json={**NEW_MEDICINE, "batch_number": "PCM-A1"}, headers=headers_a)
        assert dup.status_code == 409

    def test_update_and_restock(self, client, db_session, headers_a, medicine_a):
        resp = client.patch(f"/api/medicines/{medicine_a.id}", json={"low_stock_threshold": 20}, headers=headers_a)
        assert resp.status_code == 200
        assert resp.get_json()["medicine"]["is_low_stock"] is True

        resp = client.post(f"/api/medicines/{medicine_a.id}/restock", json={"amount": 15}, headers=headers_a)
        assert resp.status_code == 200
        assert resp.get_json()["medicine"]["quantity"] == 25

        assert client.post(
            f"/api/medicines/{medicine_a.id}/restock", json={"amount": 0}, headers=headers_a
        ).status_code == 400

    def test_delete_reports_outcome(self, client, db_session, headers_a, medicine_a, make_medicine, tenant_a):
        sold = make_medicine(tenant_a)
        client.post("/api/bills", json={"customer_name": "X", "items": [{"medicine_id": sold.id, "quantity": 1}]},
                    headers=headers_a)

        assert client.delete(f"/api/medicines/{medicine_a.id}", headers=headers_a).get_json() == {
            "id": medicine_a.id, "result": "deleted",
        }
        assert client.delete(f"/api/medicines/{sold.id}", headers=headers_a).get_json()["result"] == "deactivated"

        listing = client.get("/api/medicines", headers=headers_a).get_json()
        assert listing["count"] == 0
        with_inactive = client.get("/api/medicines?include_inactive=true", headers=headers_a).get_json()
        assert [m["id"] for m in with_inactive["items"]] == [sold.id]

    def test_categories(self, client, headers_a, medicine_a, make_medicine, tenant_a, tenant_b):
        make_medicine(tenant_a, category="SYRUP")
        make_medicine(tenant_b, category="DROPS")

        resp = client.get("/api/medicines/categories", headers=headers_a)
        assert resp.status_code == 200
        assert resp.get_json() == {"items": ["SYRUP", "TABLET"], "count": 2}

    def test_bulk_update(self, client, db_session, headers_a, medicine_a, make_medicine, tenant_a):
        other = make_medicine(tenant_a, name="Cetirizine")
        resp = client.put("/api/medicines/bulk/update", json={"medicines": [
            {"id": medicine_a.id, "price_cents": 4800},
            {"id": other.id, "low_stock_threshold": 20},
        ]}, headers=headers_a)

        assert resp.status_code == 200
        body = resp.get_json()
        assert body["updated"] == 2
        assert body["items"][0]["price_cents"] == 4800
        assert body["items"][1]["is_low_stock"] is True

    def test_bulk_update_errors(self, client, db_session, headers_a, medicine_a, medicine_b):
        bad = client.put("/api/medicines/bulk/update", json={"medicines": [
            {"id": medicine_a.id, "quantity": "lots"},
        ]}, headers=headers_a)
        assert bad.status_code == 400
        assert bad.get_json()["error"].startswith("medicines[0]")

        foreign = client.put("/api/medicines/bulk/update", json={"medicines": [
            {"id": medicine_a.id, "price_cents": 1},
            {"id": medicine_b.id, "price_cents": 1},
        ]}, headers=headers_a)
        assert foreign.status_code == 404

        assert client.put("/api/medicines/bulk/update", json=[1, 2], headers=headers_a).status_code == 400

        db_session.expire_all()
        assert db_session.get(Medicine, medicine_a.id).price_cents == 5000
        assert db_session.get(Medicine, medicine_b.id).price_cents == 5000

    def test_list_filters_and_bad_params(self, client, headers_a, medicine_a, make_medicine, tenant_a):
        make_medicine(tenant_a, name="Empty Bottle", quantity=0)

        out = client.get("/api/medicines?stock_status=out_of_stock", headers=headers_a).get_json()
        assert [m["name"] for m in out["items"]] == ["Empty Bottle"]

        assert client.get("/api/medicines?sort_by=colour", headers=headers_a).status_code == 400


class TestReportRoutes:
    def test_sales_report(self, client, headers_a, medicine_a):
        client.post("/api/bills", json={"customer_name": "X", "items": [{"medicine_id": medicine_a.id, "quantity": 2}]},
                    headers=headers_a)
        day = utcnow().date().isoformat()

        resp = client.get(f"/api/reports/sales?start={day}&end={day}&group_by=day", headers=headers_a)
        assert resp.status_code == 200
        body = resp.get_json()
        assert body["summary"]["total_sales"] == 1
        assert body["summary"]["total_revenue_cents"] == 10000

        assert client.get("/api/reports/sales", headers=headers_a).status_code == 400
        assert client.get(
            f"/api/reports/sales?start={day}&end={day}&group_by=hour", headers=headers_a
        ).status_code == 400

    def test_inventory_expiry_dashboard(self, client, headers_a, medicine_a):
        inventory = client.get("/api/reports/inventory", headers=headers_a).get_json()
        assert inventory["summary"]["inventory_value_cents"] == 50000

        assert client.get("/api/reports/inventory?stock_status=lots", headers=headers_a).status_code == 400

        expiry = client.get("/api/reports/expiry?months=3", headers=headers_a).get_json()
        assert expiry["summary"]["total_expiring"] == 0
        assert client.get("/api/reports/expiry?months=0", headers=headers_a).status_code == 400

        dashboard = client.get("/api/reports/dashboard", headers=headers_a).get_json()
        assert dashboard["total_medicines"] == 1

    def test_daily_sales_and_top_medicines(self, client, headers_a, medicine_a):
        client.post("/api/bills", json={"customer_name": "X", "items": [{"medicine_id": medicine_a.id, "quantity": 3}]},
                    headers=headers_a)

        daily = client.get("/api/reports/daily-sales?days=7", headers=headers_a).get_json()
        assert daily["items"][0]["revenue_cents"] == 15000

        top = client.get("/api/reports/top-medicines?limit=5", headers=headers_a).get_json()
        assert top["items"][0]["quantity_sold"] == 3

        assert client.get("/api/reports/top-medicines?limit=0", headers=headers_a).status_code == 400

    def test_exports_are_xlsx(self, client, headers_a, medicine_a):
        resp = client.get("/api/reports/export/medicines", headers=headers_a)
        assert resp.status_code == 200
        assert resp.mimetype == "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
        assert "medicines.xlsx" in resp.headers["Content-Disposition"]
        ws = load_workbook(io.BytesIO(resp.data)).active
        assert ws["A2"].value == "Paracetamol 500mg"

        day = utcnow().date().isoformat()
        sales = client.get(f"/api/reports/export/sales?start={day}&end={day}", headers=headers_a)
        assert sales.status_code == 200
        assert client.get("/api/reports/export/sales", headers=headers_a).status_code == 400


class TestHealth:
    def test_health_reports_database(self, client, db_session, tenant_a):
        resp = client.get("/health")
        assert resp.status_code == 200
        body = resp.get_json()
        assert body["status"] == "healthy"
        assert body["checks"]["database"]["details"]["tenants"] == 1

    def test_cors_header_for_allowed_origin(self, client, db_session):
        resp = client.get("/health", headers={"Origin": "http://localhost:5173"})
        assert resp.headers["Access-Control-Allow-Origin"] == "http://localhost:5173"

        resp = client.get("/health", headers={"Origin": "http://evil.test"})
        assert "Access-Control-Allow-Origin" not in resp.headers


class TestMedicineModelConstraints:
    def test_negative_quantity_blocked_by_database(self, db_session, tenant_a, medicine_a):
        medicine_a.quantity = -1
        with pytest.raises(IntegrityError):
            db_session.commit()
        db_session.rollback()
        assert db_session.get(Medicine, medicine_a.id).quantity == 10
