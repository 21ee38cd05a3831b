# Overview: Pytest coverage for catalog management (create/update/restock/delete/list) and billing-side access.

from datetime import date, timedelta

import pytest
from sqlalchemy import update

from medpos.errors import InsufficientStock, InvalidInput
from medpos.models import Medicine
from medpos.services import catalog_service
from medpos.services.billing_service import CustomerInfo, SaleLineRequest, create_sale
from medpos.validation import ConflictError, ValidationError


def _payload(**overrides):
    data = {
        "name": "Azithromycin 500mg",
        "batch_number": "azi-500",
        "category": "tablet",
        "quantity": 20,
        "price_cents": 12000,
        "mrp_cents": 13500,
        "expiry_date": "2027-03-31",
    }
    data.update(overrides)
    return data


class TestCreateMedicine:
    def test_create_normalizes_and_defaults(self, db_session, tenant_a):
        medicine = catalog_service.create_medicine(tenant_a.id, _payload())

        assert medicine.batch_number == "AZI-500"
        assert medicine.category == "TABLET"
        assert medicine.expiry_date == date(2027, 3, 31)
        assert medicine.discount_micros == 0
        assert medicine.low_stock_threshold == 5
        assert medicine.is_active is True

    def test_discount_percent_stored_as_micros(self, db_session, tenant_a):
        medicine = catalog_service.create_medicine(tenant_a.id, _payload(discount_percent="12.5"))
        assert medicine.discount_micros == 12_500_000

    def test_both_discount_forms_rejected(self, db_session, tenant_a):
        with pytest.raises(ValidationError):
            catalog_service.create_medicine(tenant_a.id, _payload(discount_percent=5, discount_micros=5_000_000))

    @pytest.mark.parametrize("overrides", [
        {"quantity": -1},
        {"quantity": 2.5},
        {"price_cents": -100},
        {"price_cents": "12.00"},
        {"discount_percent": 150},
        {"category": "POTION"},
        {"expiry_date": "31/03/2027"},
        {"name": "   "},
        {"tenant_id": 99},
    ])
    def test_invalid_payload_rejected(self, db_session, tenant_a, overrides):
        with pytest.raises(ValidationError):
            catalog_service.create_medicine(tenant_a.id, _payload(**overrides))
        assert db_session.query(Medicine).count() == 0

    def test_missing_required_field_rejected(self, db_session, tenant_a):
        payload = _payload()
        del payload["expiry_date"]
        with pytest.raises(ValidationError, match="expiry_date"):
            catalog_service.create_medicine(tenant_a.id, payload)

    def test_duplicate_batch_within_tenant_conflicts(self, db_session, tenant_a):
        catalog_service.create_medicine(tenant_a.id, _payload())
        with pytest.raises(ConflictError):
            catalog_service.create_medicine(tenant_a.id, _payload(batch_number="AZI-500"))

    def test_same_batch_allowed_across_tenants(self, db_session, tenant_a, tenant_b):
        catalog_service.create_medicine(tenant_a.id, _payload())
        other = catalog_service.create_medicine(tenant_b.id, _payload())
        assert other.tenant_id == tenant_b.id


class TestUpdateAndRestock:
    def test_partial_update(self, db_session, tenant_a, medicine_a):
        updated = catalog_service.update_medicine(tenant_a.id, medicine_a.id, {"price_cents": 4500})
        assert updated.price_cents == 4500
        assert updated.quantity == 10

    def test_update_bumps_version(self, db_session, tenant_a, medicine_a):
        before = medicine_a.version_id
        catalog_service.update_medicine(tenant_a.id, medicine_a.id, {"supplier": "Acme Pharma"})
        assert medicine_a.version_id == before + 1

    def test_update_to_taken_batch_conflicts(self, db_session, tenant_a, medicine_a, make_medicine):
        other = make_medicine(tenant_a, batch_number="TAKEN-1")
        with pytest.raises(ConflictError):
            catalog_service.update_medicine(tenant_a.id, other.id, {"batch_number": "pcm-a1"})

    def test_stale_edit_conflicts_after_concurrent_sale(self, db_session, tenant_a, medicine_a):
        """An edit based on a row version that a sale has since moved past is refused."""
        loaded = db_session.get(Medicine, medicine_a.id)
        assert loaded.quantity == 10

        # A sale's decrement lands after the editor loaded the row
        db_session.execute(
            update(Medicine)
            .where(Medicine.id == medicine_a.id)
            .values(quantity=Medicine.quantity - 3, version_id=Medicine.version_id + 1)
            .execution_options(synchronize_session=False)
        )

        with pytest.raises(ConflictError):
            catalog_service.update_medicine(tenant_a.id, medicine_a.id, {"quantity": 50})

    def test_update_other_tenant_not_found(self, db_session, tenant_b, medicine_a):
        with pytest.raises(catalog_service.MedicineNotFoundError):
            catalog_service.update_medicine(tenant_b.id, medicine_a.id, {"price_cents": 1})

    def test_restock_adds_quantity(self, db_session, tenant_a, medicine_a):
        catalog_service.restock(tenant_a.id, medicine_a.id, 15)
        db_session.expire_all()
        assert db_session.get(Medicine, medicine_a.id).quantity == 25

    @pytest.mark.parametrize("amount", [0, -5, "5", 2.5, True])
    def test_restock_rejects_non_positive_amounts(self, db_session, tenant_a, medicine_a, amount):
        with pytest.raises(ValidationError):
            catalog_service.restock(tenant_a.id, medicine_a.id, amount)


class TestBulkUpdate:
    def test_updates_every_item_in_one_commit(self, db_session, tenant_a, medicine_a, make_medicine):
        other = make_medicine(tenant_a, name="Cetirizine")
        updated = catalog_service.bulk_update_medicines(tenant_a.id, [
            {"id": medicine_a.id, "price_cents": 4800, "discount_percent": "2.5"},
            {"id": other.id, "category": "syrup", "quantity": 40},
        ])

        assert [m.id for m in updated] == [medicine_a.id, other.id]
        db_session.expire_all()
        assert db_session.get(Medicine, medicine_a.id).price_cents == 4800
        assert db_session.get(Medicine, medicine_a.id).discount_micros == 2_500_000
        assert db_session.get(Medicine, other.id).category == "SYRUP"
        assert db_session.get(Medicine, other.id).quantity == 40

    def test_invalid_item_saves_nothing(self, db_session, tenant_a, medicine_a, make_medicine):
        other = make_medicine(tenant_a)
        with pytest.raises(ValidationError, match=r"medicines\[1\]"):
            catalog_service.bulk_update_medicines(tenant_a.id, [
                {"id": medicine_a.id, "price_cents": 4800},
                {"id": other.id, "quantity": -3},
            ])
        db_session.expire_all()
        assert db_session.get(Medicine, medicine_a.id).price_cents == 5000

    def test_other_tenants_medicine_fails_whole_batch(self, db_session, tenant_a, medicine_a, medicine_b):
        with pytest.raises(catalog_service.MedicineNotFoundError, match=r"medicines\[1\]"):
            catalog_service.bulk_update_medicines(tenant_a.id, [
                {"id": medicine_a.id, "price_cents": 4800},
                {"id": medicine_b.id, "price_cents": 1},
            ])
        db_session.expire_all()
        assert db_session.get(Medicine, medicine_a.id).price_cents == 5000
        assert db_session.get(Medicine, medicine_b.id).price_cents == 5000

    def test_batch_number_clash_conflicts(self, db_session, tenant_a, medicine_a, make_medicine):
        other = make_medicine(tenant_a, batch_number="TAKEN-1")
        with pytest.raises(ConflictError):
            catalog_service.bulk_update_medicines(tenant_a.id, [
                {"id": other.id, "batch_number": "pcm-a1"},
            ])
        db_session.expire_all()
        assert db_session.get(Medicine, other.id).batch_number == "TAKEN-1"

    @pytest.mark.parametrize("items", [
        None,
        [],
        {"id": 1},
        ["not-an-object"],
        [{"price_cents": 100}],
        [{"id": "1", "price_cents": 100}],
        [{"id": 1, "tenant_id": 2}],
    ])
    def test_malformed_batches_rejected(self, db_session, tenant_a, medicine_a, items):
        with pytest.raises(ValidationError):
            catalog_service.bulk_update_medicines(tenant_a.id, items)

    def test_same_medicine_twice_rejected(self, db_session, tenant_a, medicine_a):
        with pytest.raises(ValidationError, match="listed twice"):
            catalog_service.bulk_update_medicines(tenant_a.id, [
                {"id": medicine_a.id, "quantity": 1},
                {"id": medicine_a.id, "quantity": 2},
            ])


class TestCategories:
    def test_distinct_sorted_and_tenant_scoped(self, db_session, tenant_a, tenant_b, make_medicine):
        make_medicine(tenant_a, category="SYRUP")
        make_medicine(tenant_a, category="TABLET")
        make_medicine(tenant_a, category="SYRUP")
        make_medicine(tenant_a, category="INHALER", is_active=False)
        make_medicine(tenant_b, category="DROPS")

        assert catalog_service.list_categories(tenant_a.id) == ["SYRUP", "TABLET"]
        assert catalog_service.list_categories(tenant_b.id) == ["DROPS"]

    def test_empty_catalog(self, db_session, tenant_a):
        assert catalog_service.list_categories(tenant_a.id) == []


class TestDelete:
    def test_unreferenced_medicine_is_deleted(self, db_session, tenant_a, medicine_a):
        assert catalog_service.delete_medicine(tenant_a.id, medicine_a.id) == "deleted"
        assert db_session.query(Medicine).count() == 0

    def test_referenced_medicine_is_deactivated(self, db_session, tenant_a, medicine_a, today):
        create_sale(tenant_a.id, CustomerInfo(name="X"), [SaleLineRequest(medicine_a.id, 1)], today=today)

        assert catalog_service.delete_medicine(tenant_a.id, medicine_a.id) == "deactivated"
        db_session.expire_all()
        medicine = db_session.get(Medicine, medicine_a.id)
        assert medicine is not None
        assert medicine.is_active is False
        assert catalog_service.find_by_id(tenant_a.id, medicine_a.id) is None

    def test_delete_other_tenant_not_found(self, db_session, tenant_b, medicine_a):
        with pytest.raises(catalog_service.MedicineNotFoundError):
            catalog_service.delete_medicine(tenant_b.id, medicine_a.id)


class TestBillingSideAccess:
    def test_lock_medicines_returns_only_own_active_rows(
        self, db_session, tenant_a, medicine_a, medicine_b, make_medicine
    ):
        retired = make_medicine(tenant_a, is_active=False)

        found = catalog_service.lock_medicines(tenant_a.id, [medicine_b.id, medicine_a.id, retired.id])
        db_session.rollback()

        assert list(found) == [medicine_a.id]

    def test_cross_tenant_lookup_is_logged(self, db_session, tenant_a, medicine_b, caplog):
        assert catalog_service.find_by_id(tenant_a.id, medicine_b.id) is None
        assert "Cross-tenant access denied" in caplog.text

    def test_decrement_is_conditional(self, db_session, tenant_a, medicine_a):
        catalog_service.decrement_quantity(tenant_a.id, medicine_a.id, 4)
        with pytest.raises(InsufficientStock):
            catalog_service.decrement_quantity(tenant_a.id, medicine_a.id, 7)
        db_session.commit()

        db_session.expire_all()
        assert db_session.get(Medicine, medicine_a.id).quantity == 6

    def test_decrement_ignores_other_tenants_rows(self, db_session, tenant_b, medicine_a):
        with pytest.raises(InsufficientStock):
            catalog_service.decrement_quantity(tenant_b.id, medicine_a.id, 1)
        db_session.rollback()

    @pytest.mark.parametrize("amount", [0, -1, 1.0])
    def test_decrement_rejects_bad_amounts(self, db_session, tenant_a, medicine_a, amount):
        with pytest.raises(InvalidInput):
            catalog_service.decrement_quantity(tenant_a.id, medicine_a.id, amount)


class TestListMedicines:
    @pytest.fixture
    def catalog(self, tenant_a, make_medicine, today):
        return {
            "fresh": make_medicine(tenant_a, name="Amoxicillin", quantity=50, category="CAPSULE"),
            "low": make_medicine(tenant_a, name="Betadine", quantity=3, category="OINTMENT",
                                 supplier="Win Medicare"),
            "empty": make_medicine(tenant_a, name="Cough Syrup", quantity=0, category="SYRUP"),
            "expiring": make_medicine(tenant_a, name="Dolo 650", quantity=20,
                                      expiry_date=today + timedelta(days=10)),
            "expired": make_medicine(tenant_a, name="Eye Drops", quantity=8, category="DROPS",
                                     expiry_date=today - timedelta(days=1)),
        }

    def _names(self, result):
        return [item["name"] for item in result["items"]]

    def test_default_listing_has_flags(self, db_session, tenant_a, catalog, today):
        result = catalog_service.list_medicines(tenant_a.id, sort_by="name", sort_order="asc", today=today)

        assert result["count"] == 5
        by_name = {item["name"]: item for item in result["items"]}
        assert by_name["Betadine"]["is_low_stock"] is True
        assert by_name["Cough Syrup"]["is_out_of_stock"] is True
        assert by_name["Dolo 650"]["expiring_soon"] is True
        assert by_name["Eye Drops"]["is_expired"] is True

    @pytest.mark.parametrize("status,expected", [
        ("out_of_stock", ["Cough Syrup"]),
        ("low_stock", ["Betadine"]),
        ("in_stock", ["Amoxicillin", "Betadine", "Dolo 650", "Eye Drops"]),
    ])
    def test_stock_status_filter(self, db_session, tenant_a, catalog, today, status, expected):
        result = catalog_service.list_medicines(
            tenant_a.id, stock_status=status, sort_by="name", sort_order="asc", today=today,
        )
        assert self._names(result) == expected

    @pytest.mark.parametrize("status,expected", [
        ("expired", ["Eye Drops"]),
        ("expiring", ["Dolo 650"]),
        ("safe", ["Amoxicillin", "Betadine", "Cough Syrup"]),
    ])
    def test_expiry_status_filter(self, db_session, tenant_a, catalog, today, status, expected):
        result = catalog_service.list_medicines(
            tenant_a.id, expiry_status=status, sort_by="name", sort_order="asc", today=today,
        )
        assert self._names(result) == expected

    def test_category_and_search(self, db_session, tenant_a, catalog, today):
        assert self._names(catalog_service.list_medicines(tenant_a.id, category="syrup", today=today)) == ["Cough Syrup"]
        assert catalog_service.list_medicines(tenant_a.id, category="all", today=today)["count"] == 5
        assert self._names(catalog_service.list_medicines(tenant_a.id, search="win med", today=today)) == ["Betadine"]

    def test_pagination(self, db_session, tenant_a, catalog, today):
        result = catalog_service.list_medicines(
            tenant_a.id, sort_by="name", sort_order="asc", page=2, per_page=2, today=today,
        )
        assert self._names(result) == ["Cough Syrup", "Dolo 650"]
        assert result["pagination"] == {
            "page": 2, "per_page": 2, "total": 5, "total_pages": 3,
            "has_next": True, "has_prev": True,
        }

    def test_other_tenant_sees_nothing(self, db_session, tenant_b, catalog, today):
        assert catalog_service.list_medicines(tenant_b.id, today=today)["count"] == 0

    @pytest.mark.parametrize("kwargs", [
        {"sort_by": "supplier"},
        {"stock_status": "plenty"},
        {"expiry_status": "stale"},
    ])
    def test_bad_filters_rejected(self, db_session, tenant_a, today, kwargs):
        with pytest.raises(ValidationError):
            catalog_service.list_medicines(tenant_a.id, today=today, **kwargs)

    def test_low_stock_and_expiring_helpers(self, db_session, tenant_a, catalog, today):
        low = [m.name for m in catalog_service.low_stock_medicines(tenant_a.id)]
        # Cough Syrup is out of stock, not low stock
        assert low == ["Betadine"]
        listed = catalog_service.list_medicines(tenant_a.id, stock_status="low_stock", today=today)
        assert low == self._names(listed)

        expiring = [m.name for m in catalog_service.expiring_medicines(tenant_a.id, 30, today=today)]
        assert expiring == ["Dolo 650"]
