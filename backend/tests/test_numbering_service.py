# Overview: Pytest coverage for per-tenant bill number allocation.

from medpos.models import BillSequence
from medpos.services.billing_service import CustomerInfo, SaleLineRequest, create_sale
from medpos.services.numbering_service import format_bill_number, next_bill_number


class TestFormat:
    def test_default_prefix_and_padding(self, app):
        with app.app_context():
            assert format_bill_number(42) == "BILL-000042"

    def test_explicit_prefix_and_padding(self, app):
        with app.app_context():
            assert format_bill_number(7, prefix="INV", pad=3) == "INV-007"


class TestNextBillNumber:
    def test_first_number_is_one(self, db_session, tenant_a):
        assert next_bill_number(tenant_a.id) == "BILL-000001"
        db_session.commit()

    def test_numbers_increase_within_tenant(self, db_session, tenant_a):
        numbers = [next_bill_number(tenant_a.id) for _ in range(3)]
        db_session.commit()
        assert numbers == ["BILL-000001", "BILL-000002", "BILL-000003"]

        seq = db_session.query(BillSequence).filter_by(tenant_id=tenant_a.id).one()
        assert seq.next_number == 4

    def test_tenants_have_independent_sequences(self, db_session, tenant_a, tenant_b):
        assert next_bill_number(tenant_a.id) == "BILL-000001"
        assert next_bill_number(tenant_a.id) == "BILL-000002"
        assert next_bill_number(tenant_b.id) == "BILL-000001"
        db_session.commit()

    def test_rolled_back_number_is_not_consumed(self, db_session, tenant_a):
        next_bill_number(tenant_a.id)
        db_session.commit()

        next_bill_number(tenant_a.id)
        db_session.rollback()

        assert next_bill_number(tenant_a.id) == "BILL-000002"
        db_session.commit()

    def test_missing_sequence_row_is_seeded_from_ledger(self, db_session, tenant_a, medicine_a, today):
        for _ in range(2):
            create_sale(
                tenant_a.id,
                CustomerInfo(name="Walk-in"),
                [SaleLineRequest(medicine_id=medicine_a.id, quantity=1)],
                today=today,
            )

        db_session.query(BillSequence).filter_by(tenant_id=tenant_a.id).delete()
        db_session.commit()

        assert next_bill_number(tenant_a.id) == "BILL-000003"
        db_session.commit()
