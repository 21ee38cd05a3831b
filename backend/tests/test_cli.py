# Overview: Pytest coverage for the Flask CLI command groups.

from medpos.models import Tenant, User


def test_tenants_create_and_list(app, db_session):
    runner = app.test_cli_runner()
    result = runner.invoke(args=[
        "tenants", "create",
        "--store-name", "Hill Chemists",
        "--name", "Meera",
        "--email", "meera@hill.test",
        "--password", "Password123!",
        "--timezone", "Asia/Kolkata",
    ])
    assert "PASS Created tenant: Hill Chemists" in result.output

    tenant = db_session.query(Tenant).one()
    assert tenant.timezone == "Asia/Kolkata"
    assert db_session.query(User).filter_by(tenant_id=tenant.id, role="OWNER").count() == 1

    listing = runner.invoke(args=["tenants", "list"])
    assert "Hill Chemists" in listing.output


def test_tenants_create_reports_weak_password(app, db_session):
    result = app.test_cli_runner().invoke(args=[
        "tenants", "create", "--store-name", "S", "--name", "N", "--email", "n@s.test", "--password", "weak",
    ])
    assert result.output.startswith("FAIL")
    assert db_session.query(Tenant).count() == 0


def test_users_create_staff(app, db_session, tenant_a):
    runner = app.test_cli_runner()
    result = runner.invoke(args=[
        "users", "create-staff", "--tenant-id", str(tenant_a.id),
        "--name", "Ravi", "--email", "ravi@city.test", "--password", "Password123!",
    ])
    assert "PASS Created staff user: ravi@city.test" in result.output

    listing = runner.invoke(args=["users", "list", "--tenant-id", str(tenant_a.id)])
    assert "ravi@city.test" in listing.output
    assert "STAFF" in listing.output


def test_catalog_low_stock(app, db_session, tenant_a, make_medicine):
    make_medicine(tenant_a, name="Cough Syrup", quantity=2)
    make_medicine(tenant_a, name="Plenty Tabs", quantity=200)
    make_medicine(tenant_a, name="Sold Out Drops", quantity=0)

    result = app.test_cli_runner().invoke(args=["catalog", "low-stock", "--tenant-id", str(tenant_a.id)])
    assert "Cough Syrup" in result.output
    assert "Plenty Tabs" not in result.output
    assert "Sold Out Drops" not in result.output


def test_catalog_expiring_empty(app, db_session, tenant_a, medicine_a):
    result = app.test_cli_runner().invoke(args=["catalog", "expiring", "--tenant-id", str(tenant_a.id)])
    assert "No medicines expiring in the next 30 days." in result.output


def test_sessions_cleanup(app, db_session):
    result = app.test_cli_runner().invoke(args=["sessions", "cleanup"])
    assert "PASS Deleted 0 session(s)." in result.output
