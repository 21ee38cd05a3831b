"""
Multi-Tenant Service: Tenant Validation and Scoping Helpers

WHY: Centralize tenant validation logic for reuse across services and routes.
Every request is scoped to a tenant (store owner), and cross-tenant access
must be explicitly denied.

SECURITY INVARIANTS:
1. Every authenticated request has g.tenant_id set by @require_auth
2. Routes pass tenant_id explicitly into every service call
3. Services filter every query on the tenant_id they were given; nothing
   below the route layer reads tenant context from ambient state
4. Cross-tenant lookups are logged and answered as "not found"

USAGE:
    from medpos.services.tenant_service import require_active_tenant

    tenant = require_active_tenant(tenant_id)
"""

from flask import current_app

from ..extensions import db
from ..models import Tenant
from medpos.time_utils import local_today


class TenantAccessError(Exception):
    """Raised when a tenant is missing, inactive, or not the caller's."""
    pass


def require_active_tenant(tenant_id: int) -> Tenant:
    """
    Validate that a tenant exists and is active.

    Raises:
        TenantAccessError if tenant doesn't exist or is inactive
    """
    if not tenant_id:
        raise TenantAccessError("Tenant context not established")

    tenant = db.session.query(Tenant).filter_by(id=tenant_id).first()

    if not tenant:
        raise TenantAccessError("Tenant not found")

    if not tenant.is_active:
        raise TenantAccessError("Tenant is not active")

    return tenant


def tenant_today(tenant_id: int):
    """The tenant's local calendar date (expiry checks are made against this)."""
    tz_name = (
        db.session.query(Tenant.timezone)
        .filter_by(id=tenant_id)
        .scalar()
    )
    return local_today(tz_name)


def log_cross_tenant_attempt(reason: str, tenant_id: int | None = None, **context) -> None:
    """
    Record a lookup that touched another tenant's data.

    SECURITY: These should be monitored; the caller still answers "not found"
    so the other tenant's record is never revealed.
    """
    current_app.logger.warning(
        "Cross-tenant access denied: %s (tenant_id=%s, context=%s)",
        reason, tenant_id, context,
    )
