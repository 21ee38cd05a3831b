# Overview: Service-layer operations for session; encapsulates business logic and database work.

"""
Session Token Management Service with Multi-Tenant Support

WHY: Secure session management with automatic timeout and revocation.
Tokens are cryptographically secure, hashed in database, and time-limited.

MULTI-TENANT: Sessions capture tenant_id at creation time. This establishes
the tenant context for every authenticated request without trusting
anything the client sends.

SECURITY FEATURES:
- Cryptographically secure random tokens (32 bytes)
- Tokens hashed with SHA-256 before storage (fast, one-way)
- Absolute timeout (SESSION_ABSOLUTE_TIMEOUT_HOURS, default 24)
- Idle timeout (SESSION_IDLE_TIMEOUT_HOURS, default 2)
- Revocable on logout
- Tenant context (tenant_id) is immutable for the session lifetime
"""

import hashlib
import secrets
from dataclasses import dataclass
from datetime import timedelta

from flask import current_app

from ..extensions import db
from ..models import SessionToken, Tenant, User
from medpos.time_utils import utcnow


@dataclass
class SessionContext:
    """
    Complete session context returned by validate_session.

    MULTI-TENANT: Contains both user identity and tenant context.
    tenant_id comes from the immutable session record.
    """
    user: User
    session: SessionToken
    tenant_id: int


def _absolute_timeout() -> timedelta:
    return timedelta(hours=current_app.config.get("SESSION_ABSOLUTE_TIMEOUT_HOURS", 24))


def _idle_timeout() -> timedelta:
    return timedelta(hours=current_app.config.get("SESSION_IDLE_TIMEOUT_HOURS", 2))


def generate_token() -> str:
    """64-character hex string (32 bytes of entropy); sent to the client, never stored."""
    return secrets.token_hex(32)


def hash_token(token: str) -> str:
    """
    Hash token for database storage using SHA-256.

    WHY SHA-256 not bcrypt: Tokens are already high-entropy (unlike passwords).
    """
    return hashlib.sha256(token.encode('utf-8')).hexdigest()


def create_session(
    user_id: int,
    user_agent: str | None = None,
    ip_address: str | None = None
) -> tuple[SessionToken, str]:
    """
    Create new session token for user with tenant context.

    Returns (session_record, plaintext_token).
    Client receives plaintext_token, database stores only the hash.

    Raises ValueError if the user or their tenant is missing or inactive.
    """
    user = db.session.query(User).filter_by(id=user_id).first()
    if not user or not user.is_active:
        raise ValueError("User not found")

    tenant = db.session.query(Tenant).filter_by(id=user.tenant_id).first()
    if not tenant or not tenant.is_active:
        raise ValueError("Tenant is not active")

    plaintext_token = generate_token()
    now = utcnow()

    session = SessionToken(
        user_id=user_id,
        tenant_id=user.tenant_id,
        token_hash=hash_token(plaintext_token),
        created_at=now,
        last_used_at=now,
        expires_at=now + _absolute_timeout(),
        user_agent=user_agent[:512] if user_agent else None,
        ip_address=ip_address,
        is_revoked=False
    )

    db.session.add(session)
    db.session.commit()

    return session, plaintext_token


def _revoke(session: SessionToken, reason: str, now) -> None:
    session.is_revoked = True
    session.revoked_at = now
    session.revoked_reason = reason
    db.session.commit()


def validate_session(token: str) -> SessionContext | None:
    """
    Validate session token and return SessionContext if valid.

    Returns None if:
    - Token is invalid, expired, or revoked
    - User account is deactivated
    - Tenant is deactivated

    Updates last_used_at on successful validation (activity tracking).
    """
    if not token:
        return None

    now = utcnow()
    session = db.session.query(SessionToken).filter_by(
        token_hash=hash_token(token),
        is_revoked=False
    ).first()

    if not session:
        return None

    if session.expires_at < now:
        return None

    if now - session.last_used_at > _idle_timeout():
        _revoke(session, "Idle timeout", now)
        return None

    user = session.user
    if not user or not user.is_active:
        _revoke(session, "User account deactivated", now)
        return None

    tenant = session.tenant
    if not tenant or not tenant.is_active:
        _revoke(session, "Tenant deactivated", now)
        return None

    session.last_used_at = now
    db.session.commit()

    return SessionContext(user=user, session=session, tenant_id=session.tenant_id)


def revoke_session(token: str, reason: str = "User logout") -> bool:
    """
    Revoke session token.

    Returns True if session was revoked, False if not found.
    """
    session = db.session.query(SessionToken).filter_by(
        token_hash=hash_token(token),
        is_revoked=False
    ).first()

    if not session:
        return False

    _revoke(session, reason, utcnow())
    return True


def cleanup_expired_sessions(older_than_days: int = 30) -> int:
    """
    Delete expired and revoked sessions created more than `older_than_days` ago.

    Returns count of sessions deleted. Run periodically (flask sessions cleanup).
    """
    now = utcnow()
    cutoff = now - timedelta(days=older_than_days)

    deleted = db.session.query(SessionToken).filter(
        db.or_(
            SessionToken.expires_at < now,
            SessionToken.is_revoked.is_(True)
        ),
        SessionToken.created_at < cutoff
    ).delete(synchronize_session=False)

    db.session.commit()
    return deleted
