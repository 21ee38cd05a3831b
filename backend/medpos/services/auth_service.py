# Overview: Service-layer operations for auth; encapsulates business logic and database work.

"""
Authentication Service with Multi-Tenant Support

WHY: Every bill must be attributable to a login. Uses bcrypt for password
hashing and validates password strength.

MULTI-TENANT: Registering creates the tenant (store) and its OWNER user
together. Staff users are created by an owner inside the owner's tenant.
Email is the login identifier and is unique across all tenants.

SECURITY NOTES:
- Passwords hashed with bcrypt (cost factor from BCRYPT_ROUNDS, default 12)
- Minimum 8 characters required
- Must contain uppercase, lowercase, digit, and special char
- Session tokens managed separately (see session_service.py)
- Authentication fails for deactivated users and deactivated tenants
"""

import re
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import bcrypt
from flask import current_app

from ..extensions import db
from ..models import Tenant, User
from ..validation import ModelValidationPolicy, validate_payload
from medpos.time_utils import utcnow

PHONE_PATTERN = re.compile(r"^[0-9]{10,15}$")
EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")

PROFILE_POLICY = ModelValidationPolicy(
    writable_fields={"store_name", "store_address", "phone", "gst_number", "timezone"},
)


class PasswordValidationError(Exception):
    """Raised when password doesn't meet strength requirements."""
    pass


class AuthError(ValueError):
    """Raised for invalid registration data or duplicate accounts."""
    pass


def validate_password_strength(password: str) -> None:
    """
    Validate password meets strength requirements.

    Requirements:
    - Minimum 8 characters
    - At least one uppercase letter
    - At least one lowercase letter
    - At least one digit
    - At least one special character (!@#$%^&*(),.'":{}|<>)

    Raises PasswordValidationError if requirements not met.
    """
    if not isinstance(password, str) or len(password) < 8:
        raise PasswordValidationError("Password must be at least 8 characters long")

    if not re.search(r'[A-Z]', password):
        raise PasswordValidationError("Password must contain at least one uppercase letter")

    if not re.search(r'[a-z]', password):
        raise PasswordValidationError("Password must contain at least one lowercase letter")

    if not re.search(r'\d', password):
        raise PasswordValidationError("Password must contain at least one digit")

    if not re.search(r"[!@#$%^&*(),.'\":{}|<>]", password):
        raise PasswordValidationError("Password must contain at least one special character")


def hash_password(password: str) -> str:
    """
    Hash password using bcrypt.

    Password is validated for strength before hashing. Tests lower
    BCRYPT_ROUNDS to keep the suite fast.
    """
    validate_password_strength(password)
    salt = bcrypt.gensalt(rounds=current_app.config.get("BCRYPT_ROUNDS", 12))
    hashed = bcrypt.hashpw(password.encode('utf-8'), salt)
    return hashed.decode('utf-8')  # Store as string in database


def verify_password(password: str, password_hash: str) -> bool:
    """
    Verify password against bcrypt hash.

    WHY timing-safe: bcrypt.checkpw() prevents timing attacks automatically.
    """
    if not password or not password_hash:
        return False
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        # Malformed hash in the database
        return False


def _normalize_email(email) -> str:
    if not isinstance(email, str) or not EMAIL_PATTERN.match(email.strip()):
        raise AuthError("A valid email is required")
    return email.strip().lower()


def _require_text(value, field: str, max_length: int) -> str:
    if not isinstance(value, str) or not value.strip():
        raise AuthError(f"{field} is required")
    value = value.strip()
    if len(value) > max_length:
        raise AuthError(f"{field} cannot be more than {max_length} characters")
    return value


def _ensure_email_free(email: str) -> None:
    if db.session.query(User.id).filter(User.email == email).first():
        raise AuthError("User already exists with this email")


def register_owner(
    *,
    store_name: str,
    name: str,
    email: str,
    password: str,
    store_address: str | None = None,
    phone: str | None = None,
    gst_number: str | None = None,
    timezone: str = "UTC",
) -> tuple[Tenant, User]:
    """
    Register a new store: creates the Tenant and its OWNER user in one commit.

    Raises:
        AuthError: invalid fields or email already registered
        PasswordValidationError: weak password
    """
    store_name = _require_text(store_name, "Store name", 100)
    name = _require_text(name, "Name", 50)
    email = _normalize_email(email)

    if phone is not None:
        phone = phone.strip()
        if not PHONE_PATTERN.match(phone):
            raise AuthError("Phone must be 10-15 digits")

    try:
        ZoneInfo(timezone)
    except (ZoneInfoNotFoundError, ValueError, TypeError):
        raise AuthError(f"Unknown timezone: {timezone}")

    _ensure_email_free(email)

    # Hash password with bcrypt (validates strength automatically)
    password_hash = hash_password(password)

    tenant = Tenant(
        store_name=store_name,
        store_address=store_address.strip() if store_address else None,
        phone=phone,
        gst_number=gst_number.strip().upper() if gst_number else None,
        timezone=timezone,
    )
    db.session.add(tenant)
    db.session.flush()

    user = User(
        tenant_id=tenant.id,
        name=name,
        email=email,
        password_hash=password_hash,
        role="OWNER",
    )
    db.session.add(user)
    db.session.commit()

    current_app.logger.info("Registered tenant %s (%s) with owner %s", tenant.id, store_name, email)
    return tenant, user


def create_staff_user(tenant_id: int, *, name: str, email: str, password: str) -> User:
    """
    Create a STAFF login inside an existing, active tenant.

    Raises AuthError (tenant missing/inactive, duplicate email) or
    PasswordValidationError.
    """
    tenant = db.session.query(Tenant).filter_by(id=tenant_id).first()
    if not tenant:
        raise AuthError("Tenant not found")
    if not tenant.is_active:
        raise AuthError("Tenant is not active")

    name = _require_text(name, "Name", 50)
    email = _normalize_email(email)
    _ensure_email_free(email)

    user = User(
        tenant_id=tenant_id,
        name=name,
        email=email,
        password_hash=hash_password(password),
        role="STAFF",
    )
    db.session.add(user)
    db.session.commit()
    return user


def update_profile(user: User, payload: dict) -> User:
    """
    Owner edits their store details and their own display name.

    Store fields go through PROFILE_POLICY like catalog edits do; only the
    keys present in the payload change. Raises AuthError or ValidationError.
    """
    if not isinstance(payload, dict) or not payload:
        raise AuthError("Nothing to update")

    fields = dict(payload)
    new_name = None
    if "name" in fields:
        new_name = _require_text(fields.pop("name"), "Name", 50)

    patch = validate_payload(model=Tenant, payload=fields, policy=PROFILE_POLICY, partial=True)

    for optional in ("store_address", "phone", "gst_number"):
        if patch.get(optional) == "":
            patch[optional] = None
    if patch.get("phone") is not None and not PHONE_PATTERN.match(patch["phone"]):
        raise AuthError("Phone must be 10-15 digits")
    if patch.get("gst_number") is not None:
        patch["gst_number"] = patch["gst_number"].upper()
    if "timezone" in patch:
        try:
            ZoneInfo(patch["timezone"])
        except (ZoneInfoNotFoundError, ValueError, TypeError):
            raise AuthError(f"Unknown timezone: {patch['timezone']}")

    tenant = db.session.query(Tenant).filter_by(id=user.tenant_id).one()
    for k, v in patch.items():
        setattr(tenant, k, v)
    if new_name is not None:
        user.name = new_name
    db.session.commit()

    current_app.logger.info("Updated profile of tenant %s by user %s", tenant.id, user.id)
    return user


def authenticate(email: str, password: str) -> User | None:
    """
    Authenticate user with email and password.

    Returns User if credentials valid, None otherwise.
    Updates last_login_at timestamp on successful authentication.

    MULTI-TENANT: A user of a deactivated tenant cannot log in.
    """
    if not isinstance(email, str) or not isinstance(password, str):
        return None

    user = db.session.query(User).filter(
        User.email == email.strip().lower(),
        User.is_active.is_(True),
    ).first()

    if not user:
        return None

    tenant = db.session.query(Tenant).filter_by(id=user.tenant_id).first()
    if not tenant or not tenant.is_active:
        return None

    if verify_password(password, user.password_hash):
        user.last_login_at = utcnow()
        db.session.commit()
        return user

    return None


def list_users(tenant_id: int) -> list[User]:
    return (
        db.session.query(User)
        .filter(User.tenant_id == tenant_id)
        .order_by(User.id.asc())
        .all()
    )
