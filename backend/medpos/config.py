# backend/medpos/config.py
from __future__ import annotations
import os


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    return int(raw) if raw else default


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name)
    return float(raw) if raw else default


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/medpos.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///medpos.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Bill numbering: BILL-000001
    BILL_NUMBER_PREFIX = os.environ.get("BILL_NUMBER_PREFIX", "BILL")
    BILL_NUMBER_PAD = _env_int("BILL_NUMBER_PAD", 6)

    # Whole-transaction retries on lock contention / write conflicts
    BILLING_RETRY_ATTEMPTS = _env_int("BILLING_RETRY_ATTEMPTS", 3)
    BILLING_RETRY_BACKOFF = _env_float("BILLING_RETRY_BACKOFF", 0.05)

    # Catalog flags
    EXPIRING_SOON_DAYS = _env_int("EXPIRING_SOON_DAYS", 30)
    DEFAULT_LOW_STOCK_THRESHOLD = 5
    MAX_BULK_UPDATE_ITEMS = 100

    # Sessions
    SESSION_ABSOLUTE_TIMEOUT_HOURS = 24
    SESSION_IDLE_TIMEOUT_HOURS = 2
    BCRYPT_ROUNDS = _env_int("BCRYPT_ROUNDS", 12)

    CORS_ORIGINS = {
        origin.strip()
        for origin in os.environ.get(
            "CORS_ORIGINS",
            "http://localhost:5173,http://127.0.0.1:5173,http://localhost:3000",
        ).split(",")
        if origin.strip()
    }

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")
