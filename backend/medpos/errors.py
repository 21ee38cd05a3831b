"""
Billing error taxonomy.

Every error aborts the billing unit of work; nothing is persisted. Routes map
`http_status` and `code` straight onto the JSON rejection, and `line` names
the offending request line (0-based) when one is to blame.
"""

from __future__ import annotations


class BillingError(Exception):
    """Base class for sale/billing rejections."""

    code = "BILLING_ERROR"
    http_status = 400

    def __init__(self, message: str, details: dict | None = None, line: int | None = None):
        super().__init__(message)
        self.message = message
        self.details = dict(details or {})
        self.line = line
        if line is not None:
            self.details.setdefault("line", line)
        # Set by the coordinator to the state the transaction aborted in.
        self.state: str | None = None

    def to_dict(self) -> dict:
        payload = {"error": self.message, "code": self.code, "details": self.details}
        if self.state:
            payload["state"] = self.state
        return payload


class NotFound(BillingError):
    """Referenced catalog item is missing, inactive, or owned by another tenant."""

    code = "NOT_FOUND"
    http_status = 404


class InsufficientStock(BillingError):
    code = "INSUFFICIENT_STOCK"
    http_status = 409


class ExpiredItem(BillingError):
    code = "EXPIRED_ITEM"
    http_status = 409


class InvalidInput(BillingError):
    """Malformed quantity, discount, tax or customer data. Never clamped."""

    code = "INVALID_INPUT"
    http_status = 400


class ConflictRetryable(BillingError):
    """Transient storage contention; safe to rerun the whole operation."""

    code = "CONFLICT_RETRYABLE"
    http_status = 409


class StorageFailure(BillingError):
    code = "STORAGE_FAILURE"
    http_status = 503


class ImmutableRecordError(BillingError):
    """Raised when something tries to update or delete a committed sale."""

    code = "IMMUTABLE_RECORD"
    http_status = 409
