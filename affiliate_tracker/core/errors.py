"""
Domain errors raised by the attribution, commission and ledger services.

Every error carries a machine-readable ``code``, an HTTP ``status_code`` used
by the exception handler, and a ``context`` dict (entity ids, current state)
so callers can decide whether to retry, surface the error, or ignore it.
"""
from typing import Any, Dict, Optional


class AffiliateError(Exception):
    """Base exception for the affiliate core"""
    code = "error"
    status_code = 400

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.context = context or {}

    def to_dict(self) -> Dict[str, Any]:
        return {"error": self.code, "message": self.message, "context": self.context}


class NotFoundError(AffiliateError):
    """Referenced product/affiliate/conversion/payout does not exist"""
    code = "not_found"
    status_code = 404


class InactiveError(AffiliateError):
    """Entity exists but is disabled for the requested operation"""
    code = "inactive"
    status_code = 403


class SuspendedError(InactiveError):
    """Affiliate exists but is not active"""
    code = "suspended"


class CrossTenantViolation(AffiliateError):
    """Affiliate and product belong to different tenants"""
    code = "cross_tenant_violation"
    status_code = 403


class DuplicateOrderError(AffiliateError):
    """A conversion was already recorded for this (order, product)"""
    code = "duplicate_order"
    status_code = 409


class AlreadyDecidedError(AffiliateError):
    """Conversion is no longer pending"""
    code = "already_decided"
    status_code = 409


class AlreadySettledError(AffiliateError):
    """Payout is no longer in the requested state"""
    code = "already_settled"
    status_code = 409


class InsufficientBalanceError(AffiliateError):
    code = "insufficient_balance"
    status_code = 400


class BelowMinimumError(AffiliateError):
    code = "below_minimum"
    status_code = 400


class InvalidInputError(AffiliateError):
    """Malformed or out-of-range input"""
    code = "invalid_input"
    status_code = 400


class ConflictError(AffiliateError):
    """Unique slug/code/email/api key already taken"""
    code = "conflict"
    status_code = 409


class UnauthorizedError(AffiliateError):
    """Required capability header missing"""
    code = "unauthorized"
    status_code = 401


class ForbiddenError(AffiliateError):
    """Capability header present but not valid"""
    code = "forbidden"
    status_code = 403


class MisconfiguredError(AffiliateError):
    code = "server_misconfigured"
    status_code = 500
