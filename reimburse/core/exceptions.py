# reimburse/core/exceptions.py
"""
Typed errors raised by the budget ledger, the request lifecycle and the
receipt/blob layer.

Every error carries a machine-readable ``code``, the HTTP ``status_code`` the
API renders it with, and structured ``data`` so callers never have to parse
the message. Store/blob failures are surfaced as-is; nothing here retries.
"""

from decimal import Decimal
from typing import Any, Dict, List, Optional


class ReimbursementError(Exception):
    code: str = "REIMBURSEMENT_ERROR"
    status_code: int = 400

    def __init__(self, message: str, **data: Any):
        self.message = message
        self.data: Dict[str, Any] = data
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        return {"code": self.code, "detail": self.message, **self.data}


# --------------------------------------------------
# LOOKUPS
# --------------------------------------------------
class NotFound(ReimbursementError):
    code = "NOT_FOUND"
    status_code = 404

    def __init__(self, entity: str, entity_id: Any):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(
            f"{entity} not found: {entity_id}",
            entity=entity,
            id=str(entity_id),
        )


# --------------------------------------------------
# BUDGET
# --------------------------------------------------
class BudgetExceeded(ReimbursementError):
    """Requested amount is above the remaining yearly balance."""

    code = "BUDGET_EXCEEDED"

    def __init__(self, available: Decimal, requested: Decimal, year: int):
        self.available = available
        self.requested = requested
        self.year = year
        # a negative balance means nothing is left, not money owed back
        shown = max(available, Decimal("0"))
        self.shortfall = requested - shown
        super().__init__(
            f"Amount exceeds your available budget of {shown:.2f} for {year}",
            available=float(shown),
            requested=float(requested),
            shortfall=float(self.shortfall),
            year=year,
        )


class NoApproverAssigned(ReimbursementError):
    code = "NO_APPROVER_ASSIGNED"

    def __init__(self, user_id: Any):
        self.user_id = user_id
        super().__init__(
            "Could not find manager for the user",
            user_id=str(user_id),
        )


# --------------------------------------------------
# LIFECYCLE GUARDS
# --------------------------------------------------
class LifecycleError(ReimbursementError):
    code = "LIFECYCLE_ERROR"
    status_code = 409
    action = "modified"

    def __init__(self, request_id: Any, status: Optional[str] = None):
        self.request_id = request_id
        self.status = status
        super().__init__(
            f"Request {request_id} is {status} and cannot be {self.action}",
            request_id=str(request_id),
            status=status,
        )


class NotEditable(LifecycleError):
    code = "NOT_EDITABLE"
    action = "edited"


class NotDeletable(LifecycleError):
    code = "NOT_DELETABLE"
    action = "deleted"


class AlreadyDecided(LifecycleError):
    code = "ALREADY_DECIDED"
    action = "decided again"


class InvalidDecision(ReimbursementError):
    code = "INVALID_DECISION"

    def __init__(self, status: Any):
        super().__init__(
            f"Invalid decision: {status}",
            status=str(status),
        )


class BulkDecisionFailed(ReimbursementError):
    code = "BULK_DECISION_FAILED"
    status_code = 409

    def __init__(self, request_ids: List[Any]):
        self.request_ids = list(request_ids)
        super().__init__(
            f"{len(self.request_ids)} request(s) are not pending, nothing was updated",
            request_ids=[str(request_id) for request_id in self.request_ids],
        )


# --------------------------------------------------
# USERS
# --------------------------------------------------
class ManagerRequired(ReimbursementError):
    code = "MANAGER_REQUIRED"

    def __init__(self, role: str):
        super().__init__(
            f"A manager is required for role {role}",
            role=role,
        )


class EmailAlreadyRegistered(ReimbursementError):
    code = "EMAIL_ALREADY_REGISTERED"
    status_code = 409

    def __init__(self, email: str):
        super().__init__("Email already registered", email=email)


# --------------------------------------------------
# RECEIPTS
# --------------------------------------------------
class UnsupportedReceiptType(ReimbursementError):
    code = "UNSUPPORTED_RECEIPT_TYPE"

    def __init__(self, filename: str):
        super().__init__(
            f"Unsupported file type: {filename}",
            filename=filename,
        )


# --------------------------------------------------
# COLLABORATORS
# --------------------------------------------------
class StoreUnavailable(ReimbursementError):
    code = "STORE_UNAVAILABLE"
    status_code = 503

    def __init__(self, reason: str = ""):
        self.reason = reason
        super().__init__("The database is unavailable, please try again later")


class BlobStoreUnavailable(ReimbursementError):
    code = "BLOB_STORE_UNAVAILABLE"
    status_code = 502

    def __init__(self, reason: str = ""):
        self.reason = reason
        super().__init__("Receipt storage is unavailable, please try again later")
