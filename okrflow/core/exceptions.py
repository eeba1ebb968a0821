from typing import Any, Dict, List, Optional


class AppException(Exception):
    def __init__(
        self,
        message: str,
        status_code: int = 400,
        error_code: str = "BUSINESS_ERROR",
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.status_code = status_code
        self.error_code = error_code
        self.details = details
        super().__init__(self.message)


class ValidationError(AppException):
    """Caller input violates a precondition (weights, mandatory text). Fix and resend."""
    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        status_code: int = 400,
        error_code: str = "VALIDATION_ERROR"
    ):
        super().__init__(
            message=message,
            status_code=status_code,
            error_code=error_code,
            details=details
        )


class InvalidTransitionError(ValidationError):
    def __init__(self, action: str, status: str, archived: bool = False):
        suffix = " (archived)" if archived else ""
        super().__init__(
            message=f"Cannot {action} an OKR in status {status}{suffix}.",
            details={"action": action, "status": status, "archived": archived},
            status_code=409,
            error_code="INVALID_TRANSITION"
        )


class BatchApprovalBlockedError(ValidationError):
    def __init__(self, message: str, blocking_count: int):
        self.blocking_count = blocking_count
        super().__init__(
            message=message,
            details={"blocking_count": blocking_count},
            status_code=409,
            error_code="BATCH_BLOCKED"
        )


class AuthenticationError(AppException):
    def __init__(self, message: str = "Could not identify the acting user"):
        super().__init__(
            message=message,
            status_code=401,
            error_code="AUTH_FAILED"
        )


class AuthorizationError(AppException):
    """Actor is not a resolved approver for the requested transition."""
    def __init__(self, message: str = "Insufficient permissions"):
        super().__init__(
            message=message,
            status_code=403,
            error_code="PERMISSION_DENIED"
        )


class AmbiguousApproverError(AppException):
    """Several users share the approving role in scope and none is designated."""
    def __init__(self, role: str, department: Optional[str], candidate_ids: List[int]):
        self.role = role
        self.department = department
        self.candidate_ids = candidate_ids
        scope = department or "the organization"
        super().__init__(
            message=(
                f"{len(candidate_ids)} users hold role {role} in {scope}; "
                f"designate a primary approver."
            ),
            status_code=409,
            error_code="AMBIGUOUS_APPROVER",
            details={"role": role, "department": department, "candidate_ids": candidate_ids}
        )


class ApproverNotFoundError(AppException):
    def __init__(self, role: str, department: Optional[str]):
        self.role = role
        self.department = department
        super().__init__(
            message=f"No active user holds approver role {role}.",
            status_code=409,
            error_code="APPROVER_NOT_FOUND",
            details={"role": role, "department": department}
        )


class NotFoundError(AppException):
    def __init__(self, entity: str, entity_id: Any):
        super().__init__(
            message=f"{entity} {entity_id} not found",
            status_code=404,
            error_code="NOT_FOUND",
            details={"entity": entity, "id": entity_id}
        )


class ConcurrencyConflictError(AppException):
    def __init__(self, okr_id: int, expected: Optional[int] = None, actual: Optional[int] = None):
        super().__init__(
            message=f"OKR {okr_id} was modified by someone else; reload and retry.",
            status_code=409,
            error_code="STALE_VERSION",
            details={"okr_id": okr_id, "expected_version": expected, "actual_version": actual}
        )
