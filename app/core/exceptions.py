"""Domain failure taxonomy shared by every component.

Each failure is an HTTPException so FastAPI returns it as-is, tagged with a
closed ErrorKind so callers can branch on the kind without parsing messages.
"""
from enum import Enum
from typing import Any, Iterable, Optional
from fastapi import HTTPException, status


class ErrorKind(str, Enum):
    UNAUTHORIZED = "Unauthorized"
    NOT_FOUND = "NotFound"
    INVALID_TRANSITION = "InvalidTransition"
    VALIDATION_ERROR = "ValidationError"
    CONFLICT_DURING_WRITE = "ConflictDuringWrite"
    STORE_TIMEOUT = "StoreTimeout"


class DomainException(HTTPException):
    """Base for all typed, caller-visible failures"""
    kind: ErrorKind
    status_code_for_kind: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, detail: Any):
        super().__init__(status_code=self.status_code_for_kind, detail=detail)


class UnauthorizedException(DomainException):
    """Raised when the actor lacks the required grant or role"""
    kind = ErrorKind.UNAUTHORIZED
    status_code_for_kind = status.HTTP_403_FORBIDDEN

    def __init__(self, detail: str = "Access denied"):
        super().__init__(detail)


class NotFoundException(DomainException):
    """Raised when a resource id is unknown"""
    kind = ErrorKind.NOT_FOUND
    status_code_for_kind = status.HTTP_404_NOT_FOUND

    def __init__(self, resource: str = "Resource", resource_id: Optional[str] = None):
        detail = f"{resource} not found"
        if resource_id:
            detail = f"{resource} {resource_id} not found"
        super().__init__(detail)


class InvalidTransitionException(DomainException):
    """Raised when a state-machine rule would be violated.

    The body always names the current state and the states reachable from it,
    so a client can render what is still possible.
    """
    kind = ErrorKind.INVALID_TRANSITION
    status_code_for_kind = status.HTTP_409_CONFLICT

    def __init__(self, message: str, current_status: Optional[str] = None, allowed_transitions: Iterable[str] = ()):
        self.message = message
        self.current_status = current_status
        self.allowed_transitions = list(allowed_transitions)
        super().__init__({
            "error": message,
            "current_status": current_status,
            "allowed_transitions": self.allowed_transitions,
        })


class ValidationException(DomainException):
    """Raised for malformed dates, batch-size and date-count mismatches"""
    kind = ErrorKind.VALIDATION_ERROR
    status_code_for_kind = status.HTTP_400_BAD_REQUEST

    def __init__(self, detail: str):
        super().__init__(detail)


class ConflictDuringWriteException(DomainException):
    """Raised when a conditional update lost a concurrent race"""
    kind = ErrorKind.CONFLICT_DURING_WRITE
    status_code_for_kind = status.HTTP_409_CONFLICT

    def __init__(self, detail: str = "Resource was modified concurrently, reload and retry"):
        super().__init__(detail)


class StoreTimeoutException(DomainException):
    """Raised when a store call exceeded its bound; the operation did not apply"""
    kind = ErrorKind.STORE_TIMEOUT
    status_code_for_kind = status.HTTP_503_SERVICE_UNAVAILABLE

    def __init__(self, timeout: float):
        super().__init__(f"Store did not answer within {timeout}s, retry the request")
