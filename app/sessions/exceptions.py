"""Custom exceptions for sessions"""
from typing import Optional

from app.core.exceptions import (
    InvalidTransitionException,
    NotFoundException,
    UnauthorizedException,
)
from app.sessions.state_machine import allowed_transitions, as_status


class SessionNotFoundException(NotFoundException):
    """Raised when a session is not found"""
    def __init__(self, session_id: Optional[str] = None):
        super().__init__("Session", session_id)


class QuestionNotFoundException(NotFoundException):
    def __init__(self, question_id: Optional[str] = None):
        super().__init__("Question", question_id)


class SessionFileNotFoundException(NotFoundException):
    def __init__(self, file_id: Optional[str] = None):
        super().__init__("File", file_id)


class PatientNotFoundException(NotFoundException):
    def __init__(self, patient_id: Optional[str] = None):
        super().__init__("Patient", patient_id)


class OperatorNotEligibleException(UnauthorizedException):
    """Raised when a session would be assigned to an operator without edit access"""
    def __init__(self, reason: str = "New operator does not have edit access to this patient"):
        super().__init__(reason)


class NoPendingRequestException(InvalidTransitionException):
    """Raised when accepting a completion/deletion that nobody requested"""
    def __init__(self, kind: str, current_status):
        current = as_status(current_status)
        super().__init__(
            f"No {kind} request to accept",
            current.value,
            [s.value for s in allowed_transitions(current)],
        )


class SelfAcceptException(InvalidTransitionException):
    """Raised when the requester tries to accept their own request"""
    def __init__(self, kind: str, current_status):
        current = as_status(current_status)
        super().__init__(
            f"You cannot accept your own {kind} request",
            current.value,
            [s.value for s in allowed_transitions(current)],
        )


class QuestionAlreadyAnsweredException(InvalidTransitionException):
    def __init__(self, question_id: str):
        super().__init__(f"Question {question_id} has already been answered", "ANSWERED", [])
