"""Session feedback REST API endpoints"""
from fastapi import APIRouter, Depends, status

from app.auth.middleware import Actor, verify_token, check_permission
from app.dependencies import get_feedback_service
from app.feedback.models import SessionFeedback
from app.feedback.satisfaction import get_satisfaction_level
from app.feedback.schemas import FeedbackResponse, SessionFeedbackResponse, SubmitFeedbackRequest
from app.feedback.service import FeedbackService

router = APIRouter(
    prefix="/sessions",
    tags=["feedback"],
)


def to_response(feedback: SessionFeedback) -> FeedbackResponse:
    """Convert SessionFeedback model to response schema"""
    return FeedbackResponse(
        id=feedback.id,
        session_id=feedback.session_id,
        rating=feedback.rating,
        comments=feedback.comments,
        satisfaction_level=get_satisfaction_level(feedback.rating).value,
        submitted_at=feedback.submitted_at,
    )


@router.post("/{session_id}/feedback", response_model=FeedbackResponse, status_code=status.HTTP_201_CREATED)
async def submit_feedback(
    session_id: str,
    request: SubmitFeedbackRequest,
    service: FeedbackService = Depends(get_feedback_service),
    actor: Actor = Depends(verify_token),
):
    """
    Rate a session.

    Business rules:
    - Only the patient on the session can rate it
    - One feedback per session, submitting again replaces it
    - Rating: 1 (very dissatisfied) to 5 (very satisfied)

    Required permission: feedback:create (PATIENT role)
    """
    check_permission(actor, "feedback:create")

    feedback = await service.submit_feedback(
        actor,
        session_id=session_id,
        rating=request.rating,
        comments=request.comments,
    )
    return to_response(feedback)


@router.get("/{session_id}/feedback", response_model=SessionFeedbackResponse)
async def get_feedback(
    session_id: str,
    service: FeedbackService = Depends(get_feedback_service),
    actor: Actor = Depends(verify_token),
):
    """
    Get the feedback of a session (null when not rated yet).

    Required permission: feedback:read
    """
    check_permission(actor, "feedback:read")

    feedback = await service.get_feedback(actor, session_id)
    return SessionFeedbackResponse(feedback=to_response(feedback) if feedback else None)
