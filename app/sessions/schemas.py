from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, Field

from app.sessions.models import PhotoType, SessionStatus


class InstructionInput(BaseModel):
    professional_type: str = Field(..., min_length=1, max_length=100)
    instruction: str = Field(..., min_length=1)


class CreateSessionRequest(BaseModel):
    """Request to create one session or a package of sessions"""
    patient_id: str
    operator_id: Optional[str] = None
    date: Optional[datetime] = None
    dates: Optional[List[datetime]] = None
    count: Optional[int] = Field(None, ge=1)
    patient_notes: Optional[str] = None
    technical_notes: Optional[str] = None
    instructions: List[InstructionInput] = []


class UpdateSessionRequest(BaseModel):
    """Request to update a session (assigned clinicians only)"""
    date: Optional[datetime] = None
    status: Optional[SessionStatus] = None
    patient_notes: Optional[str] = None
    technical_notes: Optional[str] = None
    operator_id: Optional[str] = None


class ReassignSessionRequest(BaseModel):
    new_operator_id: str = Field(..., min_length=1)


class AddInstructionRequest(InstructionInput):
    pass


class AddQuestionRequest(BaseModel):
    question: str = Field(..., min_length=1)


class AnswerQuestionRequest(BaseModel):
    answer: str = Field(..., min_length=1)


class BeforeAfterPhotoRequest(BaseModel):
    """Path of an already uploaded photo, relative to the uploads directory"""
    photo_type: PhotoType
    file_path: str = Field(..., min_length=1, max_length=512)


class SessionResponse(BaseModel):
    """Session response"""
    id: str
    patient_id: str
    operator_id: str
    date: datetime
    status: SessionStatus
    patient_notes: Optional[str] = None
    technical_notes: Optional[str] = None
    package_id: Optional[str] = None
    session_number: Optional[int] = None
    total_sessions: Optional[int] = None
    before_photo: Optional[str] = None
    after_photo: Optional[str] = None
    feedback_submitted: bool = False
    complete_requested_by: Optional[str] = None
    complete_requested_at: Optional[datetime] = None
    complete_accepted_by: Optional[str] = None
    complete_accepted_at: Optional[datetime] = None
    delete_requested_by: Optional[str] = None
    delete_requested_at: Optional[datetime] = None
    created_at: datetime
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class PackageInfo(BaseModel):
    id: str
    session_count: int


class CreateSessionResponse(BaseModel):
    sessions: List[SessionResponse]
    package: Optional[PackageInfo] = None
    message: str


class SessionListResponse(BaseModel):
    sessions: List[SessionResponse]
    total: int
    page: int
    limit: int
    total_pages: int


class ConsentResponse(BaseModel):
    session: SessionResponse
    message: str


class SessionComparison(BaseModel):
    days_between: int
    status_change: bool


class CompareSessionsResponse(BaseModel):
    before: SessionResponse
    after: SessionResponse
    comparison: SessionComparison


class TransitionsResponse(BaseModel):
    """What a client may still do with a session"""
    session_id: str
    status: SessionStatus
    allowed_transitions: List[SessionStatus]
    pending_complete_requested_by: Optional[str] = None
    pending_delete_requested_by: Optional[str] = None
    can_request_complete: bool
    can_accept_complete: bool
    can_request_delete: bool
    can_accept_delete: bool


class InstructionResponse(BaseModel):
    id: str
    session_id: str
    professional_type: str
    instruction: str
    created_at: datetime

    class Config:
        from_attributes = True


class QuestionResponse(BaseModel):
    id: str
    session_id: str
    question: str
    asked_by: str
    answer: Optional[str] = None
    answered_by: Optional[str] = None
    answered_at: Optional[datetime] = None
    created_at: datetime

    class Config:
        from_attributes = True


class QuestionListResponse(BaseModel):
    questions: List[QuestionResponse]


class MessageResponse(BaseModel):
    message: str
