from app.utils.timezone import utcnow
from enum import Enum
from sqlalchemy import Column, String, DateTime, Text, Integer, BigInteger, Boolean, ForeignKey
from app.db.base import Base
from app.db.models import new_id


class SessionStatus(str, Enum):
    SCHEDULED = "SCHEDULED"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class PhotoType(str, Enum):
    BEFORE = "BEFORE"
    AFTER = "AFTER"

    @property
    def attribute(self) -> str:
        return f"{self.value.lower()}_photo"


class Session(Base):
    """One scheduled or completed treatment encounter between a patient and an operator"""
    __tablename__ = "sessions"

    id = Column(String(36), primary_key=True, default=new_id)
    patient_id = Column(String(36), nullable=False, index=True)
    operator_id = Column(String(36), nullable=False, index=True)
    date = Column(DateTime, nullable=False, index=True)
    status = Column(String(20), default=SessionStatus.SCHEDULED.value, nullable=False, index=True)
    patient_notes = Column(Text, nullable=True)
    technical_notes = Column(Text, nullable=True)

    # Batch ("package") bookkeeping
    package_id = Column(String(64), nullable=True, index=True)
    session_number = Column(Integer, nullable=True)
    total_sessions = Column(Integer, nullable=True)

    before_photo = Column(String(512), nullable=True)
    after_photo = Column(String(512), nullable=True)
    feedback_submitted = Column(Boolean, default=False, nullable=False)

    # Two-party consent fields
    complete_requested_by = Column(String(36), nullable=True)
    complete_requested_at = Column(DateTime, nullable=True)
    complete_accepted_by = Column(String(36), nullable=True)
    complete_accepted_at = Column(DateTime, nullable=True)
    delete_requested_by = Column(String(36), nullable=True)
    delete_requested_at = Column(DateTime, nullable=True)
    delete_accepted_by = Column(String(36), nullable=True)
    delete_accepted_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)


class SessionFile(Base):
    __tablename__ = "session_files"

    id = Column(String(36), primary_key=True, default=new_id)
    session_id = Column(String(36), ForeignKey("sessions.id", ondelete="CASCADE"), nullable=False, index=True)
    file_type = Column(String(50), nullable=False)
    file_path = Column(String(512), nullable=False)
    file_name = Column(String(255), nullable=False)
    file_size = Column(BigInteger, nullable=True)
    mime_type = Column(String(100), nullable=True)
    uploaded_by = Column(String(36), nullable=False)
    visibility = Column(String(30), default="PATIENT_VISIBLE", nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)


class SessionInstruction(Base):
    __tablename__ = "session_instructions"

    id = Column(String(36), primary_key=True, default=new_id)
    session_id = Column(String(36), ForeignKey("sessions.id", ondelete="CASCADE"), nullable=False, index=True)
    professional_type = Column(String(100), nullable=False)
    instruction = Column(Text, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)


class SessionQuestion(Base):
    """Patient question on a session; open until an operator answers it"""
    __tablename__ = "session_questions"

    id = Column(String(36), primary_key=True, default=new_id)
    session_id = Column(String(36), ForeignKey("sessions.id", ondelete="CASCADE"), nullable=False, index=True)
    question = Column(Text, nullable=False)
    asked_by = Column(String(36), nullable=False)
    answer = Column(Text, nullable=True)
    answered_by = Column(String(36), nullable=True)
    answered_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    @property
    def is_answered(self) -> bool:
        return self.answered_at is not None
