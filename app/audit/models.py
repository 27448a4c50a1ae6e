from app.utils.timezone import utcnow
from enum import Enum
from sqlalchemy import Column, String, DateTime, Text, JSON
from app.db.base import Base
from app.db.models import new_id


class AuditAction(str, Enum):
    VIEW = "VIEW"
    CREATE = "CREATE"
    UPDATE = "UPDATE"
    DELETE = "DELETE"
    ACCESS_GRANTED = "ACCESS_GRANTED"
    ACCESS_REVOKED = "ACCESS_REVOKED"
    COMPLETE_REQUESTED = "COMPLETE_REQUESTED"
    COMPLETE_ACCEPTED = "COMPLETE_ACCEPTED"
    DELETE_REQUESTED = "DELETE_REQUESTED"
    DELETE_ACCEPTED = "DELETE_ACCEPTED"
    FILE_UPLOADED = "FILE_UPLOADED"
    FILE_DELETED = "FILE_DELETED"


class AuditLog(Base):
    """Append-only record of a state-changing action. Never updated or deleted."""
    __tablename__ = "audit_logs"

    id = Column(String(36), primary_key=True, default=new_id)
    user_id = Column(String(36), nullable=True, index=True)
    user_type = Column(String(20), nullable=True)
    action = Column(String(40), nullable=False, index=True)
    resource_type = Column(String(50), nullable=True)
    resource_id = Column(String(100), nullable=True, index=True)
    details = Column(JSON, nullable=True)
    ip_address = Column(String(45), nullable=True)
    user_agent = Column(Text, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False, index=True)
