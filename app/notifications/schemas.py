from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional
from pydantic import BaseModel, Field


class NotificationType(str, Enum):
    SESSION_CREATED = "SESSION_CREATED"
    SESSION_UPDATED = "SESSION_UPDATED"
    SESSION_DELETED = "SESSION_DELETED"
    SESSION_COMPLETE_REQUEST = "SESSION_COMPLETE_REQUEST"
    SESSION_COMPLETED = "SESSION_COMPLETED"
    SESSION_DELETE_REQUEST = "SESSION_DELETE_REQUEST"
    SESSION_REASSIGNED = "SESSION_REASSIGNED"
    SESSION_INSTRUCTION_ADDED = "SESSION_INSTRUCTION_ADDED"
    SESSION_QUESTION_ASKED = "SESSION_QUESTION_ASKED"
    SESSION_QUESTION_ANSWERED = "SESSION_QUESTION_ANSWERED"


class Notification(BaseModel):
    """Logical message to one recipient; channels decide how it travels"""
    recipient_id: str
    title: str
    body: str
    type: NotificationType
    payload: Dict[str, Any] = {}

    def live_message(self, sent_at: datetime) -> Dict[str, Any]:
        return {
            "event": "notification",
            "title": self.title,
            "message": self.body,
            "type": self.type.value,
            "data": self.payload,
            "timestamp": sent_at.isoformat(),
        }


class RegisterDeviceTokenRequest(BaseModel):
    token: str = Field(..., min_length=1, max_length=512)
    platform: str = Field(..., pattern="^(ios|android|web)$")
    device_id: Optional[str] = None


class DeviceTokenResponse(BaseModel):
    id: str
    user_id: str
    token: str
    platform: str
    device_id: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True
