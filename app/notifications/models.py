from app.utils.timezone import utcnow
from sqlalchemy import Column, String, DateTime
from app.db.base import Base
from app.db.models import new_id


class DeviceToken(Base):
    """Registered push token for the durable notification channel"""
    __tablename__ = "device_tokens"

    id = Column(String(36), primary_key=True, default=new_id)
    user_id = Column(String(36), nullable=False, index=True)
    token = Column(String(512), nullable=False, unique=True)
    platform = Column(String(20), nullable=False)
    device_id = Column(String(255), nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)
