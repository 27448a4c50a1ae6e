from app.utils.timezone import utcnow
from uuid import uuid4
from sqlalchemy import Column, String, DateTime, Boolean
from app.db.base import Base


def new_id() -> str:
    return str(uuid4())


class User(Base):
    """
    Patients and operators - owned by the identity service.
    Defined here for read-only lookups (existence, user type, role, active flag).
    """
    __tablename__ = "users"
    __table_args__ = {'extend_existing': True}

    id = Column(String(36), primary_key=True, default=new_id)
    email = Column(String(255), nullable=True)
    first_name = Column(String(255), nullable=False)
    last_name = Column(String(255), nullable=False)
    user_type = Column(String(20), nullable=False, index=True)  # PATIENT | OPERATOR
    role = Column(String(20), nullable=True)  # ADMIN | SUPPORT | BASIC (operators only)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"
