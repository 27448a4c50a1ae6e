from app.utils.timezone import utcnow
from sqlalchemy import Column, String, DateTime, Boolean, UniqueConstraint, CheckConstraint
from app.db.base import Base
from app.db.models import new_id


class PatientAccess(Base):
    """Per-patient, per-operator view/edit grant. Absence of a row means no access."""
    __tablename__ = "patient_access"
    __table_args__ = (
        UniqueConstraint("patient_id", "operator_id", name="uq_patient_access_patient_operator"),
        CheckConstraint("NOT can_edit OR can_view", name="ck_patient_access_edit_implies_view"),
    )

    id = Column(String(36), primary_key=True, default=new_id)
    patient_id = Column(String(36), nullable=False, index=True)
    operator_id = Column(String(36), nullable=False, index=True)
    can_view = Column(Boolean, nullable=False, default=True)
    can_edit = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)
