"""PatientAccess repository (the access grant store)"""
from typing import List, Optional
from sqlalchemy import select, delete
from app.access.models import PatientAccess
from app.db.repository import BaseRepository


class AccessGrantRepository(BaseRepository):
    """Repository for per-patient, per-operator grants"""

    async def get(self, patient_id: str, operator_id: str) -> Optional[PatientAccess]:
        """Return the grant for (patient, operator), always read from the store"""
        stmt = select(PatientAccess).where(
            PatientAccess.patient_id == patient_id,
            PatientAccess.operator_id == operator_id,
        ).execution_options(populate_existing=True)
        result = await self._execute(stmt)
        return result.scalar_one_or_none()

    async def upsert(self, patient_id: str, operator_id: str, can_view: bool, can_edit: bool) -> PatientAccess:
        grant = await self.get(patient_id, operator_id)
        if grant is None:
            grant = PatientAccess(patient_id=patient_id, operator_id=operator_id)
            self.db.add(grant)
        grant.can_view = can_view
        grant.can_edit = can_edit
        await self._commit()
        return grant

    async def delete(self, patient_id: str, operator_id: str) -> bool:
        stmt = delete(PatientAccess).where(
            PatientAccess.patient_id == patient_id,
            PatientAccess.operator_id == operator_id,
        )
        result = await self._execute(stmt)
        await self._commit()
        return result.rowcount > 0

    async def list_for_patient(self, patient_id: str) -> List[PatientAccess]:
        stmt = select(PatientAccess).where(
            PatientAccess.patient_id == patient_id
        ).order_by(PatientAccess.created_at)
        result = await self._execute(stmt)
        return list(result.scalars().all())

    def viewable_patient_ids(self, operator_id: str):
        """Subquery of patient ids the operator may view, for list filters"""
        return select(PatientAccess.patient_id).where(
            PatientAccess.operator_id == operator_id,
            PatientAccess.can_view.is_(True),
        )
