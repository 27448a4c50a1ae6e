"""Read-only lookups against the identity service's user table"""
from typing import Optional
from sqlalchemy import select
from app.db.models import User
from app.db.repository import BaseRepository
from app.auth.models import UserType, OperatorRole


class UserDirectory(BaseRepository):
    """Repository for user lookups (no writes: users are owned elsewhere)"""

    async def get_by_id(self, user_id: str) -> Optional[User]:
        stmt = select(User).where(User.id == user_id)
        result = await self._execute(stmt)
        return result.scalar_one_or_none()

    async def get_patient(self, patient_id: str) -> Optional[User]:
        user = await self.get_by_id(patient_id)
        if user and user.user_type == UserType.PATIENT.value:
            return user
        return None

    async def get_clinical_operator(self, operator_id: str) -> Optional[User]:
        """Active SUPPORT/BASIC operator, or None (ADMINs are never party to clinical records)"""
        user = await self.get_by_id(operator_id)
        if (
            user
            and user.user_type == UserType.OPERATOR.value
            and user.is_active
            and user.role != OperatorRole.ADMIN.value
        ):
            return user
        return None
