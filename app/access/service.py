"""Access grant administration (ADMIN only)"""
import logging
from typing import List

from app.access.guard import AuthorizationGuard, Operation
from app.access.models import PatientAccess
from app.access.repository import AccessGrantRepository
from app.audit.models import AuditAction
from app.audit.trail import AuditEntry, AuditTrail
from app.auth.models import Actor
from app.core.exceptions import NotFoundException, ValidationException
from app.sessions.exceptions import PatientNotFoundException
from app.users.repository import UserDirectory
from app.utils.post_commit import PostCommitHooks

logger = logging.getLogger(__name__)


class AccessGrantService:
    """Creates, changes and removes PatientAccess grants"""

    def __init__(self, grants: AccessGrantRepository, users: UserDirectory, audit: AuditTrail):
        self.grants = grants
        self.users = users
        self.audit = audit
        self.guard = AuthorizationGuard(grants)

    async def grant_access(
        self,
        actor: Actor,
        patient_id: str,
        operator_id: str,
        can_view: bool,
        can_edit: bool,
    ) -> PatientAccess:
        """
        Upsert the grant for (patient, operator).

        Business rules:
        - Only ADMIN can manage grants
        - canEdit requires canView
        - The operator must be an active SUPPORT/BASIC clinician
        """
        await self.guard.authorize(actor, Operation.MANAGE_ACCESS, patient_id)

        if can_edit and not can_view:
            raise ValidationException("canEdit requires canView")
        if not await self.users.get_patient(patient_id):
            raise PatientNotFoundException(patient_id)
        if not await self.users.get_clinical_operator(operator_id):
            raise NotFoundException("Operator", operator_id)

        grant = await self.grants.upsert(patient_id, operator_id, can_view, can_edit)
        logger.info(
            f"Access to patient {patient_id} granted to {operator_id} by {actor.user_id} "
            f"(view={can_view}, edit={can_edit})"
        )

        hooks = PostCommitHooks()
        hooks.add(
            "audit:ACCESS_GRANTED",
            self.audit.record,
            AuditEntry.for_actor(actor, AuditAction.ACCESS_GRANTED, "PatientAccess", grant.id,
                                 patient_id=patient_id, operator_id=operator_id,
                                 can_view=can_view, can_edit=can_edit),
        )
        await hooks.run()
        return grant

    async def revoke_access(self, actor: Actor, patient_id: str, operator_id: str) -> None:
        await self.guard.authorize(actor, Operation.MANAGE_ACCESS, patient_id)

        if not await self.grants.delete(patient_id, operator_id):
            raise NotFoundException("Access grant")
        logger.info(f"Access to patient {patient_id} revoked from {operator_id} by {actor.user_id}")

        hooks = PostCommitHooks()
        hooks.add(
            "audit:ACCESS_REVOKED",
            self.audit.record,
            AuditEntry.for_actor(actor, AuditAction.ACCESS_REVOKED, "PatientAccess", None,
                                 patient_id=patient_id, operator_id=operator_id),
        )
        await hooks.run()

    async def list_grants(self, actor: Actor, patient_id: str) -> List[PatientAccess]:
        await self.guard.authorize(actor, Operation.MANAGE_ACCESS, patient_id)
        return await self.grants.list_for_patient(patient_id)
