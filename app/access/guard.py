"""Authorization policy for everything that belongs to a patient.

``can_access`` is the pure decision function. ``OPERATION_POLICIES`` is the
single table saying what each operation requires, and ``AuthorizationGuard``
applies it, reading the grant from the store on every call.
"""
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from app.access.models import PatientAccess
from app.access.repository import AccessGrantRepository
from app.auth.models import Actor, UserType
from app.core.exceptions import UnauthorizedException

logger = logging.getLogger(__name__)


class Capability(str, Enum):
    VIEW = "VIEW"
    EDIT = "EDIT"


class Operation(str, Enum):
    VIEW_SESSION = "view_session"
    LIST_SESSIONS = "list_sessions"
    CREATE_SESSION = "create_session"
    UPDATE_SESSION = "update_session"
    DELETE_SESSION = "delete_session"
    REQUEST_COMPLETE = "request_complete"
    ACCEPT_COMPLETE = "accept_complete"
    REQUEST_DELETE = "request_delete"
    ACCEPT_DELETE = "accept_delete"
    REASSIGN_OPERATOR = "reassign_operator"
    ADD_INSTRUCTION = "add_instruction"
    DELETE_FILE = "delete_file"
    SET_PHOTO = "set_photo"
    LIST_QUESTIONS = "list_questions"
    ADD_QUESTION = "add_question"
    ANSWER_QUESTION = "answer_question"
    SUBMIT_FEEDBACK = "submit_feedback"
    VIEW_FEEDBACK = "view_feedback"
    MANAGE_ACCESS = "manage_access"


@dataclass(frozen=True)
class OperationPolicy:
    capability: Capability
    # Clinical operations create or change medical records: ADMIN is barred
    clinical: bool = False
    # The assigned operator of the session counts as a participant
    participant: bool = False
    patient_only: bool = False
    operator_only: bool = False
    admin_only: bool = False
    # Allowed for ADMIN or the session's current operator, grants not consulted
    owner_or_admin: bool = False


OPERATION_POLICIES = {
    Operation.VIEW_SESSION: OperationPolicy(Capability.VIEW, participant=True),
    Operation.LIST_SESSIONS: OperationPolicy(Capability.VIEW),
    Operation.CREATE_SESSION: OperationPolicy(Capability.EDIT, clinical=True, operator_only=True),
    Operation.UPDATE_SESSION: OperationPolicy(Capability.EDIT, clinical=True, operator_only=True),
    Operation.DELETE_SESSION: OperationPolicy(Capability.EDIT, clinical=True, operator_only=True),
    Operation.REQUEST_COMPLETE: OperationPolicy(Capability.VIEW, clinical=True, participant=True),
    Operation.ACCEPT_COMPLETE: OperationPolicy(Capability.VIEW, clinical=True, participant=True),
    Operation.REQUEST_DELETE: OperationPolicy(Capability.VIEW, clinical=True, participant=True),
    Operation.ACCEPT_DELETE: OperationPolicy(Capability.VIEW, clinical=True, participant=True),
    Operation.REASSIGN_OPERATOR: OperationPolicy(Capability.EDIT, owner_or_admin=True),
    Operation.ADD_INSTRUCTION: OperationPolicy(Capability.EDIT, clinical=True, operator_only=True),
    Operation.DELETE_FILE: OperationPolicy(Capability.EDIT, clinical=True),
    Operation.SET_PHOTO: OperationPolicy(Capability.EDIT, clinical=True),
    Operation.LIST_QUESTIONS: OperationPolicy(Capability.VIEW, participant=True),
    Operation.ADD_QUESTION: OperationPolicy(Capability.VIEW, clinical=True, patient_only=True),
    Operation.ANSWER_QUESTION: OperationPolicy(Capability.VIEW, clinical=True, participant=True, operator_only=True),
    Operation.SUBMIT_FEEDBACK: OperationPolicy(Capability.VIEW, clinical=True, patient_only=True),
    Operation.VIEW_FEEDBACK: OperationPolicy(Capability.VIEW, participant=True),
    Operation.MANAGE_ACCESS: OperationPolicy(Capability.EDIT, admin_only=True),
}


def can_access(actor: Actor, patient_id: str, required: Capability, grant: Optional[PatientAccess]) -> bool:
    """
    Decide whether ``actor`` holds ``required`` on ``patient_id``.

    - A patient may access only their own records.
    - An ADMIN operator passes both checks here. Barring ADMIN from clinical
      edits is the caller's job, since ADMIN may edit administrative resources.
    - Any other operator needs a grant for exactly this (patient, operator)
      pair: VIEW is satisfied by can_view or can_edit, EDIT needs can_edit.
    - No grant means no access.

    Raises ValueError only for a malformed actor (unknown user type, operator
    without a role); a missing grant is a plain ``False``.
    """
    if actor.user_type == UserType.PATIENT:
        return actor.user_id == patient_id

    if actor.user_type != UserType.OPERATOR:
        raise ValueError(f"Unknown actor type: {actor.user_type!r}")
    if actor.role is None:
        raise ValueError(f"Operator {actor.user_id} has no role")

    if actor.is_admin:
        return True

    if grant is None or grant.patient_id != patient_id or grant.operator_id != actor.user_id:
        return False
    if required == Capability.VIEW:
        return bool(grant.can_view or grant.can_edit)
    return bool(grant.can_edit)


class AuthorizationGuard:
    """Applies OPERATION_POLICIES for an actor against the live grant table"""

    def __init__(self, grants: AccessGrantRepository):
        self.grants = grants

    async def can_access(self, actor: Actor, patient_id: str, required: Capability) -> bool:
        grant = None
        if actor.user_type == UserType.OPERATOR and not actor.is_admin:
            grant = await self.grants.get(patient_id, actor.user_id)
        return can_access(actor, patient_id, required, grant)

    async def authorize(
        self,
        actor: Actor,
        operation: Operation,
        patient_id: str,
        session_operator_id: Optional[str] = None,
    ) -> None:
        """Raise UnauthorizedException unless ``actor`` may perform ``operation`` on the patient"""
        policy = OPERATION_POLICIES[operation]

        if policy.admin_only:
            if not actor.is_admin:
                self._deny(actor, operation, "Administrator role required")
            return

        if policy.owner_or_admin:
            if not (actor.is_admin or (session_operator_id is not None and actor.user_id == session_operator_id)):
                self._deny(actor, operation, "Only the session owner or an administrator can do this")
            return

        if policy.clinical and actor.is_admin:
            self._deny(
                actor,
                operation,
                "Administrators can view patient data but cannot edit medical information. "
                "Only assigned clinicians can change patient records.",
            )
        if policy.patient_only and not actor.is_patient:
            self._deny(actor, operation, "Only the patient can do this")
        if policy.operator_only and actor.is_patient:
            self._deny(actor, operation, "Only clinic operators can do this")

        if policy.participant and session_operator_id is not None and actor.user_id == session_operator_id:
            return

        if not await self.can_access(actor, patient_id, policy.capability):
            if policy.capability == Capability.EDIT:
                self._deny(actor, operation, "Edit permission required for this patient")
            self._deny(actor, operation, "No access to this patient")

    def _deny(self, actor: Actor, operation: Operation, message: str):
        logger.info(f"Denied {operation.value} for actor {actor.user_id}: {message}")
        raise UnauthorizedException(message)
