"""Seed ids, actors and in-test collaborators shared by the test modules"""
from datetime import timedelta
from typing import List, Optional

from app.access.models import PatientAccess
from app.auth.middleware import permission_key, permissions_manager
from app.auth.models import Actor, OperatorRole, UserType
from app.db.models import User
from app.utils.timezone import utcnow

PATIENT_P = "patient-p"
PATIENT_Q = "patient-q"
OPERATOR_A = "operator-a"  # SUPPORT, canEdit on P
OPERATOR_B = "operator-b"  # BASIC, canView only on P
OPERATOR_C = "operator-c"  # SUPPORT, no grants
OPERATOR_D = "operator-d"  # BASIC, canEdit on P
OPERATOR_INACTIVE = "operator-inactive"  # BASIC, canEdit on P but deactivated
ADMIN = "admin-1"


def make_actor(user_id: str, user_type: UserType, role: Optional[OperatorRole] = None, first_name: str = "Test") -> Actor:
    permissions = permissions_manager.get_permissions_for_roles(
        [permission_key(user_type.value, role.value if role else None)]
    )
    return Actor(
        sub=user_id,
        user_type=user_type,
        role=role,
        first_name=first_name,
        last_name="User",
        permissions=permissions,
    )


def patient_actor(user_id: str = PATIENT_P) -> Actor:
    return make_actor(user_id, UserType.PATIENT, first_name="Paula")


def operator_actor(user_id: str, role: OperatorRole = OperatorRole.SUPPORT) -> Actor:
    return make_actor(user_id, UserType.OPERATOR, role, first_name="Dr")


def admin_actor() -> Actor:
    return make_actor(ADMIN, UserType.OPERATOR, OperatorRole.ADMIN, first_name="Ada")


def seed_rows() -> list:
    """Users of the identity service plus the initial access grants"""
    return [
        User(id=PATIENT_P, first_name="Paula", last_name="Patient", user_type="PATIENT"),
        User(id=PATIENT_Q, first_name="Quentin", last_name="Patient", user_type="PATIENT"),
        User(id=OPERATOR_A, first_name="Alice", last_name="Support", user_type="OPERATOR", role="SUPPORT"),
        User(id=OPERATOR_B, first_name="Bob", last_name="Basic", user_type="OPERATOR", role="BASIC"),
        User(id=OPERATOR_C, first_name="Carol", last_name="Support", user_type="OPERATOR", role="SUPPORT"),
        User(id=OPERATOR_D, first_name="Dan", last_name="Basic", user_type="OPERATOR", role="BASIC"),
        User(id=OPERATOR_INACTIVE, first_name="Ivy", last_name="Gone", user_type="OPERATOR", role="BASIC", is_active=False),
        User(id=ADMIN, first_name="Ada", last_name="Admin", user_type="OPERATOR", role="ADMIN"),
        PatientAccess(patient_id=PATIENT_P, operator_id=OPERATOR_A, can_view=True, can_edit=True),
        PatientAccess(patient_id=PATIENT_P, operator_id=OPERATOR_B, can_view=True, can_edit=False),
        PatientAccess(patient_id=PATIENT_P, operator_id=OPERATOR_D, can_view=True, can_edit=True),
        PatientAccess(patient_id=PATIENT_P, operator_id=OPERATOR_INACTIVE, can_view=True, can_edit=True),
    ]


def tomorrow():
    return utcnow() + timedelta(days=1)


class RecordingNotifier:
    """Stands in for NotificationFanout; records what would have been sent"""

    def __init__(self, fail: bool = False):
        self.sent = []
        self.fail = fail

    async def notify(self, notification):
        if self.fail:
            raise RuntimeError("notification transport down")
        self.sent.append(notification)

    def recipients(self, type=None) -> List[str]:
        return [n.recipient_id for n in self.sent if type is None or n.type == type]


class RecordingFileStorage:
    """Stands in for FileStorage"""

    def __init__(self, fail: bool = False):
        self.deleted = []
        self.fail = fail

    async def delete_files(self, paths):
        if self.fail:
            raise OSError("storage unavailable")
        self.deleted.extend(paths)
        return len(paths)


class RecordingEventPublisher:
    """Stands in for SessionEventPublisher"""

    def __init__(self):
        self.events = []

    async def publish_sessions_created(self, sessions, package_id):
        self.events.append(("session.created", [s.id for s in sessions], package_id))

    async def publish_session_completed(self, session):
        self.events.append(("session.completed", session.id))

    async def publish_session_deleted(self, session_id, patient_id, deleted_by):
        self.events.append(("session.deleted", session_id, deleted_by))

    def names(self) -> List[str]:
        return [e[0] for e in self.events]
