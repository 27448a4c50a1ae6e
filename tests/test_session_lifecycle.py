import asyncio
from datetime import timedelta

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError

from app.access.repository import AccessGrantRepository
from app.audit.trail import AuditTrail
from app.auth.models import OperatorRole
from app.core.exceptions import (
    ConflictDuringWriteException,
    ErrorKind,
    InvalidTransitionException,
    NotFoundException,
    StoreTimeoutException,
    UnauthorizedException,
    ValidationException,
)
from app.feedback.models import SessionFeedback
from app.notifications.schemas import NotificationType
from app.sessions.exceptions import (
    NoPendingRequestException,
    OperatorNotEligibleException,
    PatientNotFoundException,
    SelfAcceptException,
)
from app.sessions.models import PhotoType, Session, SessionFile, SessionInstruction, SessionQuestion, SessionStatus
from app.sessions.repository import SessionRepository
from app.sessions.schemas import CreateSessionRequest, InstructionInput, UpdateSessionRequest
from app.utils.timezone import utcnow
from tests.helpers import (
    OPERATOR_A,
    OPERATOR_B,
    OPERATOR_C,
    OPERATOR_D,
    OPERATOR_INACTIVE,
    PATIENT_P,
    PATIENT_Q,
    RecordingFileStorage,
    RecordingNotifier,
    admin_actor,
    operator_actor,
    patient_actor,
    tomorrow,
)

OP_A = operator_actor(OPERATOR_A)
OP_B = operator_actor(OPERATOR_B, OperatorRole.BASIC)
OP_C = operator_actor(OPERATOR_C)
OP_D = operator_actor(OPERATOR_D, OperatorRole.BASIC)
PATIENT = patient_actor(PATIENT_P)


async def create_one(service, actor=OP_A, **kwargs) -> Session:
    request = CreateSessionRequest(patient_id=PATIENT_P, date=kwargs.pop("date", tomorrow()), **kwargs)
    sessions, _ = await service.create_session(actor, request)
    return sessions[0]


async def count_rows(db, model, **filters) -> int:
    stmt = select(func.count()).select_from(model)
    for column, value in filters.items():
        stmt = stmt.where(getattr(model, column) == value)
    return await db.scalar(stmt)


@pytest.mark.asyncio
class TestCreateSession:

    async def test_single_session_is_scheduled(self, service, notifier, events):
        session = await create_one(service, patient_notes="Bring your photos")

        assert session.status == SessionStatus.SCHEDULED
        assert session.operator_id == OPERATOR_A
        assert session.package_id is None
        assert session.session_number is None
        assert notifier.recipients(NotificationType.SESSION_CREATED) == [PATIENT_P]
        assert events.names() == ["session.created"]

    async def test_package_shares_one_id_and_numbers_rows(self, service, db_session, notifier, session_factory):
        request = CreateSessionRequest(
            patient_id=PATIENT_P,
            date=tomorrow(),
            count=3,
            instructions=[InstructionInput(professional_type="Dermatologist", instruction="No sun exposure")],
        )
        sessions, package_id = await service.create_session(OP_A, request)

        assert package_id is not None
        assert [s.session_number for s in sessions] == [1, 2, 3]
        assert {s.package_id for s in sessions} == {package_id}
        assert {s.total_sessions for s in sessions} == {3}
        assert sessions[1].date - sessions[0].date == timedelta(days=7)
        assert await count_rows(db_session, Session, package_id=package_id) == 3
        for s in sessions:
            assert await count_rows(db_session, SessionInstruction, session_id=s.id) == 1

        # One notification and one audit entry for the whole package
        assert len(notifier.sent) == 1
        entries = await AuditTrail(session_factory).list_entries(resource_type="SessionPackage")
        assert [e.resource_id for e in entries] == [package_id]

    async def test_package_is_atomic(self, service, db_session, monkeypatch, notifier, events):
        real_flush = db_session.flush
        calls = {"count": 0}

        async def flaky_flush(*args, **kwargs):
            calls["count"] += 1
            if calls["count"] == 3:
                raise OperationalError("INSERT INTO sessions", {}, Exception("disk I/O error"))
            return await real_flush(*args, **kwargs)

        monkeypatch.setattr(db_session, "flush", flaky_flush)
        with pytest.raises(OperationalError):
            await service.create_session(OP_A, CreateSessionRequest(patient_id=PATIENT_P, date=tomorrow(), count=4))
        monkeypatch.undo()

        assert await count_rows(db_session, Session) == 0
        assert notifier.sent == []
        assert events.events == []

    async def test_explicit_dates_with_mismatched_count(self, service):
        dates = [tomorrow(), tomorrow() + timedelta(days=2)]
        with pytest.raises(ValidationException) as exc:
            await service.create_session(OP_A, CreateSessionRequest(patient_id=PATIENT_P, dates=dates, count=3))
        assert exc.value.kind == ErrorKind.VALIDATION_ERROR

    async def test_past_date_rejected(self, service, db_session):
        with pytest.raises(ValidationException):
            await create_one(service, date=utcnow() - timedelta(hours=1))
        assert await count_rows(db_session, Session) == 0

    async def test_admin_cannot_create(self, service):
        with pytest.raises(UnauthorizedException):
            await create_one(service, actor=admin_actor())

    async def test_view_only_operator_cannot_create(self, service):
        with pytest.raises(UnauthorizedException):
            await create_one(service, actor=OP_B)

    async def test_patient_cannot_create(self, service):
        with pytest.raises(UnauthorizedException):
            await create_one(service, actor=PATIENT)

    async def test_assigning_another_operator_requires_their_edit_grant(self, service):
        session = await create_one(service, operator_id=OPERATOR_D)
        assert session.operator_id == OPERATOR_D

        with pytest.raises(OperatorNotEligibleException):
            await create_one(service, operator_id=OPERATOR_B)
        with pytest.raises(OperatorNotEligibleException):
            await create_one(service, operator_id=OPERATOR_INACTIVE)

    async def test_unknown_patient(self, service, db_session):
        await AccessGrantRepository(db_session).upsert("ghost", OPERATOR_A, can_view=True, can_edit=True)
        with pytest.raises(PatientNotFoundException) as exc:
            await service.create_session(OP_A, CreateSessionRequest(patient_id="ghost", date=tomorrow()))
        assert exc.value.kind == ErrorKind.NOT_FOUND


@pytest.mark.asyncio
class TestCompletionProtocol:

    async def test_request_then_accept_completes(self, service, notifier, events):
        session = await create_one(service)

        requested = await service.request_complete(PATIENT, session.id)
        assert requested.complete_requested_by == PATIENT_P
        assert requested.status == SessionStatus.SCHEDULED
        assert notifier.recipients(NotificationType.SESSION_COMPLETE_REQUEST) == [OPERATOR_A]

        completed = await service.accept_complete(OP_A, session.id)
        assert completed.status == SessionStatus.COMPLETED
        assert completed.complete_accepted_by == OPERATOR_A
        assert completed.complete_accepted_at is not None
        assert notifier.recipients(NotificationType.SESSION_COMPLETED) == [PATIENT_P]
        assert events.names() == ["session.created", "session.completed"]

        for actor in (PATIENT, OP_A, OP_B):
            with pytest.raises(InvalidTransitionException) as exc:
                await service.accept_complete(actor, session.id)
            assert exc.value.current_status == "COMPLETED"
            assert exc.value.allowed_transitions == []

    async def test_self_accept_is_rejected(self, service, notifier):
        session = await create_one(service)
        await service.request_complete(PATIENT, session.id)
        sent_before = len(notifier.sent)

        with pytest.raises(SelfAcceptException) as exc:
            await service.accept_complete(PATIENT, session.id)
        assert exc.value.kind == ErrorKind.INVALID_TRANSITION
        assert len(notifier.sent) == sent_before

        stored = await service.sessions.get_by_id(session.id)
        assert stored.status == SessionStatus.SCHEDULED

    async def test_accept_without_request(self, service):
        session = await create_one(service)
        with pytest.raises(NoPendingRequestException) as exc:
            await service.accept_complete(PATIENT, session.id)
        assert exc.value.detail["current_status"] == "SCHEDULED"
        assert set(exc.value.detail["allowed_transitions"]) == {"COMPLETED", "CANCELLED"}

    async def test_last_request_wins(self, service):
        session = await create_one(service)
        await service.request_complete(PATIENT, session.id)
        overwritten = await service.request_complete(OP_A, session.id)
        assert overwritten.complete_requested_by == OPERATOR_A

        # The operator now owns the pending request, so only the patient can accept it
        with pytest.raises(SelfAcceptException):
            await service.accept_complete(OP_A, session.id)
        completed = await service.accept_complete(PATIENT, session.id)
        assert completed.complete_accepted_by == PATIENT_P

    async def test_view_only_operator_can_take_part(self, service):
        session = await create_one(service)
        await service.request_complete(OP_B, session.id)
        completed = await service.accept_complete(PATIENT, session.id)
        assert completed.status == SessionStatus.COMPLETED

    async def test_admin_is_not_a_party(self, service):
        session = await create_one(service)
        with pytest.raises(UnauthorizedException):
            await service.request_complete(admin_actor(), session.id)
        await service.request_complete(PATIENT, session.id)
        with pytest.raises(UnauthorizedException):
            await service.accept_complete(admin_actor(), session.id)

    async def test_operator_without_grant_is_not_a_party(self, service):
        session = await create_one(service)
        with pytest.raises(UnauthorizedException):
            await service.request_complete(OP_C, session.id)
        with pytest.raises(UnauthorizedException):
            await service.request_complete(patient_actor(PATIENT_Q), session.id)

    async def test_cancelled_session_cannot_be_completed(self, service):
        session = await create_one(service)
        await service.update_session(OP_A, session.id, UpdateSessionRequest(status=SessionStatus.CANCELLED))
        with pytest.raises(InvalidTransitionException):
            await service.request_complete(PATIENT, session.id)

    async def test_concurrent_accept_only_one_wins(self, service, monkeypatch, events):
        session = await create_one(service)
        await service.request_complete(PATIENT, session.id)
        real_mark_completed = service.sessions.mark_completed

        async def competitor_commits_first(session_id, accepter_id, now):
            assert await real_mark_completed(session_id, OPERATOR_B, now) is True
            return await real_mark_completed(session_id, accepter_id, now)

        monkeypatch.setattr(service.sessions, "mark_completed", competitor_commits_first)
        with pytest.raises(ConflictDuringWriteException) as exc:
            await service.accept_complete(OP_A, session.id)
        monkeypatch.undo()

        assert exc.value.kind == ErrorKind.CONFLICT_DURING_WRITE
        stored = await service.sessions.get_by_id(session.id)
        assert stored.status == SessionStatus.COMPLETED
        assert stored.complete_accepted_by == OPERATOR_B
        assert "session.completed" not in events.names()

        with pytest.raises(InvalidTransitionException):
            await service.accept_complete(OP_A, session.id)

    async def test_conditional_complete_succeeds_once(self, service, db_session):
        session_id = (await create_one(service)).id
        await service.request_complete(PATIENT, session_id)
        repo = SessionRepository(db_session)

        # A lost write rolls back and expires loaded rows: work with the id only
        assert await repo.mark_completed(session_id, PATIENT_P, utcnow()) is False
        assert await repo.mark_completed(session_id, OPERATOR_A, utcnow()) is True
        assert await repo.mark_completed(session_id, OPERATOR_B, utcnow()) is False

    async def test_request_by_unassigned_operator_notifies_both_parties(self, service, notifier):
        session = await create_one(service)
        await service.request_complete(OP_B, session.id)
        await service.request_delete(OP_B, session.id)

        assert sorted(notifier.recipients(NotificationType.SESSION_COMPLETE_REQUEST)) == [OPERATOR_A, PATIENT_P]
        assert sorted(notifier.recipients(NotificationType.SESSION_DELETE_REQUEST)) == [OPERATOR_A, PATIENT_P]

    async def test_completed_never_returns_to_scheduled(self, service):
        session = await create_one(service)
        await service.request_complete(PATIENT, session.id)
        await service.accept_complete(OP_A, session.id)

        attempts = [
            service.update_session(OP_A, session.id, UpdateSessionRequest(status=SessionStatus.SCHEDULED)),
            service.update_session(OP_A, session.id, UpdateSessionRequest(status=SessionStatus.CANCELLED)),
            service.update_session(OP_A, session.id, UpdateSessionRequest(date=tomorrow())),
            service.request_complete(PATIENT, session.id),
            service.delete_session(OP_A, session.id),
        ]
        for attempt in attempts:
            with pytest.raises(InvalidTransitionException):
                await attempt

        stored = await service.sessions.get_by_id(session.id)
        assert stored.status == SessionStatus.COMPLETED


@pytest.mark.asyncio
class TestDeletionProtocol:

    async def _session_with_children(self, service, db_session) -> Session:
        session = await create_one(service, instructions=[InstructionInput(professional_type="Nurse", instruction="Hydrate")])
        db_session.add_all([
            SessionFile(session_id=session.id, file_type="PHOTO", file_path="sessions/before.jpg",
                        file_name="before.jpg", uploaded_by=OPERATOR_A),
            SessionQuestion(session_id=session.id, question="Does it hurt?", asked_by=PATIENT_P),
            SessionFeedback(session_id=session.id, rating=4),
        ])
        await db_session.commit()
        return session

    async def test_request_then_accept_deletes_everything(self, service, db_session, notifier, file_storage, events):
        session = await self._session_with_children(service, db_session)

        requested = await service.request_delete(OP_A, session.id)
        assert requested.delete_requested_by == OPERATOR_A
        assert notifier.recipients(NotificationType.SESSION_DELETE_REQUEST) == [PATIENT_P]

        await service.accept_delete(PATIENT, session.id)

        for model in (Session, SessionFile, SessionInstruction, SessionQuestion, SessionFeedback):
            column = "id" if model is Session else "session_id"
            assert await count_rows(db_session, model, **{column: session.id}) == 0
        assert file_storage.deleted == ["sessions/before.jpg"]
        assert notifier.recipients(NotificationType.SESSION_DELETED) == [OPERATOR_A]
        assert events.names()[-1] == "session.deleted"

        with pytest.raises(NotFoundException):
            await service.accept_delete(PATIENT, session.id)

    async def test_completed_session_can_be_deleted_by_agreement(self, service, db_session):
        session = await create_one(service)
        await service.request_complete(PATIENT, session.id)
        await service.accept_complete(OP_A, session.id)

        await service.request_delete(PATIENT, session.id)
        await service.accept_delete(OP_A, session.id)
        assert await count_rows(db_session, Session) == 0

    async def test_self_accept_delete_is_rejected(self, service):
        session = await create_one(service)
        await service.request_delete(PATIENT, session.id)
        with pytest.raises(SelfAcceptException):
            await service.accept_delete(PATIENT, session.id)

    async def test_accept_delete_without_request(self, service):
        session = await create_one(service)
        with pytest.raises(NoPendingRequestException):
            await service.accept_delete(OP_A, session.id)

    async def test_view_only_operator_may_request_delete(self, service):
        session = await create_one(service)
        requested = await service.request_delete(OP_B, session.id)
        assert requested.delete_requested_by == OPERATOR_B

    async def test_file_cleanup_failure_keeps_the_deletion(self, build_service, db_session):
        service = build_service(files_override=RecordingFileStorage(fail=True))
        session = await self._session_with_children(service, db_session)
        await service.request_delete(OP_A, session.id)

        await service.accept_delete(PATIENT, session.id)

        assert await count_rows(db_session, Session) == 0
        assert await count_rows(db_session, SessionFile) == 0


@pytest.mark.asyncio
class TestDirectEdits:

    async def test_cancel_via_update(self, service, notifier):
        session = await create_one(service)
        cancelled = await service.update_session(OP_A, session.id, UpdateSessionRequest(status=SessionStatus.CANCELLED))
        assert cancelled.status == SessionStatus.CANCELLED
        assert notifier.recipients(NotificationType.SESSION_UPDATED) == [PATIENT_P]

    async def test_direct_completion_is_refused(self, service):
        session = await create_one(service)
        with pytest.raises(InvalidTransitionException) as exc:
            await service.update_session(OP_A, session.id, UpdateSessionRequest(status=SessionStatus.COMPLETED))
        assert "mutual agreement" in exc.value.message

    async def test_reschedule_and_notes(self, service):
        session = await create_one(service)
        new_date = tomorrow() + timedelta(days=3)
        updated = await service.update_session(
            OP_A, session.id, UpdateSessionRequest(date=new_date, technical_notes="Laser 12J"),
        )
        assert updated.date == new_date
        assert updated.technical_notes == "Laser 12J"

        with pytest.raises(ValidationException):
            await service.update_session(OP_A, session.id, UpdateSessionRequest(date=utcnow() - timedelta(days=1)))

    async def test_update_requires_edit_grant(self, service):
        session = await create_one(service)
        for actor in (OP_B, admin_actor(), PATIENT):
            with pytest.raises(UnauthorizedException):
                await service.update_session(actor, session.id, UpdateSessionRequest(patient_notes="x"))

    async def test_update_cannot_move_session_to_view_only_operator(self, service):
        session = await create_one(service)
        with pytest.raises(OperatorNotEligibleException):
            await service.update_session(OP_A, session.id, UpdateSessionRequest(operator_id=OPERATOR_B))

    async def test_direct_delete(self, service, db_session, events):
        session = await create_one(service)
        await service.delete_session(OP_A, session.id)
        assert await count_rows(db_session, Session) == 0
        assert events.names()[-1] == "session.deleted"

        with pytest.raises(NotFoundException):
            await service.delete_session(OP_A, session.id)

    async def test_direct_delete_requires_edit(self, service):
        session = await create_one(service)
        with pytest.raises(UnauthorizedException):
            await service.delete_session(OP_B, session.id)


@pytest.mark.asyncio
class TestReassign:

    async def test_owner_reassigns_to_operator_with_edit(self, service, notifier):
        session = await create_one(service)
        moved = await service.reassign_operator(OP_A, session.id, OPERATOR_D)
        assert moved.operator_id == OPERATOR_D
        assert set(notifier.recipients(NotificationType.SESSION_REASSIGNED)) == {OPERATOR_D, PATIENT_P}

    async def test_admin_can_reassign(self, service):
        session = await create_one(service)
        moved = await service.reassign_operator(admin_actor(), session.id, OPERATOR_D)
        assert moved.operator_id == OPERATOR_D

    @pytest.mark.parametrize("target", [OPERATOR_B, OPERATOR_C, OPERATOR_INACTIVE, PATIENT_P, "admin-1"])
    async def test_new_operator_must_hold_edit(self, service, target):
        session = await create_one(service)
        with pytest.raises(UnauthorizedException):
            await service.reassign_operator(OP_A, session.id, target)
        stored = await service.sessions.get_by_id(session.id)
        assert stored.operator_id == OPERATOR_A

    async def test_only_owner_or_admin(self, service):
        session = await create_one(service)
        with pytest.raises(UnauthorizedException):
            await service.reassign_operator(OP_B, session.id, OPERATOR_D)
        with pytest.raises(UnauthorizedException):
            await service.reassign_operator(OP_D, session.id, OPERATOR_D)


@pytest.mark.asyncio
class TestSideEffectIsolation:

    async def test_audit_outage_does_not_fail_the_operation(self, build_service):
        def broken_factory():
            raise RuntimeError("audit store down")

        service = build_service(audit=AuditTrail(broken_factory))
        session = await create_one(service)
        await service.request_complete(PATIENT, session.id)
        completed = await service.accept_complete(OP_A, session.id)
        assert completed.status == SessionStatus.COMPLETED

    async def test_notification_outage_does_not_fail_the_operation(self, build_service):
        service = build_service(notifier_override=RecordingNotifier(fail=True))
        session = await create_one(service)
        requested = await service.request_complete(PATIENT, session.id)
        assert requested.complete_requested_by == PATIENT_P

    async def test_actions_are_audited(self, service, session_factory):
        session = await create_one(service)
        await service.request_complete(PATIENT, session.id)
        await service.accept_complete(OP_A, session.id)

        entries = await AuditTrail(session_factory).list_entries(resource_type="Session", resource_id=session.id)
        assert {e.action for e in entries} == {"CREATE", "COMPLETE_REQUESTED", "COMPLETE_ACCEPTED"}
        accepted = next(e for e in entries if e.action == "COMPLETE_ACCEPTED")
        assert accepted.user_id == OPERATOR_A
        assert accepted.details == {"requested_by": PATIENT_P}


@pytest.mark.asyncio
class TestReads:

    async def test_get_session_access(self, service):
        session = await create_one(service)
        for actor in (PATIENT, OP_A, OP_B, admin_actor()):
            assert (await service.get_session(actor, session.id)).id == session.id
        for actor in (OP_C, patient_actor(PATIENT_Q)):
            with pytest.raises(UnauthorizedException):
                await service.get_session(actor, session.id)
        with pytest.raises(NotFoundException):
            await service.get_session(PATIENT, "missing")

    async def test_list_sessions_is_scoped(self, service):
        await create_one(service)
        await create_one(service, date=tomorrow() + timedelta(days=2))

        assert (await service.list_sessions(PATIENT))[1] == 2
        assert (await service.list_sessions(patient_actor(PATIENT_Q)))[1] == 0
        assert (await service.list_sessions(OP_B))[1] == 2
        assert (await service.list_sessions(OP_C))[1] == 0
        assert (await service.list_sessions(admin_actor()))[1] == 2

        sessions, total = await service.list_sessions(OP_A, patient_id=PATIENT_P, page=1, limit=1)
        assert total == 2 and len(sessions) == 1

        with pytest.raises(UnauthorizedException):
            await service.list_sessions(PATIENT, patient_id=PATIENT_Q)
        with pytest.raises(UnauthorizedException):
            await service.list_sessions(OP_C, patient_id=PATIENT_P)

    async def test_available_transitions(self, service):
        session = await create_one(service)
        await service.request_complete(PATIENT, session.id)

        for_operator = await service.available_transitions(OP_A, session.id)
        assert set(for_operator.allowed_transitions) == {SessionStatus.COMPLETED, SessionStatus.CANCELLED}
        assert for_operator.can_accept_complete is True
        assert for_operator.pending_complete_requested_by == PATIENT_P

        for_patient = await service.available_transitions(PATIENT, session.id)
        assert for_patient.can_accept_complete is False
        assert for_patient.can_request_complete is True

        for_admin = await service.available_transitions(admin_actor(), session.id)
        assert not any([
            for_admin.can_request_complete, for_admin.can_accept_complete,
            for_admin.can_request_delete, for_admin.can_accept_delete,
        ])


@pytest.mark.asyncio
class TestPhotos:

    async def test_patient_and_clinician_attach_photos(self, service, session_factory):
        session = await create_one(service)

        with_before = await service.set_photo(PATIENT, session.id, PhotoType.BEFORE, "sessions/p/before.jpg")
        assert with_before.before_photo == "sessions/p/before.jpg"
        with_after = await service.set_photo(OP_A, session.id, PhotoType.AFTER, "sessions/p/after.jpg")
        assert with_after.after_photo == "sessions/p/after.jpg"

        stored = await service.sessions.get_by_id(session.id)
        assert (stored.before_photo, stored.after_photo) == ("sessions/p/before.jpg", "sessions/p/after.jpg")

        entries = await AuditTrail(session_factory).list_entries(resource_type="Session", resource_id=session.id)
        uploads = [e for e in entries if e.action == "FILE_UPLOADED"]
        assert {e.details["photo_type"] for e in uploads} == {"BEFORE", "AFTER"}

    async def test_replaced_photo_is_removed_from_storage(self, service, file_storage):
        session = await create_one(service)
        await service.set_photo(OP_A, session.id, PhotoType.AFTER, "sessions/after-1.jpg")
        await service.set_photo(OP_A, session.id, PhotoType.AFTER, "sessions/after-1.jpg")
        assert file_storage.deleted == []

        await service.set_photo(OP_A, session.id, PhotoType.AFTER, "sessions/after-2.jpg")
        assert file_storage.deleted == ["sessions/after-1.jpg"]

    async def test_photos_can_be_added_after_completion(self, service):
        session = await create_one(service)
        await service.request_complete(PATIENT, session.id)
        await service.accept_complete(OP_A, session.id)

        updated = await service.set_photo(PATIENT, session.id, PhotoType.AFTER, "sessions/after.jpg")
        assert updated.status == SessionStatus.COMPLETED
        assert updated.after_photo == "sessions/after.jpg"

    async def test_who_may_attach(self, service):
        session = await create_one(service)
        for actor in (OP_B, OP_C, admin_actor(), patient_actor(PATIENT_Q)):
            with pytest.raises(UnauthorizedException):
                await service.set_photo(actor, session.id, PhotoType.BEFORE, "sessions/before.jpg")
        with pytest.raises(NotFoundException):
            await service.set_photo(PATIENT, "missing", PhotoType.BEFORE, "sessions/before.jpg")

    @pytest.mark.parametrize("file_path", ["../secrets/key.pem", "sessions/../../etc/passwd", "/etc/passwd", "   "])
    async def test_path_must_stay_in_uploads(self, service, file_path):
        session = await create_one(service)
        with pytest.raises(ValidationException):
            await service.set_photo(PATIENT, session.id, PhotoType.BEFORE, file_path)

    async def test_photos_are_cleaned_up_with_the_session(self, service, file_storage):
        session = await create_one(service)
        await service.set_photo(PATIENT, session.id, PhotoType.BEFORE, "sessions/before.jpg")
        await service.set_photo(OP_A, session.id, PhotoType.AFTER, "sessions/after.jpg")

        await service.request_delete(PATIENT, session.id)
        await service.accept_delete(OP_A, session.id)

        assert sorted(file_storage.deleted) == ["sessions/after.jpg", "sessions/before.jpg"]


@pytest.mark.asyncio
class TestCompare:

    async def test_compare_two_sessions(self, service, session_factory):
        first = await create_one(service)
        later = await create_one(service, date=first.date + timedelta(days=14, hours=2))
        first_id, later_id = first.id, later.id

        result = await service.compare_sessions(OP_B, first_id, later_id)
        assert result.before.id == first_id
        assert result.after.id == later_id
        assert result.comparison.days_between == 14
        assert result.comparison.status_change is False

        await service.request_complete(PATIENT, first_id)
        await service.accept_complete(OP_A, first_id)
        assert (await service.compare_sessions(PATIENT, first_id, later_id)).comparison.status_change is True

        entries = await AuditTrail(session_factory).list_entries(resource_type="SessionComparison")
        assert [e.action for e in entries] == ["VIEW", "VIEW"]
        assert entries[0].resource_id == f"{first_id}-{later_id}"

    async def test_both_sessions_must_be_viewable(self, service):
        first = await create_one(service)
        later = await create_one(service)
        for actor in (OP_C, patient_actor(PATIENT_Q)):
            with pytest.raises(UnauthorizedException):
                await service.compare_sessions(actor, first.id, later.id)
        with pytest.raises(NotFoundException):
            await service.compare_sessions(PATIENT, first.id, "missing")


@pytest.mark.asyncio
class TestNoReadAfterCommit:
    """Once a write has committed, a slow store can no longer turn it into a failure"""

    @staticmethod
    def time_out_after_first_load(service, monkeypatch):
        real_get_by_id = service.sessions.get_by_id
        calls = []

        async def get_by_id(session_id):
            calls.append(session_id)
            if len(calls) > 1:
                raise StoreTimeoutException(0.01)
            return await real_get_by_id(session_id)

        monkeypatch.setattr(service.sessions, "get_by_id", get_by_id)

    async def test_accept_complete_finishes_its_side_effects(self, service, monkeypatch, notifier, events, session_factory):
        session_id = (await create_one(service)).id
        await service.request_complete(PATIENT, session_id)
        self.time_out_after_first_load(service, monkeypatch)

        completed = await service.accept_complete(OP_A, session_id)
        monkeypatch.undo()

        assert completed.status == SessionStatus.COMPLETED
        assert completed.complete_accepted_by == OPERATOR_A
        assert notifier.recipients(NotificationType.SESSION_COMPLETED) == [PATIENT_P]
        assert events.names()[-1] == "session.completed"
        entries = await AuditTrail(session_factory).list_entries(resource_type="Session", resource_id=session_id)
        assert "COMPLETE_ACCEPTED" in {e.action for e in entries}

    @pytest.mark.parametrize("operation,expected", [
        (lambda service, sid: service.request_complete(PATIENT, sid), {"complete_requested_by": PATIENT_P}),
        (lambda service, sid: service.request_delete(OP_A, sid), {"delete_requested_by": OPERATOR_A}),
        (lambda service, sid: service.update_session(OP_A, sid, UpdateSessionRequest(technical_notes="Laser 10J")),
         {"technical_notes": "Laser 10J"}),
        (lambda service, sid: service.reassign_operator(OP_A, sid, OPERATOR_D), {"operator_id": OPERATOR_D}),
        (lambda service, sid: service.set_photo(PATIENT, sid, PhotoType.AFTER, "sessions/after.jpg"),
         {"after_photo": "sessions/after.jpg"}),
    ])
    async def test_writes_return_the_committed_row(self, service, monkeypatch, session_factory, operation, expected):
        session_id = (await create_one(service)).id
        self.time_out_after_first_load(service, monkeypatch)

        result = await operation(service, session_id)
        monkeypatch.undo()

        for field, value in expected.items():
            assert getattr(result, field) == value
        stored = await service.sessions.get_by_id(session_id)
        for field, value in expected.items():
            assert getattr(stored, field) == value
        entries = await AuditTrail(session_factory).list_entries(resource_type="Session", resource_id=session_id)
        assert len(entries) == 2

    async def test_create_does_not_reload_the_new_rows(self, service, db_session, monkeypatch, notifier):
        async def refresh(instance, *args, **kwargs):
            raise StoreTimeoutException(0.01)

        monkeypatch.setattr(db_session, "refresh", refresh)
        sessions, package_id = await service.create_session(
            OP_A, CreateSessionRequest(patient_id=PATIENT_P, date=tomorrow(), count=2),
        )
        monkeypatch.undo()

        assert [s.session_number for s in sessions] == [1, 2]
        assert all(s.created_at is not None for s in sessions)
        assert notifier.recipients(NotificationType.SESSION_CREATED) == [PATIENT_P]
        assert await count_rows(db_session, Session, package_id=package_id) == 2

    async def test_answer_returns_the_committed_answer(self, service, monkeypatch):
        session_id = (await create_one(service)).id
        question = await service.add_question(PATIENT, session_id, "Can I shower tonight?")

        real_get_question = service.sessions.get_question
        calls = []

        async def get_question(question_id):
            calls.append(question_id)
            if len(calls) > 1:
                raise StoreTimeoutException(0.01)
            return await real_get_question(question_id)

        monkeypatch.setattr(service.sessions, "get_question", get_question)
        answered = await service.answer_question(OP_A, session_id, question.id, "Yes, lukewarm water only")
        monkeypatch.undo()

        assert answered.answer == "Yes, lukewarm water only"
        assert answered.answered_by == OPERATOR_A


@pytest.mark.asyncio
async def test_store_calls_are_bounded(db_session):
    repo = SessionRepository(db_session, timeout=0.01)
    with pytest.raises(StoreTimeoutException) as exc:
        await repo._bounded(asyncio.sleep(1))
    assert exc.value.kind == ErrorKind.STORE_TIMEOUT
    assert exc.value.status_code == 503
