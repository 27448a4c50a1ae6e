"""Session lifecycle: scheduling, the two-party consent protocols and sub-resources.

Every public method takes the authenticated actor, authorizes through the
AuthorizationGuard, performs one atomic write through the repository and only
then runs its side effects (audit, notifications, file cleanup, events) as
post-commit hooks.
"""
import logging
from datetime import datetime, timedelta
from typing import Callable, List, Optional, Tuple

from app.access.guard import AuthorizationGuard, Capability, Operation
from app.audit.models import AuditAction
from app.audit.trail import AuditEntry, AuditTrail
from app.auth.models import Actor, UserType
from app.core.exceptions import ConflictDuringWriteException, InvalidTransitionException
from app.db.models import new_id
from app.notifications.fanout import NotificationFanout
from app.notifications.schemas import Notification, NotificationType
from app.sessions.event_publisher import SessionEventPublisher
from app.sessions.exceptions import (
    NoPendingRequestException,
    OperatorNotEligibleException,
    PatientNotFoundException,
    QuestionAlreadyAnsweredException,
    QuestionNotFoundException,
    SelfAcceptException,
    SessionFileNotFoundException,
    SessionNotFoundException,
)
from app.sessions.models import PhotoType, Session, SessionInstruction, SessionQuestion, SessionStatus
from app.sessions.repository import SessionRepository
from app.sessions.schemas import (
    CompareSessionsResponse,
    CreateSessionRequest,
    SessionComparison,
    SessionResponse,
    TransitionsResponse,
    UpdateSessionRequest,
)
from app.sessions.state_machine import (
    Trigger,
    allowed_transitions,
    as_status,
    assert_scheduled,
    assert_transition,
)
from app.sessions.validators import SessionValidator
from app.storage.files import FileStorage
from app.users.repository import UserDirectory
from app.utils.post_commit import PostCommitHooks
from app.utils.timezone import format_clinic_date, utcnow

logger = logging.getLogger(__name__)


class SessionLifecycleService:
    """Service layer for session business logic"""

    def __init__(
        self,
        sessions: SessionRepository,
        guard: AuthorizationGuard,
        users: UserDirectory,
        audit: AuditTrail,
        notifier: NotificationFanout,
        files: FileStorage,
        events: Optional[SessionEventPublisher] = None,
        validator: Optional[SessionValidator] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.sessions = sessions
        self.guard = guard
        self.users = users
        self.audit = audit
        self.notifier = notifier
        self.files = files
        self.events = events
        self.validator = validator or SessionValidator()
        self.clock = clock

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _load(self, session_id: str) -> Session:
        session = await self.sessions.get_by_id(session_id)
        if not session:
            raise SessionNotFoundException(session_id)
        return session

    async def _reload_or_conflict(self, session_id: str, detail: str) -> Session:
        """After a lost conditional write: NotFound if the row is gone, else a conflict"""
        session = await self.sessions.get_by_id(session_id)
        if not session:
            raise SessionNotFoundException(session_id)
        logger.warning(f"Conditional write lost on session {session_id}: {detail}")
        raise ConflictDuringWriteException(detail)

    async def _ensure_eligible_operator(self, patient_id: str, operator_id: str) -> None:
        """A session can only be owned by an active clinician holding canEdit on the patient"""
        operator = await self.users.get_clinical_operator(operator_id)
        if not operator:
            raise OperatorNotEligibleException("Operator must be an active clinician (SUPPORT or BASIC)")
        as_actor = Actor(user_id=operator.id, user_type=UserType.OPERATOR, role=operator.role)
        if not await self.guard.can_access(as_actor, patient_id, Capability.EDIT):
            raise OperatorNotEligibleException()

    def _audit(self, hooks: PostCommitHooks, actor: Actor, action: AuditAction,
               resource_type: str, resource_id: Optional[str], **details) -> None:
        entry = AuditEntry.for_actor(actor, action, resource_type, resource_id, **details)
        hooks.add(f"audit:{action.value}", self.audit.record, entry)

    def _notify(self, hooks: PostCommitHooks, recipient_id: Optional[str], title: str, body: str,
                type: NotificationType, **payload) -> None:
        if not recipient_id:
            return
        notification = Notification(
            recipient_id=recipient_id, title=title, body=body, type=type, payload=payload,
        )
        hooks.add(f"notify:{type.value}", self.notifier.notify, notification)

    @staticmethod
    def _other_parties(session: Session, actor: Actor) -> List[str]:
        return [p for p in (session.patient_id, session.operator_id) if p and p != actor.user_id]

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get_session(self, actor: Actor, session_id: str) -> Session:
        """Get a session the actor may view"""
        session = await self._load(session_id)
        await self.guard.authorize(actor, Operation.VIEW_SESSION, session.patient_id, session.operator_id)
        return session

    async def list_sessions(
        self,
        actor: Actor,
        patient_id: Optional[str] = None,
        date_from: Optional[datetime] = None,
        page: int = 1,
        limit: int = 20,
    ) -> Tuple[List[Session], int]:
        """
        List sessions visible to the actor.

        Patients only ever see their own sessions. Without a patient filter a
        non-ADMIN operator sees the patients they hold a view grant on, plus
        the sessions assigned to them.
        """
        if actor.is_patient:
            if patient_id and patient_id != actor.user_id:
                await self.guard.authorize(actor, Operation.LIST_SESSIONS, patient_id)
            return await self.sessions.list_sessions(
                patient_id=actor.user_id, date_from=date_from, page=page, limit=limit,
            )

        if patient_id:
            await self.guard.authorize(actor, Operation.LIST_SESSIONS, patient_id)
            return await self.sessions.list_sessions(
                patient_id=patient_id, date_from=date_from, page=page, limit=limit,
            )

        if actor.is_admin:
            return await self.sessions.list_sessions(date_from=date_from, page=page, limit=limit)

        return await self.sessions.list_sessions(
            patient_ids_subquery=self.guard.grants.viewable_patient_ids(actor.user_id),
            assigned_operator_id=actor.user_id,
            date_from=date_from,
            page=page,
            limit=limit,
        )

    async def compare_sessions(self, actor: Actor, before_id: str, after_id: str) -> CompareSessionsResponse:
        """Put two sessions the actor may view side by side, e.g. before and after a treatment"""
        before = await self.get_session(actor, before_id)
        after = await self.get_session(actor, after_id)

        days_between = (after.date - before.date) // timedelta(days=1)
        comparison = CompareSessionsResponse(
            before=SessionResponse.model_validate(before),
            after=SessionResponse.model_validate(after),
            comparison=SessionComparison(
                days_between=days_between,
                status_change=before.status != after.status,
            ),
        )

        hooks = PostCommitHooks()
        self._audit(hooks, actor, AuditAction.VIEW, "SessionComparison", f"{before_id}-{after_id}",
                    session_id_1=before_id, session_id_2=after_id, days_between=days_between)
        await hooks.run()
        return comparison

    async def available_transitions(self, actor: Actor, session_id: str) -> TransitionsResponse:
        """What the actor can still do with the session, for client UX"""
        session = await self.get_session(actor, session_id)
        status = as_status(session.status)
        is_party = not actor.is_admin
        scheduled = status == SessionStatus.SCHEDULED

        return TransitionsResponse(
            session_id=session.id,
            status=status,
            allowed_transitions=allowed_transitions(status),
            pending_complete_requested_by=session.complete_requested_by,
            pending_delete_requested_by=session.delete_requested_by,
            can_request_complete=is_party and scheduled,
            can_accept_complete=(
                is_party
                and scheduled
                and session.complete_requested_by is not None
                and session.complete_requested_by != actor.user_id
            ),
            can_request_delete=is_party,
            can_accept_delete=(
                is_party
                and session.delete_requested_by is not None
                and session.delete_requested_by != actor.user_id
            ),
        )

    # ------------------------------------------------------------------
    # Creation / direct edits
    # ------------------------------------------------------------------

    async def create_session(self, actor: Actor, request: CreateSessionRequest) -> Tuple[List[Session], Optional[str]]:
        """
        Create one session or a package of sessions.

        Steps:
        1. Authorize (clinician with canEdit on the patient, never ADMIN)
        2. Check the patient and the assigned operator
        3. Resolve and validate the dates
        4. Insert every row (and instructions) in one transaction
        """
        await self.guard.authorize(actor, Operation.CREATE_SESSION, request.patient_id)

        patient = await self.users.get_patient(request.patient_id)
        if not patient:
            raise PatientNotFoundException(request.patient_id)

        operator_id = request.operator_id or actor.user_id
        if operator_id != actor.user_id:
            await self._ensure_eligible_operator(request.patient_id, operator_id)

        now = self.clock()
        dates = self.validator.resolve_dates(now, request.date, request.dates, request.count)
        total = len(dates)
        package_id = new_id() if total > 1 else None

        new_sessions = [
            Session(
                id=new_id(),
                patient_id=request.patient_id,
                operator_id=operator_id,
                date=session_date,
                status=SessionStatus.SCHEDULED.value,
                patient_notes=request.patient_notes,
                technical_notes=request.technical_notes,
                package_id=package_id,
                session_number=index + 1 if package_id else None,
                total_sessions=total if package_id else None,
            )
            for index, session_date in enumerate(dates)
        ]
        instructions = [item.model_dump() for item in request.instructions]

        created = await self.sessions.create_batch(new_sessions, instructions)
        logger.info(
            f"Created {total} session(s) for patient {request.patient_id} "
            f"by {actor.user_id} (package={package_id})"
        )

        hooks = PostCommitHooks()
        if package_id:
            self._audit(hooks, actor, AuditAction.CREATE, "SessionPackage", package_id,
                        patient_id=request.patient_id, session_count=total)
            self._notify(
                hooks, request.patient_id,
                "New Session Package",
                f"{total} sessions have been scheduled for you, starting {format_clinic_date(dates[0])}",
                NotificationType.SESSION_CREATED,
                package_id=package_id, session_ids=[s.id for s in created],
            )
        else:
            self._audit(hooks, actor, AuditAction.CREATE, "Session", created[0].id,
                        patient_id=request.patient_id, date=dates[0].isoformat())
            self._notify(
                hooks, request.patient_id,
                "New Session Scheduled",
                f"A session has been scheduled for {format_clinic_date(dates[0])}",
                NotificationType.SESSION_CREATED,
                session_id=created[0].id,
            )
        if self.events:
            hooks.add("event:session.created", self.events.publish_sessions_created, created, package_id)
        await hooks.run()

        return created, package_id

    async def update_session(self, actor: Actor, session_id: str, request: UpdateSessionRequest) -> Session:
        """
        Direct edit by an assigned clinician.

        Status may only move along the direct-update edges (cancel a scheduled
        session); completion goes through the consent protocol.
        """
        session = await self._load(session_id)
        await self.guard.authorize(actor, Operation.UPDATE_SESSION, session.patient_id, session.operator_id)

        current = as_status(session.status)
        previous_operator = session.operator_id
        values = {}

        if request.status is not None and request.status != current:
            assert_transition(current, request.status, Trigger.DIRECT_UPDATE)
            values["status"] = request.status.value

        if request.date is not None:
            assert_scheduled(current, "reschedule")
            values["date"] = self.validator.validate_new_date(self.clock(), request.date)

        if request.patient_notes is not None:
            values["patient_notes"] = request.patient_notes
        if request.technical_notes is not None:
            values["technical_notes"] = request.technical_notes

        if request.operator_id is not None and request.operator_id != session.operator_id:
            await self._ensure_eligible_operator(session.patient_id, request.operator_id)
            values["operator_id"] = request.operator_id

        if not values:
            return session

        if not await self.sessions.update_fields(session_id, current, values):
            await self._reload_or_conflict(session_id, "Session changed while it was being updated")

        logger.info(f"Session {session_id} updated by {actor.user_id}: {sorted(values)}")

        hooks = PostCommitHooks()
        self._audit(hooks, actor, AuditAction.UPDATE, "Session", session_id, changes=sorted(values))
        if values.get("status") == SessionStatus.CANCELLED.value:
            body = f"Your session on {format_clinic_date(session.date)} has been cancelled"
        else:
            body = f"Your session on {format_clinic_date(session.date)} has been updated"
        self._notify(hooks, session.patient_id, "Session Updated", body,
                     NotificationType.SESSION_UPDATED, session_id=session_id)
        if "operator_id" in values:
            self._notify(
                hooks, session.operator_id,
                "Session Assigned",
                f"A session on {format_clinic_date(session.date)} has been assigned to you",
                NotificationType.SESSION_REASSIGNED,
                session_id=session_id, previous_operator_id=previous_operator,
            )
        await hooks.run()
        return session

    async def delete_session(self, actor: Actor, session_id: str) -> None:
        """Unilateral delete by a clinician; completed sessions need mutual agreement instead"""
        session = await self._load(session_id)
        await self.guard.authorize(actor, Operation.DELETE_SESSION, session.patient_id, session.operator_id)

        if as_status(session.status) == SessionStatus.COMPLETED:
            raise InvalidTransitionException(
                "A completed session can only be deleted by mutual agreement (request-delete, then accept-delete)",
                SessionStatus.COMPLETED.value,
                [],
            )

        patient_id = session.patient_id
        date = session.date
        file_paths = await self.sessions.delete_with_children(session_id, unless_status=SessionStatus.COMPLETED)
        if file_paths is None:
            await self._reload_or_conflict(session_id, "Session was completed while it was being deleted")
        logger.info(f"Session {session_id} deleted by {actor.user_id}")

        hooks = PostCommitHooks()
        self._audit(hooks, actor, AuditAction.DELETE, "Session", session_id, patient_id=patient_id)
        if file_paths:
            hooks.add("files:cleanup", self.files.delete_files, file_paths)
        self._notify(hooks, patient_id, "Session Deleted",
                     f"Your session on {format_clinic_date(date)} has been deleted",
                     NotificationType.SESSION_DELETED, session_id=session_id)
        if self.events:
            hooks.add("event:session.deleted", self.events.publish_session_deleted,
                      session_id, patient_id, actor.user_id)
        await hooks.run()

    async def reassign_operator(self, actor: Actor, session_id: str, new_operator_id: str) -> Session:
        """
        Move a session to another clinician. Only ADMIN or the current operator
        may do this, and the new operator must already hold canEdit on the patient.
        """
        session = await self._load(session_id)
        await self.guard.authorize(actor, Operation.REASSIGN_OPERATOR, session.patient_id, session.operator_id)

        if new_operator_id == session.operator_id:
            return session
        await self._ensure_eligible_operator(session.patient_id, new_operator_id)

        previous_operator = session.operator_id
        if not await self.sessions.update_fields(session_id, as_status(session.status), {"operator_id": new_operator_id}):
            await self._reload_or_conflict(session_id, "Session changed while it was being reassigned")

        logger.info(f"Session {session_id} reassigned {previous_operator} -> {new_operator_id} by {actor.user_id}")

        hooks = PostCommitHooks()
        self._audit(hooks, actor, AuditAction.UPDATE, "Session", session_id,
                    change="reassign", previous_operator_id=previous_operator, operator_id=new_operator_id)
        self._notify(
            hooks, new_operator_id,
            "Session Assigned",
            f"A session on {format_clinic_date(session.date)} has been assigned to you",
            NotificationType.SESSION_REASSIGNED,
            session_id=session_id, previous_operator_id=previous_operator,
        )
        self._notify(
            hooks, session.patient_id,
            "Clinician Changed",
            f"Your session on {format_clinic_date(session.date)} has a new clinician",
            NotificationType.SESSION_REASSIGNED,
            session_id=session_id,
        )
        await hooks.run()
        return session

    # ------------------------------------------------------------------
    # Completion protocol
    # ------------------------------------------------------------------

    async def request_complete(self, actor: Actor, session_id: str) -> Session:
        """Record a completion request; a later request replaces a pending one"""
        session = await self._load(session_id)
        await self.guard.authorize(actor, Operation.REQUEST_COMPLETE, session.patient_id, session.operator_id)
        assert_scheduled(session.status, "request completion")

        if not await self.sessions.record_complete_request(session_id, actor.user_id, self.clock()):
            await self._reload_or_conflict(session_id, "Session changed while completion was being requested")

        logger.info(f"Completion of session {session_id} requested by {actor.user_id}")

        hooks = PostCommitHooks()
        self._audit(hooks, actor, AuditAction.COMPLETE_REQUESTED, "Session", session_id)
        for recipient in self._other_parties(session, actor):
            self._notify(
                hooks, recipient,
                "Session Completion Request",
                f"{actor.display_name} has requested to mark the session on "
                f"{format_clinic_date(session.date)} as completed",
                NotificationType.SESSION_COMPLETE_REQUEST,
                session_id=session_id, requested_by=actor.user_id,
            )
        await hooks.run()
        return session

    async def accept_complete(self, actor: Actor, session_id: str) -> Session:
        """
        Ratify a pending completion request made by someone else. This is the
        only path to COMPLETED; the write is conditional so that of two
        concurrent accepts exactly one wins.
        """
        session = await self._load(session_id)
        await self.guard.authorize(actor, Operation.ACCEPT_COMPLETE, session.patient_id, session.operator_id)

        current = as_status(session.status)
        if current == SessionStatus.COMPLETED:
            raise InvalidTransitionException("Session is already completed", current.value, [])
        assert_scheduled(current, "accept completion")
        if not session.complete_requested_by:
            raise NoPendingRequestException("completion", current)
        if session.complete_requested_by == actor.user_id:
            raise SelfAcceptException("completion", current)

        requester_id = session.complete_requested_by
        if not await self.sessions.mark_completed(session_id, actor.user_id, self.clock()):
            await self._reload_or_conflict(session_id, "Session was completed or changed by a concurrent request")

        logger.info(f"Session {session_id} completed: requested by {requester_id}, accepted by {actor.user_id}")

        hooks = PostCommitHooks()
        self._audit(hooks, actor, AuditAction.COMPLETE_ACCEPTED, "Session", session_id, requested_by=requester_id)
        self._notify(
            hooks, requester_id,
            "Session Completed",
            f"{actor.display_name} accepted: the session on {format_clinic_date(session.date)} is completed",
            NotificationType.SESSION_COMPLETED,
            session_id=session_id, accepted_by=actor.user_id,
        )
        if self.events:
            hooks.add("event:session.completed", self.events.publish_session_completed, session)
        await hooks.run()
        return session

    # ------------------------------------------------------------------
    # Deletion protocol
    # ------------------------------------------------------------------

    async def request_delete(self, actor: Actor, session_id: str) -> Session:
        """Record a deletion request; valid in any status"""
        session = await self._load(session_id)
        await self.guard.authorize(actor, Operation.REQUEST_DELETE, session.patient_id, session.operator_id)

        if not await self.sessions.record_delete_request(session_id, actor.user_id, self.clock()):
            raise SessionNotFoundException(session_id)

        logger.info(f"Deletion of session {session_id} requested by {actor.user_id}")

        hooks = PostCommitHooks()
        self._audit(hooks, actor, AuditAction.DELETE_REQUESTED, "Session", session_id)
        for recipient in self._other_parties(session, actor):
            self._notify(
                hooks, recipient,
                "Session Deletion Request",
                f"{actor.display_name} has requested to delete the session on {format_clinic_date(session.date)}",
                NotificationType.SESSION_DELETE_REQUEST,
                session_id=session_id, requested_by=actor.user_id,
            )
        await hooks.run()
        return session

    async def accept_delete(self, actor: Actor, session_id: str) -> None:
        """
        Ratify a pending deletion request made by someone else, then remove the
        session and everything it owns in one transaction. Stored files are
        cleaned up afterwards, best-effort.
        """
        session = await self._load(session_id)
        await self.guard.authorize(actor, Operation.ACCEPT_DELETE, session.patient_id, session.operator_id)

        current = as_status(session.status)
        if not session.delete_requested_by:
            raise NoPendingRequestException("deletion", current)
        if session.delete_requested_by == actor.user_id:
            raise SelfAcceptException("deletion", current)

        requester_id = session.delete_requested_by
        patient_id = session.patient_id
        date = session.date
        file_paths = await self.sessions.accept_delete_and_remove(session_id, actor.user_id, self.clock())
        if file_paths is None:
            await self._reload_or_conflict(session_id, "Deletion request changed by a concurrent request")
        logger.info(f"Session {session_id} deleted: requested by {requester_id}, accepted by {actor.user_id}")

        hooks = PostCommitHooks()
        self._audit(hooks, actor, AuditAction.DELETE_ACCEPTED, "Session", session_id,
                    requested_by=requester_id, patient_id=patient_id)
        if file_paths:
            hooks.add("files:cleanup", self.files.delete_files, file_paths)
        self._notify(
            hooks, requester_id,
            "Session Deleted",
            f"{actor.display_name} accepted: the session on {format_clinic_date(date)} has been deleted",
            NotificationType.SESSION_DELETED,
            session_id=session_id, accepted_by=actor.user_id,
        )
        if self.events:
            hooks.add("event:session.deleted", self.events.publish_session_deleted,
                      session_id, patient_id, actor.user_id)
        await hooks.run()

    # ------------------------------------------------------------------
    # Sub-resources
    # ------------------------------------------------------------------

    async def add_instruction(self, actor: Actor, session_id: str, professional_type: str, instruction: str) -> SessionInstruction:
        session = await self._load(session_id)
        await self.guard.authorize(actor, Operation.ADD_INSTRUCTION, session.patient_id, session.operator_id)

        professional_type = self.validator.validate_text(professional_type, "Professional type")
        instruction = self.validator.validate_text(instruction, "Instruction")
        record = await self.sessions.add_instruction(session_id, professional_type, instruction)

        hooks = PostCommitHooks()
        self._audit(hooks, actor, AuditAction.CREATE, "SessionInstruction", record.id, session_id=session_id)
        self._notify(
            hooks, session.patient_id,
            "New Instructions",
            f"New {professional_type} instructions were added to your session on {format_clinic_date(session.date)}",
            NotificationType.SESSION_INSTRUCTION_ADDED,
            session_id=session_id, instruction_id=record.id,
        )
        await hooks.run()
        return record

    async def delete_session_file(self, actor: Actor, session_id: str, file_id: str) -> None:
        """Remove a file row first, then the stored file best-effort"""
        session = await self._load(session_id)
        await self.guard.authorize(actor, Operation.DELETE_FILE, session.patient_id, session.operator_id)

        session_file = await self.sessions.get_file(file_id)
        if not session_file or session_file.session_id != session_id:
            raise SessionFileNotFoundException(file_id)

        file_path = session_file.file_path
        file_name = session_file.file_name
        if not await self.sessions.delete_file(file_id):
            raise SessionFileNotFoundException(file_id)
        logger.info(f"File {file_id} of session {session_id} deleted by {actor.user_id}")

        hooks = PostCommitHooks()
        self._audit(hooks, actor, AuditAction.FILE_DELETED, "SessionFile", file_id,
                    session_id=session_id, file_name=file_name)
        hooks.add("files:cleanup", self.files.delete_files, [file_path])
        await hooks.run()

    async def set_photo(self, actor: Actor, session_id: str, photo_type: PhotoType, file_path: str) -> Session:
        """
        Attach a before or after photo (a path already in the uploads directory).
        Allowed in any status; a replaced photo is removed from storage afterwards.
        """
        session = await self._load(session_id)
        await self.guard.authorize(actor, Operation.SET_PHOTO, session.patient_id, session.operator_id)

        file_path = self.validator.validate_file_path(file_path)
        previous = getattr(session, photo_type.attribute)
        if previous == file_path:
            return session

        if not await self.sessions.set_photo(session_id, photo_type.attribute, file_path, previous):
            await self._reload_or_conflict(session_id, f"{photo_type.value} photo changed by a concurrent request")
        logger.info(f"{photo_type.value} photo of session {session_id} set by {actor.user_id}")

        hooks = PostCommitHooks()
        self._audit(hooks, actor, AuditAction.FILE_UPLOADED, "Session", session_id,
                    photo_type=photo_type.value, file_path=file_path)
        if previous:
            hooks.add("files:cleanup", self.files.delete_files, [previous])
        await hooks.run()
        return session

    async def list_questions(self, actor: Actor, session_id: str) -> List[SessionQuestion]:
        session = await self._load(session_id)
        await self.guard.authorize(actor, Operation.LIST_QUESTIONS, session.patient_id, session.operator_id)
        return await self.sessions.list_questions(session_id)

    async def add_question(self, actor: Actor, session_id: str, question: str) -> SessionQuestion:
        """Only the patient on the session may ask; the assigned operator is notified"""
        session = await self._load(session_id)
        await self.guard.authorize(actor, Operation.ADD_QUESTION, session.patient_id, session.operator_id)

        question = self.validator.validate_text(question, "Question")
        record = await self.sessions.add_question(session_id, question, actor.user_id)

        hooks = PostCommitHooks()
        self._audit(hooks, actor, AuditAction.CREATE, "SessionQuestion", record.id, session_id=session_id)
        self._notify(
            hooks, session.operator_id,
            "New Question",
            f"{actor.display_name} asked a question about the session on {format_clinic_date(session.date)}",
            NotificationType.SESSION_QUESTION_ASKED,
            session_id=session_id, question_id=record.id,
        )
        await hooks.run()
        return record

    async def answer_question(self, actor: Actor, session_id: str, question_id: str, answer: str) -> SessionQuestion:
        """Answer an open question; open -> answered is one-way"""
        session = await self._load(session_id)
        await self.guard.authorize(actor, Operation.ANSWER_QUESTION, session.patient_id, session.operator_id)

        question = await self.sessions.get_question(question_id)
        if not question or question.session_id != session_id:
            raise QuestionNotFoundException(question_id)
        if question.is_answered:
            raise QuestionAlreadyAnsweredException(question_id)

        answer = self.validator.validate_text(answer, "Answer")
        if not await self.sessions.answer_question(question_id, answer, actor.user_id, self.clock()):
            raise QuestionAlreadyAnsweredException(question_id)

        hooks = PostCommitHooks()
        self._audit(hooks, actor, AuditAction.UPDATE, "SessionQuestion", question_id, session_id=session_id)
        self._notify(
            hooks, question.asked_by,
            "Question Answered",
            f"{actor.display_name} answered your question about the session on {format_clinic_date(session.date)}",
            NotificationType.SESSION_QUESTION_ANSWERED,
            session_id=session_id, question_id=question_id,
        )
        await hooks.run()
        return question
