"""Session Repository Layer

Plain persistence for sessions and their sub-resources. No authorization or
consent logic lives here; the conditional writes only guarantee that a check
made by the service still holds at the moment the row changes.
"""
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple
from sqlalchemy import select, update, delete, func, or_
from sqlalchemy.exc import SQLAlchemyError

from app.db.repository import BaseRepository
from app.feedback.models import SessionFeedback
from app.sessions.models import (
    Session,
    SessionFile,
    SessionInstruction,
    SessionQuestion,
    SessionStatus,
)
from app.utils.timezone import utcnow


class SessionRepository(BaseRepository):
    """Repository for session database operations"""

    async def get_by_id(self, session_id: str) -> Optional[Session]:
        """Get session by ID, always re-read from the store"""
        stmt = select(Session).where(Session.id == session_id).execution_options(populate_existing=True)
        result = await self._execute(stmt)
        return result.scalar_one_or_none()

    async def list_sessions(
        self,
        patient_id: Optional[str] = None,
        patient_ids_subquery=None,
        assigned_operator_id: Optional[str] = None,
        date_from: Optional[datetime] = None,
        page: int = 1,
        limit: int = 20,
    ) -> Tuple[List[Session], int]:
        """
        List sessions with pagination and optional filters.

        Returns:
            Tuple of (sessions, total_count)
        """
        stmt = select(Session)
        count_stmt = select(func.count()).select_from(Session)

        filters = []
        if patient_id:
            filters.append(Session.patient_id == patient_id)
        if patient_ids_subquery is not None:
            # Sessions of viewable patients, plus those assigned to the operator
            filters.append(or_(
                Session.patient_id.in_(patient_ids_subquery),
                Session.operator_id == assigned_operator_id,
            ))
        if date_from:
            filters.append(Session.date >= date_from)
        for condition in filters:
            stmt = stmt.where(condition)
            count_stmt = count_stmt.where(condition)

        total = (await self._execute(count_stmt)).scalar()

        stmt = stmt.order_by(Session.date.desc()).offset((page - 1) * limit).limit(limit)
        result = await self._execute(stmt)
        return list(result.scalars().all()), total

    async def create_batch(
        self,
        sessions: List[Session],
        instructions: List[Dict[str, str]],
    ) -> List[Session]:
        """
        Insert every session (and a copy of each instruction per session) in a
        single transaction. Nothing is visible unless all rows were written.
        """
        try:
            for session in sessions:
                self.db.add(session)
                await self._bounded(self.db.flush())
                for item in instructions:
                    self.db.add(SessionInstruction(
                        session_id=session.id,
                        professional_type=item["professional_type"],
                        instruction=item["instruction"],
                    ))
                await self._bounded(self.db.flush())
            await self._commit()
        except SQLAlchemyError:
            await self.db.rollback()
            raise
        return sessions

    async def update_fields(
        self,
        session_id: str,
        expected_status: SessionStatus,
        values: Dict[str, Any],
    ) -> bool:
        """Apply ``values`` only if the session still has ``expected_status``"""
        values = dict(values, updated_at=utcnow())
        stmt = (
            update(Session)
            .where(Session.id == session_id, Session.status == expected_status.value)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        result = await self._execute(stmt)
        if result.rowcount == 0:
            await self.db.rollback()
            return False
        await self._commit()
        self._mirror(Session, session_id, values)
        return True

    async def record_complete_request(self, session_id: str, requester_id: str, now: datetime) -> bool:
        """Stamp a completion request; a newer request replaces a pending one"""
        return await self.update_fields(session_id, SessionStatus.SCHEDULED, {
            "complete_requested_by": requester_id,
            "complete_requested_at": now,
        })

    async def record_delete_request(self, session_id: str, requester_id: str, now: datetime) -> bool:
        """Stamp a deletion request; a newer request replaces a pending one"""
        values = {"delete_requested_by": requester_id, "delete_requested_at": now, "updated_at": now}
        stmt = (
            update(Session)
            .where(Session.id == session_id)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        result = await self._execute(stmt)
        if result.rowcount == 0:
            await self.db.rollback()
            return False
        await self._commit()
        self._mirror(Session, session_id, values)
        return True

    async def mark_completed(self, session_id: str, accepter_id: str, now: datetime) -> bool:
        """
        Complete the session iff it is still SCHEDULED and has a pending request
        made by someone other than ``accepter_id``. Exactly one of several
        concurrent callers can get True.
        """
        values = {
            "status": SessionStatus.COMPLETED.value,
            "complete_accepted_by": accepter_id,
            "complete_accepted_at": now,
            "updated_at": now,
        }
        stmt = (
            update(Session)
            .where(
                Session.id == session_id,
                Session.status == SessionStatus.SCHEDULED.value,
                Session.complete_requested_by.is_not(None),
                Session.complete_requested_by != accepter_id,
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        result = await self._execute(stmt)
        if result.rowcount == 0:
            await self.db.rollback()
            return False
        await self._commit()
        self._mirror(Session, session_id, values)
        return True

    async def set_photo(self, session_id: str, attribute: str, file_path: str, expected_path: Optional[str]) -> bool:
        """Store a before/after photo path, only if the slot still holds ``expected_path``"""
        column = getattr(Session, attribute)
        current = column.is_(None) if expected_path is None else column == expected_path
        values = {attribute: file_path, "updated_at": utcnow()}
        stmt = (
            update(Session)
            .where(Session.id == session_id, current)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        result = await self._execute(stmt)
        if result.rowcount == 0:
            await self.db.rollback()
            return False
        await self._commit()
        self._mirror(Session, session_id, values)
        return True

    async def accept_delete_and_remove(self, session_id: str, accepter_id: str, now: datetime) -> Optional[List[str]]:
        """
        Stamp the delete acceptance, then delete the session and everything it
        owns, all in one transaction.

        Returns the stored file paths to clean up, or None when the pending
        request no longer matches (someone else won the race).
        """
        try:
            stamp = (
                update(Session)
                .where(
                    Session.id == session_id,
                    Session.delete_requested_by.is_not(None),
                    Session.delete_requested_by != accepter_id,
                )
                .values(delete_accepted_by=accepter_id, delete_accepted_at=now)
                .execution_options(synchronize_session=False)
            )
            result = await self._execute(stamp)
            if result.rowcount == 0:
                await self.db.rollback()
                return None
            file_paths = await self._delete_cascade(session_id)
            await self._commit()
        except SQLAlchemyError:
            await self.db.rollback()
            raise
        return file_paths

    async def delete_with_children(self, session_id: str, unless_status: Optional[SessionStatus] = None) -> Optional[List[str]]:
        """
        Delete the session and its sub-resources in one transaction.

        If ``unless_status`` is given, nothing is deleted when the session has
        reached that status in the meantime (returns None).
        """
        try:
            if unless_status is not None:
                stmt = select(Session.status).where(Session.id == session_id).with_for_update()
                current = (await self._execute(stmt)).scalar_one_or_none()
                if current is None or current == unless_status.value:
                    await self.db.rollback()
                    return None
            file_paths = await self._delete_cascade(session_id)
            await self._commit()
        except SQLAlchemyError:
            await self.db.rollback()
            raise
        return file_paths

    async def _delete_cascade(self, session_id: str) -> List[str]:
        paths = await self._execute(select(SessionFile.file_path).where(SessionFile.session_id == session_id))
        file_paths = [p for p in paths.scalars().all() if p]
        session = await self.db.get(Session, session_id)
        for extra in (session.before_photo, session.after_photo) if session else ():
            if extra:
                file_paths.append(extra)

        for model in (SessionFile, SessionInstruction, SessionQuestion, SessionFeedback):
            await self._execute(
                delete(model).where(model.session_id == session_id).execution_options(synchronize_session=False)
            )
        await self._execute(
            delete(Session).where(Session.id == session_id).execution_options(synchronize_session=False)
        )
        if session is not None:
            self.db.expunge(session)
        return file_paths

    # Instructions

    async def add_instruction(self, session_id: str, professional_type: str, instruction: str) -> SessionInstruction:
        record = SessionInstruction(
            session_id=session_id,
            professional_type=professional_type,
            instruction=instruction,
        )
        self.db.add(record)
        await self._commit()
        return record

    # Files

    async def get_file(self, file_id: str) -> Optional[SessionFile]:
        result = await self._execute(select(SessionFile).where(SessionFile.id == file_id))
        return result.scalar_one_or_none()

    async def delete_file(self, file_id: str) -> bool:
        result = await self._execute(delete(SessionFile).where(SessionFile.id == file_id))
        await self._commit()
        return result.rowcount > 0

    # Questions

    async def list_questions(self, session_id: str) -> List[SessionQuestion]:
        stmt = select(SessionQuestion).where(
            SessionQuestion.session_id == session_id
        ).order_by(SessionQuestion.created_at.asc())
        result = await self._execute(stmt)
        return list(result.scalars().all())

    async def get_question(self, question_id: str) -> Optional[SessionQuestion]:
        stmt = select(SessionQuestion).where(
            SessionQuestion.id == question_id
        ).execution_options(populate_existing=True)
        result = await self._execute(stmt)
        return result.scalar_one_or_none()

    async def add_question(self, session_id: str, question: str, asked_by: str) -> SessionQuestion:
        record = SessionQuestion(session_id=session_id, question=question, asked_by=asked_by)
        self.db.add(record)
        await self._commit()
        return record

    async def answer_question(self, question_id: str, answer: str, answered_by: str, now: datetime) -> bool:
        """Answer an open question; False if it was answered in the meantime"""
        values = {"answer": answer, "answered_by": answered_by, "answered_at": now}
        stmt = (
            update(SessionQuestion)
            .where(SessionQuestion.id == question_id, SessionQuestion.answered_at.is_(None))
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        result = await self._execute(stmt)
        if result.rowcount == 0:
            await self.db.rollback()
            return False
        await self._commit()
        self._mirror(SessionQuestion, question_id, values)
        return True
