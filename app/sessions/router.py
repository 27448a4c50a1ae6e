from datetime import datetime
from typing import Optional
from fastapi import APIRouter, Depends, Query, status

from app.auth.middleware import Actor, verify_token, check_permission
from app.dependencies import get_session_service
from app.sessions.schemas import (
    AddInstructionRequest,
    AddQuestionRequest,
    AnswerQuestionRequest,
    BeforeAfterPhotoRequest,
    CompareSessionsResponse,
    ConsentResponse,
    CreateSessionRequest,
    CreateSessionResponse,
    InstructionResponse,
    MessageResponse,
    PackageInfo,
    QuestionListResponse,
    QuestionResponse,
    ReassignSessionRequest,
    SessionListResponse,
    SessionResponse,
    TransitionsResponse,
    UpdateSessionRequest,
)
from app.sessions.service import SessionLifecycleService

router = APIRouter(
    prefix="/sessions",
    tags=["sessions"],
)


@router.post("/", response_model=CreateSessionResponse, status_code=status.HTTP_201_CREATED)
async def create_session(
    request: CreateSessionRequest,
    service: SessionLifecycleService = Depends(get_session_service),
    actor: Actor = Depends(verify_token),
):
    """
    Schedule one session, or a package of sessions.

    Workflow:
    1. Verifies the caller holds canEdit on the patient (ADMIN is refused)
    2. Resolves the dates: explicit ``dates``, or ``date`` + ``count`` (weekly)
    3. Creates every session in one transaction, sharing a package id when more than one

    Required permission: session:create (SUPPORT, BASIC roles)
    """
    check_permission(actor, "session:create")

    sessions, package_id = await service.create_session(actor, request)

    count = len(sessions)
    return CreateSessionResponse(
        sessions=[SessionResponse.model_validate(s) for s in sessions],
        package=PackageInfo(id=package_id, session_count=count) if package_id else None,
        message=f"{count} sessions created successfully" if package_id else "Session created successfully",
    )


@router.get("/", response_model=SessionListResponse)
async def list_sessions(
    patient_id: Optional[str] = Query(None),
    date_from: Optional[datetime] = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    service: SessionLifecycleService = Depends(get_session_service),
    actor: Actor = Depends(verify_token),
):
    """
    List sessions the caller can see, newest date first.

    Required permission: session:read
    """
    check_permission(actor, "session:read")

    sessions, total = await service.list_sessions(
        actor,
        patient_id=patient_id,
        date_from=date_from,
        page=page,
        limit=limit,
    )
    total_pages = (total + limit - 1) // limit if total > 0 else 0

    return SessionListResponse(
        sessions=[SessionResponse.model_validate(s) for s in sessions],
        total=total,
        page=page,
        limit=limit,
        total_pages=total_pages,
    )


@router.get("/compare/{before_id}/{after_id}", response_model=CompareSessionsResponse)
async def compare_sessions(
    before_id: str,
    after_id: str,
    service: SessionLifecycleService = Depends(get_session_service),
    actor: Actor = Depends(verify_token),
):
    """
    Compare two sessions, typically the first and the latest of a treatment.

    Required permission: session:read
    """
    check_permission(actor, "session:read")
    return await service.compare_sessions(actor, before_id, after_id)


@router.get("/{session_id}", response_model=SessionResponse)
async def get_session(
    session_id: str,
    service: SessionLifecycleService = Depends(get_session_service),
    actor: Actor = Depends(verify_token),
):
    """
    Get session details.

    Required permission: session:read
    """
    check_permission(actor, "session:read")
    session = await service.get_session(actor, session_id)
    return SessionResponse.model_validate(session)


@router.get("/{session_id}/transitions", response_model=TransitionsResponse)
async def get_available_transitions(
    session_id: str,
    service: SessionLifecycleService = Depends(get_session_service),
    actor: Actor = Depends(verify_token),
):
    """Next statuses and the consent actions the caller can take right now"""
    check_permission(actor, "session:read")
    return await service.available_transitions(actor, session_id)


@router.put("/{session_id}", response_model=SessionResponse)
async def update_session(
    session_id: str,
    request: UpdateSessionRequest,
    service: SessionLifecycleService = Depends(get_session_service),
    actor: Actor = Depends(verify_token),
):
    """
    Update date, notes, operator, or cancel a scheduled session.

    Completion is only possible through request-complete / accept-complete.

    Required permission: session:update (SUPPORT, BASIC roles)
    """
    check_permission(actor, "session:update")
    session = await service.update_session(actor, session_id, request)
    return SessionResponse.model_validate(session)


@router.delete("/{session_id}", response_model=MessageResponse)
async def delete_session(
    session_id: str,
    service: SessionLifecycleService = Depends(get_session_service),
    actor: Actor = Depends(verify_token),
):
    """
    Delete a session that is not completed.

    Required permission: session:delete (SUPPORT, BASIC roles)
    """
    check_permission(actor, "session:delete")
    await service.delete_session(actor, session_id)
    return MessageResponse(message="Session deleted successfully")


@router.post("/{session_id}/request-complete", response_model=ConsentResponse)
async def request_complete(
    session_id: str,
    service: SessionLifecycleService = Depends(get_session_service),
    actor: Actor = Depends(verify_token),
):
    """
    Ask the other party to confirm the session took place.

    Required permission: session:consent
    """
    check_permission(actor, "session:consent")
    session = await service.request_complete(actor, session_id)
    return ConsentResponse(
        session=SessionResponse.model_validate(session),
        message="Completion request sent",
    )


@router.post("/{session_id}/accept-complete", response_model=ConsentResponse)
async def accept_complete(
    session_id: str,
    service: SessionLifecycleService = Depends(get_session_service),
    actor: Actor = Depends(verify_token),
):
    """
    Confirm a completion requested by the other party.

    Required permission: session:consent
    """
    check_permission(actor, "session:consent")
    session = await service.accept_complete(actor, session_id)
    return ConsentResponse(
        session=SessionResponse.model_validate(session),
        message="Session marked as completed",
    )


@router.post("/{session_id}/request-delete", response_model=ConsentResponse)
async def request_delete(
    session_id: str,
    service: SessionLifecycleService = Depends(get_session_service),
    actor: Actor = Depends(verify_token),
):
    """
    Ask the other party to agree to delete the session.

    Required permission: session:consent
    """
    check_permission(actor, "session:consent")
    session = await service.request_delete(actor, session_id)
    return ConsentResponse(
        session=SessionResponse.model_validate(session),
        message="Deletion request sent",
    )


@router.post("/{session_id}/accept-delete", response_model=MessageResponse)
async def accept_delete(
    session_id: str,
    service: SessionLifecycleService = Depends(get_session_service),
    actor: Actor = Depends(verify_token),
):
    """
    Agree to a deletion requested by the other party. The session and
    everything attached to it is removed.

    Required permission: session:consent
    """
    check_permission(actor, "session:consent")
    await service.accept_delete(actor, session_id)
    return MessageResponse(message="Session deleted successfully")


@router.put("/{session_id}/reassign", response_model=SessionResponse)
async def reassign_session(
    session_id: str,
    request: ReassignSessionRequest,
    service: SessionLifecycleService = Depends(get_session_service),
    actor: Actor = Depends(verify_token),
):
    """
    Reassign a session to another clinician (ADMIN or current owner).

    Required permission: session:reassign
    """
    check_permission(actor, "session:reassign")
    session = await service.reassign_operator(actor, session_id, request.new_operator_id)
    return SessionResponse.model_validate(session)


@router.post(
    "/{session_id}/instructions",
    response_model=InstructionResponse,
    status_code=status.HTTP_201_CREATED,
)
async def add_instruction(
    session_id: str,
    request: AddInstructionRequest,
    service: SessionLifecycleService = Depends(get_session_service),
    actor: Actor = Depends(verify_token),
):
    """Required permission: instruction:create (SUPPORT, BASIC roles)"""
    check_permission(actor, "instruction:create")
    instruction = await service.add_instruction(
        actor, session_id, request.professional_type, request.instruction,
    )
    return InstructionResponse.model_validate(instruction)


@router.delete("/{session_id}/files/{file_id}", response_model=MessageResponse)
async def delete_session_file(
    session_id: str,
    file_id: str,
    service: SessionLifecycleService = Depends(get_session_service),
    actor: Actor = Depends(verify_token),
):
    """Required permission: file:delete"""
    check_permission(actor, "file:delete")
    await service.delete_session_file(actor, session_id, file_id)
    return MessageResponse(message="File deleted successfully")


@router.post("/{session_id}/before-after-photo", response_model=ConsentResponse)
async def set_before_after_photo(
    session_id: str,
    request: BeforeAfterPhotoRequest,
    service: SessionLifecycleService = Depends(get_session_service),
    actor: Actor = Depends(verify_token),
):
    """
    Attach a before or after photo to the session. The file itself is
    uploaded separately; this records its path.

    Required permission: file:upload (PATIENT, SUPPORT, BASIC roles)
    """
    check_permission(actor, "file:upload")
    session = await service.set_photo(actor, session_id, request.photo_type, request.file_path)
    return ConsentResponse(
        session=SessionResponse.model_validate(session),
        message=f"{request.photo_type.value} photo uploaded successfully",
    )


@router.get("/{session_id}/questions", response_model=QuestionListResponse)
async def list_questions(
    session_id: str,
    service: SessionLifecycleService = Depends(get_session_service),
    actor: Actor = Depends(verify_token),
):
    """Required permission: question:read"""
    check_permission(actor, "question:read")
    questions = await service.list_questions(actor, session_id)
    return QuestionListResponse(
        questions=[QuestionResponse.model_validate(q) for q in questions],
    )


@router.post(
    "/{session_id}/questions",
    response_model=QuestionResponse,
    status_code=status.HTTP_201_CREATED,
)
async def add_question(
    session_id: str,
    request: AddQuestionRequest,
    service: SessionLifecycleService = Depends(get_session_service),
    actor: Actor = Depends(verify_token),
):
    """
    Ask the clinician a question about the session.

    Required permission: question:create (PATIENT role)
    """
    check_permission(actor, "question:create")
    question = await service.add_question(actor, session_id, request.question)
    return QuestionResponse.model_validate(question)


@router.put("/{session_id}/questions/{question_id}/answer", response_model=QuestionResponse)
async def answer_question(
    session_id: str,
    question_id: str,
    request: AnswerQuestionRequest,
    service: SessionLifecycleService = Depends(get_session_service),
    actor: Actor = Depends(verify_token),
):
    """
    Answer a patient's question. A question can be answered once.

    Required permission: question:answer (SUPPORT, BASIC roles)
    """
    check_permission(actor, "question:answer")
    question = await service.answer_question(actor, session_id, question_id, request.answer)
    return QuestionResponse.model_validate(question)
