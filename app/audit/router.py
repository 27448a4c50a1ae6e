"""Audit trail read API (administrators only)"""
from typing import Optional
from fastapi import APIRouter, Depends, Query

from app.audit.schemas import AuditEntryListResponse, AuditEntryResponse
from app.audit.trail import AuditTrail
from app.auth.middleware import Actor, verify_token, check_permission
from app.dependencies import get_audit_trail

router = APIRouter(
    prefix="/audit",
    tags=["audit"],
)


@router.get("/", response_model=AuditEntryListResponse)
async def list_audit_entries(
    resource_type: Optional[str] = Query(None),
    resource_id: Optional[str] = Query(None),
    actor_id: Optional[str] = Query(None),
    limit: int = Query(100, ge=1, le=500),
    audit: AuditTrail = Depends(get_audit_trail),
    actor: Actor = Depends(verify_token),
):
    """
    List audit entries, newest first.

    Required permission: audit:read (ADMIN role)
    """
    check_permission(actor, "audit:read")

    entries = await audit.list_entries(
        resource_type=resource_type,
        resource_id=resource_id,
        actor_id=actor_id,
        limit=limit,
    )
    return AuditEntryListResponse(
        entries=[AuditEntryResponse.model_validate(entry) for entry in entries],
        count=len(entries),
    )
