"""Patient access grant REST API endpoints"""
from fastapi import APIRouter, Depends, status

from app.access.schemas import AccessGrantListResponse, AccessGrantResponse, GrantAccessRequest
from app.access.service import AccessGrantService
from app.auth.middleware import Actor, verify_token, check_permission
from app.dependencies import get_access_service

router = APIRouter(
    prefix="/patients",
    tags=["access"],
)


@router.get("/{patient_id}/access", response_model=AccessGrantListResponse)
async def list_grants(
    patient_id: str,
    service: AccessGrantService = Depends(get_access_service),
    actor: Actor = Depends(verify_token),
):
    """
    List the operators that can see or edit a patient.

    Required permission: access:manage (ADMIN role)
    """
    check_permission(actor, "access:manage")
    grants = await service.list_grants(actor, patient_id)
    return AccessGrantListResponse(
        grants=[AccessGrantResponse.model_validate(g) for g in grants],
        count=len(grants),
    )


@router.put("/{patient_id}/access", response_model=AccessGrantResponse)
async def grant_access(
    patient_id: str,
    request: GrantAccessRequest,
    service: AccessGrantService = Depends(get_access_service),
    actor: Actor = Depends(verify_token),
):
    """
    Grant or change an operator's access to a patient.

    Required permission: access:manage (ADMIN role)
    """
    check_permission(actor, "access:manage")
    grant = await service.grant_access(
        actor,
        patient_id=patient_id,
        operator_id=request.operator_id,
        can_view=request.can_view,
        can_edit=request.can_edit,
    )
    return AccessGrantResponse.model_validate(grant)


@router.delete("/{patient_id}/access/{operator_id}", status_code=status.HTTP_204_NO_CONTENT)
async def revoke_access(
    patient_id: str,
    operator_id: str,
    service: AccessGrantService = Depends(get_access_service),
    actor: Actor = Depends(verify_token),
):
    """
    Remove an operator's access to a patient.

    Required permission: access:manage (ADMIN role)
    """
    check_permission(actor, "access:manage")
    await service.revoke_access(actor, patient_id, operator_id)
