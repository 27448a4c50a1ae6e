"""Access grant Pydantic schemas"""
from datetime import datetime
from typing import List
from pydantic import BaseModel, Field


class GrantAccessRequest(BaseModel):
    """Grant (or change) an operator's access to a patient"""
    operator_id: str = Field(..., min_length=1)
    can_view: bool = True
    can_edit: bool = False


class AccessGrantResponse(BaseModel):
    id: str
    patient_id: str
    operator_id: str
    can_view: bool
    can_edit: bool
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class AccessGrantListResponse(BaseModel):
    grants: List[AccessGrantResponse]
    count: int
