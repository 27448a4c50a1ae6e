"""Authenticated actor model"""
from enum import Enum
from typing import Optional
from pydantic import BaseModel, Field


class UserType(str, Enum):
    PATIENT = "PATIENT"
    OPERATOR = "OPERATOR"


class OperatorRole(str, Enum):
    ADMIN = "ADMIN"
    SUPPORT = "SUPPORT"
    BASIC = "BASIC"


class Actor(BaseModel):
    """Identity of the caller, as supplied by the identity provider"""
    user_id: str = Field(..., alias="sub")
    user_type: UserType
    role: Optional[OperatorRole] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    permissions: list[str] = []

    class Config:
        populate_by_name = True

    @property
    def is_patient(self) -> bool:
        return self.user_type == UserType.PATIENT

    @property
    def is_admin(self) -> bool:
        return self.user_type == UserType.OPERATOR and self.role == OperatorRole.ADMIN

    @property
    def display_name(self) -> str:
        name = " ".join(part for part in (self.first_name, self.last_name) if part)
        return name or ("Your patient" if self.is_patient else "Your clinician")
