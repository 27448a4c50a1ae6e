from datetime import datetime
from typing import Any, Dict, List, Optional
from pydantic import BaseModel


class AuditEntryResponse(BaseModel):
    id: str
    user_id: Optional[str] = None
    user_type: Optional[str] = None
    action: str
    resource_type: Optional[str] = None
    resource_id: Optional[str] = None
    details: Optional[Dict[str, Any]] = None
    created_at: datetime

    class Config:
        from_attributes = True


class AuditEntryListResponse(BaseModel):
    entries: List[AuditEntryResponse]
    count: int
