from pydantic import BaseModel, ConfigDict
from typing import Optional, List
from datetime import datetime

from app.models.user import PermissionName


class PermissionChange(BaseModel):
    user_number: int
    permission: PermissionName


class PermissionSet(BaseModel):
    permissions: List[PermissionName]


class PermissionGrantResponse(BaseModel):
    id: str
    user_id: str
    permission: PermissionName
    is_active: bool
    granted_at: datetime
    revoked_at: Optional[datetime] = None
    granted_by_id: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)
