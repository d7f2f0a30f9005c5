from __future__ import annotations

from datetime import datetime
from typing import Optional
from pydantic import BaseModel, ConfigDict

from domain.identity import Role


class RoleChangeIn(BaseModel):
    role: Role


class ProfileOut(BaseModel):
    id: str
    email: Optional[str] = None
    full_name: Optional[str] = None
    role: Role
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)
