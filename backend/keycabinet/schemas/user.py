from __future__ import annotations

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field


class UserResponse(BaseModel):
    id: str
    email: str
    display_name: Optional[str] = None
    role: str
    is_active: bool
    avatar_url: Optional[str] = None
    bio: Optional[str] = None
    created_at: datetime

    model_config = {"from_attributes": True}


class ProfileUpdateRequest(BaseModel):
    display_name: Optional[str] = Field(default=None, max_length=255)
    bio: Optional[str] = None
    avatar_url: Optional[str] = Field(default=None, max_length=500)


class AdminUserUpdateRequest(BaseModel):
    display_name: Optional[str] = Field(default=None, max_length=255)
    role: Optional[Literal["user", "admin"]] = None
    is_active: Optional[bool] = None


class SummaryResponse(BaseModel):
    keys_total: int
    keys_available: int
    keys_borrowed: int
    loans_active: int
    loans_overdue: int
    loans_returned: int
    users_total: int
    users_active: int
    users_admin: int
