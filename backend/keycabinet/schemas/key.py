from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from keycabinet.schemas.loan import LoanResponse


class KeyCreateRequest(BaseModel):
    name: str = Field(max_length=255)
    description: Optional[str] = None

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        normalized = (v or "").strip()
        if not normalized:
            raise ValueError("name is required")
        return normalized

    @field_validator("description")
    @classmethod
    def validate_description(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        normalized = v.strip()
        return normalized or None


class KeyUpdateRequest(BaseModel):
    name: Optional[str] = Field(default=None, max_length=255)
    description: Optional[str] = None

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        normalized = v.strip()
        if not normalized:
            raise ValueError("name cannot be blank")
        return normalized


class KeyResponse(BaseModel):
    id: str
    name: str
    description: Optional[str] = None
    status: str
    holder_id: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class KeyDetailResponse(KeyResponse):
    open_loan: Optional[LoanResponse] = None
