from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field


class BorrowRequest(BaseModel):
    # Range is enforced by CheckoutService against the configured bounds.
    duration_hours: Optional[int] = Field(default=None, strict=True)


class LoanResponse(BaseModel):
    id: str
    key_id: str
    key_name: Optional[str] = None
    user_id: str
    status: str
    borrowed_at: datetime
    expected_return_at: Optional[datetime] = None
    overdue_at: Optional[datetime] = None
    returned_at: Optional[datetime] = None
    returned_by: Optional[str] = None
    force_returned: bool = False

    model_config = {"from_attributes": True}


class LoanPageResponse(BaseModel):
    items: List[LoanResponse] = Field(default_factory=list)
    total: int
    page: int
    page_size: int


class SweepResponse(BaseModel):
    scanned: int
    transitioned: int
    notified: int
    loan_ids: List[str] = Field(default_factory=list)
