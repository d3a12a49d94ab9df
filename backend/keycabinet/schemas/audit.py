from pydantic import BaseModel, Field
from typing import Optional, Dict, Any
from datetime import datetime


class AuditLogResponse(BaseModel):
    id: str
    entity_type: str
    entity_id: str
    action: str
    description: Optional[str] = None
    user_id: Optional[str] = None
    user_role: Optional[str] = None
    old_value: Optional[Dict[str, Any]] = None
    new_value: Optional[Dict[str, Any]] = None
    metadata: Optional[Dict[str, Any]] = Field(None, validation_alias="audit_metadata")
    timestamp: datetime

    model_config = {"from_attributes": True}
