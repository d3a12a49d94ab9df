from datetime import datetime

from pydantic import BaseModel

from keycabinet.schemas.key import KeyResponse


class FavoriteResponse(BaseModel):
    id: str
    key_id: str
    created_at: datetime
    key: KeyResponse

    model_config = {"from_attributes": True}
