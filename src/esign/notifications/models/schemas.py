from typing import Optional
from pydantic import BaseModel
from datetime import datetime


class NotificationResponse(BaseModel):
    id: int
    event: str
    title: str
    message: str
    payload: Optional[dict] = None
    group_id: Optional[int] = None
    created_at: datetime
    user_id: int
    read: bool = False

    model_config = {"from_attributes": True}
