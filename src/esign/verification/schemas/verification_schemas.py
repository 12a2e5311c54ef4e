from pydantic import BaseModel, Field


class UnlockRequest(BaseModel):
    access_code: str = Field(min_length=1, max_length=12)
