# storefront/schemas/feedback.py
from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime


class FeedbackCreate(BaseModel):
    message: str = Field(min_length=1)
    rating: Optional[int] = Field(default=None, ge=1, le=5)


class FeedbackOut(BaseModel):
    id: int
    user_id: Optional[int] = None
    message: str
    rating: Optional[int] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True
