import uuid
from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class HygieneStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    FLAGGED = "flagged"


class HygieneLog(BaseModel):
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    outlet_id: str
    photo_url: str
    comments: Optional[str] = None
    status: HygieneStatus = HygieneStatus.PENDING
    reviewed_at: Optional[datetime] = None
    created_at: datetime


class HygieneLogRequest(BaseModel):
    outlet_id: str
    photo_url: str = Field(..., description="Where the uploaded kitchen photo is stored.")
    comments: Optional[str] = None


class HygieneReviewRequest(BaseModel):
    status: HygieneStatus
