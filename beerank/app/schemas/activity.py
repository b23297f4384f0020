"""
User activity Pydantic schemas.
"""

from pydantic import BaseModel
from datetime import datetime
from typing import Optional, List


class UserActivityResponse(BaseModel):
    """Schema for one activity entry."""
    id: int
    user_id: Optional[int]
    activity_type: str
    entity_type: Optional[str]
    entity_id: Optional[str]
    meta_data: Optional[dict]
    created_at: datetime

    class Config:
        from_attributes = True


class ActivityTrailResponse(BaseModel):
    """Schema for an activity list, newest first."""
    activities: List[UserActivityResponse]
    total: int
