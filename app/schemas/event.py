from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field
from pydantic.config import ConfigDict


class TimeSlot(BaseModel):
    id: UUID
    event_id: UUID
    start_time: datetime
    end_time: datetime
    is_blocked: bool
    is_booked: bool = False

    model_config = ConfigDict(from_attributes=True)


class TimeSlotsList(BaseModel):
    items: List[TimeSlot]


class ParticipantProfile(BaseModel):
    id: UUID
    user_id: UUID
    nickname: Optional[str] = None
    role: Optional[str] = None
    job_title: Optional[str] = None
    work_field: Optional[str] = None
    company: Optional[str] = None
    interest_keywords: List[str] = Field(default_factory=list)
    profile_image_url: Optional[str] = None
    introduction: Optional[str] = None


class ParticipantsList(BaseModel):
    items: List[ParticipantProfile]
