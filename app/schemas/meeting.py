from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field
from pydantic.config import ConfigDict

from app.schemas.common import ProfileSummary


class MeetingCreateRequest(BaseModel):
    # Optional at the schema level so a missing receiver maps to E002/400 rather than 422.
    receiver_id: Optional[UUID] = None
    message: Optional[str] = Field(default=None, max_length=1000)


class MeetingTransitionRequest(BaseModel):
    status: str
    slot_id: Optional[UUID] = None


class Meeting(BaseModel):
    id: UUID
    event_id: UUID
    requester_id: UUID
    receiver_id: UUID
    status: str
    slot_id: Optional[UUID] = None
    message: Optional[str] = None
    created_at: datetime
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class MeetingWithProfiles(Meeting):
    requester: ProfileSummary
    receiver: ProfileSummary
    other_profile: ProfileSummary
    is_received: bool


class MeetingsList(BaseModel):
    items: List[MeetingWithProfiles]


class MeetingMessageCreateRequest(BaseModel):
    content: Optional[str] = Field(default=None, max_length=5000)


class MeetingMessage(BaseModel):
    id: UUID
    meeting_id: UUID
    sender_id: UUID
    content: str
    created_at: datetime
    sender: Optional[ProfileSummary] = None

    model_config = ConfigDict(from_attributes=True)


class MeetingMessagesList(BaseModel):
    items: List[MeetingMessage]


class ReadReceipt(BaseModel):
    last_read_at: Optional[datetime] = None
