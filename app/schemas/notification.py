from datetime import datetime
from typing import Any, Dict, List, Literal, Optional
from uuid import UUID

from pydantic import BaseModel, Field


TargetType = Literal["all", "specific", "event_participants"]


class NotificationCreate(BaseModel):
    """A notification record handed to the dispatcher."""

    user_id: Optional[UUID] = None
    title: str = Field(..., min_length=1, max_length=255)
    message: str = Field(..., min_length=1)
    notification_type: str = Field(..., min_length=1, max_length=50)
    target_type: TargetType = "specific"
    target_event_id: Optional[UUID] = None
    related_event_id: Optional[UUID] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)
    sent_by: Optional[UUID] = None


class Notification(BaseModel):
    id: UUID
    user_id: Optional[UUID] = None
    title: str
    message: str
    notification_type: str
    target_type: TargetType
    target_event_id: Optional[UUID] = None
    related_event_id: Optional[UUID] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)
    sent_by: Optional[UUID] = None
    read_at: Optional[datetime] = None
    status: str
    created_at: datetime

    @classmethod
    def from_row(cls, row: Any) -> "Notification":
        return cls(
            id=row.id,
            user_id=row.user_id,
            title=row.title,
            message=row.message,
            notification_type=row.notification_type,
            target_type=row.target_type,
            target_event_id=row.target_event_id,
            related_event_id=row.related_event_id,
            metadata=dict(row.metadata_ or {}),
            sent_by=row.sent_by,
            read_at=row.read_at,
            status=row.status,
            created_at=row.created_at,
        )


class NotificationsList(BaseModel):
    items: List[Notification]
