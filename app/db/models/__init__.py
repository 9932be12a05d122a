from app.db.base import Base
from .user import AdminAccount, UserProfile
from .event import Event, EventParticipant, TimeSlot
from .meeting import Meeting, MeetingMessage
from .notification import Notification
from .matching import MatchingConfig, MatchRecommendation

__all__ = [
    "Base",
    "UserProfile",
    "AdminAccount",
    "Event",
    "EventParticipant",
    "TimeSlot",
    "Meeting",
    "MeetingMessage",
    "Notification",
    "MatchingConfig",
    "MatchRecommendation",
]
