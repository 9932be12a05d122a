import uuid
from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Index, String, Text, Uuid, func, text
from sqlalchemy.orm import Mapped, mapped_column, relationship
from app.db.base import Base, utcnow

MEETING_STATUSES = ('pending', 'accepted', 'declined', 'canceled', 'confirmed')

# A pair of users may hold at most one meeting in these states per event.
ACTIVE_MEETING_STATUSES = ('pending', 'accepted', 'confirmed')

_ACTIVE_STATUS_SQL = "status IN (" + ", ".join(f"'{s}'" for s in ACTIVE_MEETING_STATUSES) + ")"


def pair_key(a: uuid.UUID, b: uuid.UUID) -> str:
    """Order-independent key for the (a, b) user pair."""
    lo, hi = sorted((str(a), str(b)))
    return f"{lo}:{hi}"


class Meeting(Base):
    __tablename__ = "event_meetings"

    id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    event_id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), ForeignKey('events.id', ondelete='CASCADE'), nullable=False, index=True)
    requester_id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), ForeignKey('user_profiles.id', ondelete='CASCADE'), nullable=False, index=True)
    receiver_id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), ForeignKey('user_profiles.id', ondelete='CASCADE'), nullable=False, index=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default='pending', index=True)
    slot_id: Mapped[uuid.UUID | None] = mapped_column(Uuid(as_uuid=True), ForeignKey('event_time_slots.id', ondelete='SET NULL'), index=True)
    message: Mapped[str | None] = mapped_column(Text)
    pair_key: Mapped[str] = mapped_column(String(80), nullable=False)
    created_at: Mapped[DateTime] = mapped_column(DateTime(timezone=True), default=utcnow, server_default=func.now(), index=True)
    updated_at: Mapped[DateTime] = mapped_column(DateTime(timezone=True), default=utcnow, server_default=func.now(), onupdate=utcnow)

    slot = relationship("TimeSlot")

    __table_args__ = (
        CheckConstraint(
            "status IN (" + ", ".join(f"'{s}'" for s in MEETING_STATUSES) + ")",
            name='chk_event_meeting_status',
        ),
        CheckConstraint("requester_id != receiver_id", name='chk_event_meeting_no_self'),
        Index(
            'uq_event_meetings_active_pair',
            'event_id',
            'pair_key',
            unique=True,
            sqlite_where=text(_ACTIVE_STATUS_SQL),
            postgresql_where=text(_ACTIVE_STATUS_SQL),
        ),
        Index(
            'uq_event_meetings_confirmed_slot',
            'slot_id',
            unique=True,
            sqlite_where=text("status = 'confirmed'"),
            postgresql_where=text("status = 'confirmed'"),
        ),
    )


class MeetingMessage(Base):
    __tablename__ = "event_meeting_messages"

    id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    meeting_id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), ForeignKey('event_meetings.id', ondelete='CASCADE'), nullable=False)
    sender_id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), ForeignKey('user_profiles.id', ondelete='CASCADE'), nullable=False, index=True)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[DateTime] = mapped_column(DateTime(timezone=True), default=utcnow, server_default=func.now())

    __table_args__ = (
        Index('ix_event_meeting_messages_meeting_created', 'meeting_id', 'created_at'),
    )
