import uuid
from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Index, JSON, String, Text, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column
from app.db.base import Base, utcnow

class Notification(Base):
    __tablename__ = "notifications"

    id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    # NULL for broadcast notifications (target_type 'all' / 'event_participants').
    user_id: Mapped[uuid.UUID | None] = mapped_column(Uuid(as_uuid=True), ForeignKey('user_profiles.id', ondelete='CASCADE'), index=True)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    notification_type: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    target_type: Mapped[str] = mapped_column(String(30), nullable=False, default='specific')
    target_event_id: Mapped[uuid.UUID | None] = mapped_column(Uuid(as_uuid=True), ForeignKey('events.id', ondelete='CASCADE'), index=True)
    related_event_id: Mapped[uuid.UUID | None] = mapped_column(Uuid(as_uuid=True), ForeignKey('events.id', ondelete='SET NULL'))
    metadata_: Mapped[dict | None] = mapped_column("metadata", JSON, default=dict)
    sent_by: Mapped[uuid.UUID | None] = mapped_column(Uuid(as_uuid=True), ForeignKey('user_profiles.id', ondelete='SET NULL'))
    read_at: Mapped[DateTime | None] = mapped_column(DateTime(timezone=True))
    status: Mapped[str] = mapped_column(String(20), nullable=False, default='sent')
    created_at: Mapped[DateTime] = mapped_column(DateTime(timezone=True), default=utcnow, server_default=func.now(), index=True)

    __table_args__ = (
        CheckConstraint("target_type IN ('all', 'specific', 'event_participants')", name='chk_notification_target_type'),
        CheckConstraint("target_type != 'specific' OR user_id IS NOT NULL", name='chk_notification_specific_has_user'),
        Index('ix_notifications_user_type', 'user_id', 'notification_type'),
    )
