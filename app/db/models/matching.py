import uuid
from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Index, Integer, JSON, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column
from app.db.base import Base

class MatchingConfig(Base):
    __tablename__ = "event_matching_configs"

    event_id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), ForeignKey('events.id', ondelete='CASCADE'), primary_key=True)
    max_requests_per_user: Mapped[int] = mapped_column(Integer, nullable=False, default=5)
    scoring_weights: Mapped[dict | None] = mapped_column(JSON, default=dict)
    updated_at: Mapped[DateTime] = mapped_column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        CheckConstraint("max_requests_per_user >= 1", name='chk_matching_config_max_requests'),
    )


class MatchRecommendation(Base):
    __tablename__ = "event_match_recommendations"

    id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    event_id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), ForeignKey('events.id', ondelete='CASCADE'), nullable=False, index=True)
    user_id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), ForeignKey('user_profiles.id', ondelete='CASCADE'), nullable=False)
    recommended_user_id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), ForeignKey('user_profiles.id', ondelete='CASCADE'), nullable=False)
    score: Mapped[int] = mapped_column(Integer, nullable=False)
    match_reasons: Mapped[dict | None] = mapped_column(JSON, default=dict)
    batch_id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), nullable=False, index=True)
    created_at: Mapped[DateTime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        CheckConstraint("user_id != recommended_user_id", name='chk_match_recommendation_no_self'),
        Index('ix_match_recommendations_event_user', 'event_id', 'user_id'),
        Index('ix_match_recommendations_event_batch', 'event_id', 'batch_id'),
    )
