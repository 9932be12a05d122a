from __future__ import annotations

import logging
import random
import uuid
from typing import List, Optional
from uuid import UUID

from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.directory.service import DirectoryService
from app.core.matching.scoring import (
    CandidateProfile,
    EffectiveConfig,
    build_exclusion_pairs,
    merge_scoring_weights,
    recommend_for_event,
)
from app.core.notifications.dispatcher import NotificationDispatcher
from app.db.base import utcnow
from app.db.models.matching import MatchingConfig, MatchRecommendation
from app.db.models.meeting import Meeting
from app.schemas.common import ProfileSummary
from app.schemas.matching import MatchingConfig as MatchingConfigOut
from app.schemas.matching import MatchingConfigRequest, MatchingRunResult
from app.schemas.matching import MatchRecommendation as MatchRecommendationOut
from app.schemas.notification import NotificationCreate
from app.utils.exceptions import ForbiddenException, InternalException, NotFoundException
from app.utils.metrics import MATCHING_RUNS_TOTAL
from app.utils.observability import log_duration, log_fields

logger = logging.getLogger(__name__)


def _emit(result: str) -> None:
    try:
        MATCHING_RUNS_TOTAL.labels(result=result).inc()
    except Exception:
        pass


class MatchingService:
    def __init__(
        self,
        session: AsyncSession,
        dispatcher: Optional[NotificationDispatcher] = None,
        rng: Optional[random.Random] = None,
    ):
        self.session = session
        self.dispatcher = dispatcher
        self.rng = rng or random.Random()
        self.directory = DirectoryService(session)

    async def get_config(self, event_id: UUID) -> MatchingConfigOut:
        await self._require_event(event_id)
        row = await self.session.get(MatchingConfig, event_id)
        if row is None:
            eff = EffectiveConfig.defaults()
            return MatchingConfigOut(
                event_id=event_id,
                max_requests_per_user=eff.max_requests_per_user,
                scoring_weights=eff.scoring_weights(),
                is_default=True,
            )
        return MatchingConfigOut(
            event_id=row.event_id,
            max_requests_per_user=row.max_requests_per_user,
            scoring_weights=dict(row.scoring_weights or {}),
            updated_at=row.updated_at,
        )

    async def upsert_config(self, event_id: UUID, config_in: MatchingConfigRequest) -> MatchingConfigOut:
        await self._require_event(event_id)
        row = await self.session.get(MatchingConfig, event_id)
        if row is None:
            row = MatchingConfig(
                event_id=event_id,
                max_requests_per_user=EffectiveConfig.defaults().max_requests_per_user,
                scoring_weights={},
            )
            self.session.add(row)

        if config_in.max_requests_per_user is not None:
            row.max_requests_per_user = config_in.max_requests_per_user
        if config_in.scoring_weights is not None:
            row.scoring_weights = config_in.scoring_weights.model_dump(exclude_none=True)
        row.updated_at = utcnow()

        await self.session.commit()
        await self.session.refresh(row)
        logger.info(
            "matching.config_saved %s",
            log_fields(event_id=event_id, max_requests_per_user=row.max_requests_per_user),
        )
        return MatchingConfigOut(
            event_id=row.event_id,
            max_requests_per_user=row.max_requests_per_user,
            scoring_weights=dict(row.scoring_weights or {}),
            updated_at=row.updated_at,
        )

    async def run(
        self,
        event_id: UUID,
        actor_id: UUID,
        override: Optional[MatchingConfigRequest] = None,
    ) -> MatchingRunResult:
        if not await self.directory.is_admin(actor_id):
            raise ForbiddenException("Admin access required")
        await self._require_event(event_id)

        config = await self._effective_config(event_id, override)
        batch_id = uuid.uuid4()

        with log_duration(logger, "matching.run", event_id=event_id, batch_id=batch_id):
            pairs = (
                await self.session.execute(
                    select(Meeting.requester_id, Meeting.receiver_id).where(
                        Meeting.event_id == event_id,
                        Meeting.status.in_(config.excluded_statuses()),
                    )
                )
            ).all()
            excluded = build_exclusion_pairs((a, b) for a, b in pairs)

            try:
                participants = await self.directory.list_active_participants(event_id)
            except SQLAlchemyError as exc:
                await self.session.rollback()
                _emit("error")
                logger.error("matching.participants_failed %s", log_fields(event_id=event_id, error=repr(exc)))
                raise InternalException("Failed to fetch participants")

            pool = [CandidateProfile.from_profile(uid, p) for uid, p in participants if p is not None]
            picks = recommend_for_event(pool, excluded, config, self.rng)

            rows = [
                MatchRecommendation(
                    event_id=event_id,
                    user_id=user_id,
                    recommended_user_id=c.candidate_id,
                    score=c.score,
                    match_reasons=c.reasons,
                    batch_id=batch_id,
                )
                for user_id, candidates in picks.items()
                for c in candidates
            ]

            self.session.add_all(rows)
            try:
                await self.session.commit()
            except SQLAlchemyError as exc:
                await self.session.rollback()
                _emit("error")
                logger.error("matching.insert_failed %s", log_fields(event_id=event_id, error=repr(exc)))
                raise InternalException("Failed to save recommendations")

            # Older batches go only after the new one is durable.
            try:
                await self.session.execute(
                    delete(MatchRecommendation).where(
                        MatchRecommendation.event_id == event_id,
                        MatchRecommendation.batch_id != batch_id,
                    )
                )
                await self.session.commit()
            except SQLAlchemyError as exc:
                await self.session.rollback()
                logger.warning("matching.cleanup_failed %s", log_fields(event_id=event_id, error=repr(exc)))

        _emit("success")
        logger.info(
            "matching.completed %s",
            log_fields(event_id=event_id, batch_id=batch_id, count=len(rows), participants=len(participants)),
        )

        if self.dispatcher is not None:
            await self.dispatcher.dispatch(
                NotificationCreate(
                    user_id=None,
                    title="Your recommendations are ready",
                    message="New conversation partners have been recommended for you.",
                    notification_type="matching_ready",
                    target_type="event_participants",
                    target_event_id=event_id,
                    related_event_id=event_id,
                    metadata={"batch_id": str(batch_id)},
                    sent_by=actor_id,
                )
            )

        return MatchingRunResult(
            batch_id=batch_id,
            count=len(rows),
            message=f"Generated {len(rows)} recommendations for {len(participants)} participants.",
        )

    async def list_recommendations(self, event_id: UUID, user_id: UUID) -> List[MatchRecommendationOut]:
        rows = (
            await self.session.execute(
                select(MatchRecommendation)
                .where(MatchRecommendation.event_id == event_id, MatchRecommendation.user_id == user_id)
                .order_by(MatchRecommendation.score.desc())
            )
        ).scalars().all()
        profiles = await self.directory.get_profiles({r.recommended_user_id for r in rows})

        out: List[MatchRecommendationOut] = []
        for r in rows:
            p = profiles.get(r.recommended_user_id)
            if p is None:
                profile = ProfileSummary.unknown(r.recommended_user_id).model_dump(mode="json")
            else:
                profile = ProfileSummary.model_validate(p).model_dump(mode="json")
                profile["interest_keywords"] = list(p.interest_keywords or [])
                profile["introduction"] = p.introduction
            out.append(
                MatchRecommendationOut(
                    id=r.id,
                    event_id=r.event_id,
                    user_id=r.user_id,
                    recommended_user_id=r.recommended_user_id,
                    score=r.score,
                    match_reasons=dict(r.match_reasons or {}),
                    batch_id=r.batch_id,
                    created_at=r.created_at,
                    recommended_profile=profile,
                )
            )
        return out

    async def _effective_config(self, event_id: UUID, override: Optional[MatchingConfigRequest]) -> EffectiveConfig:
        row = await self.session.get(MatchingConfig, event_id)
        max_requests = row.max_requests_per_user if row is not None else None
        weights = dict(row.scoring_weights or {}) if row is not None else {}

        # A run override only replaces the fields it sets.
        if override is not None:
            if override.max_requests_per_user is not None:
                max_requests = override.max_requests_per_user
            if override.scoring_weights is not None:
                weights = merge_scoring_weights(
                    weights, override.scoring_weights.model_dump(exclude_unset=True, exclude_none=True)
                )
        return EffectiveConfig.resolve(max_requests, weights)

    async def _require_event(self, event_id: UUID) -> None:
        if await self.directory.get_event(event_id) is None:
            raise NotFoundException("Event not found")
