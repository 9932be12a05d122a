"""Pure scoring for the matching batch.

No I/O here; the service feeds in profiles and meeting pairs and persists
whatever `recommend_for_event` returns.
"""

from __future__ import annotations

import random
from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping, Optional, Sequence
from uuid import UUID

from app.config import settings
from app.db.models.meeting import pair_key

BASE_EXCLUDED_STATUSES: tuple[str, ...] = ("pending", "accepted", "confirmed")


@dataclass(frozen=True)
class EffectiveConfig:
    max_requests_per_user: int
    interest_match: int
    same_work_field: int
    exclude_declined: bool = False
    exclude_canceled: bool = False

    @classmethod
    def defaults(cls) -> "EffectiveConfig":
        return cls(
            max_requests_per_user=settings.MATCHING_DEFAULT_MAX_REQUESTS_PER_USER,
            interest_match=settings.MATCHING_DEFAULT_INTEREST_WEIGHT,
            same_work_field=settings.MATCHING_DEFAULT_SAME_WORK_FIELD_WEIGHT,
        )

    @classmethod
    def resolve(
        cls,
        max_requests_per_user: Optional[int],
        scoring_weights: Optional[Mapping[str, Any]],
    ) -> "EffectiveConfig":
        """Fill missing keys of a stored/override config with defaults."""
        base = cls.defaults()
        weights = dict(scoring_weights or {})
        rules = weights.get("rules") or {}

        def _weight(key: str, fallback: int) -> int:
            value = weights.get(key)
            return fallback if value is None else int(value)

        return cls(
            max_requests_per_user=int(max_requests_per_user or base.max_requests_per_user),
            interest_match=_weight("interest_match", base.interest_match),
            same_work_field=_weight("same_work_field", base.same_work_field),
            exclude_declined=bool(rules.get("exclude_declined", False)),
            exclude_canceled=bool(rules.get("exclude_canceled", False)),
        )

    def excluded_statuses(self) -> tuple[str, ...]:
        statuses = list(BASE_EXCLUDED_STATUSES)
        if self.exclude_declined:
            statuses.append("declined")
        if self.exclude_canceled:
            statuses.append("canceled")
        return tuple(statuses)

    def scoring_weights(self) -> dict[str, Any]:
        return {
            "interest_match": self.interest_match,
            "same_work_field": self.same_work_field,
            "rules": {
                "exclude_declined": self.exclude_declined,
                "exclude_canceled": self.exclude_canceled,
            },
        }


def merge_scoring_weights(
    stored: Optional[Mapping[str, Any]], override: Optional[Mapping[str, Any]]
) -> dict[str, Any]:
    """Layer the keys an override sets onto stored weights; `rules` merge per key."""
    merged = dict(stored or {})
    for key, value in (override or {}).items():
        if key == "rules" and isinstance(value, Mapping):
            merged["rules"] = {**dict(merged.get("rules") or {}), **dict(value)}
        else:
            merged[key] = value
    return merged


@dataclass(frozen=True)
class CandidateProfile:
    user_id: UUID
    interest_keywords: tuple[str, ...] = ()
    work_field: Optional[str] = None

    @classmethod
    def from_profile(cls, user_id: UUID, profile: Any) -> "CandidateProfile":
        keywords = getattr(profile, "interest_keywords", None) or []
        return cls(
            user_id=user_id,
            interest_keywords=tuple(str(k) for k in keywords),
            work_field=getattr(profile, "work_field", None) or None,
        )


@dataclass
class ScoredCandidate:
    candidate_id: UUID
    score: int
    reasons: dict[str, Any] = field(default_factory=dict)


def build_exclusion_pairs(meeting_pairs: Iterable[tuple[UUID, UUID]]) -> set[str]:
    return {pair_key(a, b) for a, b in meeting_pairs}


def _summary(reasons: Mapping[str, Any], work_field: Optional[str]) -> str:
    parts: list[str] = []
    if reasons.get("same_work_field"):
        parts.append(f"You both work in {work_field}.")
    common = reasons.get("common_interests") or []
    if common:
        interests = ", ".join(common)
        if parts:
            parts.append(f"You also share an interest in {interests}.")
        else:
            parts.append(f"Recommended for your shared interest in {interests}.")
    elif parts:
        parts.append("Your work overlaps, so there may be good synergy.")
    else:
        parts.append("How about meeting someone from a new field?")
    return " ".join(parts)


def score_candidate(
    user: CandidateProfile,
    candidate: CandidateProfile,
    config: EffectiveConfig,
    rng: random.Random,
    jitter: Optional[float] = None,
) -> ScoredCandidate:
    score = 0.0
    reasons: dict[str, Any] = {}

    if user.work_field and user.work_field == candidate.work_field:
        score += config.same_work_field
        reasons["same_work_field"] = True

    mine = set(user.interest_keywords)
    common = [k for k in candidate.interest_keywords if k in mine]
    if common:
        score += len(common) * config.interest_match
        reasons["common_interests"] = common

    reasons["summary"] = _summary(reasons, user.work_field)

    # Tie diversification only; uniform in [0, jitter).
    span = settings.MATCHING_SCORE_JITTER if jitter is None else jitter
    score += rng.random() * span

    return ScoredCandidate(candidate_id=candidate.user_id, score=int(round(score)), reasons=reasons)


def select_top(scored: Sequence[ScoredCandidate], limit: int) -> list[ScoredCandidate]:
    return sorted(scored, key=lambda c: c.score, reverse=True)[: max(limit, 0)]


def recommend_for_event(
    participants: Sequence[CandidateProfile],
    excluded_pairs: set[str],
    config: EffectiveConfig,
    rng: Optional[random.Random] = None,
    jitter: Optional[float] = None,
) -> dict[UUID, list[ScoredCandidate]]:
    """Top candidates per participant, skipping self and excluded pairs."""
    rng = rng or random.Random()
    out: dict[UUID, list[ScoredCandidate]] = {}
    for user in participants:
        scored = [
            score_candidate(user, candidate, config, rng, jitter)
            for candidate in participants
            if candidate.user_id != user.user_id
            and pair_key(user.user_id, candidate.user_id) not in excluded_pairs
        ]
        out[user.user_id] = select_top(scored, config.max_requests_per_user)
    return out
