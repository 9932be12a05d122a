"""Meeting lifecycle rules.

    pending  -> accepted | declined   (receiver)
    pending  -> canceled              (requester)
    accepted -> confirmed             (requester or receiver, needs a slot)
    accepted -> canceled              (requester)

declined, canceled and confirmed are terminal. Functions here are pure and
raise API exceptions; the store-backed service applies the result.
"""

from __future__ import annotations

from typing import Iterable, Optional
from uuid import UUID

from app.utils.exceptions import BadRequestException, FailedPreconditionException, ForbiddenException

TARGET_STATUSES: tuple[str, ...] = ("accepted", "declined", "canceled", "confirmed")

ALLOWED_TRANSITIONS: dict[str, frozenset[str]] = {
    "pending": frozenset({"accepted", "declined", "canceled"}),
    "accepted": frozenset({"confirmed", "canceled"}),
}


def validate_target_status(target_status: str) -> None:
    if target_status not in TARGET_STATUSES:
        raise BadRequestException(
            "Invalid status",
            details={"status": target_status, "allowed": list(TARGET_STATUSES)},
        )


def authorize_transition(
    *,
    requester_id: UUID,
    receiver_id: UUID,
    current_status: str,
    actor_id: UUID,
    target_status: str,
    slot_id: Optional[UUID] = None,
) -> None:
    """Raise unless `actor_id` may move the meeting from current to target status."""
    validate_target_status(target_status)

    if target_status in ("accepted", "declined") and actor_id != receiver_id:
        raise ForbiddenException("Only receiver can accept/decline")
    if target_status == "canceled" and actor_id != requester_id:
        raise ForbiddenException("Only requester can cancel")
    if target_status == "confirmed" and actor_id not in (requester_id, receiver_id):
        raise ForbiddenException("Only participants can confirm")

    if target_status == "confirmed":
        if current_status != "accepted":
            raise FailedPreconditionException(
                "Meeting must be accepted before confirmation",
                details={"status": current_status},
            )
        if slot_id is None:
            raise BadRequestException("Slot ID is required for confirmation")
        return

    if target_status not in ALLOWED_TRANSITIONS.get(current_status, frozenset()):
        raise FailedPreconditionException(
            f"Cannot change meeting from {current_status} to {target_status}",
            details={"status": current_status, "target": target_status},
        )


def other_participant(*, requester_id: UUID, receiver_id: UUID, user_id: UUID) -> UUID:
    return receiver_id if user_id == requester_id else requester_id


def is_participant(*, requester_id: UUID, receiver_id: UUID, user_id: UUID) -> bool:
    return user_id in (requester_id, receiver_id)


def slot_taken_by_other(holder_ids: Iterable[UUID], meeting_id: UUID) -> bool:
    """True when a meeting other than `meeting_id` holds the slot as confirmed."""
    return any(h != meeting_id for h in holder_ids)


def chat_preview(content: str, limit: int = 50) -> str:
    if len(content) <= limit:
        return content
    return content[:limit] + "..."
