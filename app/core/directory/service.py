from __future__ import annotations

from typing import Iterable, Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.models.event import Event, EventParticipant, TimeSlot
from app.db.models.meeting import Meeting
from app.db.models.user import AdminAccount, UserProfile

ACTIVE_PARTICIPANT_STATUS = "confirmed"


class DirectoryService:
    """Read-only access to events, participants and profiles."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_event(self, event_id: UUID) -> Optional[Event]:
        return await self.session.get(Event, event_id)

    async def get_profile(self, user_id: UUID) -> Optional[UserProfile]:
        return await self.session.get(UserProfile, user_id)

    async def get_profiles(self, user_ids: Iterable[UUID]) -> dict[UUID, UserProfile]:
        ids = set(user_ids)
        if not ids:
            return {}
        rows = (
            await self.session.execute(select(UserProfile).where(UserProfile.id.in_(ids)))
        ).scalars().all()
        return {p.id: p for p in rows}

    async def is_admin(self, user_id: UUID) -> bool:
        return await self.session.get(AdminAccount, user_id) is not None

    async def is_active_participant(self, event_id: UUID, user_id: UUID) -> bool:
        found = (
            await self.session.execute(
                select(EventParticipant.id).where(
                    EventParticipant.event_id == event_id,
                    EventParticipant.user_id == user_id,
                    EventParticipant.status == ACTIVE_PARTICIPANT_STATUS,
                )
            )
        ).scalar_one_or_none()
        return found is not None

    async def list_active_participants(self, event_id: UUID) -> list[tuple[UUID, Optional[UserProfile]]]:
        """Active participants of the event with their profile (None when missing)."""
        rows = (
            await self.session.execute(
                select(EventParticipant.user_id, UserProfile)
                .join(UserProfile, UserProfile.id == EventParticipant.user_id, isouter=True)
                .where(
                    EventParticipant.event_id == event_id,
                    EventParticipant.status == ACTIVE_PARTICIPANT_STATUS,
                )
                .order_by(EventParticipant.joined_at)
            )
        ).all()
        return [(user_id, profile) for user_id, profile in rows]

    async def list_active_event_ids(self, user_id: UUID) -> list[UUID]:
        return list(
            (
                await self.session.execute(
                    select(EventParticipant.event_id).where(
                        EventParticipant.user_id == user_id,
                        EventParticipant.status == ACTIVE_PARTICIPANT_STATUS,
                    )
                )
            ).scalars().all()
        )

    async def search_participants(
        self,
        event_id: UUID,
        *,
        viewer_id: UUID,
        q: Optional[str] = None,
        limit: int = 1000,
    ) -> list[UserProfile]:
        participants = await self.list_active_participants(event_id)
        profiles = [p for uid, p in participants if p is not None and uid != viewer_id]

        needle = (q or "").strip().lower()
        if needle:
            # Keyword tags match exactly; free-text fields match as substrings.
            def _matches(p: UserProfile) -> bool:
                for value in (p.nickname, p.company, p.role, p.job_title, p.introduction):
                    if value and needle in value.lower():
                        return True
                return any(needle == str(k).lower() for k in (p.interest_keywords or []))

            profiles = [p for p in profiles if _matches(p)]

        return profiles[:limit]

    async def get_time_slot(self, slot_id: UUID) -> Optional[TimeSlot]:
        return await self.session.get(TimeSlot, slot_id)

    async def list_time_slots(self, event_id: UUID) -> list[tuple[TimeSlot, bool]]:
        """Bookable (non-blocked) slots ascending by start, paired with is_booked."""
        slots = (
            await self.session.execute(
                select(TimeSlot)
                .where(TimeSlot.event_id == event_id, TimeSlot.is_blocked.is_(False))
                .order_by(TimeSlot.start_time.asc())
            )
        ).scalars().all()

        booked = set(
            (
                await self.session.execute(
                    select(Meeting.slot_id).where(
                        Meeting.event_id == event_id,
                        Meeting.status == "confirmed",
                        Meeting.slot_id.is_not(None),
                    )
                )
            ).scalars().all()
        )
        return [(slot, slot.id in booked) for slot in slots]
