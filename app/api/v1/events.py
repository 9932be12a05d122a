from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.api import deps
from app.core.directory.service import DirectoryService
from app.core.matching.service import MatchingService
from app.db.models.user import UserProfile
from app.schemas.event import ParticipantProfile, ParticipantsList, TimeSlot, TimeSlotsList
from app.schemas.matching import MatchRecommendationsList
from app.utils.exceptions import NotFoundException

router = APIRouter()


async def _require_event(directory: DirectoryService, event_id: UUID) -> None:
    if await directory.get_event(event_id) is None:
        raise NotFoundException("Event not found")


@router.get("/{event_id}/time-slots", response_model=TimeSlotsList)
async def list_time_slots(
    event_id: UUID,
    current_user: UserProfile = Depends(deps.get_current_user),
    db: AsyncSession = Depends(deps.get_db),
):
    directory = DirectoryService(db)
    await _require_event(directory, event_id)
    rows = await directory.list_time_slots(event_id)
    return TimeSlotsList(
        items=[
            TimeSlot(
                id=slot.id,
                event_id=slot.event_id,
                start_time=slot.start_time,
                end_time=slot.end_time,
                is_blocked=slot.is_blocked,
                is_booked=is_booked,
            )
            for slot, is_booked in rows
        ]
    )


@router.get("/{event_id}/participants", response_model=ParticipantsList)
async def search_participants(
    event_id: UUID,
    q: Optional[str] = Query(None, max_length=100),
    limit: int = Query(1000, ge=1, le=1000),
    current_user: UserProfile = Depends(deps.get_current_user),
    db: AsyncSession = Depends(deps.get_db),
):
    directory = DirectoryService(db)
    await _require_event(directory, event_id)
    profiles = await directory.search_participants(event_id, viewer_id=current_user.id, q=q, limit=limit)
    return ParticipantsList(
        items=[
            ParticipantProfile(
                id=p.id,
                user_id=p.id,
                nickname=p.nickname,
                role=p.role,
                job_title=p.job_title,
                work_field=p.work_field,
                company=p.company,
                interest_keywords=list(p.interest_keywords or []),
                profile_image_url=p.profile_image_url,
                introduction=p.introduction,
            )
            for p in profiles
        ]
    )


@router.get("/{event_id}/matching/recommendations", response_model=MatchRecommendationsList)
async def my_recommendations(
    event_id: UUID,
    current_user: UserProfile = Depends(deps.get_current_user),
    db: AsyncSession = Depends(deps.get_db),
):
    service = MatchingService(db)
    return MatchRecommendationsList(items=await service.list_recommendations(event_id, current_user.id))
