from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.api import deps
from app.core.matching.service import MatchingService
from app.core.notifications.dispatcher import NotificationDispatcher
from app.db.models.user import UserProfile
from app.schemas.matching import MatchingConfig, MatchingConfigRequest, MatchingRunResult

router = APIRouter()


@router.get("/events/{event_id}/matching/config", response_model=MatchingConfig)
async def get_matching_config(
    event_id: UUID,
    admin: UserProfile = Depends(deps.require_admin),
    db: AsyncSession = Depends(deps.get_db),
):
    return await MatchingService(db).get_config(event_id)


@router.put("/events/{event_id}/matching/config", response_model=MatchingConfig)
async def put_matching_config(
    event_id: UUID,
    data: MatchingConfigRequest,
    admin: UserProfile = Depends(deps.require_admin),
    db: AsyncSession = Depends(deps.get_db),
):
    return await MatchingService(db).upsert_config(event_id, data)


@router.post("/events/{event_id}/matching/run", response_model=MatchingRunResult)
async def run_matching(
    event_id: UUID,
    data: Optional[MatchingConfigRequest] = None,
    admin: UserProfile = Depends(deps.require_admin),
    dispatcher: NotificationDispatcher = Depends(deps.get_notification_dispatcher),
    db: AsyncSession = Depends(deps.get_db),
):
    service = MatchingService(db, dispatcher)
    return await service.run(event_id, admin.id, data)
