from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.api import deps
from app.core.meetings.service import MeetingService
from app.core.notifications.dispatcher import NotificationDispatcher
from app.db.models.user import UserProfile
from app.schemas.meeting import (
    Meeting,
    MeetingCreateRequest,
    MeetingMessage,
    MeetingMessageCreateRequest,
    MeetingMessagesList,
    MeetingsList,
    MeetingTransitionRequest,
    ReadReceipt,
)

router = APIRouter()


@router.post("/events/{event_id}/meetings", response_model=Meeting)
async def request_meeting(
    event_id: UUID,
    data: MeetingCreateRequest,
    current_user: UserProfile = Depends(deps.get_current_user),
    dispatcher: NotificationDispatcher = Depends(deps.get_notification_dispatcher),
    db: AsyncSession = Depends(deps.get_db),
):
    service = MeetingService(db, dispatcher)
    return await service.request(event_id, current_user.id, data.receiver_id, data.message)


@router.get("/events/{event_id}/meetings", response_model=MeetingsList)
async def list_meetings(
    event_id: UUID,
    current_user: UserProfile = Depends(deps.get_current_user),
    db: AsyncSession = Depends(deps.get_db),
):
    service = MeetingService(db)
    return MeetingsList(items=await service.list_meetings(current_user.id, event_id))


@router.patch("/events/{event_id}/meetings/{meeting_id}", response_model=Meeting)
async def transition_meeting(
    event_id: UUID,
    meeting_id: UUID,
    data: MeetingTransitionRequest,
    current_user: UserProfile = Depends(deps.get_current_user),
    dispatcher: NotificationDispatcher = Depends(deps.get_notification_dispatcher),
    db: AsyncSession = Depends(deps.get_db),
):
    service = MeetingService(db, dispatcher)
    return await service.transition(event_id, meeting_id, current_user.id, data.status, data.slot_id)


@router.post("/events/{event_id}/meetings/{meeting_id}/messages", response_model=MeetingMessage)
async def post_message(
    event_id: UUID,
    meeting_id: UUID,
    data: MeetingMessageCreateRequest,
    current_user: UserProfile = Depends(deps.get_current_user),
    dispatcher: NotificationDispatcher = Depends(deps.get_notification_dispatcher),
    db: AsyncSession = Depends(deps.get_db),
):
    service = MeetingService(db, dispatcher)
    return await service.post_message(event_id, meeting_id, current_user.id, data.content)


@router.get("/events/{event_id}/meetings/{meeting_id}/messages", response_model=MeetingMessagesList)
async def list_messages(
    event_id: UUID,
    meeting_id: UUID,
    current_user: UserProfile = Depends(deps.get_current_user),
    db: AsyncSession = Depends(deps.get_db),
):
    service = MeetingService(db)
    return MeetingMessagesList(items=await service.list_messages(event_id, meeting_id, current_user.id))


@router.get("/meetings/{meeting_id}/read-receipt", response_model=ReadReceipt)
async def read_receipt(
    meeting_id: UUID,
    current_user: UserProfile = Depends(deps.get_current_user),
    db: AsyncSession = Depends(deps.get_db),
):
    service = MeetingService(db)
    return ReadReceipt(last_read_at=await service.read_receipt(meeting_id, current_user.id))
