from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.api import deps
from app.core.notifications.service import NotificationService
from app.db.models.user import UserProfile
from app.schemas.notification import Notification, NotificationsList

router = APIRouter()


@router.get("", response_model=NotificationsList)
async def list_notifications(
    limit: int = Query(50, ge=1, le=200),
    unread_only: bool = Query(False),
    current_user: UserProfile = Depends(deps.get_current_user),
    db: AsyncSession = Depends(deps.get_db),
):
    service = NotificationService(db)
    rows = await service.list_for_user(current_user.id, limit=limit, unread_only=unread_only)
    return NotificationsList(items=[Notification.from_row(r) for r in rows])


@router.post("/{notification_id}/read", response_model=Notification)
async def mark_read(
    notification_id: UUID,
    current_user: UserProfile = Depends(deps.get_current_user),
    db: AsyncSession = Depends(deps.get_db),
):
    service = NotificationService(db)
    return Notification.from_row(await service.mark_read(notification_id, current_user.id))
