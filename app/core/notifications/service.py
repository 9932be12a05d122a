from __future__ import annotations

from typing import List
from uuid import UUID

from sqlalchemy import and_, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.directory.service import DirectoryService
from app.db.base import utcnow
from app.db.models.notification import Notification
from app.utils.exceptions import NotFoundException


class NotificationService:
    """User inbox reads and read-marking."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def list_for_user(self, user_id: UUID, *, limit: int = 50, unread_only: bool = False) -> List[Notification]:
        event_ids = await DirectoryService(self.session).list_active_event_ids(user_id)

        visible = [
            Notification.user_id == user_id,
            Notification.target_type == "all",
        ]
        if event_ids:
            visible.append(
                and_(
                    Notification.target_type == "event_participants",
                    Notification.target_event_id.in_(event_ids),
                )
            )

        stmt = select(Notification).where(or_(*visible))
        if unread_only:
            stmt = stmt.where(Notification.read_at.is_(None))
        stmt = stmt.order_by(Notification.created_at.desc()).limit(limit)
        return list((await self.session.execute(stmt)).scalars().all())

    async def mark_read(self, notification_id: UUID, user_id: UUID) -> Notification:
        notification = await self.session.get(Notification, notification_id)
        # Broadcast rows carry no per-user read state.
        if notification is None or notification.user_id != user_id:
            raise NotFoundException("Notification not found")

        if notification.read_at is None:
            notification.read_at = utcnow()
            await self.session.commit()
            await self.session.refresh(notification)
        return notification
