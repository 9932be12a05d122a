"""Write paths for notification rows.

The privileged path runs with service-role credentials and performs no
row-level checks. The standard path runs as the calling user and applies
the same policy the store enforces for ordinary users.
"""

from __future__ import annotations

import logging
from typing import Optional, Protocol
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.config import settings
from app.core.directory.service import DirectoryService
from app.db.models.notification import Notification
from app.schemas.notification import NotificationCreate
from app.utils.exceptions import NotificationDeliveryError

logger = logging.getLogger(__name__)


class NotificationWriter(Protocol):
    name: str

    async def write(self, record: NotificationCreate) -> UUID: ...


def _to_row(record: NotificationCreate) -> Notification:
    return Notification(
        user_id=record.user_id,
        title=record.title,
        message=record.message,
        notification_type=record.notification_type,
        target_type=record.target_type,
        target_event_id=record.target_event_id,
        related_event_id=record.related_event_id,
        metadata_=dict(record.metadata),
        sent_by=record.sent_by,
        read_at=None,
        status="sent",
    )


async def _insert(session: AsyncSession, record: NotificationCreate) -> UUID:
    row = _to_row(record)
    session.add(row)
    try:
        await session.commit()
    except SQLAlchemyError as exc:
        await session.rollback()
        raise NotificationDeliveryError(f"insert failed: {exc.__class__.__name__}") from exc
    return row.id


class PrivilegedNotificationWriter:
    name = "privileged"

    def __init__(self, session_factory: async_sessionmaker, *, enabled: Optional[bool] = None):
        self._session_factory = session_factory
        self._enabled = settings.NOTIFICATIONS_PRIVILEGED_ENABLED if enabled is None else enabled

    async def write(self, record: NotificationCreate) -> UUID:
        if not self._enabled:
            raise NotificationDeliveryError("privileged path disabled")
        async with self._session_factory() as session:
            return await _insert(session, record)


class StandardNotificationWriter:
    name = "standard"

    def __init__(self, session_factory: async_sessionmaker, *, actor_id: Optional[UUID]):
        self._session_factory = session_factory
        self._actor_id = actor_id

    async def write(self, record: NotificationCreate) -> UUID:
        async with self._session_factory() as session:
            await self._check_policy(session, record)
            return await _insert(session, record)

    async def _check_policy(self, session: AsyncSession, record: NotificationCreate) -> None:
        actor = self._actor_id
        if actor is None:
            raise NotificationDeliveryError("policy: anonymous caller")
        if record.sent_by is not None and record.sent_by != actor:
            raise NotificationDeliveryError("policy: sent_by must be the caller")

        directory = DirectoryService(session)
        if await directory.is_admin(actor):
            return

        if record.target_type != "specific":
            raise NotificationDeliveryError(f"policy: target_type={record.target_type} requires admin")
        if record.user_id == actor:
            return
        if record.target_event_id is None:
            raise NotificationDeliveryError("policy: cross-user notification without event scope")

        # Both ends must share the event for a user-to-user notification.
        sender_ok = await directory.is_active_participant(record.target_event_id, actor)
        target_ok = record.user_id is not None and await directory.is_active_participant(
            record.target_event_id, record.user_id
        )
        if not (sender_ok and target_ok):
            raise NotificationDeliveryError("policy: sender and addressee must share the event")
