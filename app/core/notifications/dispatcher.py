from __future__ import annotations

import logging
from enum import Enum
from typing import Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import async_sessionmaker

from app.core.notifications.writers import (
    NotificationWriter,
    PrivilegedNotificationWriter,
    StandardNotificationWriter,
)
from app.schemas.notification import NotificationCreate
from app.utils.metrics import NOTIFICATION_DELIVERIES_TOTAL
from app.utils.observability import log_fields

logger = logging.getLogger(__name__)


class DispatchOutcome(str, Enum):
    DELIVERED_PRIVILEGED = "delivered_privileged"
    DELIVERED_STANDARD = "delivered_standard"
    FAILED = "failed"


def _emit(outcome: DispatchOutcome) -> None:
    try:
        NOTIFICATION_DELIVERIES_TOTAL.labels(outcome=outcome.value).inc()
    except Exception:
        pass


class NotificationDispatcher:
    """Best-effort notification delivery: privileged path first, then standard.

    `dispatch` never raises; callers treat delivery as fire-and-forget.
    """

    def __init__(self, privileged: NotificationWriter, standard: NotificationWriter):
        self._attempts: tuple[tuple[NotificationWriter, DispatchOutcome], ...] = (
            (privileged, DispatchOutcome.DELIVERED_PRIVILEGED),
            (standard, DispatchOutcome.DELIVERED_STANDARD),
        )

    async def dispatch(self, record: NotificationCreate) -> DispatchOutcome:
        for writer, outcome in self._attempts:
            try:
                notification_id = await writer.write(record)
            except Exception as exc:
                logger.warning(
                    "notifications.write_failed %s",
                    log_fields(
                        path=writer.name,
                        type=record.notification_type,
                        user_id=record.user_id,
                        error=repr(exc),
                    ),
                )
                continue

            logger.info(
                "notifications.delivered %s",
                log_fields(
                    path=writer.name,
                    type=record.notification_type,
                    user_id=record.user_id,
                    notification_id=notification_id,
                ),
            )
            _emit(outcome)
            return outcome

        logger.error(
            "notifications.dispatch_failed %s",
            log_fields(type=record.notification_type, user_id=record.user_id, metadata=record.metadata),
        )
        _emit(DispatchOutcome.FAILED)
        return DispatchOutcome.FAILED


def build_dispatcher(
    *,
    actor_id: Optional[UUID],
    session_factory: async_sessionmaker,
    privileged_session_factory: async_sessionmaker,
    privileged_enabled: Optional[bool] = None,
) -> NotificationDispatcher:
    return NotificationDispatcher(
        privileged=PrivilegedNotificationWriter(privileged_session_factory, enabled=privileged_enabled),
        standard=StandardNotificationWriter(session_factory, actor_id=actor_id),
    )
