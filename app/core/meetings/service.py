from __future__ import annotations

import logging
from datetime import datetime
from typing import List, Optional
from uuid import UUID

from sqlalchemy import or_, select
from sqlalchemy import update as sql_update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.core.directory.service import DirectoryService
from app.core.meetings.state_machine import (
    authorize_transition,
    chat_preview,
    is_participant,
    other_participant,
    slot_taken_by_other,
    validate_target_status,
)
from app.core.notifications.dispatcher import NotificationDispatcher
from app.db.base import utcnow
from app.db.models.meeting import ACTIVE_MEETING_STATUSES, Meeting, MeetingMessage, pair_key
from app.db.models.notification import Notification
from app.schemas.common import ProfileSummary
from app.schemas.meeting import MeetingMessage as MeetingMessageOut
from app.schemas.meeting import MeetingWithProfiles
from app.schemas.notification import NotificationCreate
from app.utils.exceptions import (
    BadRequestException,
    ConflictException,
    ForbiddenException,
    NotFoundException,
)
from app.utils.metrics import MEETING_EVENTS_TOTAL
from app.utils.observability import log_fields

logger = logging.getLogger(__name__)

STATUS_COPY: dict[str, tuple[str, str]] = {
    "accepted": ("Meeting request accepted", "{name} accepted your meeting request."),
    "declined": ("Meeting request declined", "{name} declined your meeting request."),
    "confirmed": ("Meeting confirmed", "{name} confirmed the meeting time."),
    "canceled": ("Meeting canceled", "{name} canceled the meeting."),
}


def _emit(event: str, result: str) -> None:
    try:
        MEETING_EVENTS_TOTAL.labels(event=event, result=result).inc()
    except Exception:
        pass


class MeetingService:
    def __init__(self, session: AsyncSession, dispatcher: Optional[NotificationDispatcher] = None):
        self.session = session
        self.dispatcher = dispatcher
        self.directory = DirectoryService(session)

    async def request(
        self,
        event_id: UUID,
        requester_id: UUID,
        receiver_id: Optional[UUID],
        message: Optional[str] = None,
    ) -> Meeting:
        if receiver_id is None:
            raise BadRequestException("Receiver ID is required")
        if receiver_id == requester_id:
            raise BadRequestException("Cannot request a meeting with yourself")
        if await self.directory.get_event(event_id) is None:
            raise NotFoundException("Event not found")
        if await self.directory.get_profile(receiver_id) is None:
            raise NotFoundException("Receiver not found")

        key = pair_key(requester_id, receiver_id)
        existing = (
            await self.session.execute(
                select(Meeting.id).where(
                    Meeting.event_id == event_id,
                    Meeting.pair_key == key,
                    Meeting.status.in_(ACTIVE_MEETING_STATUSES),
                )
            )
        ).scalars().first()
        if existing is not None:
            _emit("request", "conflict")
            raise ConflictException("Meeting already exists or pending", details={"meeting_id": str(existing)})

        meeting = Meeting(
            event_id=event_id,
            requester_id=requester_id,
            receiver_id=receiver_id,
            status="pending",
            message=message,
            pair_key=key,
        )
        self.session.add(meeting)
        try:
            await self.session.commit()
        except IntegrityError:
            # Concurrent request for the same pair lost against the partial unique index.
            await self.session.rollback()
            _emit("request", "conflict")
            raise ConflictException("Meeting already exists or pending")
        await self.session.refresh(meeting)

        _emit("request", "success")
        logger.info(
            "meetings.requested %s",
            log_fields(meeting_id=meeting.id, event_id=event_id, requester_id=requester_id, receiver_id=receiver_id),
        )

        name = await self._display_name(requester_id)
        await self._notify(
            NotificationCreate(
                user_id=receiver_id,
                title="New meeting request",
                message=f"{name} requested a meeting",
                notification_type="meeting_request",
                target_event_id=event_id,
                related_event_id=event_id,
                metadata={"meeting_id": str(meeting.id)},
                sent_by=requester_id,
            )
        )
        return meeting

    async def transition(
        self,
        event_id: UUID,
        meeting_id: UUID,
        actor_id: UUID,
        target_status: str,
        slot_id: Optional[UUID] = None,
    ) -> Meeting:
        validate_target_status(target_status)
        meeting = await self._get_meeting(event_id, meeting_id)
        observed = meeting.status

        authorize_transition(
            requester_id=meeting.requester_id,
            receiver_id=meeting.receiver_id,
            current_status=observed,
            actor_id=actor_id,
            target_status=target_status,
            slot_id=slot_id,
        )

        values: dict = {"status": target_status, "updated_at": utcnow()}
        if target_status == "confirmed":
            slot = await self.directory.get_time_slot(slot_id)
            if slot is None or slot.event_id != meeting.event_id or slot.is_blocked:
                raise BadRequestException("Invalid slot", details={"slot_id": str(slot_id)})

            holders = (
                await self.session.execute(
                    select(Meeting.id).where(Meeting.slot_id == slot_id, Meeting.status == "confirmed")
                )
            ).scalars().all()
            if slot_taken_by_other(holders, meeting.id):
                _emit("transition", "conflict")
                raise ConflictException("This slot is already booked", details={"slot_id": str(slot_id)})
            values["slot_id"] = slot_id

        # Compare-and-set on the observed status; a concurrent transition leaves zero rows.
        stmt = (
            sql_update(Meeting)
            .where(Meeting.id == meeting_id, Meeting.status == observed)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        try:
            res = await self.session.execute(stmt)
            if int(getattr(res, "rowcount", 0) or 0) != 1:
                # Rollback expires loaded rows; only locals are read past this point.
                await self.session.rollback()
                _emit("transition", "conflict")
                raise ConflictException(
                    "Meeting was modified concurrently",
                    details={"meeting_id": str(meeting_id), "expected_status": observed},
                )
            await self.session.commit()
        except IntegrityError:
            await self.session.rollback()
            _emit("transition", "conflict")
            raise ConflictException("This slot is already booked", details={"slot_id": str(slot_id)})

        await self.session.refresh(meeting)

        _emit("transition", "success")
        logger.info(
            "meetings.transitioned %s",
            log_fields(meeting_id=meeting.id, actor_id=actor_id, from_status=observed, to_status=target_status),
        )

        title, body = STATUS_COPY[target_status]
        name = await self._display_name(actor_id)
        await self._notify(
            NotificationCreate(
                user_id=other_participant(
                    requester_id=meeting.requester_id, receiver_id=meeting.receiver_id, user_id=actor_id
                ),
                title=title,
                message=body.format(name=name),
                notification_type="meeting_status",
                target_event_id=meeting.event_id,
                related_event_id=meeting.event_id,
                metadata={"meeting_id": str(meeting.id), "status": target_status},
                sent_by=actor_id,
            )
        )
        return meeting

    async def post_message(
        self,
        event_id: UUID,
        meeting_id: UUID,
        sender_id: UUID,
        content: Optional[str],
    ) -> MeetingMessageOut:
        text = (content or "").strip()
        if not text:
            raise BadRequestException("Message content is required")

        meeting = await self._get_meeting(event_id, meeting_id)
        if not is_participant(requester_id=meeting.requester_id, receiver_id=meeting.receiver_id, user_id=sender_id):
            raise ForbiddenException("Only meeting participants can send messages")

        row = MeetingMessage(meeting_id=meeting.id, sender_id=sender_id, content=text)
        self.session.add(row)
        await self.session.commit()
        await self.session.refresh(row)

        _emit("message", "success")
        sender = await self.directory.get_profile(sender_id)
        out = MeetingMessageOut(
            id=row.id,
            meeting_id=row.meeting_id,
            sender_id=row.sender_id,
            content=row.content,
            created_at=row.created_at,
            sender=ProfileSummary.model_validate(sender) if sender is not None else ProfileSummary.unknown(sender_id),
        )

        await self._notify(
            NotificationCreate(
                user_id=other_participant(
                    requester_id=meeting.requester_id, receiver_id=meeting.receiver_id, user_id=sender_id
                ),
                title="New message",
                message=chat_preview(text, settings.CHAT_NOTIFICATION_PREVIEW_CHARS),
                notification_type="meeting_chat",
                target_event_id=meeting.event_id,
                related_event_id=meeting.event_id,
                metadata={"meeting_id": str(meeting.id)},
                sent_by=sender_id,
            )
        )
        return out

    async def list_meetings(self, user_id: UUID, event_id: UUID) -> List[MeetingWithProfiles]:
        meetings = (
            await self.session.execute(
                select(Meeting)
                .where(
                    Meeting.event_id == event_id,
                    or_(Meeting.requester_id == user_id, Meeting.receiver_id == user_id),
                )
                .order_by(Meeting.created_at.desc())
            )
        ).scalars().all()

        profiles = await self.directory.get_profiles(
            {m.requester_id for m in meetings} | {m.receiver_id for m in meetings}
        )

        def _summary(uid: UUID) -> ProfileSummary:
            p = profiles.get(uid)
            return ProfileSummary.model_validate(p) if p is not None else ProfileSummary.unknown(uid)

        items: List[MeetingWithProfiles] = []
        for m in meetings:
            requester = _summary(m.requester_id)
            receiver = _summary(m.receiver_id)
            is_received = m.receiver_id == user_id
            items.append(
                MeetingWithProfiles(
                    id=m.id,
                    event_id=m.event_id,
                    requester_id=m.requester_id,
                    receiver_id=m.receiver_id,
                    status=m.status,
                    slot_id=m.slot_id,
                    message=m.message,
                    created_at=m.created_at,
                    updated_at=m.updated_at,
                    requester=requester,
                    receiver=receiver,
                    other_profile=requester if is_received else receiver,
                    is_received=is_received,
                )
            )
        return items

    async def list_messages(self, event_id: UUID, meeting_id: UUID, user_id: UUID) -> List[MeetingMessageOut]:
        meeting = await self._get_meeting(event_id, meeting_id)
        if not is_participant(requester_id=meeting.requester_id, receiver_id=meeting.receiver_id, user_id=user_id):
            raise ForbiddenException("Only meeting participants can read messages")

        rows = (
            await self.session.execute(
                select(MeetingMessage)
                .where(MeetingMessage.meeting_id == meeting.id)
                .order_by(MeetingMessage.created_at.asc())
            )
        ).scalars().all()
        profiles = await self.directory.get_profiles({r.sender_id for r in rows})

        out: List[MeetingMessageOut] = []
        for r in rows:
            p = profiles.get(r.sender_id)
            out.append(
                MeetingMessageOut(
                    id=r.id,
                    meeting_id=r.meeting_id,
                    sender_id=r.sender_id,
                    content=r.content,
                    created_at=r.created_at,
                    sender=ProfileSummary.model_validate(p) if p is not None else ProfileSummary.unknown(r.sender_id),
                )
            )
        return out

    async def read_receipt(self, meeting_id: UUID, user_id: UUID) -> Optional[datetime]:
        """Latest time the counterpart read a chat notification of this meeting."""
        meeting = await self.session.get(Meeting, meeting_id)
        if meeting is None or not is_participant(
            requester_id=meeting.requester_id, receiver_id=meeting.receiver_id, user_id=user_id
        ):
            return None

        counterpart = other_participant(
            requester_id=meeting.requester_id, receiver_id=meeting.receiver_id, user_id=user_id
        )
        rows = (
            await self.session.execute(
                select(Notification)
                .where(
                    Notification.user_id == counterpart,
                    Notification.notification_type == "meeting_chat",
                    Notification.read_at.is_not(None),
                )
                .order_by(Notification.read_at.desc())
            )
        ).scalars().all()

        wanted = str(meeting.id)
        for n in rows:
            if (n.metadata_ or {}).get("meeting_id") == wanted:
                return n.read_at
        return None

    async def _get_meeting(self, event_id: UUID, meeting_id: UUID) -> Meeting:
        meeting = await self.session.get(Meeting, meeting_id)
        if meeting is None or meeting.event_id != event_id:
            raise NotFoundException("Meeting not found")
        return meeting

    async def _display_name(self, user_id: UUID) -> str:
        profile = await self.directory.get_profile(user_id)
        if profile is None or not profile.nickname:
            return "Someone"
        return profile.nickname

    async def _notify(self, record: NotificationCreate) -> None:
        if self.dispatcher is None:
            return
        await self.dispatcher.dispatch(record)
