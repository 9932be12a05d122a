import uuid

import pytest

from app.core.meetings.state_machine import (
    authorize_transition,
    chat_preview,
    other_participant,
    slot_taken_by_other,
)
from app.utils.exceptions import BadRequestException, FailedPreconditionException, ForbiddenException

REQUESTER = uuid.uuid4()
RECEIVER = uuid.uuid4()
STRANGER = uuid.uuid4()
SLOT = uuid.uuid4()


def _authorize(current: str, actor: uuid.UUID, target: str, slot_id=None) -> None:
    authorize_transition(
        requester_id=REQUESTER,
        receiver_id=RECEIVER,
        current_status=current,
        actor_id=actor,
        target_status=target,
        slot_id=slot_id,
    )


@pytest.mark.parametrize(
    "current,actor,target,slot_id",
    [
        ("pending", RECEIVER, "accepted", None),
        ("pending", RECEIVER, "declined", None),
        ("pending", REQUESTER, "canceled", None),
        ("accepted", REQUESTER, "confirmed", SLOT),
        ("accepted", RECEIVER, "confirmed", SLOT),
        ("accepted", REQUESTER, "canceled", None),
    ],
)
def test_allowed_transitions(current, actor, target, slot_id):
    _authorize(current, actor, target, slot_id)


@pytest.mark.parametrize(
    "actor,target",
    [
        (REQUESTER, "accepted"),
        (REQUESTER, "declined"),
        (STRANGER, "accepted"),
        (RECEIVER, "canceled"),
        (STRANGER, "confirmed"),
    ],
)
def test_wrong_actor_is_forbidden(actor, target):
    current = "accepted" if target == "confirmed" else "pending"
    with pytest.raises(ForbiddenException):
        _authorize(current, actor, target, SLOT)


def test_unknown_target_status_is_invalid_argument():
    with pytest.raises(BadRequestException):
        _authorize("pending", RECEIVER, "pending")


def test_confirm_requires_accepted_status():
    with pytest.raises(FailedPreconditionException):
        _authorize("pending", RECEIVER, "confirmed", SLOT)


def test_confirm_on_confirmed_meeting_fails_precondition():
    with pytest.raises(FailedPreconditionException):
        _authorize("confirmed", REQUESTER, "confirmed", SLOT)


def test_confirm_without_slot_is_invalid_argument():
    with pytest.raises(BadRequestException):
        _authorize("accepted", RECEIVER, "confirmed", None)


@pytest.mark.parametrize(
    "current,actor,target",
    [
        ("declined", REQUESTER, "canceled"),
        ("canceled", RECEIVER, "accepted"),
        ("confirmed", RECEIVER, "declined"),
        ("accepted", RECEIVER, "accepted"),
        ("accepted", RECEIVER, "declined"),
    ],
)
def test_terminal_and_out_of_order_transitions_fail_precondition(current, actor, target):
    with pytest.raises(FailedPreconditionException):
        _authorize(current, actor, target)


def test_slot_holder_excludes_itself():
    meeting_id = uuid.uuid4()
    assert slot_taken_by_other([meeting_id], meeting_id) is False
    assert slot_taken_by_other([], meeting_id) is False
    assert slot_taken_by_other([uuid.uuid4()], meeting_id) is True


def test_other_participant():
    assert other_participant(requester_id=REQUESTER, receiver_id=RECEIVER, user_id=REQUESTER) == RECEIVER
    assert other_participant(requester_id=REQUESTER, receiver_id=RECEIVER, user_id=RECEIVER) == REQUESTER


def test_chat_preview_truncates_long_content():
    text = "Hello there, are you free to meet at 3pm near the entrance today?"
    assert chat_preview(text, 50) == text[:50] + "..."
    assert chat_preview("short", 50) == "short"
    assert chat_preview("x" * 50, 50) == "x" * 50
