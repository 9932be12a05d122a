import uuid

import pytest

from app.core.notifications.dispatcher import DispatchOutcome
from app.schemas.notification import NotificationCreate
from tests.conftest import auth_headers, dispatcher_for


def _note(**fields) -> NotificationCreate:
    values = dict(title="Hello", message="Body", notification_type="notice")
    values.update(fields)
    return NotificationCreate(**values)


@pytest.mark.asyncio
async def test_inbox_shows_own_broadcast_and_joined_event_notifications(client, factory):
    admin = await factory.admin()
    event = await factory.event()
    other_event = await factory.event("Other")
    alice = await factory.user("Alice")
    bob = await factory.user("Bob")
    await factory.join(event, alice)

    dispatcher = dispatcher_for(admin.id)
    await dispatcher.dispatch(_note(user_id=alice.id, title="direct", sent_by=admin.id))
    await dispatcher.dispatch(_note(user_id=bob.id, title="for bob", sent_by=admin.id))
    await dispatcher.dispatch(_note(target_type="all", title="everyone", sent_by=admin.id))
    await dispatcher.dispatch(
        _note(target_type="event_participants", target_event_id=event.id, title="joined event", sent_by=admin.id)
    )
    await dispatcher.dispatch(
        _note(target_type="event_participants", target_event_id=other_event.id, title="other event", sent_by=admin.id)
    )

    resp = await client.get("/api/v1/notifications", headers=auth_headers(alice.id))
    assert resp.status_code == 200
    titles = {n["title"] for n in resp.json()["items"]}
    assert titles == {"joined event", "everyone", "direct"}


@pytest.mark.asyncio
async def test_mark_read_only_for_own_notifications(client, factory):
    admin = await factory.admin()
    alice = await factory.user("Alice")
    bob = await factory.user("Bob")
    await dispatcher_for(admin.id).dispatch(_note(user_id=alice.id, sent_by=admin.id))

    items = (await client.get("/api/v1/notifications", headers=auth_headers(alice.id))).json()["items"]
    note_id = items[0]["id"]
    assert items[0]["read_at"] is None

    foreign = await client.post(f"/api/v1/notifications/{note_id}/read", headers=auth_headers(bob.id))
    assert foreign.status_code == 404
    assert foreign.json()["error"]["code"] == "E001"

    missing = await client.post(f"/api/v1/notifications/{uuid.uuid4()}/read", headers=auth_headers(alice.id))
    assert missing.status_code == 404

    own = await client.post(f"/api/v1/notifications/{note_id}/read", headers=auth_headers(alice.id))
    assert own.status_code == 200
    assert own.json()["read_at"] is not None

    unread = await client.get(
        "/api/v1/notifications", params={"unread_only": "true"}, headers=auth_headers(alice.id)
    )
    assert unread.json()["items"] == []


@pytest.mark.asyncio
async def test_standard_path_allows_user_to_user_within_shared_event(factory):
    event = await factory.event()
    alice = await factory.user("Alice")
    bob = await factory.user("Bob")
    await factory.join(event, alice, bob)

    outcome = await dispatcher_for(alice.id, privileged_enabled=False).dispatch(
        _note(user_id=bob.id, target_event_id=event.id, sent_by=alice.id)
    )
    assert outcome == DispatchOutcome.DELIVERED_STANDARD


@pytest.mark.asyncio
async def test_standard_path_policy_denials(factory):
    event = await factory.event()
    alice = await factory.user("Alice")
    bob = await factory.user("Bob")
    stranger = await factory.user("Stranger")
    await factory.join(event, alice, bob)

    dispatcher = dispatcher_for(alice.id, privileged_enabled=False)

    # Addressee outside the event.
    assert (
        await dispatcher.dispatch(_note(user_id=stranger.id, target_event_id=event.id, sent_by=alice.id))
        == DispatchOutcome.FAILED
    )
    # Broadcasts need an administrator.
    assert (
        await dispatcher.dispatch(_note(target_type="all", sent_by=alice.id)) == DispatchOutcome.FAILED
    )
    # Impersonating another sender.
    assert (
        await dispatcher.dispatch(_note(user_id=bob.id, target_event_id=event.id, sent_by=bob.id))
        == DispatchOutcome.FAILED
    )
    # Notes to oneself are always allowed.
    assert (
        await dispatcher.dispatch(_note(user_id=alice.id, sent_by=alice.id)) == DispatchOutcome.DELIVERED_STANDARD
    )


@pytest.mark.asyncio
async def test_standard_path_lets_admin_broadcast(factory):
    admin = await factory.admin()
    outcome = await dispatcher_for(admin.id, privileged_enabled=False).dispatch(
        _note(target_type="all", sent_by=admin.id)
    )
    assert outcome == DispatchOutcome.DELIVERED_STANDARD


@pytest.mark.asyncio
async def test_meeting_request_falls_back_when_privileged_path_is_off(client, factory, monkeypatch):
    from app.config import settings

    monkeypatch.setattr(settings, "NOTIFICATIONS_PRIVILEGED_ENABLED", False)

    event = await factory.event()
    alice = await factory.user("Alice")
    bob = await factory.user("Bob")
    stranger = await factory.user("Stranger")
    await factory.join(event, alice, bob)

    ok = await client.post(
        f"/api/v1/events/{event.id}/meetings",
        headers=auth_headers(alice.id),
        json={"receiver_id": str(bob.id)},
    )
    assert ok.status_code == 200
    bob_inbox = (await client.get("/api/v1/notifications", headers=auth_headers(bob.id))).json()["items"]
    assert [n["notification_type"] for n in bob_inbox] == ["meeting_request"]

    # Delivery is denied by policy but the meeting itself still succeeds.
    denied = await client.post(
        f"/api/v1/events/{event.id}/meetings",
        headers=auth_headers(alice.id),
        json={"receiver_id": str(stranger.id)},
    )
    assert denied.status_code == 200
    stranger_inbox = (await client.get("/api/v1/notifications", headers=auth_headers(stranger.id))).json()["items"]
    assert stranger_inbox == []
