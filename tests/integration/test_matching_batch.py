import random
from collections import defaultdict

import pytest
from sqlalchemy import Delete, select
from sqlalchemy.exc import OperationalError

from app.core.matching.service import MatchingService
from app.db.models.matching import MatchRecommendation
from app.db.models.meeting import pair_key
from app.db.models.notification import Notification
from app.schemas.matching import MatchingConfigRequest
from app.utils.exceptions import ForbiddenException, InternalException
from tests.conftest import TestingSessionLocal, auth_headers


async def _event_with_people(factory, n: int = 5):
    admin = await factory.admin("Organizer")
    event = await factory.event()
    people = []
    for i in range(n):
        people.append(
            await factory.user(
                f"User{i}",
                work_field="IT" if i % 2 == 0 else "Design",
                interest_keywords=["python", "startups"] if i % 2 == 0 else ["ux", "startups"],
            )
        )
    await factory.join(event, *people)
    return admin, event, people


async def _recommendations(event_id):
    async with TestingSessionLocal() as s:
        return list(
            (await s.execute(select(MatchRecommendation).where(MatchRecommendation.event_id == event_id))).scalars().all()
        )


@pytest.mark.asyncio
async def test_run_respects_cap_self_and_exclusions(client, factory):
    admin, event, people = await _event_with_people(factory, 5)
    await factory.meeting(event, people[0], people[1], status="pending")
    await factory.meeting(event, people[2], people[3], status="declined")

    put = await client.put(
        f"/api/v1/admin/events/{event.id}/matching/config",
        headers=auth_headers(admin.id),
        json={"max_requests_per_user": 2},
    )
    assert put.status_code == 200

    resp = await client.post(f"/api/v1/admin/events/{event.id}/matching/run", headers=auth_headers(admin.id))
    assert resp.status_code == 200, resp.text
    body = resp.json()

    rows = await _recommendations(event.id)
    assert body["count"] == len(rows)
    assert body["message"] == f"Generated {len(rows)} recommendations for 5 participants."

    per_user = defaultdict(list)
    for r in rows:
        assert str(r.batch_id) == body["batch_id"]
        per_user[r.user_id].append(r.recommended_user_id)

    excluded = {pair_key(people[0].id, people[1].id)}
    for user_id, recommended in per_user.items():
        assert len(recommended) <= 2
        assert len(set(recommended)) == len(recommended)
        assert user_id not in recommended
        assert all(pair_key(user_id, rid) not in excluded for rid in recommended)

    assert len(per_user) == 5


@pytest.mark.asyncio
async def test_exclude_declined_rule_removes_declined_pairs(factory, db_session):
    admin, event, people = await _event_with_people(factory, 3)
    await factory.meeting(event, people[0], people[1], status="declined")

    override = MatchingConfigRequest(
        max_requests_per_user=5,
        scoring_weights={"rules": {"exclude_declined": True}},
    )
    result = await MatchingService(db_session, rng=random.Random(3)).run(event.id, admin.id, override)

    rows = await _recommendations(event.id)
    assert result.count == len(rows) == 4
    declined_pair = pair_key(people[0].id, people[1].id)
    assert all(pair_key(r.user_id, r.recommended_user_id) != declined_pair for r in rows)


@pytest.mark.asyncio
async def test_second_run_replaces_previous_batch(client, factory):
    admin, event, people = await _event_with_people(factory, 4)
    url = f"/api/v1/admin/events/{event.id}/matching/run"

    first = (await client.post(url, headers=auth_headers(admin.id))).json()
    second = (await client.post(url, headers=auth_headers(admin.id))).json()

    assert first["batch_id"] != second["batch_id"]
    rows = await _recommendations(event.id)
    assert rows
    assert {str(r.batch_id) for r in rows} == {second["batch_id"]}


@pytest.mark.asyncio
async def test_run_requires_admin(client, factory, db_session):
    admin, event, people = await _event_with_people(factory, 2)

    resp = await client.post(f"/api/v1/admin/events/{event.id}/matching/run", headers=auth_headers(people[0].id))
    assert resp.status_code == 403
    assert resp.json()["error"]["code"] == "E004"

    with pytest.raises(ForbiddenException):
        await MatchingService(db_session).run(event.id, people[0].id)

    assert await _recommendations(event.id) == []


@pytest.mark.asyncio
async def test_run_notifies_event_participants(client, factory):
    admin, event, people = await _event_with_people(factory, 3)
    outsider = await factory.user("Outsider")

    resp = await client.post(f"/api/v1/admin/events/{event.id}/matching/run", headers=auth_headers(admin.id))
    assert resp.status_code == 200

    async with TestingSessionLocal() as s:
        notes = (
            await s.execute(select(Notification).where(Notification.notification_type == "matching_ready"))
        ).scalars().all()
    assert len(notes) == 1
    assert notes[0].target_type == "event_participants"
    assert notes[0].target_event_id == event.id
    assert notes[0].user_id is None

    inbox = await client.get("/api/v1/notifications", headers=auth_headers(people[0].id))
    assert "matching_ready" in [n["notification_type"] for n in inbox.json()["items"]]

    other_inbox = await client.get("/api/v1/notifications", headers=auth_headers(outsider.id))
    assert other_inbox.json()["items"] == []


@pytest.mark.asyncio
async def test_my_recommendations_sorted_with_profile(client, factory):
    admin, event, people = await _event_with_people(factory, 4)
    await client.post(f"/api/v1/admin/events/{event.id}/matching/run", headers=auth_headers(admin.id))

    resp = await client.get(
        f"/api/v1/events/{event.id}/matching/recommendations", headers=auth_headers(people[0].id)
    )
    assert resp.status_code == 200
    items = resp.json()["items"]
    assert 1 <= len(items) <= 3

    scores = [i["score"] for i in items]
    assert scores == sorted(scores, reverse=True)
    for i in items:
        assert i["recommended_profile"]["id"] == i["recommended_user_id"]
        assert "summary" in i["match_reasons"]
        assert "startups" in i["match_reasons"]["common_interests"]


@pytest.mark.asyncio
async def test_config_defaults_then_upsert(client, factory):
    admin, event, _ = await _event_with_people(factory, 2)
    url = f"/api/v1/admin/events/{event.id}/matching/config"

    default = await client.get(url, headers=auth_headers(admin.id))
    assert default.status_code == 200
    body = default.json()
    assert body["is_default"] is True
    assert body["max_requests_per_user"] == 5
    assert body["scoring_weights"]["interest_match"] == 10
    assert body["scoring_weights"]["same_work_field"] == 5

    saved = await client.put(
        url,
        headers=auth_headers(admin.id),
        json={"max_requests_per_user": 3, "scoring_weights": {"interest_match": 7, "rules": {"exclude_canceled": True}}},
    )
    assert saved.status_code == 200, saved.text
    assert saved.json()["is_default"] is False

    stored = (await client.get(url, headers=auth_headers(admin.id))).json()
    assert stored["max_requests_per_user"] == 3
    assert stored["scoring_weights"]["interest_match"] == 7
    assert stored["scoring_weights"]["rules"] == {"exclude_declined": False, "exclude_canceled": True}

    invalid = await client.put(url, headers=auth_headers(admin.id), json={"max_requests_per_user": 0})
    assert invalid.status_code == 422
    assert invalid.json()["error"]["code"] == "E002"


async def _first_batch(event_id, admin_id):
    async with TestingSessionLocal() as s:
        return await MatchingService(s, rng=random.Random(1)).run(event_id, admin_id)


@pytest.mark.asyncio
async def test_failed_insert_keeps_previous_batch(factory, db_session, monkeypatch):
    admin, event, _ = await _event_with_people(factory, 4)
    first = await _first_batch(event.id, admin.id)
    assert first.count > 0

    async def _commit_fails():
        raise OperationalError("COMMIT", {}, Exception("disk I/O error"))

    monkeypatch.setattr(db_session, "commit", _commit_fails)

    with pytest.raises(InternalException) as exc:
        await MatchingService(db_session, rng=random.Random(2)).run(event.id, admin.id)
    assert exc.value.code == "E007"
    assert exc.value.message == "Failed to save recommendations"

    rows = await _recommendations(event.id)
    assert len(rows) == first.count
    assert {r.batch_id for r in rows} == {first.batch_id}


@pytest.mark.asyncio
async def test_failed_cleanup_is_logged_and_run_succeeds(factory, db_session, monkeypatch, caplog):
    admin, event, _ = await _event_with_people(factory, 4)
    first = await _first_batch(event.id, admin.id)

    execute = db_session.execute

    async def _execute(statement, *args, **kwargs):
        if isinstance(statement, Delete):
            raise OperationalError("DELETE", {}, Exception("database is locked"))
        return await execute(statement, *args, **kwargs)

    monkeypatch.setattr(db_session, "execute", _execute)

    with caplog.at_level("WARNING", logger="app.core.matching.service"):
        second = await MatchingService(db_session, rng=random.Random(2)).run(event.id, admin.id)

    assert second.batch_id != first.batch_id
    assert second.count > 0
    assert any("matching.cleanup_failed" in r.getMessage() for r in caplog.records)

    # Both batches remain until the next successful cleanup.
    rows = await _recommendations(event.id)
    assert {r.batch_id for r in rows} == {first.batch_id, second.batch_id}
    assert len(rows) == first.count + second.count


@pytest.mark.asyncio
async def test_run_override_is_layered_on_stored_config(factory, db_session):
    admin, event, people = await _event_with_people(factory, 3)
    await factory.meeting(event, people[0], people[1], status="declined")

    await MatchingService(db_session).upsert_config(
        event.id,
        MatchingConfigRequest(max_requests_per_user=1, scoring_weights={"rules": {"exclude_declined": True}}),
    )

    # Only the cap is overridden; the stored exclusion rule still applies.
    result = await MatchingService(db_session, rng=random.Random(5)).run(
        event.id, admin.id, MatchingConfigRequest(max_requests_per_user=5)
    )

    rows = await _recommendations(event.id)
    assert result.count == len(rows) == 4
    declined_pair = pair_key(people[0].id, people[1].id)
    assert all(pair_key(r.user_id, r.recommended_user_id) != declined_pair for r in rows)
