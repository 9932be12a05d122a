import argparse
import asyncio
import json
import os
import sys
import uuid
from datetime import datetime, timedelta
from typing import Any

from sqlalchemy import select

# Add repo root to import path (so `import app` works when run as a script)
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from app.db.models import AdminAccount, Event, EventParticipant, TimeSlot, UserProfile
from app.db.session import AsyncSessionLocal, engine
from app.utils.security import create_access_token


def _parse_dt(s: str) -> datetime:
    # Accept ISO with Z.
    return datetime.fromisoformat(str(s).strip().replace("Z", "+00:00"))


def _load_json(path: str) -> Any:
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)


async def seed(path: str, *, print_tokens: bool) -> None:
    data = _load_json(path)
    ev = data["event"]

    async with AsyncSessionLocal() as session:
        existing = (
            await session.execute(select(Event).where(Event.event_code == ev["event_code"]))
        ).scalar_one_or_none()
        if existing is not None:
            print(f"Event {ev['event_code']} already seeded (id={existing.id}); nothing to do.")
            return

        users: dict[str, UserProfile] = {}
        for u in data.get("users", []):
            fields = {k: v for k, v in u.items() if k != "key"}
            profile = UserProfile(id=uuid.uuid4(), **fields)
            session.add(profile)
            users[u["key"]] = profile
        await session.flush()

        for key in data.get("admins", []):
            session.add(AdminAccount(id=users[key].id))

        event = Event(
            id=uuid.uuid4(),
            title=ev["title"],
            description=ev.get("description"),
            start_date=_parse_dt(ev["start_date"]),
            end_date=_parse_dt(ev["end_date"]),
            location=ev.get("location"),
            max_participants=ev.get("max_participants"),
            event_code=ev["event_code"],
            created_by=users[data["admins"][0]].id if data.get("admins") else None,
        )
        session.add(event)
        await session.flush()

        for key in data.get("participants", []):
            session.add(EventParticipant(event_id=event.id, user_id=users[key].id, status="confirmed"))

        slots = data.get("slots") or {}
        start = _parse_dt(slots["first_start"]) if slots else None
        blocked = set(slots.get("blocked", []))
        step = timedelta(minutes=int(slots.get("minutes", 30)))
        for i in range(int(slots.get("count", 0))):
            session.add(
                TimeSlot(
                    event_id=event.id,
                    start_time=start + step * i,
                    end_time=start + step * (i + 1),
                    is_blocked=i in blocked,
                )
            )

        await session.commit()
        print(f"Seeded event {event.event_code} id={event.id} users={len(users)}")

        if print_tokens:
            for key, profile in users.items():
                print(f"{key}: {create_access_token(profile.id)}")

    await engine.dispose()


def main() -> None:
    repo_root = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
    parser = argparse.ArgumentParser(description="Seed a demo event with users, participants and time slots.")
    parser.add_argument("--source", default=os.path.join(repo_root, "seeds", "demo_event.json"))
    parser.add_argument("--print-tokens", action="store_true", help="Print dev access tokens for seeded users")
    args = parser.parse_args()

    if sys.platform == "win32":
        asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())

    asyncio.run(seed(args.source, print_tokens=args.print_tokens))


if __name__ == "__main__":
    main()
