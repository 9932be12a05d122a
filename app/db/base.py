from datetime import datetime, timezone

from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    pass


def utcnow() -> datetime:
    # Client-side timestamps keep sub-second ordering on SQLite (CURRENT_TIMESTAMP has 1s resolution).
    return datetime.now(timezone.utc)
