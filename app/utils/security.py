from __future__ import annotations

import uuid
from datetime import datetime, timedelta, timezone
from typing import Any

import jwt

from app.config import settings


def create_access_token(subject: str | Any) -> str:
    """Issue an access token for `subject` (a user id).

    Tokens are normally minted by the identity gateway; this is used by
    tests and local tooling that need to act as a given user.
    """
    expire = datetime.now(timezone.utc) + timedelta(
        minutes=settings.JWT_ACCESS_TOKEN_EXPIRE_MINUTES
    )
    payload = {
        "exp": expire,
        "sub": str(subject),
        "type": "access",
        "jti": uuid.uuid4().hex,
    }
    return jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def decode_token(token: str, *, expected_type: str = "access") -> dict[str, Any] | None:
    try:
        payload = jwt.decode(
            token,
            settings.JWT_SECRET,
            algorithms=[settings.JWT_ALGORITHM],
            options={"require": ["exp", "sub", "type"]},
        )
    except jwt.PyJWTError:
        return None

    if payload.get("type") != expected_type:
        return None
    return payload


def subject_as_user_id(payload: dict[str, Any]) -> uuid.UUID | None:
    sub = payload.get("sub")
    if not isinstance(sub, str) or not sub:
        return None
    try:
        return uuid.UUID(sub)
    except ValueError:
        return None
