import asyncio
import time
from typing import AsyncGenerator

from fastapi import Depends, Request
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.config import settings
from app.core.directory.service import DirectoryService
from app.core.notifications.dispatcher import NotificationDispatcher, build_dispatcher
from app.db.models.user import UserProfile
from app.db.session import AsyncSessionLocal, PrivilegedSessionLocal, get_db_session
from app.utils.exceptions import ForbiddenException, TooManyRequestsException, UnauthorizedException
from app.utils.security import decode_token, subject_as_user_id

# Tokens are issued by the identity gateway; tokenUrl only feeds the OpenAPI docs.
reusable_oauth2 = OAuth2PasswordBearer(tokenUrl="/auth/token")


_rate_limit_lock = asyncio.Lock()
_rate_limit_counters: dict[tuple[int, str], int] = {}


def _rate_limit_params() -> tuple[int, int]:
    window_seconds = max(1, int(settings.RATE_LIMIT_WINDOW_SECONDS))
    limit = max(1, int(settings.RATE_LIMIT_REQUESTS_PER_WINDOW))
    return window_seconds, limit


async def rate_limit(request: Request) -> None:
    if not settings.RATE_LIMIT_ENABLED:
        return

    client_host = (request.client.host if request.client else None) or "unknown"
    window_seconds, limit = _rate_limit_params()

    redis_client = getattr(getattr(request, "app", None), "state", None)
    redis_client = getattr(redis_client, "redis", None)
    if settings.REDIS_ENABLED and redis_client is not None:
        bucket = int(time.time() // window_seconds)
        key = f"rl:{client_host}:{bucket}"

        current = await redis_client.incr(key)
        if current == 1:
            # Ensure key expires after the window.
            await redis_client.expire(key, window_seconds + 1)
    else:
        bucket = int(time.monotonic() // window_seconds)
        async with _rate_limit_lock:
            # Only the current window is ever consulted; drop every older bucket.
            stale = [k for k in _rate_limit_counters if k[0] < bucket]
            for k in stale:
                del _rate_limit_counters[k]

            key = (bucket, client_host)
            current = _rate_limit_counters.get(key, 0) + 1
            _rate_limit_counters[key] = current

    if current > limit:
        raise TooManyRequestsException(
            details={
                "window_seconds": window_seconds,
                "limit": limit,
            }
        )


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    async for session in get_db_session():
        yield session


def get_session_factory() -> async_sessionmaker:
    return AsyncSessionLocal


def get_privileged_session_factory() -> async_sessionmaker:
    return PrivilegedSessionLocal


async def get_current_user(
    db: AsyncSession = Depends(get_db),
    token: str = Depends(reusable_oauth2),
) -> UserProfile:
    payload = decode_token(token)
    if not payload:
        raise UnauthorizedException("Could not validate credentials")

    user_id = subject_as_user_id(payload)
    if user_id is None:
        raise UnauthorizedException("Could not validate credentials")

    user = await db.get(UserProfile, user_id)
    if user is None:
        raise UnauthorizedException("User not found")
    return user


async def require_admin(
    current_user: UserProfile = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> UserProfile:
    if not await DirectoryService(db).is_admin(current_user.id):
        raise ForbiddenException("Admin access required")
    return current_user


async def get_notification_dispatcher(
    current_user: UserProfile = Depends(get_current_user),
    session_factory: async_sessionmaker = Depends(get_session_factory),
    privileged_session_factory: async_sessionmaker = Depends(get_privileged_session_factory),
) -> NotificationDispatcher:
    return build_dispatcher(
        actor_id=current_user.id,
        session_factory=session_factory,
        privileged_session_factory=privileged_session_factory,
    )
