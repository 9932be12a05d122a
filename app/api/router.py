from fastapi import APIRouter, Depends

from app.api import deps
from app.api.v1 import admin_matching, events, health, meetings, notifications

api_router = APIRouter()

_http_deps = [Depends(deps.rate_limit)]

api_router.include_router(meetings.router, tags=["Meetings"], dependencies=_http_deps)
api_router.include_router(events.router, prefix="/events", tags=["Events"], dependencies=_http_deps)
api_router.include_router(notifications.router, prefix="/notifications", tags=["Notifications"], dependencies=_http_deps)
api_router.include_router(admin_matching.router, prefix="/admin", tags=["Admin"], dependencies=_http_deps)
api_router.include_router(health.router, tags=["Health"], dependencies=_http_deps)
