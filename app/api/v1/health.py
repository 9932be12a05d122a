from __future__ import annotations

import os
import time
from datetime import datetime, timezone
from typing import Any

from fastapi import APIRouter
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncEngine

from app.config import settings
from app.db.session import engine, privileged_engine

router = APIRouter()

_STARTED_AT = time.time()


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _app_version() -> str:
    return (os.getenv("NDROP_APP_VERSION") or os.getenv("APP_VERSION") or "").strip() or "dev"


def _environment() -> str:
    return (os.getenv("NDROP_ENV") or settings.ENV or "dev").strip() or "dev"


async def _probe(db_engine: AsyncEngine) -> dict[str, Any]:
    dialect = db_engine.dialect.name
    t0 = time.perf_counter()
    try:
        async with db_engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except Exception as exc:
        return {"dialect": dialect, "reachable": False, "latency_ms": None, "error": exc.__class__.__name__}
    return {
        "dialect": dialect,
        "reachable": True,
        "latency_ms": int(round((time.perf_counter() - t0) * 1000.0)),
    }


@router.get("/health")
async def health_check():
    return {
        "status": "ok",
        "version": _app_version(),
        "environment": _environment(),
        "uptime_seconds": int(max(0.0, time.time() - _STARTED_AT)),
        "timestamp": _now_iso(),
    }


@router.get("/healthz")
async def healthz_check():
    return {"status": "ok"}


@router.get("/health/db")
async def health_db_check():
    """Primary store reachability; the notification service-role connection is
    reported separately when it points at its own database."""
    body: dict[str, Any] = {"db": await _probe(engine)}
    if privileged_engine is not engine:
        body["notifications_db"] = await _probe(privileged_engine)

    healthy = all(part["reachable"] for part in body.values())
    body["status"] = "ok" if healthy else "error"
    body["timestamp"] = _now_iso()
    if not healthy:
        return JSONResponse(status_code=503, content=body)
    return body
