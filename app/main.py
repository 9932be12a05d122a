from __future__ import annotations

from contextlib import asynccontextmanager
import logging
import time

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from sqlalchemy.engine.url import make_url

from app.api.router import api_router
from app.api.v1 import health
from app.config import settings
from app.db.session import engine, privileged_engine
from app.utils.error_codes import ERROR_MESSAGES, ErrorCode
from app.utils.exceptions import NdropException
from app.utils.observability import new_request_id, request_id_var, validate_request_id


logging.basicConfig(
    level=getattr(logging, str(settings.LOG_LEVEL).upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s %(message)s",
)
logger = logging.getLogger(__name__)


async def _sqlite_ensure_schema() -> None:
    """Create missing tables for local SQLite DB files.

    Alembic migrations target Postgres; a fresh dev SQLite file would
    otherwise start without any tables.
    """

    try:
        dialect = make_url(settings.DATABASE_URL).get_backend_name()
    except Exception:
        return

    if dialect != "sqlite":
        return

    from app.db.models import Base

    try:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
    except Exception as exc:
        raise RuntimeError(
            "SQLite DB schema could not be created. "
            "Delete ./ndrop.db (or point DATABASE_URL to a fresh file) and restart."
        ) from exc


@asynccontextmanager
async def lifespan(app: FastAPI):
    app.state.redis = None

    await _sqlite_ensure_schema()

    if settings.REDIS_ENABLED:
        import redis.asyncio as redis

        client = redis.from_url(settings.REDIS_URL, encoding="utf-8", decode_responses=True)
        try:
            await client.ping()
        except Exception as exc:
            await client.aclose()
            raise RuntimeError("Redis enabled but unavailable") from exc
        app.state.redis = client

    logger.info(
        "lifespan.started env=%s privileged_notifications=%s",
        settings.ENV,
        settings.NOTIFICATIONS_PRIVILEGED_ENABLED,
    )

    try:
        yield
    finally:
        # Ensure DB connections/threads are cleaned up when the app shuts down.
        try:
            await engine.dispose()
            if privileged_engine is not engine:
                await privileged_engine.dispose()
        except Exception:
            logger.exception("lifespan.engine_dispose_failed")

        client = getattr(app.state, "redis", None)
        if client is not None:
            try:
                await client.aclose()
            finally:
                app.state.redis = None


app = FastAPI(title="ndrop Backend", debug=settings.DEBUG, lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    # Local dev frontends on any port, localhost only.
    allow_origin_regex=r"^https?://(localhost|127\.0\.0\.1)(:\d+)?$",
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def request_id_middleware(request: Request, call_next):
    incoming_rid = request.headers.get("X-Request-ID")
    rid = validate_request_id(incoming_rid) or new_request_id()
    token = request_id_var.set(rid)
    try:
        response = await call_next(request)
    finally:
        request_id_var.reset(token)

    response.headers["X-Request-ID"] = rid
    return response


@app.middleware("http")
async def metrics_middleware(request: Request, call_next):
    if not settings.METRICS_ENABLED:
        return await call_next(request)

    start = time.perf_counter()
    response = await call_next(request)
    elapsed_s = time.perf_counter() - start

    try:
        from app.utils.metrics import HTTP_REQUESTS_TOTAL, HTTP_REQUEST_DURATION_SECONDS

        # Route templates keep label cardinality low; unmatched paths share one label.
        route = request.scope.get("route")
        route_path = getattr(route, "path", None)
        path_label = route_path if isinstance(route_path, str) and route_path else "__unmatched__"
        method = request.method
        status = str(getattr(response, "status_code", 0))

        HTTP_REQUESTS_TOTAL.labels(method=method, path=path_label, status=status).inc()
        HTTP_REQUEST_DURATION_SECONDS.labels(method=method, path=path_label).observe(elapsed_s)
    except Exception:
        pass

    return response


@app.exception_handler(NdropException)
async def ndrop_exception_handler(request: Request, exc: NdropException):
    if exc.status_code >= 500:
        logger.error("http.internal_error path=%s code=%s message=%s", request.url.path, exc.code, exc.message)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(RequestValidationError)
async def request_validation_exception_handler(
    request: Request, exc: RequestValidationError
):
    # Schema validation errors share the API error envelope (E002, invalid argument).
    return JSONResponse(
        status_code=422,
        content={
            "error": {
                "code": ErrorCode.E002.value,
                "message": ERROR_MESSAGES[ErrorCode.E002],
                "details": {"errors": jsonable_errors(exc)},
            }
        },
    )


def jsonable_errors(exc: RequestValidationError) -> list:
    from fastapi.encoders import jsonable_encoder

    return jsonable_encoder(exc.errors())


app.include_router(api_router, prefix="/api/v1")
app.include_router(health.router, tags=["Health"])


if settings.METRICS_ENABLED:

    @app.get("/metrics")
    async def metrics():
        from app.utils.metrics import render_metrics

        payload, content_type = render_metrics()
        return Response(content=payload, media_type=content_type)
