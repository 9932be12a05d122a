from __future__ import annotations

import contextvars
import logging
import re
import time
import uuid
from contextlib import contextmanager
from typing import Iterator

request_id_var: contextvars.ContextVar[str | None] = contextvars.ContextVar("request_id", default=None)

# ASCII only, 1..64 chars, conservative charset (keeps ids safe to echo into logs/headers).
_REQUEST_ID_RE = re.compile(r"^[A-Za-z0-9._-]{1,64}$", flags=re.ASCII)


def validate_request_id(value: str | None) -> str | None:
    """Return value if it is a safe request id, otherwise None."""
    if not isinstance(value, str):
        return None
    if not 1 <= len(value) <= 64:
        return None
    if _REQUEST_ID_RE.fullmatch(value) is None:
        return None
    return value


def new_request_id() -> str:
    return uuid.uuid4().hex


def log_fields(**fields: object) -> str:
    """Render `key=value` pairs, prefixed with the current request id when set."""
    rid = request_id_var.get()
    if rid and "request_id" not in fields:
        fields = {"request_id": rid, **fields}
    return " ".join(f"{k}={v}" for k, v in fields.items())


@contextmanager
def log_duration(logger: logging.Logger, operation: str, **fields: object) -> Iterator[None]:
    """Log duration of an operation at INFO with a stable key=value format."""
    start = time.perf_counter()
    try:
        yield
    finally:
        elapsed_ms = (time.perf_counter() - start) * 1000.0
        extras = log_fields(**fields)
        if extras:
            logger.info("op=%s duration_ms=%.2f %s", operation, elapsed_ms, extras)
        else:
            logger.info("op=%s duration_ms=%.2f", operation, elapsed_ms)
