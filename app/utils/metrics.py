from __future__ import annotations

from prometheus_client import CONTENT_TYPE_LATEST, Counter, Histogram, generate_latest


HTTP_REQUESTS_TOTAL = Counter(
    "ndrop_http_requests_total",
    "Total HTTP requests",
    ["method", "path", "status"],
)

HTTP_REQUEST_DURATION_SECONDS = Histogram(
    "ndrop_http_request_duration_seconds",
    "HTTP request duration (seconds)",
    ["method", "path"],
)


MEETING_EVENTS_TOTAL = Counter(
    "ndrop_meeting_events_total",
    "Meeting lifecycle events",
    ["event", "result"],
)

NOTIFICATION_DELIVERIES_TOTAL = Counter(
    "ndrop_notification_deliveries_total",
    "Notification dispatch outcomes",
    ["outcome"],
)

MATCHING_RUNS_TOTAL = Counter(
    "ndrop_matching_runs_total",
    "Matching batch runs",
    ["result"],
)


def render_metrics() -> tuple[bytes, str]:
    return generate_latest(), CONTENT_TYPE_LATEST
