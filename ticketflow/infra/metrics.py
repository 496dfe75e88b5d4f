"""Prometheus metrics export."""

from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST
from fastapi import Response

# Request metrics
request_count = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["method", "endpoint", "status"],
)

request_duration = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "endpoint"],
)

# Pipeline metrics
inbound_events_total = Counter(
    "inbound_events_total",
    "Inbound protocol events by content kind and outcome",
    ["kind", "outcome"],  # outcome: created | updated | dropped | failed
)

event_processing_duration = Histogram(
    "event_processing_duration_seconds",
    "Time spent processing one inbound event",
    ["kind"],
)

ack_updates_total = Counter(
    "ack_updates_total",
    "Delivery status updates applied to stored messages",
    ["outcome"],
)

# Media metrics
media_downloads_total = Counter(
    "media_downloads_total",
    "Media downloads from the transport gateway",
    ["status"],
)

transcriptions_total = Counter(
    "transcriptions_total",
    "Audio transcription attempts",
    ["status"],
)

# Side effects
greetings_sent_total = Counter(
    "greetings_sent_total",
    "Greeting replies sent",
    ["status"],
)

campaign_dispatch_enqueued_total = Counter(
    "campaign_dispatch_enqueued_total",
    "Campaign re-dispatch jobs enqueued after a confirmation",
    ["status"],
)

realtime_events_total = Counter(
    "realtime_events_total",
    "Realtime events published",
    ["event", "status"],
)

# Queue metrics
queue_jobs_total = Counter(
    "queue_jobs_total",
    "Total queued jobs",
    ["queue", "status"],
)


def get_metrics_response() -> Response:
    """Get Prometheus metrics as HTTP response."""
    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST,
    )
