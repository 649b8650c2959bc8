"""
Prometheus metrics for the backend service.
"""

import os
from fastapi.responses import Response
from prometheus_client import Counter, Gauge, generate_latest, CONTENT_TYPE_LATEST
from prometheus_client.multiprocess import MultiProcessCollector
from prometheus_client.registry import CollectorRegistry


FEED_CONNECTED = Gauge(
    'backend_feed_connected',
    'Upstream ATC24 socket open (1) or not (0)'
)

FEED_RECONNECT_ATTEMPTS = Counter(
    'backend_feed_reconnect_attempts_total',
    'Reconnect attempts made to the upstream feed'
)

FEED_EXHAUSTED = Counter(
    'backend_feed_exhausted_total',
    'Times the upstream reconnect budget ran out'
)

FEED_MESSAGES_PROCESSED = Counter(
    'backend_feed_messages_processed_total',
    'Upstream feed messages turned into events',
    ['type']
)

FEED_MESSAGES_REJECTED = Counter(
    'backend_feed_messages_rejected_total',
    'Upstream feed messages dropped',
    ['reason']  # invalid_json, invalid_envelope, schema_validation_failed, unknown_type
)

WEBSOCKET_CONNECTIONS = Gauge(
    'backend_websocket_connections',
    'Active WebSocket connections'
)

WEBSOCKET_MESSAGES_SENT = Counter(
    'backend_websocket_messages_sent_total',
    'Messages sent by type',
    ['type']  # new_message, service_updated, feed_status
)

WEBSOCKET_FRAMES_REJECTED = Counter(
    'backend_websocket_frames_rejected_total',
    'Inbound browser frames dropped',
    ['reason']  # invalid_frame, invalid_json, schema_validation_failed, scope_change
)

RELAY_WRITE_FAILURES = Counter(
    'backend_relay_write_failures_total',
    'Storage writes that failed during relay (broadcast suppressed)',
    ['type']
)

HTTP_REQUESTS = Counter(
    'backend_http_requests_total',
    'HTTP requests',
    ['method', 'path', 'status']
)


async def get_metrics():
    """FastAPI handler for /metrics endpoint."""
    if 'PROMETHEUS_MULTIPROC_DIR' in os.environ:
        # Multi-process mode (for production)
        registry = CollectorRegistry()
        MultiProcessCollector(registry)
        output = generate_latest(registry)
    else:
        # Single-process mode (for development)
        output = generate_latest()

    return Response(content=output, media_type=CONTENT_TYPE_LATEST)
