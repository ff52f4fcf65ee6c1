"""Prometheus metrics for the realtime bus, live slices and HTTP surface."""

from __future__ import annotations

from prometheus_client import CollectorRegistry, Counter, Gauge, Histogram

# Private registry so tests and multiple app instances never collide with the default one
REGISTRY = CollectorRegistry()

DEFAULT_LATENCY_BUCKETS = (
    0.005,
    0.01,
    0.025,
    0.05,
    0.1,
    0.25,
    0.5,
    1.0,
    2.5,
    5.0,
    10.0,
)

# HTTP metrics
http_requests_total = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["method", "endpoint", "status"],
    registry=REGISTRY,
)

http_request_duration_seconds = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "endpoint"],
    buckets=DEFAULT_LATENCY_BUCKETS,
    registry=REGISTRY,
)

# Realtime bus metrics
realtime_events_broadcast_total = Counter(
    "realtime_events_broadcast_total",
    "Typed realtime events delivered to local handlers",
    ["event_type"],
    registry=REGISTRY,
)

realtime_events_dropped_total = Counter(
    "realtime_events_dropped_total",
    "Raw change notifications dropped at the bus boundary",
    ["reason"],
    registry=REGISTRY,
)

realtime_handler_failures_total = Counter(
    "realtime_handler_failures_total",
    "Exceptions raised by realtime event handlers",
    registry=REGISTRY,
)

realtime_handlers_registered = Gauge(
    "realtime_handlers_registered",
    "Handlers currently subscribed to the realtime bus",
    registry=REGISTRY,
)

realtime_sessions_established_total = Counter(
    "realtime_sessions_established_total",
    "Realtime channel subscriptions requested",
    registry=REGISTRY,
)

realtime_session_failures_total = Counter(
    "realtime_session_failures_total",
    "Realtime channel status failures",
    ["status"],
    registry=REGISTRY,
)

# Slice metrics
slice_refreshes_total = Counter(
    "slice_refreshes_total",
    "Full refreshes performed by live slices",
    ["slice", "outcome"],
    registry=REGISTRY,
)

slice_mutations_total = Counter(
    "slice_mutations_total",
    "Mutations attempted by live slices",
    ["slice", "outcome"],
    registry=REGISTRY,
)

# Assistant metrics
assistant_requests_total = Counter(
    "assistant_requests_total",
    "AI travel assistant requests by outcome",
    ["outcome"],
    registry=REGISTRY,
)

gateway_request_duration_seconds = Histogram(
    "gateway_request_duration_seconds",
    "Backend gateway HTTP call duration in seconds",
    ["method", "resource"],
    buckets=DEFAULT_LATENCY_BUCKETS,
    registry=REGISTRY,
)
