"""Prometheus Metrics - flow execution observability.

Exports:
- Session counts
- Node dispatch counts by kind
- Auto-continuation outcomes
- Gateway latency and errors
- Best-effort failures
"""

from prometheus_client import Counter, Gauge, Histogram

# -----------------------------------------------------------------------------
# Latency Histograms
# -----------------------------------------------------------------------------

GATEWAY_LATENCY = Histogram(
    "callflow_gateway_latency_seconds",
    "External service call latency",
    ["service", "operation"],
    buckets=[0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0],
)

# -----------------------------------------------------------------------------
# Counters
# -----------------------------------------------------------------------------

# Session lifecycle
SESSION_STARTED = Counter(
    "callflow_sessions_started_total",
    "Total call sessions started",
)

SESSION_ENDED = Counter(
    "callflow_sessions_ended_total",
    "Total call sessions ended",
    ["reason"],  # end, transfer, replaced, shutdown, hangup
)

NODES_DISPATCHED = Counter(
    "callflow_nodes_dispatched_total",
    "Flow nodes dispatched",
    ["node_kind"],
)

UNSUPPORTED_NODES = Counter(
    "callflow_unsupported_nodes_total",
    "Flow states naming a node kind with no handler",
)

CONTINUATIONS = Counter(
    "callflow_continuations_total",
    "Auto-continuation outcomes",
    ["outcome"],  # scheduled, fired, cancelled, stale, failed
)

GATEWAY_ERRORS = Counter(
    "callflow_gateway_errors_total",
    "External service errors",
    ["service", "operation", "type"],
)

BEST_EFFORT_FAILURES = Counter(
    "callflow_best_effort_failures_total",
    "Non-fatal failures absorbed at the handler boundary",
    ["operation"],
)

# -----------------------------------------------------------------------------
# Gauges
# -----------------------------------------------------------------------------

ACTIVE_SESSIONS = Gauge(
    "callflow_active_sessions",
    "Currently active call sessions",
)


# -----------------------------------------------------------------------------
# Helper functions
# -----------------------------------------------------------------------------


def record_session_start() -> None:
    """Record session start."""
    SESSION_STARTED.inc()
    ACTIVE_SESSIONS.inc()


def record_session_end(reason: str = "end") -> None:
    """Record session end."""
    SESSION_ENDED.labels(reason=reason).inc()
    ACTIVE_SESSIONS.dec()


def record_node_dispatched(node_kind: str) -> None:
    """Record a node dispatch."""
    NODES_DISPATCHED.labels(node_kind=node_kind).inc()


def record_unsupported_node() -> None:
    """Record an unsupported node kind."""
    UNSUPPORTED_NODES.inc()


def record_continuation(outcome: str) -> None:
    """Record an auto-continuation outcome."""
    CONTINUATIONS.labels(outcome=outcome).inc()


def record_gateway_latency(service: str, operation: str, latency_s: float) -> None:
    """Record external call latency in seconds."""
    GATEWAY_LATENCY.labels(service=service, operation=operation).observe(latency_s)


def record_gateway_error(service: str, operation: str, error_type: str) -> None:
    """Record external call error."""
    GATEWAY_ERRORS.labels(service=service, operation=operation, type=error_type).inc()


def record_best_effort_failure(operation: str) -> None:
    """Record a non-fatal failure."""
    BEST_EFFORT_FAILURES.labels(operation=operation).inc()
