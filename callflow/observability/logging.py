"""Structured Logging - JSON logs with call correlation.

Provides structured logging for:
- Session events (start, end, node dispatch)
- Auto-continuation scheduling, firing and discard
- Best-effort failures
- Gateway errors

All call logs include call_id for correlation.
"""

import logging
import sys
from typing import Any

import structlog


def configure_logging(
    level: str = "INFO",
    json_format: bool = True,
) -> None:
    """Configure structured logging.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR)
        json_format: If True, output JSON; else human-readable
    """
    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    if json_format:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=True))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, _normalize_level(level))
        ),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )

    # Also configure standard logging (uvicorn, httpx)
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, _normalize_level(level)),
    )


def _normalize_level(level: str) -> str:
    level = level.upper()
    return "WARNING" if level == "WARN" else level


def get_logger(name: str | None = None) -> structlog.BoundLogger:
    """Get a structured logger.

    Args:
        name: Logger name (usually __name__)

    Returns:
        Bound structlog logger
    """
    return structlog.get_logger(name)


def bind_call(call_id: str) -> None:
    """Bind call_id to all logs in current context.

    Args:
        call_id: Call identifier
    """
    structlog.contextvars.bind_contextvars(call_id=call_id)


def unbind_call() -> None:
    """Remove call_id from log context."""
    structlog.contextvars.unbind_contextvars("call_id")


# -----------------------------------------------------------------------------
# Event-specific logging functions
# -----------------------------------------------------------------------------


class CallLogger:
    """Logger for call session events."""

    def __init__(self, call_id: str) -> None:
        self._call_id = call_id
        self._log = get_logger("call").bind(call_id=call_id)

    def session_started(self, flow_id: str, metadata: dict[str, Any] | None = None) -> None:
        """Log session start."""
        self._log.info(
            "session_started",
            event_type="session.started",
            flow_id=flow_id,
            **(metadata or {}),
        )

    def session_replaced(self, flow_id: str) -> None:
        """Log a duplicate start that replaced an existing session."""
        self._log.warning(
            "session_replaced",
            event_type="session.replaced",
            flow_id=flow_id,
        )

    def session_ended(self, reason: str, duration_s: float) -> None:
        """Log session end."""
        self._log.info(
            "session_ended",
            event_type="session.ended",
            reason=reason,
            duration_s=duration_s,
        )

    def node_dispatched(self, node_kind: str, step: int, next_action: str) -> None:
        """Log node dispatch."""
        self._log.info(
            "node_dispatched",
            event_type="node.dispatched",
            node_kind=node_kind,
            step=step,
            next_action=next_action,
        )

    def unsupported_node(self, node_kind: str | None) -> None:
        """Log a flow state naming a node kind with no handler."""
        self._log.error(
            "unsupported_node",
            event_type="node.unsupported",
            node_kind=node_kind,
        )

    def transfer_skipped(self) -> None:
        """Log a transfer node that did not require a transfer."""
        self._log.info(
            "transfer_skipped",
            event_type="node.transfer_skipped",
        )

    def best_effort_failed(self, operation: str, service: str | None, error: str) -> None:
        """Log a non-fatal failure absorbed at the handler boundary."""
        self._log.warning(
            "best_effort_failed",
            event_type="call.best_effort_failed",
            operation=operation,
            service=service,
            error=error,
        )


class ContinuationLogger:
    """Logger for auto-continuation timers."""

    def __init__(self, call_id: str) -> None:
        self._call_id = call_id
        self._log = get_logger("continuation").bind(call_id=call_id)

    def scheduled(self, node_kind: str, step: int, delay_ms: float) -> None:
        """Log continuation scheduling."""
        self._log.debug(
            "continuation_scheduled",
            event_type="continuation.scheduled",
            node_kind=node_kind,
            step=step,
            delay_ms=delay_ms,
        )

    def cancelled(self, node_kind: str, step: int, reason: str) -> None:
        """Log continuation cancelled before firing."""
        self._log.debug(
            "continuation_cancelled",
            event_type="continuation.cancelled",
            node_kind=node_kind,
            step=step,
            reason=reason,
        )

    def discarded(self, node_kind: str, step: int, current_node_kind: str | None) -> None:
        """Log a stale continuation that fired after the session moved on."""
        self._log.debug(
            "continuation_discarded",
            event_type="continuation.discarded",
            node_kind=node_kind,
            step=step,
            current_node_kind=current_node_kind,
        )

    def failed(self, node_kind: str, error: str) -> None:
        """Log an auto-continuation that raised."""
        self._log.error(
            "continuation_failed",
            event_type="continuation.failed",
            node_kind=node_kind,
            error=error,
        )


# Initialize default logging configuration
def init_logging(json_format: bool = True, level: str = "INFO") -> None:
    """Initialize logging with defaults.

    Call this once at application startup.
    """
    configure_logging(level=level, json_format=json_format)
