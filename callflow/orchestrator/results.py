"""Typed node outcomes and best-effort failures.

Transient failures (recognition arming, synthesis timeouts, context discard,
hang-up) are caught at the handler boundary and reported as
BestEffortResult values instead of unwinding to the caller.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Awaitable, TypeVar

from callflow.exceptions import CallFlowError, GatewayError
from callflow.observability.logging import CallLogger
from callflow.observability.metrics import record_best_effort_failure
from callflow.orchestrator.models import NodeKind, utcnow

T = TypeVar("T")


@dataclass
class BestEffortResult:
    """Outcome of a side effect whose failure must not stop the call."""

    operation: str
    call_id: str
    error: CallFlowError | None = None
    t: datetime = field(default_factory=utcnow)

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def service(self) -> str | None:
        if isinstance(self.error, GatewayError):
            return self.error.service
        return None

    def to_dict(self) -> dict[str, Any]:
        return {
            "operation": self.operation,
            "call_id": self.call_id,
            "ok": self.ok,
            "service": self.service,
            "error": self.error.to_dict() if self.error else None,
            "t": self.t.isoformat(),
        }


@dataclass
class NodeResult:
    """What a node handler did for one dispatch."""

    node_kind: NodeKind
    continuation_scheduled: bool = False
    termination_scheduled: bool = False
    session_ended: bool = False
    best_effort: list[BestEffortResult] = field(default_factory=list)

    @property
    def failures(self) -> list[BestEffortResult]:
        return [r for r in self.best_effort if not r.ok]


async def best_effort(
    operation: str,
    call_id: str,
    coro: Awaitable[T],
    tolerated: type[CallFlowError] | tuple[type[CallFlowError], ...] = CallFlowError,
) -> BestEffortResult:
    """Await a side effect, converting listed failures into a result.

    Args:
        operation: Operation name for logs and metrics
        call_id: Call the side effect belongs to
        coro: Side effect to await
        tolerated: Error types treated as non-fatal; anything else propagates

    Returns:
        BestEffortResult with error set if the side effect failed
    """
    try:
        await coro
    except tolerated as e:
        record_best_effort_failure(operation)
        result = BestEffortResult(operation=operation, call_id=call_id, error=e)
        CallLogger(call_id).best_effort_failed(operation, result.service, str(e))
        return result
    return BestEffortResult(operation=operation, call_id=call_id)
