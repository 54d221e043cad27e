"""Bounded waits for external service calls.

Every gateway request is wrapped in with_timeout so a hung service cannot
hold a call's session lock indefinitely.
"""

import asyncio
from typing import Awaitable, TypeVar

from callflow.exceptions import CallFlowError

T = TypeVar("T")


class AsyncTimeoutError(CallFlowError):
    """An awaited operation exceeded its time limit."""

    def __init__(
        self,
        operation: str,
        timeout_s: float,
        details: dict | None = None,
    ) -> None:
        super().__init__(
            message=f"{operation} timed out after {timeout_s}s",
            details={"operation": operation, "timeout_s": timeout_s, **(details or {})},
            recoverable=True,
        )
        self.operation = operation
        self.timeout_s = timeout_s


async def with_timeout(
    coro: Awaitable[T],
    timeout_s: float,
    operation: str = "operation",
) -> T:
    """Await coro for at most timeout_s seconds.

    Example:
        state = await with_timeout(
            gateway.advance_flow(call_id, flow_id, text),
            timeout_s=5.0,
            operation="flow_state.advance_flow",
        )

    Raises:
        AsyncTimeoutError: If the limit is reached; coro is cancelled
    """
    try:
        return await asyncio.wait_for(coro, timeout=timeout_s)
    except asyncio.TimeoutError:
        raise AsyncTimeoutError(operation, timeout_s)
