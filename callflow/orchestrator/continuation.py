"""Cancellable auto-continuation timers.

Say, Decision and End nodes advance the call after a grace delay without
external input. Each delayed step is a ContinuationTimer owned by the
session, so ending or superseding the call cancels it deterministically.

A timer can be cancelled only while it is still sleeping. Once it fires,
the callback is responsible for checking whether the session has moved on.
"""

from __future__ import annotations

import asyncio
from enum import Enum
from typing import TYPE_CHECKING, Awaitable, Callable

from callflow.observability.logging import ContinuationLogger
from callflow.observability.metrics import record_continuation

if TYPE_CHECKING:
    from callflow.orchestrator.models import NodeKind


class CancelReason(Enum):
    """Reasons a pending continuation is cancelled."""

    SUPERSEDED = "SUPERSEDED"  # external input or a newer timer
    SESSION_ENDED = "SESSION_ENDED"
    SHUTDOWN = "SHUTDOWN"


TimerCallback = Callable[["ContinuationTimer"], Awaitable[None]]


class ContinuationTimer:
    """Delayed, cancellable step for one call.

    Usage:
        timer = ContinuationTimer(
            call_id="call-1",
            node_kind=NodeKind.SAY,
            step=3,
            delay_s=2.0,
            callback=controller.on_timer_fired,
        )
        session.schedule(timer)
        timer.start()

        # On new input or session end
        timer.cancel(CancelReason.SUPERSEDED)
    """

    def __init__(
        self,
        call_id: str,
        node_kind: NodeKind,
        step: int,
        delay_s: float,
        callback: TimerCallback,
    ) -> None:
        self._call_id = call_id
        self._node_kind = node_kind
        self._step = step
        self._delay_s = delay_s
        self._callback = callback
        self._task: asyncio.Task | None = None
        self._fired: bool = False
        self._cancel_reason: CancelReason | None = None
        self._logger = ContinuationLogger(call_id)

    @property
    def call_id(self) -> str:
        return self._call_id

    @property
    def node_kind(self) -> NodeKind:
        """Node kind that scheduled this timer."""
        return self._node_kind

    @property
    def step(self) -> int:
        """Session step at scheduling time."""
        return self._step

    @property
    def delay_s(self) -> float:
        return self._delay_s

    @property
    def fired(self) -> bool:
        return self._fired

    @property
    def cancel_reason(self) -> CancelReason | None:
        return self._cancel_reason

    @property
    def is_pending(self) -> bool:
        """Whether the timer is still sleeping."""
        return (
            self._task is not None
            and not self._fired
            and not self._task.done()
        )

    def start(self) -> None:
        """Start sleeping. Must be called from a running event loop."""
        if self._task is not None:
            return
        self._task = asyncio.create_task(
            self._run(),
            name=f"continuation-{self._call_id}-{self._step}",
        )
        self._task.add_done_callback(self._on_done)
        record_continuation("scheduled")
        self._logger.scheduled(self._node_kind.value, self._step, self._delay_s * 1000)

    def cancel(self, reason: CancelReason) -> bool:
        """Cancel the timer if it has not fired.

        Returns:
            True if the timer was cancelled before firing
        """
        if not self.is_pending:
            return False

        self._cancel_reason = reason
        self._task.cancel()
        record_continuation("cancelled")
        self._logger.cancelled(self._node_kind.value, self._step, reason.value)
        return True

    async def wait(self) -> None:
        """Wait until the timer has fired and its callback returned, or was cancelled."""
        if self._task is None:
            return
        try:
            await asyncio.shield(self._task)
        except asyncio.CancelledError:
            if not self._task.cancelled():
                raise

    async def _run(self) -> None:
        await asyncio.sleep(self._delay_s)
        self._fired = True
        record_continuation("fired")
        await self._callback(self)

    def _on_done(self, task: asyncio.Task) -> None:
        # Detached task: nothing awaits it, so surface failures here
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            record_continuation("failed")
            self._logger.failed(self._node_kind.value, repr(error))
