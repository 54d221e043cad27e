"""Flow Execution Controller - drives one call through its flow.

Entry points for the telephony layer:
- start: new inbound call; creates the session and runs the first node
- continue_flow: transcript delivered (or automatic advance)
- end_session: idempotent cleanup

Continuations for one call are serialized by the session lock. An
auto-continuation that fires after the session has moved to another step
is discarded without touching the flow.
"""

from __future__ import annotations

import asyncio
from collections import deque
from typing import TYPE_CHECKING, Any

from callflow.config.constants import FLOW
from callflow.config.settings import Settings
from callflow.exceptions import (
    DuplicateSessionError,
    SessionNotFoundError,
    SessionStateError,
)
from callflow.observability.logging import (
    CallLogger,
    ContinuationLogger,
    bind_call,
    get_logger,
    unbind_call,
)
from callflow.observability.metrics import (
    record_continuation,
    record_session_end,
    record_session_start,
)
from callflow.orchestrator.continuation import CancelReason, ContinuationTimer
from callflow.orchestrator.dispatcher import NodeDispatcher
from callflow.orchestrator.handlers import HandlerConfig, NodeHandlers
from callflow.orchestrator.models import FlowState, Session, VoiceSettings, utcnow
from callflow.orchestrator.registry import SessionRegistry
from callflow.orchestrator.results import BestEffortResult, NodeResult, best_effort

if TYPE_CHECKING:
    from callflow.gateways import ServiceGateways

logger = get_logger(__name__)


class FlowExecutionController:
    """Flow state machine over the external services.

    Usage:
        controller = FlowExecutionController(gateways)

        state = await controller.start("call-1", "flow-42", "+15551234567")
        # ... transcript webhook ...
        state = await controller.continue_flow("call-1", "I want to pay my bill")

        await controller.end_session("call-1")
    """

    def __init__(
        self,
        gateways: ServiceGateways,
        registry: SessionRegistry | None = None,
        config: HandlerConfig | None = None,
        default_voice: VoiceSettings | None = None,
        replace_existing: bool = False,
        failure_history: int = FLOW.FAILURE_HISTORY_SIZE,
    ) -> None:
        self._gateways = gateways
        self._registry = registry or SessionRegistry()
        self._default_voice = default_voice or VoiceSettings()
        self._replace_existing = replace_existing
        self._handlers = NodeHandlers(
            registry=self._registry,
            gateways=gateways,
            config=config or HandlerConfig(),
            on_continue=self._on_continuation_fired,
            on_terminate=self._on_termination_fired,
            end_session=self.end_session,
        )
        self._dispatcher = NodeDispatcher(self._handlers)
        self._failures: deque[BestEffortResult] = deque(maxlen=failure_history)
        # Timers whose callbacks are executing
        self._running: set[ContinuationTimer] = set()

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        gateways: ServiceGateways,
        registry: SessionRegistry | None = None,
    ) -> FlowExecutionController:
        """Build a controller configured from application settings."""
        return cls(
            gateways=gateways,
            registry=registry or SessionRegistry(max_sessions=settings.max_concurrent_calls),
            config=HandlerConfig.from_settings(settings),
            default_voice=VoiceSettings(
                voice_id=settings.default_voice_id,
                tier=settings.default_voice_tier,
            ),
            replace_existing=settings.replace_existing_sessions,
        )

    @property
    def registry(self) -> SessionRegistry:
        return self._registry

    @property
    def gateways(self) -> ServiceGateways:
        return self._gateways

    @property
    def default_voice(self) -> VoiceSettings:
        return self._default_voice

    @property
    def active_session_count(self) -> int:
        """Number of calls currently executing."""
        return self._registry.active_count

    @property
    def recent_failures(self) -> list[BestEffortResult]:
        """Most recent non-fatal failures, oldest first."""
        return list(self._failures)

    # -------------------------------------------------------------------------
    # Entry points
    # -------------------------------------------------------------------------

    async def start(
        self,
        call_id: str,
        flow_id: str,
        caller_address: str | None = None,
        voice_settings: VoiceSettings | None = None,
    ) -> FlowState:
        """Begin executing a flow for a new call.

        Args:
            call_id: Telephony call identifier
            flow_id: Flow definition to execute
            caller_address: Caller phone number or SIP address
            voice_settings: Synthesis configuration for the whole call

        Returns:
            The initial flow state (its side effects have already begun)

        Raises:
            DuplicateSessionError: Call already has a session or a start in flight
            SessionLimitError: No free session slot
            GatewayError: Flow State Service failed; no session is created
        """
        bind_call(call_id)
        try:
            voice = voice_settings or self._default_voice
            call_log = CallLogger(call_id)

            if call_id in self._registry:
                if not self._replace_existing:
                    raise DuplicateSessionError(call_id)
                call_log.session_replaced(flow_id)
                await self.end_session(call_id, reason="replaced")

            # Claims the call before any outbound request
            await self._registry.reserve(call_id)
            try:
                started_at = utcnow()
                flow_state = await self._gateways.flow_state.begin_flow(
                    call_id, flow_id, caller_address, started_at, voice
                )

                session = Session(
                    call_id=call_id,
                    flow_id=flow_id,
                    voice_settings=voice,
                    caller_address=caller_address,
                    started_at=started_at,
                )
                await self._registry.add(session)
            finally:
                self._registry.release(call_id)
            record_session_start()
            call_log.session_started(
                flow_id,
                {"caller_address": caller_address, "voice_id": voice.voice_id, "tier": voice.tier},
            )

            async with session.lock:
                await self._dispatch(session, flow_state)
            return flow_state
        finally:
            unbind_call()

    async def continue_flow(
        self,
        call_id: str,
        external_input: str | None = None,
    ) -> FlowState:
        """Advance a call to its next node.

        Args:
            call_id: Telephony call identifier
            external_input: Transcribed utterance, or None for an automatic advance

        Returns:
            The flow state that was dispatched

        Raises:
            SessionNotFoundError: No session for the call (nothing is sent anywhere)
            SessionStateError: The call is already ending
            GatewayError: Flow State Service or a fatal side effect failed;
                the session is kept so the caller may retry
            UnsupportedNodeError: Flow state named an unknown node kind
        """
        bind_call(call_id)
        try:
            session = self._require(call_id)
            self._ensure_open(session)
            # Fresh input supersedes any pending automatic advance
            session.cancel_pending(CancelReason.SUPERSEDED)

            async with session.lock:
                if self._registry.get(call_id) is not session:
                    raise SessionNotFoundError(call_id)
                self._ensure_open(session)
                # A timer may have been scheduled while we waited for the lock
                session.cancel_pending(CancelReason.SUPERSEDED)
                return await self._advance(session, external_input)
        finally:
            unbind_call()

    async def end_session(self, call_id: str, reason: str = "end") -> bool:
        """Tear down a call's session.

        Cancels pending timers, removes the session and asks the Flow State
        Service to drop its context (best effort). Safe to call repeatedly
        or for unknown calls.

        Returns:
            True if a session was removed by this call
        """
        session = self._registry.get(call_id)
        if session is None:
            return False

        session.cancel_pending(CancelReason.SESSION_ENDED)
        removed = await self._registry.remove(call_id, session)
        if removed is None:
            return False

        discard = await best_effort(
            "discard_context",
            call_id,
            self._gateways.flow_state.discard_context(call_id),
        )
        self._record_failures([discard])

        record_session_end(reason)
        CallLogger(call_id).session_ended(reason=reason, duration_s=session.duration_s)
        return True

    # -------------------------------------------------------------------------
    # Monitoring
    # -------------------------------------------------------------------------

    def get_session(self, call_id: str) -> Session | None:
        return self._registry.get(call_id)

    def get_session_info(self, call_id: str) -> dict[str, Any] | None:
        """Snapshot of one session, or None."""
        session = self._registry.get(call_id)
        return session.to_dict() if session else None

    def list_active_sessions(self) -> list[dict[str, Any]]:
        """Snapshots of every active session."""
        return [s.to_dict() for s in self._registry.list_sessions()]

    # -------------------------------------------------------------------------
    # Deployment
    # -------------------------------------------------------------------------

    async def deploy_flow(self, flow_data: dict[str, Any]) -> dict[str, Any]:
        """Publish a flow definition to the Flow State Service."""
        logger.info("flow_deploying", flow_id=flow_data.get("id"))
        result = await self._gateways.flow_state.deploy_flow(flow_data)
        logger.info("flow_deployed", flow_id=flow_data.get("id"))
        return result

    async def register_flow_with_telephony(
        self,
        flow_id: str,
        phone_numbers: list[str],
    ) -> dict[str, Any]:
        """Route calls on phone_numbers to the flow's execute webhook."""
        webhook_url = f"{self._gateways.flow_state.base_url}/webhook/execute"
        result = await self._gateways.telephony.register_flow(flow_id, phone_numbers, webhook_url)
        logger.info("flow_registered", flow_id=flow_id, phone_numbers=phone_numbers)
        return result

    async def shutdown(self) -> int:
        """End every active session and wait for fired timers to finish.

        Pending timers are cancelled by end_session. Timers that already
        fired are joined so that none is still using a gateway when the
        caller closes them.

        Returns:
            Number of sessions ended
        """
        count = 0
        for call_id in self._registry.list_call_ids():
            if await self.end_session(call_id, reason="shutdown"):
                count += 1

        running = list(self._running)
        if running:
            logger.info("continuations_draining", count=len(running))
            # Callback failures are already logged by the timer
            await asyncio.gather(*(t.wait() for t in running), return_exceptions=True)
        return count

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    def _require(self, call_id: str) -> Session:
        session = self._registry.get(call_id)
        if session is None:
            raise SessionNotFoundError(call_id)
        return session

    def _ensure_open(self, session: Session) -> None:
        if session.closing:
            raise SessionStateError(
                f"Call is ending: {session.call_id}",
                call_id=session.call_id,
                current_state="closing",
            )

    async def _advance(self, session: Session, external_input: str | None) -> FlowState:
        """Fetch and dispatch the next flow state. Caller holds session.lock."""
        flow_state = await self._gateways.flow_state.advance_flow(
            session.call_id, session.flow_id, external_input
        )
        await self._dispatch(session, flow_state)
        return flow_state

    async def _dispatch(self, session: Session, flow_state: FlowState) -> NodeResult:
        step = session.record_state(flow_state)
        CallLogger(session.call_id).node_dispatched(
            flow_state.kind_label, step, flow_state.next_action.value
        )
        result = await self._dispatcher.dispatch(session.call_id, flow_state)
        session.last_result = result
        self._record_failures(result.best_effort)
        return result

    def _record_failures(self, results: list[BestEffortResult]) -> None:
        self._failures.extend(r for r in results if not r.ok)

    def _session_for_timer(self, timer: ContinuationTimer) -> Session | None:
        """The timer's session, if the timer still matches its step."""
        session = self._registry.get(timer.call_id)
        if (
            session is None
            or session.step != timer.step
            or session.current_node_kind is not timer.node_kind
        ):
            return None
        return session

    def _discard(self, timer: ContinuationTimer) -> None:
        session = self._registry.get(timer.call_id)
        record_continuation("stale")
        ContinuationLogger(timer.call_id).discarded(
            timer.node_kind.value,
            timer.step,
            session.current_node_kind.value if session and session.current_node_kind else None,
        )

    async def _on_continuation_fired(self, timer: ContinuationTimer) -> None:
        """Automatic advance after a Say or Decision node."""
        bind_call(timer.call_id)
        self._running.add(timer)
        try:
            session = self._session_for_timer(timer)
            if session is None:
                self._discard(timer)
                return

            async with session.lock:
                # Re-check: an external continue may have run while we waited
                if self._session_for_timer(timer) is not session or session.closing:
                    self._discard(timer)
                    return
                await self._advance(session, None)
        finally:
            self._running.discard(timer)
            unbind_call()

    async def _on_termination_fired(self, timer: ContinuationTimer) -> None:
        """End the session and hang up after an End node's prompt."""
        bind_call(timer.call_id)
        self._running.add(timer)
        try:
            if self._session_for_timer(timer) is None:
                self._discard(timer)
                return

            await self.end_session(timer.call_id, reason="end")
            hangup = await best_effort(
                "end_call",
                timer.call_id,
                self._gateways.telephony.end_call(timer.call_id),
            )
            self._record_failures([hangup])
        finally:
            self._running.discard(timer)
            unbind_call()
