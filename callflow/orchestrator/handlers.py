"""Node Handlers - side effects and continuation policy per node kind.

| Node     | Side effect                         | Continuation                      |
|----------|-------------------------------------|-----------------------------------|
| say      | synthesize response_text            | auto-advance after say delay      |
| collect  | arm speech recognition              | wait for transcript webhook       |
| decision | none (resolved by Flow State)       | auto-advance after decision delay |
| transfer | transfer call with collected data   | end session on success            |
| end      | synthesize response_text if present | end session and hang up later     |

Transient failures are returned as BestEffortResult entries on the
NodeResult. Fatal failures raise and leave the session in place. The End
node has no fatal failures: its call is always hung up.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Awaitable, Callable

from callflow.config.constants import FLOW
from callflow.config.settings import Settings
from callflow.exceptions import GatewayError, GatewayTimeoutError, SessionNotFoundError
from callflow.observability.logging import CallLogger
from callflow.orchestrator.continuation import ContinuationTimer, TimerCallback
from callflow.orchestrator.models import FlowState, NodeKind, Session
from callflow.orchestrator.registry import SessionRegistry
from callflow.orchestrator.results import BestEffortResult, NodeResult, best_effort

if TYPE_CHECKING:
    from callflow.gateways import ServiceGateways

EndSession = Callable[..., Awaitable[bool]]


@dataclass(frozen=True)
class HandlerConfig:
    """Timing and speech options for node handlers."""

    say_delay_s: float = FLOW.SAY_CONTINUE_DELAY_MS / 1000.0
    decision_delay_s: float = FLOW.DECISION_CONTINUE_DELAY_MS / 1000.0
    end_delay_s: float = FLOW.END_HANGUP_DELAY_MS / 1000.0
    recognition_language: str = FLOW.RECOGNITION_LANGUAGE
    recognition_interim_results: bool = True

    @classmethod
    def from_settings(cls, settings: Settings) -> HandlerConfig:
        return cls(
            say_delay_s=settings.say_continue_delay_ms / 1000.0,
            decision_delay_s=settings.decision_continue_delay_ms / 1000.0,
            end_delay_s=settings.end_hangup_delay_ms / 1000.0,
            recognition_language=settings.recognition_language,
            recognition_interim_results=settings.recognition_interim_results,
        )


class NodeHandlers:
    """Implements each node kind for the dispatcher.

    Args:
        registry: Session registry shared with the controller
        gateways: External service clients
        config: Delays and recognition options
        on_continue: Fired when a Say/Decision auto-continuation elapses
        on_terminate: Fired when an End node's hang-up delay elapses
        end_session: Controller cleanup, used after a successful transfer
    """

    def __init__(
        self,
        registry: SessionRegistry,
        gateways: ServiceGateways,
        config: HandlerConfig,
        on_continue: TimerCallback,
        on_terminate: TimerCallback,
        end_session: EndSession,
    ) -> None:
        self._registry = registry
        self._gateways = gateways
        self._config = config
        self._on_continue = on_continue
        self._on_terminate = on_terminate
        self._end_session = end_session

    @property
    def config(self) -> HandlerConfig:
        return self._config

    async def handle_say(self, call_id: str, flow_state: FlowState) -> NodeResult:
        """Speak the prompt, then auto-advance if the flow says continue."""
        session = self._session(call_id)
        result = NodeResult(NodeKind.SAY)

        if flow_state.response_text:
            result.best_effort.append(await self._speak(session, flow_state.response_text))

        if flow_state.auto_continue:
            result.continuation_scheduled = self._schedule(
                session, NodeKind.SAY, self._config.say_delay_s, self._on_continue
            )
        return result

    async def handle_collect(self, call_id: str, flow_state: FlowState) -> NodeResult:
        """Arm recognition; the transcript webhook continues the flow."""
        self._session(call_id)
        result = NodeResult(NodeKind.COLLECT)
        result.best_effort.append(
            await best_effort(
                "arm_recognition",
                call_id,
                self._gateways.recognition.arm(
                    call_id,
                    language=self._config.recognition_language,
                    interim_results=self._config.recognition_interim_results,
                ),
            )
        )
        return result

    async def handle_decision(self, call_id: str, flow_state: FlowState) -> NodeResult:
        """Branching already happened server-side; pause briefly and advance."""
        session = self._session(call_id)
        result = NodeResult(NodeKind.DECISION)
        if flow_state.auto_continue:
            result.continuation_scheduled = self._schedule(
                session, NodeKind.DECISION, self._config.decision_delay_s, self._on_continue
            )
        return result

    async def handle_transfer(self, call_id: str, flow_state: FlowState) -> NodeResult:
        """Hand the call off and end the session.

        Raises:
            GatewayError: Transfer failed; the session is kept for a retry
        """
        self._session(call_id)
        result = NodeResult(NodeKind.TRANSFER)

        if not (flow_state.transfer_required and flow_state.transfer_target):
            CallLogger(call_id).transfer_skipped()
            return result

        await self._gateways.telephony.transfer_call(
            call_id,
            flow_state.transfer_target,
            context=flow_state.collected_data,
        )
        result.session_ended = await self._end_session(call_id, reason="transfer")
        return result

    async def handle_end(self, call_id: str, flow_state: FlowState) -> NodeResult:
        """Play the closing prompt, then hang up after the end delay.

        A failed goodbye is recorded, never raised; termination is always scheduled.
        """
        session = self._session(call_id)
        result = NodeResult(NodeKind.END)
        session.closing = True

        if flow_state.response_text:
            result.best_effort.append(
                await self._speak(session, flow_state.response_text, tolerated=GatewayError)
            )

        result.termination_scheduled = self._schedule(
            session, NodeKind.END, self._config.end_delay_s, self._on_terminate
        )
        return result

    def _session(self, call_id: str) -> Session:
        session = self._registry.get(call_id)
        if session is None:
            raise SessionNotFoundError(call_id, operation="dispatch")
        return session

    async def _speak(
        self,
        session: Session,
        text: str,
        tolerated: type[GatewayError] = GatewayTimeoutError,
    ) -> BestEffortResult:
        # By default only timeouts are transient; other synthesis failures propagate
        return await best_effort(
            "synthesize",
            session.call_id,
            self._gateways.synthesis.synthesize(session.call_id, text, session.voice_settings),
            tolerated=tolerated,
        )

    def _schedule(
        self,
        session: Session,
        node_kind: NodeKind,
        delay_s: float,
        callback: TimerCallback,
    ) -> bool:
        # A session removed mid-dispatch must not get new work
        if self._registry.get(session.call_id) is not session:
            return False

        timer = ContinuationTimer(
            call_id=session.call_id,
            node_kind=node_kind,
            step=session.step,
            delay_s=delay_s,
            callback=callback,
        )
        session.schedule(timer)
        timer.start()
        return True
