"""Flow execution data model.

- NodeKind / NextAction: closed vocabularies of the Flow State Service
- FlowState: one next-step descriptor, never cached
- VoiceSettings: synthesis configuration frozen at call start
- Session: orchestrator-owned runtime record of one live call
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import TYPE_CHECKING, Any

from callflow.config.constants import FLOW

from callflow.orchestrator.continuation import CancelReason, ContinuationTimer

if TYPE_CHECKING:
    from callflow.orchestrator.results import NodeResult


class NodeKind(Enum):
    """Behavioral category of a flow node."""

    SAY = "say"
    COLLECT = "collect"
    DECISION = "decision"
    TRANSFER = "transfer"
    END = "end"

    @classmethod
    def parse(cls, value: Any) -> NodeKind | None:
        """Map a wire value to a NodeKind, or None if unrecognized."""
        try:
            return cls(value)
        except ValueError:
            return None


class NextAction(Enum):
    """What the flow does after a node's side effect."""

    CONTINUE = "continue"
    WAIT = "wait"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class FlowState:
    """Next-step descriptor returned by the Flow State Service.

    Wire format (snake_case JSON):
    {
        "node_type": "say",
        "response_text": "Hello",
        "next_action": "continue",
        "transfer_required": false,
        "transfer_queue": null,
        "collected_data": {}
    }
    """

    node_kind: NodeKind | None
    raw_node_kind: str | None = None
    response_text: str | None = None
    next_action: NextAction = NextAction.WAIT
    transfer_required: bool = False
    transfer_target: str | None = None
    collected_data: dict[str, Any] = field(default_factory=dict)
    raw: dict[str, Any] = field(default_factory=dict)

    @property
    def auto_continue(self) -> bool:
        return self.next_action is NextAction.CONTINUE

    @property
    def kind_label(self) -> str:
        """Node kind for logs and metrics, including unrecognized values."""
        if self.node_kind is not None:
            return self.node_kind.value
        return str(self.raw_node_kind)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> FlowState:
        """Create from a Flow State Service response body.

        Raises:
            ValueError: If collected_data is present but not an object
        """
        raw_kind = data.get("node_type")
        collected = data.get("collected_data") or {}
        if not isinstance(collected, dict):
            raise ValueError(f"collected_data must be an object, got {type(collected).__name__}")
        try:
            next_action = NextAction(data.get("next_action"))
        except ValueError:
            next_action = NextAction.WAIT

        return cls(
            node_kind=NodeKind.parse(raw_kind),
            raw_node_kind=raw_kind,
            response_text=data.get("response_text") or None,
            next_action=next_action,
            transfer_required=bool(data.get("transfer_required", False)),
            transfer_target=data.get("transfer_queue"),
            collected_data=dict(collected),
            raw=dict(data),
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to the wire format."""
        return {
            "node_type": self.kind_label,
            "response_text": self.response_text,
            "next_action": self.next_action.value,
            "transfer_required": self.transfer_required,
            "transfer_queue": self.transfer_target,
            "collected_data": self.collected_data,
        }


@dataclass(frozen=True)
class VoiceSettings:
    """Synthesis configuration chosen at call start."""

    voice_id: str = FLOW.DEFAULT_VOICE_ID
    tier: str = FLOW.DEFAULT_VOICE_TIER

    @property
    def is_premium(self) -> bool:
        return self.tier == FLOW.PREMIUM_VOICE_TIER

    def to_dict(self) -> dict[str, str]:
        return {"voice_id": self.voice_id, "tier": self.tier}

    @classmethod
    def from_dict(
        cls,
        data: dict[str, Any] | None,
        default: VoiceSettings | None = None,
    ) -> VoiceSettings:
        """Create from a request payload, filling gaps from default."""
        default = default or cls()
        data = data or {}
        return cls(
            voice_id=data.get("voice_id") or data.get("voice") or default.voice_id,
            tier=data.get("tier") or default.tier,
        )


class Session:
    """Runtime record of one live call's progress through a flow.

    Mutated in place by every continuation. All continuations for the call
    run under `lock`; `step` increases with every dispatch so a stale
    auto-continuation can be told apart from a fresh one of the same kind.
    """

    def __init__(
        self,
        call_id: str,
        flow_id: str,
        voice_settings: VoiceSettings,
        caller_address: str | None = None,
        started_at: datetime | None = None,
    ) -> None:
        self.call_id = call_id
        self.flow_id = flow_id
        self.voice_settings = voice_settings
        self.caller_address = caller_address
        self.started_at = started_at or utcnow()
        self.last_updated_at = self.started_at
        self.current_node_kind: NodeKind | None = None
        self.step: int = 0
        self.closing: bool = False
        self.last_result: NodeResult | None = None
        self.lock = asyncio.Lock()
        self._pending: ContinuationTimer | None = None

    @property
    def pending_continuation(self) -> ContinuationTimer | None:
        """Scheduled timer that has not yet fired or been cancelled."""
        if self._pending is not None and self._pending.is_pending:
            return self._pending
        return None

    @property
    def duration_s(self) -> float:
        return (utcnow() - self.started_at).total_seconds()

    def record_state(self, flow_state: FlowState) -> int:
        """Advance to a newly received flow state.

        Returns:
            The step number assigned to this state
        """
        self.current_node_kind = flow_state.node_kind
        self.last_updated_at = utcnow()
        self.step += 1
        return self.step

    def schedule(self, timer: ContinuationTimer) -> None:
        """Own a new timer, replacing any pending one."""
        self.cancel_pending(CancelReason.SUPERSEDED)
        self._pending = timer

    def cancel_pending(self, reason: CancelReason) -> bool:
        """Cancel the pending timer, if any.

        Returns:
            True if a timer was cancelled before firing
        """
        timer = self._pending
        self._pending = None
        if timer is None:
            return False
        return timer.cancel(reason)

    def to_dict(self) -> dict[str, Any]:
        """Snapshot for monitoring endpoints."""
        pending = self.pending_continuation
        return {
            "call_id": self.call_id,
            "flow_id": self.flow_id,
            "caller_address": self.caller_address,
            "started_at": self.started_at.isoformat(),
            "last_updated_at": self.last_updated_at.isoformat(),
            "current_node_kind": (
                self.current_node_kind.value if self.current_node_kind else None
            ),
            "step": self.step,
            "closing": self.closing,
            "voice_settings": self.voice_settings.to_dict(),
            "pending_continuation": pending.node_kind.value if pending else None,
        }
