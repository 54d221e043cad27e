"""Orchestrator module - call flow execution.

Provides:
- FlowExecutionController: start / continue_flow / end_session entry points
- SessionRegistry: active call sessions
- NodeDispatcher / NodeHandlers: per-node side effects
- ContinuationTimer: cancellable auto-continuation
"""

from callflow.orchestrator.continuation import CancelReason, ContinuationTimer
from callflow.orchestrator.controller import FlowExecutionController
from callflow.orchestrator.dispatcher import NodeDispatcher
from callflow.orchestrator.handlers import HandlerConfig, NodeHandlers
from callflow.orchestrator.models import FlowState, NextAction, NodeKind, Session, VoiceSettings
from callflow.orchestrator.registry import SessionRegistry
from callflow.orchestrator.results import BestEffortResult, NodeResult

__all__ = [
    # Controller
    "FlowExecutionController",
    # Sessions
    "Session",
    "SessionRegistry",
    # Flow model
    "FlowState",
    "NodeKind",
    "NextAction",
    "VoiceSettings",
    # Dispatch
    "NodeDispatcher",
    "NodeHandlers",
    "HandlerConfig",
    "NodeResult",
    "BestEffortResult",
    # Timers
    "ContinuationTimer",
    "CancelReason",
]
