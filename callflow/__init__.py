"""Callflow - execution orchestrator for automated voice-call flows."""

__version__ = "1.0.0"

# Export exception hierarchy for easy importing
from callflow.exceptions import (
    CallFlowError,
    SessionError,
    SessionNotFoundError,
    DuplicateSessionError,
    SessionLimitError,
    SessionStateError,
    ConfigurationError,
    MissingConfigError,
    FlowNodeError,
    UnsupportedNodeError,
    GatewayError,
    GatewayConnectionError,
    GatewayResponseError,
    GatewayTimeoutError,
)

__all__ = [
    "__version__",
    # Base
    "CallFlowError",
    # Session
    "SessionError",
    "SessionNotFoundError",
    "DuplicateSessionError",
    "SessionLimitError",
    "SessionStateError",
    # Configuration
    "ConfigurationError",
    "MissingConfigError",
    # Nodes
    "FlowNodeError",
    "UnsupportedNodeError",
    # Gateways
    "GatewayError",
    "GatewayConnectionError",
    "GatewayResponseError",
    "GatewayTimeoutError",
]
