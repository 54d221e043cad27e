"""Call Flow Exception Hierarchy.

Provides structured exception classes for the flow execution orchestrator.
Every error carries enough context (call, node, service, operation) for the
telephony integrator to choose a fallback such as transfer-to-human.

Hierarchy:
    CallFlowError (base)
    ├── SessionError
    │   ├── SessionNotFoundError
    │   ├── DuplicateSessionError
    │   ├── SessionLimitError
    │   └── SessionStateError
    ├── ConfigurationError
    │   └── MissingConfigError
    ├── FlowNodeError
    │   └── UnsupportedNodeError
    └── GatewayError
        ├── GatewayConnectionError
        ├── GatewayResponseError
        └── GatewayTimeoutError
"""

from typing import Any


class CallFlowError(Exception):
    """Base exception for all call flow errors.

    Attributes:
        message: Human-readable error description
        details: Additional context about the error
        recoverable: Whether the error can be recovered from
    """

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
        recoverable: bool = False,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}
        self.recoverable = recoverable

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} ({self.details})"
        return self.message

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to dictionary for logging/serialization."""
        return {
            "type": self.__class__.__name__,
            "message": self.message,
            "details": self.details,
            "recoverable": self.recoverable,
        }


# =============================================================================
# Session Errors
# =============================================================================


class SessionError(CallFlowError):
    """Base exception for session-related errors."""

    def __init__(
        self,
        message: str,
        call_id: str | None = None,
        details: dict[str, Any] | None = None,
        recoverable: bool = False,
    ) -> None:
        details = details or {}
        if call_id:
            details["call_id"] = call_id
        super().__init__(message, details, recoverable)
        self.call_id = call_id


class SessionNotFoundError(SessionError):
    """Raised when no active session exists for a call."""

    def __init__(self, call_id: str, operation: str = "continue") -> None:
        super().__init__(
            message=f"No active session for call: {call_id}",
            call_id=call_id,
            details={"operation": operation},
            recoverable=False,
        )
        self.operation = operation


class DuplicateSessionError(SessionError):
    """Raised when a session already exists for a call."""

    def __init__(self, call_id: str) -> None:
        super().__init__(
            message=f"Session already active for call: {call_id}",
            call_id=call_id,
            details={"operation": "start"},
            recoverable=False,
        )


class SessionLimitError(SessionError):
    """Raised when the concurrent call limit is reached."""

    def __init__(self, max_sessions: int, current_sessions: int) -> None:
        super().__init__(
            message=f"Session limit reached: {current_sessions}/{max_sessions}",
            details={
                "max_sessions": max_sessions,
                "current_sessions": current_sessions,
            },
            recoverable=True,  # Can retry when a call ends
        )


class SessionStateError(SessionError):
    """Raised when a session cannot accept the requested operation."""

    def __init__(
        self,
        message: str,
        call_id: str | None = None,
        current_state: str | None = None,
    ) -> None:
        details = {}
        if current_state:
            details["current_state"] = current_state
        super().__init__(message, call_id, details, recoverable=False)


# =============================================================================
# Configuration Errors
# =============================================================================


class ConfigurationError(CallFlowError):
    """Base exception for configuration-related errors."""

    pass


class MissingConfigError(ConfigurationError):
    """Raised when a required configuration is missing."""

    def __init__(self, config_key: str, description: str | None = None) -> None:
        message = f"Missing required configuration: {config_key}"
        if description:
            message += f" - {description}"
        super().__init__(
            message=message,
            details={"config_key": config_key},
            recoverable=False,
        )
        self.config_key = config_key


# =============================================================================
# Flow Node Errors
# =============================================================================


class FlowNodeError(CallFlowError):
    """Base exception for node dispatch errors."""

    pass


class UnsupportedNodeError(FlowNodeError):
    """Raised when the flow state names a node kind with no handler.

    The session is kept so the integrator can transfer or end the call.
    """

    def __init__(self, call_id: str, node_kind: str | None) -> None:
        super().__init__(
            message=f"Unsupported node kind: {node_kind!r}",
            details={
                "call_id": call_id,
                "node_kind": node_kind,
                "operation": "dispatch",
            },
            recoverable=True,
        )
        self.call_id = call_id
        self.node_kind = node_kind


# =============================================================================
# Gateway Errors
# =============================================================================


class GatewayError(CallFlowError):
    """Base exception for external service calls.

    Attributes:
        service: Gateway name (flow_state, synthesis, recognition, telephony)
        operation: Gateway operation that failed
        call_id: Call the request was made for, if any
        node_kind: Node being executed when the failure happened, if known
    """

    def __init__(
        self,
        service: str,
        operation: str,
        reason: str,
        call_id: str | None = None,
        details: dict[str, Any] | None = None,
        recoverable: bool = False,
    ) -> None:
        details = {
            "service": service,
            "operation": operation,
            "reason": reason,
            **(details or {}),
        }
        if call_id:
            details["call_id"] = call_id
        super().__init__(
            message=f"{service}.{operation} failed: {reason}",
            details=details,
            recoverable=recoverable,
        )
        self.service = service
        self.operation = operation
        self.reason = reason
        self.call_id = call_id
        self.node_kind: str | None = None

    def with_node(self, node_kind: str) -> "GatewayError":
        """Attach the node kind being executed."""
        self.node_kind = node_kind
        self.details["node_kind"] = node_kind
        return self


class GatewayConnectionError(GatewayError):
    """Raised when a service cannot be reached."""

    def __init__(
        self,
        service: str,
        operation: str,
        reason: str,
        call_id: str | None = None,
    ) -> None:
        super().__init__(
            service, operation, reason, call_id,
            recoverable=True,  # Connection can be retried
        )


class GatewayResponseError(GatewayError):
    """Raised when a service answers with a non-success status."""

    def __init__(
        self,
        service: str,
        operation: str,
        status_code: int,
        call_id: str | None = None,
    ) -> None:
        super().__init__(
            service,
            operation,
            f"HTTP {status_code}",
            call_id,
            details={"status_code": status_code},
            recoverable=status_code >= 500,
        )
        self.status_code = status_code


class GatewayTimeoutError(GatewayError):
    """Raised when a service call exceeds its timeout."""

    def __init__(
        self,
        service: str,
        operation: str,
        timeout_s: float,
        call_id: str | None = None,
    ) -> None:
        super().__init__(
            service,
            operation,
            f"timed out after {timeout_s}s",
            call_id,
            details={"timeout_s": timeout_s},
            recoverable=True,
        )
        self.timeout_s = timeout_s
