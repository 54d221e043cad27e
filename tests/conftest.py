"""Pytest configuration and shared fixtures."""

import os
from typing import Any, Callable, Generator
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient

# Set test environment variables before importing settings
os.environ.update({
    "ENVIRONMENT": "development",
    "FLOW_STATE_URL": "http://flow-state.test",
    "SYNTHESIS_URL": "http://synthesis.test",
    "TELEPHONY_URL": "http://telephony.test",
    "MAX_CONCURRENT_CALLS": "5",
})

from callflow.orchestrator import FlowExecutionController, FlowState, HandlerConfig  # noqa: E402


@pytest.fixture
def test_settings():
    """Provide test settings instance."""
    from callflow.config.settings import Settings
    return Settings(
        _env_file=None,
        flow_state_url="http://flow-state.test",
        synthesis_url="http://synthesis.test",
        telephony_url="http://telephony.test",
        max_concurrent_calls=5,
    )


@pytest.fixture
def make_state() -> Callable[..., FlowState]:
    """Build a FlowState from wire-format fields."""

    def _make(
        node_type: str,
        response_text: str | None = None,
        next_action: str = "wait",
        **extra: Any,
    ) -> FlowState:
        return FlowState.from_dict({
            "node_type": node_type,
            "response_text": response_text,
            "next_action": next_action,
            **extra,
        })

    return _make


@pytest.fixture
def gateways() -> MagicMock:
    """Service gateways with every remote operation mocked."""
    gw = MagicMock()
    gw.flow_state.base_url = "http://flow-state.test"
    gw.flow_state.begin_flow = AsyncMock()
    gw.flow_state.advance_flow = AsyncMock()
    gw.flow_state.discard_context = AsyncMock(return_value=None)
    gw.flow_state.deploy_flow = AsyncMock(return_value={"id": "flow-42", "status": "deployed"})
    gw.synthesis.synthesize = AsyncMock(return_value=None)
    gw.recognition.arm = AsyncMock(return_value=None)
    gw.telephony.transfer_call = AsyncMock(return_value=None)
    gw.telephony.end_call = AsyncMock(return_value=None)
    gw.telephony.register_flow = AsyncMock(return_value={"registered": True})
    gw.close = AsyncMock()
    return gw


@pytest.fixture
def fast_config() -> HandlerConfig:
    """Handler delays short enough for timers to fire inside a test."""
    return HandlerConfig(say_delay_s=0.01, decision_delay_s=0.01, end_delay_s=0.01)


@pytest.fixture
def slow_config() -> HandlerConfig:
    """Handler delays long enough that timers never fire inside a test."""
    return HandlerConfig(say_delay_s=30.0, decision_delay_s=30.0, end_delay_s=30.0)


@pytest.fixture
def controller(gateways: MagicMock, fast_config: HandlerConfig) -> FlowExecutionController:
    """Controller over mocked gateways with fast timers."""
    return FlowExecutionController(gateways, config=fast_config)


@pytest.fixture
def slow_controller(gateways: MagicMock, slow_config: HandlerConfig) -> FlowExecutionController:
    """Controller over mocked gateways whose timers stay pending."""
    return FlowExecutionController(gateways, config=slow_config)


@pytest.fixture
def client() -> Generator[TestClient, None, None]:
    """Provide FastAPI test client."""
    from callflow.main import app
    with TestClient(app) as c:
        yield c


@pytest.fixture
def api_client(gateways: MagicMock, slow_config: HandlerConfig) -> Generator[TestClient, None, None]:
    """Test client whose controller talks to mocked gateways."""
    from callflow.api.routes import calls
    from callflow.main import app

    controller = FlowExecutionController(gateways, config=slow_config)
    calls.set_controller(controller)
    try:
        with TestClient(app) as c:
            c.controller = controller
            yield c
    finally:
        calls.set_controller(None)
