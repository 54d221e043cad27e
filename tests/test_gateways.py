"""Tests for the HTTP service gateways.

Requests are served by httpx.MockTransport so paths, bodies and headers
can be asserted without a network.
"""

import json
from datetime import datetime, timezone

import httpx
import pytest

from callflow.exceptions import (
    GatewayConnectionError,
    GatewayError,
    GatewayResponseError,
    GatewayTimeoutError,
    MissingConfigError,
)
from callflow.gateways import (
    CredentialStore,
    FlowStateGateway,
    RecognitionGateway,
    ServiceGateways,
    SynthesisGateway,
    TelephonyGateway,
)
from callflow.orchestrator.models import NodeKind, VoiceSettings


class Recorder:
    """MockTransport handler that records requests and replays responses."""

    def __init__(self, response: httpx.Response | None = None, error: Exception | None = None):
        self.requests: list[httpx.Request] = []
        self._response = response or httpx.Response(200, json={})
        self._error = error

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self._error is not None:
            raise self._error
        return self._response

    @property
    def last(self) -> httpx.Request:
        return self.requests[-1]

    @property
    def last_json(self) -> dict:
        return json.loads(self.last.content)


@pytest.fixture
def credentials() -> CredentialStore:
    return CredentialStore(token="secret-token")


def _gateway(cls, recorder: Recorder, credentials: CredentialStore, **kwargs):
    return cls(
        "http://service.test/",
        credentials,
        timeout_s=1.0,
        transport=httpx.MockTransport(recorder),
        **kwargs,
    )


class TestCredentialStore:
    """Tests for the credential store."""

    def test_bearer_header(self, credentials):
        """Every request carries the bearer token."""
        headers = credentials.auth_headers()
        assert headers["Authorization"] == "Bearer secret-token"
        assert headers["Content-Type"] == "application/json"

    def test_rotate_token(self, credentials):
        """Token rotation applies to later headers."""
        credentials.set_token("rotated")
        assert credentials.auth_headers()["Authorization"] == "Bearer rotated"


class TestServiceGateway:
    """Tests for shared transport behavior."""

    def test_missing_url(self, credentials):
        """A gateway without a base URL cannot be built."""
        with pytest.raises(MissingConfigError) as exc_info:
            FlowStateGateway(None, credentials, timeout_s=1.0)
        assert exc_info.value.config_key == "flow_state_url"

    def test_base_url_trailing_slash(self, credentials):
        """Trailing slash is stripped."""
        gateway = _gateway(FlowStateGateway, Recorder(), credentials)
        assert gateway.base_url == "http://service.test"

    @pytest.mark.asyncio
    async def test_sends_bearer_token(self, credentials):
        """Authorization header is attached."""
        recorder = Recorder()
        gateway = _gateway(TelephonyGateway, recorder, credentials)

        await gateway.end_call("call-1")

        assert recorder.last.headers["Authorization"] == "Bearer secret-token"
        await gateway.close()

    @pytest.mark.asyncio
    async def test_error_status(self, credentials):
        """Non-2xx responses raise GatewayResponseError."""
        gateway = _gateway(TelephonyGateway, Recorder(httpx.Response(503)), credentials)

        with pytest.raises(GatewayResponseError) as exc_info:
            await gateway.end_call("call-1")

        error = exc_info.value
        assert error.status_code == 503
        assert error.service == "telephony"
        assert error.operation == "end_call"
        assert error.call_id == "call-1"
        assert error.recoverable is True

    @pytest.mark.asyncio
    async def test_timeout(self, credentials):
        """Transport timeouts raise GatewayTimeoutError."""
        recorder = Recorder(error=httpx.ReadTimeout("timed out"))
        gateway = _gateway(RecognitionGateway, recorder, credentials)

        with pytest.raises(GatewayTimeoutError) as exc_info:
            await gateway.arm("call-1", language="en-US")
        assert exc_info.value.operation == "arm_recognition"

    @pytest.mark.asyncio
    async def test_connection_error(self, credentials):
        """Unreachable services raise GatewayConnectionError."""
        recorder = Recorder(error=httpx.ConnectError("refused"))
        gateway = _gateway(SynthesisGateway, recorder, credentials)

        with pytest.raises(GatewayConnectionError):
            await gateway.synthesize("call-1", "Hello", VoiceSettings())

    @pytest.mark.asyncio
    async def test_invalid_json(self, credentials):
        """Undecodable bodies raise GatewayError."""
        recorder = Recorder(httpx.Response(200, content=b"not json"))
        gateway = _gateway(FlowStateGateway, recorder, credentials)

        with pytest.raises(GatewayError, match="invalid JSON"):
            await gateway.advance_flow("call-1", "flow-42", None)

    @pytest.mark.asyncio
    async def test_non_object_json(self, credentials):
        """Flow states must be JSON objects."""
        recorder = Recorder(httpx.Response(200, json=["say"]))
        gateway = _gateway(FlowStateGateway, recorder, credentials)

        with pytest.raises(GatewayError, match="expected a JSON object"):
            await gateway.advance_flow("call-1", "flow-42", None)


class TestFlowStateGateway:
    """Tests for the Flow State Service client."""

    @pytest.mark.asyncio
    async def test_begin_flow(self, credentials):
        """Start request carries caller context and voice."""
        recorder = Recorder(httpx.Response(200, json={
            "node_type": "say",
            "response_text": "Hello",
            "next_action": "continue",
        }))
        gateway = _gateway(FlowStateGateway, recorder, credentials)
        started_at = datetime(2024, 1, 1, tzinfo=timezone.utc)

        state = await gateway.begin_flow(
            "call-1", "flow-42", "+15551234567", started_at, VoiceSettings(voice_id="v1")
        )

        assert state.node_kind is NodeKind.SAY
        assert state.auto_continue is True
        assert recorder.last.method == "POST"
        assert recorder.last.url.path == "/flow/start"
        body = recorder.last_json
        assert body["call_id"] == "call-1"
        assert body["flow_id"] == "flow-42"
        assert body["user_data"]["phone"] == "+15551234567"
        assert body["user_data"]["started_at"] == started_at.isoformat()
        assert body["user_data"]["voice_settings"] == {"voice_id": "v1", "tier": "standard"}

    @pytest.mark.asyncio
    async def test_advance_flow(self, credentials):
        """Continue request carries the user input."""
        recorder = Recorder(httpx.Response(200, json={"node_type": "collect"}))
        gateway = _gateway(FlowStateGateway, recorder, credentials)

        state = await gateway.advance_flow("call-1", "flow-42", "pay my bill")

        assert state.node_kind is NodeKind.COLLECT
        assert recorder.last.url.path == "/flow/continue"
        assert recorder.last_json == {
            "call_id": "call-1",
            "flow_id": "flow-42",
            "user_input": "pay my bill",
        }

    @pytest.mark.asyncio
    async def test_malformed_flow_state(self, credentials):
        """A body that is not a valid flow state becomes a typed gateway error."""
        recorder = Recorder(httpx.Response(200, json={"node_type": "say", "collected_data": "oops"}))
        gateway = _gateway(FlowStateGateway, recorder, credentials)

        with pytest.raises(GatewayError) as exc_info:
            await gateway.advance_flow("call-1", "flow-42", "hello")

        assert exc_info.value.service == "flow_state"
        assert exc_info.value.operation == "advance_flow"
        assert exc_info.value.reason == "invalid flow state"
        assert exc_info.value.call_id == "call-1"

    @pytest.mark.asyncio
    async def test_discard_context(self, credentials):
        """Context is deleted by call ID."""
        recorder = Recorder(httpx.Response(204))
        gateway = _gateway(FlowStateGateway, recorder, credentials)

        await gateway.discard_context("call-1")

        assert recorder.last.method == "DELETE"
        assert recorder.last.url.path == "/context/call-1"

    @pytest.mark.asyncio
    async def test_deploy_flow(self, credentials):
        """Flow definitions are posted as-is."""
        recorder = Recorder(httpx.Response(201, json={"id": "flow-42"}))
        gateway = _gateway(FlowStateGateway, recorder, credentials)

        result = await gateway.deploy_flow({"id": "flow-42", "nodes": []})

        assert result == {"id": "flow-42"}
        assert recorder.last.url.path == "/flows"
        assert recorder.last_json == {"id": "flow-42", "nodes": []}


class TestSynthesisGateway:
    """Tests for the Speech Synthesis client."""

    @pytest.mark.asyncio
    async def test_standard_voice(self, credentials):
        """Standard voices use the standard provider."""
        recorder = Recorder()
        gateway = _gateway(SynthesisGateway, recorder, credentials)

        await gateway.synthesize("call-1", "Hello", VoiceSettings(voice_id="v1"))

        assert recorder.last.url.path == "/synthesize"
        assert recorder.last_json == {
            "text": "Hello",
            "voice_id": "v1",
            "tier": "standard",
            "provider": "azure",
            "call_id": "call-1",
        }

    @pytest.mark.asyncio
    async def test_premium_voice(self, credentials):
        """Premium voices use the premium provider."""
        recorder = Recorder()
        gateway = _gateway(SynthesisGateway, recorder, credentials, premium_provider="acme")

        await gateway.synthesize("call-1", "Hi", VoiceSettings(voice_id="v2", tier="premium"))

        assert recorder.last_json["provider"] == "acme"
        assert recorder.last_json["tier"] == "premium"


class TestRecognitionGateway:
    """Tests for the Speech Recognition client."""

    @pytest.mark.asyncio
    async def test_arm(self, credentials):
        """Arming posts language and interim flag."""
        recorder = Recorder()
        gateway = _gateway(RecognitionGateway, recorder, credentials)

        await gateway.arm("call-1", language="en-GB", interim_results=False)

        assert recorder.last.url.path == "/api/calls/call-1/asr/start"
        assert recorder.last_json == {
            "call_id": "call-1",
            "language": "en-GB",
            "interim_results": False,
        }


class TestTelephonyGateway:
    """Tests for the Telephony Control client."""

    @pytest.mark.asyncio
    async def test_transfer(self, credentials):
        """Transfer sends target and collected context."""
        recorder = Recorder()
        gateway = _gateway(TelephonyGateway, recorder, credentials)

        await gateway.transfer_call("call-1", "billing", context={"account": "123"})

        assert recorder.last.url.path == "/api/calls/call-1/transfer"
        assert recorder.last_json == {"transfer_to": "billing", "context": {"account": "123"}}

    @pytest.mark.asyncio
    async def test_end_call(self, credentials):
        """Hang-up posts to the call's end path."""
        recorder = Recorder()
        gateway = _gateway(TelephonyGateway, recorder, credentials)

        await gateway.end_call("call-1")

        assert recorder.last.method == "POST"
        assert recorder.last.url.path == "/api/calls/call-1/end"

    @pytest.mark.asyncio
    async def test_register_flow(self, credentials):
        """Registration posts numbers and webhook."""
        recorder = Recorder(httpx.Response(200, json={"registered": True}))
        gateway = _gateway(TelephonyGateway, recorder, credentials)

        result = await gateway.register_flow("flow-42", ["+15550000000"], "http://fs/webhook/execute")

        assert result == {"registered": True}
        assert recorder.last.url.path == "/admin/register-flow"
        assert recorder.last_json["webhook_url"] == "http://fs/webhook/execute"


class TestServiceGateways:
    """Tests for building all gateways from settings."""

    @pytest.mark.asyncio
    async def test_from_settings(self, test_settings, credentials):
        """Recognition falls back to the telephony URL."""
        gateways = ServiceGateways.from_settings(test_settings, credentials)

        assert gateways.flow_state.base_url == "http://flow-state.test"
        assert gateways.synthesis.base_url == "http://synthesis.test"
        assert gateways.recognition.base_url == "http://telephony.test"
        assert gateways.telephony.base_url == "http://telephony.test"
        await gateways.close()

    def test_missing_service_url(self, credentials):
        """Unconfigured services fail fast."""
        from callflow.config.settings import Settings

        settings = Settings(_env_file=None, flow_state_url=None)
        with pytest.raises(MissingConfigError):
            ServiceGateways.from_settings(settings, credentials)
