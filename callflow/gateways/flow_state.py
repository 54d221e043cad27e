"""Flow State Service gateway.

The Flow State Service stores flow definitions and decides the next node.
The orchestrator holds no graph topology; every step is fetched here.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

import httpx

from callflow.config.settings import Settings
from callflow.exceptions import GatewayError
from callflow.gateways.base import ServiceGateway
from callflow.gateways.credentials import CredentialStore
from callflow.observability.metrics import record_gateway_error
from callflow.orchestrator.models import FlowState, VoiceSettings


class FlowStateGateway(ServiceGateway):
    """Client for the Flow State Service."""

    service = "flow_state"
    config_key = "flow_state_url"

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        credentials: CredentialStore,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> FlowStateGateway:
        return cls(settings.flow_state_url, credentials, settings.gateway_timeout_s, transport)

    async def begin_flow(
        self,
        call_id: str,
        flow_id: str,
        caller_address: str | None,
        started_at: datetime,
        voice_settings: VoiceSettings,
    ) -> FlowState:
        """Request the initial flow state for a new call."""
        body = await self._request_json(
            "POST",
            "/flow/start",
            operation="begin_flow",
            call_id=call_id,
            json={
                "call_id": call_id,
                "flow_id": flow_id,
                "user_data": {
                    "phone": caller_address,
                    "started_at": started_at.isoformat(),
                    "voice_settings": voice_settings.to_dict(),
                },
            },
        )
        return self._flow_state(body, "begin_flow", call_id)

    async def advance_flow(
        self,
        call_id: str,
        flow_id: str,
        user_input: str | None,
    ) -> FlowState:
        """Request the next flow state; user_input is None for an automatic advance."""
        body = await self._request_json(
            "POST",
            "/flow/continue",
            operation="advance_flow",
            call_id=call_id,
            json={
                "call_id": call_id,
                "flow_id": flow_id,
                "user_input": user_input,
            },
        )
        return self._flow_state(body, "advance_flow", call_id)

    async def discard_context(self, call_id: str) -> None:
        """Drop server-side context for a finished call."""
        await self._request("DELETE", f"/context/{call_id}", operation="discard_context", call_id=call_id)

    async def deploy_flow(self, flow_data: dict[str, Any]) -> dict[str, Any]:
        """Publish a flow definition for production calls."""
        return await self._request_json("POST", "/flows", operation="deploy_flow", json=flow_data)

    def _flow_state(self, body: dict[str, Any], operation: str, call_id: str) -> FlowState:
        try:
            return FlowState.from_dict(body)
        except (TypeError, ValueError) as e:
            record_gateway_error(self.service, operation, "decode")
            raise GatewayError(
                self.service, operation, "invalid flow state", call_id, details={"error": str(e)}
            ) from e
