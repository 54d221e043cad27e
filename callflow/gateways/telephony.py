"""Telephony Control Service gateway."""

from __future__ import annotations

from typing import Any

import httpx

from callflow.config.settings import Settings
from callflow.gateways.base import ServiceGateway
from callflow.gateways.credentials import CredentialStore


class TelephonyGateway(ServiceGateway):
    """Client for call control: transfer, hang-up and flow registration."""

    service = "telephony"
    config_key = "telephony_url"

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        credentials: CredentialStore,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> TelephonyGateway:
        return cls(settings.telephony_url, credentials, settings.gateway_timeout_s, transport)

    async def transfer_call(
        self,
        call_id: str,
        transfer_target: str,
        context: dict[str, Any] | None = None,
    ) -> None:
        """Hand the call to an agent or queue, passing collected data along."""
        await self._request(
            "POST",
            f"/api/calls/{call_id}/transfer",
            operation="transfer_call",
            call_id=call_id,
            json={
                "transfer_to": transfer_target,
                "context": context or {},
            },
        )

    async def end_call(self, call_id: str) -> None:
        """Hang up the call."""
        await self._request("POST", f"/api/calls/{call_id}/end", operation="end_call", call_id=call_id)

    async def register_flow(
        self,
        flow_id: str,
        phone_numbers: list[str],
        webhook_url: str,
    ) -> dict[str, Any]:
        """Route inbound calls on phone_numbers to a flow's execute webhook."""
        return await self._request_json(
            "POST",
            "/admin/register-flow",
            operation="register_flow",
            json={
                "flow_id": flow_id,
                "phone_numbers": phone_numbers,
                "webhook_url": webhook_url,
            },
        )
