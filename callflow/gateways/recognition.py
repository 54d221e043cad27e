"""Speech Recognition Service gateway."""

from __future__ import annotations

import httpx

from callflow.config.settings import Settings
from callflow.gateways.base import ServiceGateway
from callflow.gateways.credentials import CredentialStore


class RecognitionGateway(ServiceGateway):
    """Client for arming speech recognition on a call.

    Transcripts are not returned here; they arrive later through the
    transcript webhook and drive continue_flow.
    """

    service = "recognition"
    config_key = "recognition_url"

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        credentials: CredentialStore,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> RecognitionGateway:
        return cls(
            settings.effective_recognition_url,
            credentials,
            settings.gateway_timeout_s,
            transport,
        )

    async def arm(self, call_id: str, language: str, interim_results: bool = True) -> None:
        """Start listening for caller speech."""
        await self._request(
            "POST",
            f"/api/calls/{call_id}/asr/start",
            operation="arm_recognition",
            call_id=call_id,
            json={
                "call_id": call_id,
                "language": language,
                "interim_results": interim_results,
            },
        )
