"""Speech Synthesis Service gateway."""

from __future__ import annotations

import httpx

from callflow.config.constants import FLOW
from callflow.config.settings import Settings
from callflow.gateways.base import ServiceGateway
from callflow.gateways.credentials import CredentialStore
from callflow.orchestrator.models import VoiceSettings


class SynthesisGateway(ServiceGateway):
    """Client for the Speech Synthesis Service.

    Playback is fire-and-forget: a 2xx response means the prompt was
    accepted for the call, not that it finished playing.
    """

    service = "synthesis"
    config_key = "synthesis_url"

    def __init__(
        self,
        base_url: str | None,
        credentials: CredentialStore,
        timeout_s: float,
        transport: httpx.AsyncBaseTransport | None = None,
        premium_provider: str = FLOW.PREMIUM_TTS_PROVIDER,
        standard_provider: str = FLOW.STANDARD_TTS_PROVIDER,
    ) -> None:
        super().__init__(base_url, credentials, timeout_s, transport)
        self._premium_provider = premium_provider
        self._standard_provider = standard_provider

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        credentials: CredentialStore,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> SynthesisGateway:
        return cls(
            settings.synthesis_url,
            credentials,
            settings.gateway_timeout_s,
            transport,
            premium_provider=settings.premium_tts_provider,
            standard_provider=settings.standard_tts_provider,
        )

    def provider_for(self, voice: VoiceSettings) -> str:
        """Synthesis provider for a voice tier."""
        return self._premium_provider if voice.is_premium else self._standard_provider

    async def synthesize(self, call_id: str, text: str, voice: VoiceSettings) -> None:
        """Speak text on a live call."""
        await self._request(
            "POST",
            "/synthesize",
            operation="synthesize",
            call_id=call_id,
            json={
                "text": text,
                "voice_id": voice.voice_id,
                "tier": voice.tier,
                "provider": self.provider_for(voice),
                "call_id": call_id,
            },
        )
