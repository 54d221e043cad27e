"""Service gateways - HTTP clients for the orchestrator's collaborators.

Provides:
- FlowStateGateway: next-node decisions and flow context
- SynthesisGateway: prompt playback
- RecognitionGateway: speech recognition arming
- TelephonyGateway: transfer, hang-up, flow registration
- ServiceGateways: the four bundled for the controller
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass

import httpx

from callflow.config.settings import Settings
from callflow.gateways.credentials import CredentialStore, get_credential_store
from callflow.gateways.flow_state import FlowStateGateway
from callflow.gateways.recognition import RecognitionGateway
from callflow.gateways.synthesis import SynthesisGateway
from callflow.gateways.telephony import TelephonyGateway


@dataclass
class ServiceGateways:
    """The external collaborators of one controller."""

    flow_state: FlowStateGateway
    synthesis: SynthesisGateway
    recognition: RecognitionGateway
    telephony: TelephonyGateway

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        credentials: CredentialStore | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> ServiceGateways:
        """Build all gateways.

        Raises:
            MissingConfigError: If a service base URL is not configured
        """
        credentials = credentials or get_credential_store()
        return cls(
            flow_state=FlowStateGateway.from_settings(settings, credentials, transport),
            synthesis=SynthesisGateway.from_settings(settings, credentials, transport),
            recognition=RecognitionGateway.from_settings(settings, credentials, transport),
            telephony=TelephonyGateway.from_settings(settings, credentials, transport),
        )

    async def close(self) -> None:
        """Close every gateway client."""
        await asyncio.gather(
            self.flow_state.close(),
            self.synthesis.close(),
            self.recognition.close(),
            self.telephony.close(),
        )


__all__ = [
    "CredentialStore",
    "get_credential_store",
    "FlowStateGateway",
    "SynthesisGateway",
    "RecognitionGateway",
    "TelephonyGateway",
    "ServiceGateways",
]
