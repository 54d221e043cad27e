"""Call API Routes - webhooks driven by the telephony layer.

Provides REST endpoints for call execution:
- Start a call's flow
- Deliver a transcript (continue the flow)
- Inspect active calls
- End a call
"""

from typing import Any, Literal

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from callflow.api.auth import verify_api_key
from callflow.config.settings import Settings, get_settings
from callflow.gateways import ServiceGateways
from callflow.orchestrator import FlowExecutionController, FlowState, VoiceSettings

# All call routes require authentication
router = APIRouter(
    prefix="/calls",
    tags=["calls"],
    dependencies=[Depends(verify_api_key)],
)

# Global controller (initialized on startup)
_controller: FlowExecutionController | None = None


def create_controller(settings: Settings) -> FlowExecutionController:
    """Build a controller with gateways for every configured service.

    Raises:
        MissingConfigError: If a service base URL is not configured
    """
    gateways = ServiceGateways.from_settings(settings)
    return FlowExecutionController.from_settings(settings, gateways)


def get_controller() -> FlowExecutionController:
    """Get global flow execution controller."""
    global _controller
    if _controller is None:
        _controller = create_controller(get_settings())
    return _controller


def set_controller(controller: FlowExecutionController | None) -> None:
    """Replace the global controller (startup, shutdown and tests)."""
    global _controller
    _controller = controller


# Request/Response models
class VoiceSettingsModel(BaseModel):
    """Synthesis configuration for the call."""

    voice_id: str | None = Field(None, description="Synthesis voice identifier")
    tier: Literal["standard", "premium"] | None = Field(None, description="Voice tier")


class StartCallRequest(BaseModel):
    """Request to start executing a flow on a new call."""

    call_id: str = Field(..., min_length=1, description="Telephony call identifier")
    flow_id: str = Field(..., min_length=1, description="Flow to execute")
    caller_address: str | None = Field(None, description="Caller phone number or SIP URI")
    voice_settings: VoiceSettingsModel | None = None


class TranscriptRequest(BaseModel):
    """Caller utterance delivered by speech recognition."""

    transcript: str | None = Field(
        None,
        description="Recognized text; omit for an automatic advance",
    )


class FlowStateResponse(BaseModel):
    """Flow state that was dispatched for the call."""

    call_id: str
    node_type: str
    response_text: str | None
    next_action: str
    transfer_required: bool
    transfer_queue: str | None
    collected_data: dict[str, Any]


def _flow_state_response(call_id: str, flow_state: FlowState) -> FlowStateResponse:
    return FlowStateResponse(call_id=call_id, **flow_state.to_dict())


# Endpoints
@router.post("/start", response_model=FlowStateResponse)
async def start_call(
    request: StartCallRequest,
    controller: FlowExecutionController = Depends(get_controller),
) -> FlowStateResponse:
    """Start a flow for an inbound call.

    Returns the first flow state; its side effects have already begun.
    """
    voice = None
    if request.voice_settings is not None:
        voice = VoiceSettings.from_dict(
            request.voice_settings.model_dump(exclude_none=True),
            default=controller.default_voice,
        )

    flow_state = await controller.start(
        call_id=request.call_id,
        flow_id=request.flow_id,
        caller_address=request.caller_address,
        voice_settings=voice,
    )
    return _flow_state_response(request.call_id, flow_state)


@router.post("/{call_id}/transcript", response_model=FlowStateResponse)
async def deliver_transcript(
    call_id: str,
    request: TranscriptRequest,
    controller: FlowExecutionController = Depends(get_controller),
) -> FlowStateResponse:
    """Continue the call's flow with a transcript."""
    flow_state = await controller.continue_flow(call_id, request.transcript)
    return _flow_state_response(call_id, flow_state)


@router.get("")
async def list_calls(
    controller: FlowExecutionController = Depends(get_controller),
) -> dict[str, Any]:
    """List active calls."""
    sessions = controller.list_active_sessions()
    return {"count": len(sessions), "calls": sessions}


@router.get("/{call_id}")
async def get_call(
    call_id: str,
    controller: FlowExecutionController = Depends(get_controller),
) -> dict[str, Any]:
    """Get status of an active call."""
    info = controller.get_session_info(call_id)
    if info is None:
        raise HTTPException(
            status_code=404,
            detail=f"Call {call_id} not found",
        )
    return info


@router.delete("/{call_id}")
async def end_call(
    call_id: str,
    controller: FlowExecutionController = Depends(get_controller),
) -> dict[str, Any]:
    """End a call's session. Safe to repeat."""
    ended = await controller.end_session(call_id, reason="hangup")
    return {"call_id": call_id, "ended": ended}
