"""Flow API Routes - deployment and phone number registration."""

from typing import Any

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from callflow.api.auth import verify_api_key
from callflow.api.routes.calls import get_controller
from callflow.orchestrator import FlowExecutionController

router = APIRouter(
    prefix="/flows",
    tags=["flows"],
    dependencies=[Depends(verify_api_key)],
)


class RegisterFlowRequest(BaseModel):
    """Phone numbers to route to a flow."""

    phone_numbers: list[str] = Field(..., min_length=1)


@router.post("")
async def deploy_flow(
    flow_data: dict[str, Any],
    controller: FlowExecutionController = Depends(get_controller),
) -> dict[str, Any]:
    """Publish a flow definition to the Flow State Service."""
    return await controller.deploy_flow(flow_data)


@router.post("/{flow_id}/register")
async def register_flow(
    flow_id: str,
    request: RegisterFlowRequest,
    controller: FlowExecutionController = Depends(get_controller),
) -> dict[str, Any]:
    """Route inbound calls on the given numbers to this flow."""
    result = await controller.register_flow_with_telephony(flow_id, request.phone_numbers)
    return {"flow_id": flow_id, "phone_numbers": request.phone_numbers, "result": result}
