"""Node Dispatcher - routes a flow state to its node handler."""

from typing import Awaitable, Callable

from callflow.exceptions import GatewayError, UnsupportedNodeError
from callflow.observability.logging import CallLogger
from callflow.observability.metrics import record_node_dispatched, record_unsupported_node
from callflow.orchestrator.handlers import NodeHandlers
from callflow.orchestrator.models import FlowState, NodeKind
from callflow.orchestrator.results import NodeResult

NodeHandler = Callable[[str, FlowState], Awaitable[NodeResult]]


class NodeDispatcher:
    """Exhaustive NodeKind -> handler routing.

    Unknown node kinds raise UnsupportedNodeError instead of leaving the
    call silently stalled. Gateway errors from a handler are tagged with
    the node kind before they propagate.
    """

    def __init__(self, handlers: NodeHandlers) -> None:
        self._routes: dict[NodeKind, NodeHandler] = {
            NodeKind.SAY: handlers.handle_say,
            NodeKind.COLLECT: handlers.handle_collect,
            NodeKind.DECISION: handlers.handle_decision,
            NodeKind.TRANSFER: handlers.handle_transfer,
            NodeKind.END: handlers.handle_end,
        }
        missing = set(NodeKind) - set(self._routes)
        if missing:
            raise ValueError(f"No handler for node kinds: {sorted(k.value for k in missing)}")

    async def dispatch(self, call_id: str, flow_state: FlowState) -> NodeResult:
        """Run the handler for flow_state.node_kind.

        Raises:
            UnsupportedNodeError: Node kind not recognized
            GatewayError: Fatal side-effect failure, with node_kind attached
        """
        node_kind = flow_state.node_kind
        if node_kind is None:
            record_unsupported_node()
            CallLogger(call_id).unsupported_node(flow_state.raw_node_kind)
            raise UnsupportedNodeError(call_id, flow_state.raw_node_kind)

        record_node_dispatched(node_kind.value)
        try:
            return await self._routes[node_kind](call_id, flow_state)
        except GatewayError as e:
            e.with_node(node_kind.value)
            raise
