"""Tests for the flow execution data model."""

import pytest

from callflow.orchestrator.models import (
    FlowState,
    NextAction,
    NodeKind,
    Session,
    VoiceSettings,
)


class TestNodeKind:
    """Tests for NodeKind parsing."""

    @pytest.mark.parametrize("value", ["say", "collect", "decision", "transfer", "end"])
    def test_parse_known(self, value):
        """Known wire values map to enum members."""
        assert NodeKind.parse(value).value == value

    @pytest.mark.parametrize("value", ["menu", "", None, "SAY"])
    def test_parse_unknown(self, value):
        """Unknown values map to None."""
        assert NodeKind.parse(value) is None


class TestFlowState:
    """Tests for FlowState wire decoding."""

    def test_from_dict_say(self):
        """A Say node with continue."""
        state = FlowState.from_dict({
            "node_type": "say",
            "response_text": "Hello",
            "next_action": "continue",
        })
        assert state.node_kind is NodeKind.SAY
        assert state.response_text == "Hello"
        assert state.next_action is NextAction.CONTINUE
        assert state.auto_continue is True
        assert state.transfer_required is False
        assert state.collected_data == {}

    def test_from_dict_transfer(self):
        """Transfer fields are read from the wire names."""
        state = FlowState.from_dict({
            "node_type": "transfer",
            "transfer_required": True,
            "transfer_queue": "billing",
            "collected_data": {"account": "123"},
        })
        assert state.transfer_required is True
        assert state.transfer_target == "billing"
        assert state.collected_data == {"account": "123"}

    def test_missing_next_action_waits(self):
        """Absent or unknown next_action means wait."""
        assert FlowState.from_dict({"node_type": "say"}).next_action is NextAction.WAIT
        assert FlowState.from_dict({"node_type": "say", "next_action": "jump"}).auto_continue is False

    def test_malformed_collected_data_rejected(self):
        """collected_data must be an object when present."""
        with pytest.raises(ValueError):
            FlowState.from_dict({"node_type": "collect", "collected_data": "oops"})
        with pytest.raises(ValueError):
            FlowState.from_dict({"node_type": "collect", "collected_data": [["a", 1]]})

    def test_empty_text_is_none(self):
        """Empty response text counts as absent."""
        assert FlowState.from_dict({"node_type": "say", "response_text": ""}).response_text is None

    def test_unknown_kind_kept_raw(self):
        """Unrecognized node kinds keep the raw value for diagnostics."""
        state = FlowState.from_dict({"node_type": "menu"})
        assert state.node_kind is None
        assert state.raw_node_kind == "menu"
        assert state.kind_label == "menu"

    def test_to_dict(self):
        """Round-trips the wire field names."""
        data = FlowState.from_dict({
            "node_type": "collect",
            "next_action": "wait",
        }).to_dict()
        assert data["node_type"] == "collect"
        assert data["next_action"] == "wait"
        assert data["transfer_queue"] is None


class TestVoiceSettings:
    """Tests for VoiceSettings."""

    def test_defaults(self):
        """Standard tier by default."""
        voice = VoiceSettings()
        assert voice.tier == "standard"
        assert voice.is_premium is False

    def test_from_dict_accepts_voice_alias(self):
        """Both voice_id and voice are accepted."""
        assert VoiceSettings.from_dict({"voice": "v1"}).voice_id == "v1"
        assert VoiceSettings.from_dict({"voice_id": "v2"}).voice_id == "v2"

    def test_from_dict_fills_from_default(self):
        """Missing fields come from the default."""
        default = VoiceSettings(voice_id="base", tier="premium")
        voice = VoiceSettings.from_dict({"voice_id": "v1"}, default=default)
        assert voice.voice_id == "v1"
        assert voice.tier == "premium"
        assert voice.is_premium is True

    def test_from_none(self):
        """None payload yields the default."""
        assert VoiceSettings.from_dict(None) == VoiceSettings()


class TestSession:
    """Tests for Session bookkeeping."""

    def test_initial_state(self):
        """New sessions start before any node."""
        session = Session("call-1", "flow-42", VoiceSettings())
        assert session.step == 0
        assert session.current_node_kind is None
        assert session.closing is False
        assert session.pending_continuation is None

    def test_record_state_advances_step(self):
        """Each recorded state gets a new step."""
        session = Session("call-1", "flow-42", VoiceSettings())
        assert session.record_state(FlowState.from_dict({"node_type": "say"})) == 1
        assert session.record_state(FlowState.from_dict({"node_type": "collect"})) == 2
        assert session.current_node_kind is NodeKind.COLLECT

    def test_cancel_pending_without_timer(self):
        """Cancelling with nothing pending is a no-op."""
        from callflow.orchestrator.continuation import CancelReason

        session = Session("call-1", "flow-42", VoiceSettings())
        assert session.cancel_pending(CancelReason.SESSION_ENDED) is False

    def test_to_dict(self):
        """Snapshot includes identity and progress."""
        session = Session("call-1", "flow-42", VoiceSettings(voice_id="v1"), caller_address="+15551234567")
        session.record_state(FlowState.from_dict({"node_type": "collect"}))
        data = session.to_dict()
        assert data["call_id"] == "call-1"
        assert data["flow_id"] == "flow-42"
        assert data["caller_address"] == "+15551234567"
        assert data["current_node_kind"] == "collect"
        assert data["step"] == 1
        assert data["voice_settings"] == {"voice_id": "v1", "tier": "standard"}
        assert data["pending_continuation"] is None
