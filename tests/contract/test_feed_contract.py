"""
Contract tests for push feed envelopes.

Validates that example feed messages decode into envelopes and payloads.
"""

import json

import pytest

from contracts.validation import (
    FeedEnvelope,
    GameEndPayload,
    RoundStartPayload,
    validate_feed_envelope,
    validate_flight_update,
)
from gameclient.errors import ProtocolError
from gameclient.feed import decode_envelope


class TestEnvelope:
    """Test the {type, payload} envelope."""

    def test_flight_update_example_validates(self, load_example):
        is_valid, envelope, error = validate_feed_envelope(load_example("feed_flight_update.json"))

        assert is_valid, f"Example should validate: {error}"
        assert envelope.type == "flight:update"

        is_valid, payload, error = validate_flight_update(envelope.payload)
        assert is_valid, f"Payload should validate: {error}"
        assert payload.flights[0].id == "fl-ba117"
        assert payload.flights[0].latitude == 52.1021

    def test_round_start_example_validates(self, load_example):
        envelope = FeedEnvelope.model_validate(load_example("feed_round_start.json"))
        payload = RoundStartPayload.model_validate(envelope.payload)

        assert envelope.type == "round:start"
        assert payload.round_number == 2
        assert payload.flight.callsign == "DLH400"

    def test_game_end_example_validates(self, load_example):
        envelope = FeedEnvelope.model_validate(load_example("feed_game_end.json"))
        payload = GameEndPayload.model_validate(envelope.payload)

        assert payload.total_score == 1800
        assert payload.rank == 4

    def test_unknown_type_is_still_an_envelope(self):
        """Test that new message types pass through to subscribers."""
        is_valid, envelope, _ = validate_feed_envelope({"type": "chat:message", "payload": {"text": "hi"}})
        assert is_valid
        assert envelope.payload == {"text": "hi"}

    def test_missing_type_fails(self):
        is_valid, _, _ = validate_feed_envelope({"payload": {}})
        assert not is_valid, "Should fail without type"

    def test_empty_type_fails(self):
        is_valid, _, _ = validate_feed_envelope({"type": "", "payload": {}})
        assert not is_valid

    def test_flight_update_without_flights_fails(self):
        is_valid, _, _ = validate_flight_update({"count": 3})
        assert not is_valid


class TestDecodeEnvelope:

    def test_decodes_text_frame(self, load_example):
        envelope = decode_envelope(json.dumps(load_example("feed_game_end.json")))
        assert envelope.type == "game:end"

    def test_decodes_binary_frame(self):
        envelope = decode_envelope(b'{"type": "ping"}')
        assert envelope.type == "ping"
        assert envelope.payload is None

    @pytest.mark.parametrize("raw", ["not json", "", "[1, 2]", '{"payload": {}}', "42"])
    def test_malformed_frame_raises_protocol_error(self, raw):
        with pytest.raises(ProtocolError):
            decode_envelope(raw)
