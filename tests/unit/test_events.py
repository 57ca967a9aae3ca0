"""Tests for the Event model and its queue representation."""

import dataclasses
import json
from datetime import datetime, timezone

import pytest

from site_analytics.common.errors import DeserializationError
from site_analytics.common.events import Event


class TestEventCodec:

    def test_round_trip_preserves_every_field(self, sample_event_data):
        event = Event.from_dict(sample_event_data)

        assert Event.from_json(event.to_json()) == event

    def test_round_trip_without_optional_fields(self):
        event = Event(site_id="s1", event_type="click", timestamp="2024-01-01T00:00:00Z")

        restored = Event.from_json(event.to_json())

        assert restored == event
        assert restored.path is None
        assert restored.user_id is None

    def test_canonical_form_is_stable(self):
        event = Event(site_id="s1", event_type="page_view", timestamp="2024-01-01T00:00:00Z", path="/")

        assert event.to_json() == (
            '{"event_type":"page_view","path":"/","site_id":"s1","timestamp":"2024-01-01T00:00:00Z"}'
        )

    def test_unknown_fields_are_not_carried(self, sample_event_data):
        sample_event_data["referrer"] = "https://example.com"

        event = Event.from_dict(sample_event_data)

        assert "referrer" not in json.loads(event.to_json())

    def test_accepts_bytes(self, sample_event_data):
        raw = Event.from_dict(sample_event_data).to_json().encode("utf-8")

        assert Event.from_json(raw).site_id == "s1"

    def test_events_are_immutable(self, sample_event_data):
        event = Event.from_dict(sample_event_data)

        with pytest.raises(dataclasses.FrozenInstanceError):
            event.site_id = "other"

    def test_occurred_at(self, sample_event_data):
        event = Event.from_dict(sample_event_data)

        assert event.occurred_at == datetime(2024, 1, 1, tzinfo=timezone.utc)


class TestEventDeserializationErrors:

    def test_invalid_json(self):
        with pytest.raises(DeserializationError):
            Event.from_json("{not json")

    def test_json_that_is_not_an_event(self):
        with pytest.raises(DeserializationError) as exc_info:
            Event.from_json('{"site_id": "s1"}')

        assert "event_type is required" in str(exc_info.value)

    def test_json_array(self):
        with pytest.raises(DeserializationError):
            Event.from_dict(["s1", "page_view"])

    def test_bytes_that_are_not_utf8(self):
        with pytest.raises(DeserializationError) as exc_info:
            Event.from_json(b'{"site_id":"\xff"}')

        assert "UTF-8" in str(exc_info.value)
