"""Event model and its canonical queue representation."""

import json
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional

from .errors import DeserializationError
from .validation import validate_event, parse_timestamp


@dataclass(frozen=True)
class Event:
    """A validated analytics event."""
    site_id: str
    event_type: str
    timestamp: str
    path: Optional[str] = None
    user_id: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Any) -> "Event":
        """Build an Event from a decoded payload, rejecting anything invalid."""
        result = validate_event(data)
        if not result.valid:
            raise DeserializationError(f"Invalid event payload: {'; '.join(result.errors)}")

        return cls(
            site_id=data["site_id"],
            event_type=data["event_type"],
            timestamp=data["timestamp"],
            path=data.get("path"),
            user_id=data.get("user_id")
        )

    @classmethod
    def from_json(cls, raw) -> "Event":
        """Decode a queue element. Undecodable bytes and invalid JSON both raise DeserializationError."""
        try:
            if isinstance(raw, bytes):
                raw = raw.decode("utf-8")
            data = json.loads(raw)
        except UnicodeDecodeError as e:
            raise DeserializationError(f"Payload is not valid UTF-8: {e}") from e
        except (TypeError, ValueError) as e:
            raise DeserializationError(f"Payload is not valid JSON: {e}") from e
        return cls.from_dict(data)

    def to_dict(self) -> Dict[str, str]:
        """Required fields always, optional fields only when set."""
        data = {
            "site_id": self.site_id,
            "event_type": self.event_type,
            "timestamp": self.timestamp
        }
        if self.path is not None:
            data["path"] = self.path
        if self.user_id is not None:
            data["user_id"] = self.user_id
        return data

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), sort_keys=True, separators=(",", ":"))

    @property
    def occurred_at(self) -> datetime:
        """The event timestamp as a timezone-aware datetime."""
        return parse_timestamp(self.timestamp)
