"""Validation of raw event payloads received at the ingestion boundary."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, List, Optional


REQUIRED_FIELDS = ("site_id", "event_type", "timestamp")
OPTIONAL_FIELDS = ("path", "user_id")


@dataclass(frozen=True)
class ValidationResult:
    """Outcome of validating one payload."""
    valid: bool
    errors: List[str] = field(default_factory=list)


def parse_timestamp(value: str) -> Optional[datetime]:
    """Parse an ISO 8601 timestamp, returning None when it is not one.

    Naive values are taken to be UTC so every parsed instant is timezone-aware.
    """
    try:
        parsed = datetime.fromisoformat(value.strip())
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _is_non_empty_string(value: Any) -> bool:
    return isinstance(value, str) and value != ""


def validate_event(payload: Any) -> ValidationResult:
    """
    Check a raw payload against the Event contract.

    Every rule is evaluated so the caller gets the full list of problems.
    Never raises: anything that is not a mapping simply fails the
    required-field checks.
    """
    errors: List[str] = []
    data = payload if isinstance(payload, dict) else {}

    if not _is_non_empty_string(data.get("site_id")):
        errors.append("site_id is required and must be a string")

    if not _is_non_empty_string(data.get("event_type")):
        errors.append("event_type is required and must be a string")

    timestamp = data.get("timestamp")
    if not _is_non_empty_string(timestamp):
        errors.append("timestamp is required and must be a string")
    elif parse_timestamp(timestamp) is None:
        errors.append("timestamp must be a valid ISO 8601 date string")

    for name in OPTIONAL_FIELDS:
        value = data.get(name)
        if value is not None and not isinstance(value, str):
            errors.append(f"{name} must be a string")

    return ValidationResult(valid=not errors, errors=errors)
