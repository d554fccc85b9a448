"""Normalization of agent response envelopes.

The agent service wraps its output inconsistently: the payload sits under
``result`` (or ``message`` as a fallback), and may be a mapping, a mapping
whose ``text`` field holds JSON, a JSON string, or a JSON string that was
encoded twice.  ``normalize_envelope`` tries each known shape in a fixed
order and returns either ``Recognized`` or ``Unrecognized``.  It never
raises.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Callable, Optional, Union

_logger = logging.getLogger("meetingdesk.envelope")

PAYLOAD_SLOTS = ("result", "message")


@dataclass(frozen=True)
class Recognized:
    record: dict
    shape: str  # "text_field", "object", "json_string", "double_encoded"


@dataclass(frozen=True)
class Unrecognized:
    reason: str


NormalizeOutcome = Union[Recognized, Unrecognized]


def _is_absent(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, (str, bool, int, float)):
        return not value
    return False


def _decode_json(text: str) -> Any:
    """Decode a JSON string, returning None on any failure."""
    try:
        return json.loads(text)
    except (ValueError, RecursionError):
        return None


def extract_payload(envelope: Any) -> Any:
    """Return the first present payload slot of the envelope, or None."""
    if not isinstance(envelope, dict):
        return None
    for slot in PAYLOAD_SLOTS:
        value = envelope.get(slot)
        if not _is_absent(value):
            return value
    return None


def _decode_text_field(payload: Any) -> Optional[dict]:
    if not isinstance(payload, dict):
        return None
    text = payload.get("text")
    if not isinstance(text, str):
        return None
    inner = _decode_json(text)
    return inner if isinstance(inner, dict) else None


def _decode_object(payload: Any) -> Optional[dict]:
    return payload if isinstance(payload, dict) else None


def _decode_json_string(payload: Any) -> Optional[dict]:
    if not isinstance(payload, str):
        return None
    parsed = _decode_json(payload)
    return parsed if isinstance(parsed, dict) else None


def _decode_double_encoded(payload: Any) -> Optional[dict]:
    if not isinstance(payload, str):
        return None
    parsed = _decode_json(payload)
    if not isinstance(parsed, str):
        return None
    inner = _decode_json(parsed)
    return inner if isinstance(inner, dict) else None


# Order matters: a mapping with a decodable ``text`` field wins over the
# mapping itself.
DECODE_CASES: tuple[tuple[str, Callable[[Any], Optional[dict]]], ...] = (
    ("text_field", _decode_text_field),
    ("object", _decode_object),
    ("json_string", _decode_json_string),
    ("double_encoded", _decode_double_encoded),
)


def normalize_envelope(envelope: Any) -> NormalizeOutcome:
    payload = extract_payload(envelope)
    if payload is None:
        return Unrecognized("no payload")

    for shape, decode in DECODE_CASES:
        record = decode(payload)
        if record is not None:
            _logger.debug("Envelope recognized shape=%s keys=%s", shape, list(record.keys())[:12])
            return Recognized(record=record, shape=shape)

    _logger.debug("Envelope not recognized payload_type=%s", type(payload).__name__)
    return Unrecognized(f"unsupported payload type: {type(payload).__name__}")
