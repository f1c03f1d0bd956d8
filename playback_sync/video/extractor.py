"""Progress extraction from heterogeneous player payloads.

Every embed backend reports progress in its own shape, and the
cross-origin player does not even keep a stable one. The functions here
are the only place that knows about those shapes; everything downstream
works with ``ProgressSample``. None of them raise: a payload that cannot
be understood yields ``None`` (or ``EventKind.UNKNOWN``).
"""

import json
import math
from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any


# Field aliases seen in the wild, in lookup order
PERCENTAGE_KEYS = ("percentage", "progress", "percent")
POSITION_KEYS = ("seconds", "currentTime", "second", "time", "position")
DURATION_KEYS = ("duration", "totalTime", "total")

# Keys that may carry the event name
EVENT_TAG_KEYS = ("type", "event", "action")

ENDED_TAGS = frozenset(
    {"ended", "end", "complete", "completed", "finish", "finished", "onfinish"}
)
PROGRESS_TAGS = frozenset({"timeupdate", "progress", "playing", "time", "update"})
READY_TAGS = frozenset({"ready"})


class EventKind(str, Enum):
    """Normalized meaning of a player event."""

    PROGRESS = "progress"
    ENDED = "ended"
    READY = "ready"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class ProgressSample:
    """Canonical progress reading (0-100, may be fractional)."""

    percentage: float


def _as_number(value: Any) -> float | None:
    """Return value as a finite float, or None.

    bool is excluded on purpose: ``True`` is an int in Python.
    """
    if isinstance(value, bool) or not isinstance(value, int | float):
        return None
    number = float(value)
    if not math.isfinite(number):
        return None
    return number


def _first_number(payload: Mapping[str, Any], keys: tuple[str, ...]) -> float | None:
    for key in keys:
        number = _as_number(payload.get(key))
        if number is not None:
            return number
    return None


def sample_from_position(position: Any, duration: Any) -> ProgressSample | None:
    """Build a sample from a position/duration pair.

    Returns None when either value is not a number, the position is
    negative, or the duration is missing or not positive.
    """
    position_value = _as_number(position)
    duration_value = _as_number(duration)
    if position_value is None or duration_value is None:
        return None
    if duration_value <= 0 or position_value < 0:
        return None
    return ProgressSample(percentage=min(100.0, position_value / duration_value * 100))


def _extract_flat(payload: Mapping[str, Any]) -> ProgressSample | None:
    # A position/duration pair wins over a direct percentage: some players
    # send ``percent`` as a 0-1 fraction next to the pair.
    position = _first_number(payload, POSITION_KEYS)
    duration = _first_number(payload, DURATION_KEYS)
    if position is not None and duration is not None:
        return sample_from_position(position, duration)

    percentage = _first_number(payload, PERCENTAGE_KEYS)
    if percentage is not None and 0 <= percentage <= 100:
        return ProgressSample(percentage=percentage)
    return None


def extract_progress(payload: Any) -> ProgressSample | None:
    """Extract a progress sample from a payload of unknown shape.

    Looks at the top level first, then at a nested ``data`` object.

    Args:
        payload: Decoded event payload (anything).

    Returns:
        ProgressSample, or None if no usable progress is present.
    """
    if not isinstance(payload, Mapping):
        return None

    sample = _extract_flat(payload)
    if sample is not None:
        return sample

    nested = payload.get("data")
    if isinstance(nested, Mapping):
        return _extract_flat(nested)
    return None


def parse_message_data(raw: Any) -> dict[str, Any] | None:
    """Decode a cross-document message body.

    Strings and bytes are parsed as JSON; mappings pass through. Anything
    that does not end up as a JSON object is None.
    """
    if isinstance(raw, Mapping):
        return dict(raw)
    if isinstance(raw, bytes | bytearray):
        try:
            raw = raw.decode("utf-8")
        except UnicodeDecodeError:
            return None
    if not isinstance(raw, str):
        return None
    try:
        decoded = json.loads(raw)
    except ValueError:
        return None
    return decoded if isinstance(decoded, dict) else None


def get_event_tag(payload: Mapping[str, Any]) -> str | None:
    """Return the lowercased event tag of a payload, if any."""
    for key in EVENT_TAG_KEYS:
        value = payload.get(key)
        if isinstance(value, str) and value:
            return value.lower()
    return None


def classify_event(payload: Any) -> EventKind:
    """Classify a decoded payload by its event tag.

    A mapping without any tag is treated as a progress report, since some
    players post bare ``{"currentTime": .., "duration": ..}`` objects.
    """
    if not isinstance(payload, Mapping):
        return EventKind.UNKNOWN

    tag = get_event_tag(payload)
    if tag is None:
        return EventKind.PROGRESS
    if tag in ENDED_TAGS:
        return EventKind.ENDED
    if tag in PROGRESS_TAGS:
        return EventKind.PROGRESS
    if tag in READY_TAGS:
        return EventKind.READY
    return EventKind.UNKNOWN
