"""Validation and normalisation of MuteDeck status payloads."""

from __future__ import annotations

import re
from typing import Any

from .errors import MissingField

REQUIRED_KEYS = ("call", "control", "mute", "record", "share", "video")

_PREFIX_LABELS = (
    ("zoom", "Zoom"),
    ("teams", "Teams"),
)

_EXACT_LABELS = {
    "webex": "Webex",
    "streamyard": "StreamYard",
    "google-meet": "Google Meet",
}


# Letters and digits with in-word apostrophes form one word; spaces and hyphens split.
_WORD = re.compile(r"[^\W_]+(?:'[^\W_]+)*")


def to_title_case(value: str) -> str:
    """Turn ``some_value`` into ``Some Value``."""
    return _WORD.sub(lambda m: m.group(0).capitalize(), value.replace("_", " "))


def platform_name(value: str) -> str:
    """Map a MuteDeck ``control`` identifier to a display label."""
    for prefix, label in _PREFIX_LABELS:
        if value.startswith(prefix):
            return label
    if value in _EXACT_LABELS:
        return _EXACT_LABELS[value]
    return to_title_case(value)


def validate_status_record(record: dict[str, Any]) -> dict[str, Any]:
    """Check required keys and normalise ``control`` in place.

    Raises MissingField for the first absent key (checked in REQUIRED_KEYS
    order). Returns the same dict for convenience.
    """
    for key in REQUIRED_KEYS:
        if key not in record:
            raise MissingField(key)

    control = record["control"]
    if isinstance(control, str):
        record["control"] = platform_name(control)
    return record
