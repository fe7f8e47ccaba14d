"""Home Assistant device-bundle discovery for MuteDeck topics.

One bundle is published per MuteDeck topic:

    Topic: <discovery_prefix>/device/mutedeck2mqtt_device_<topic>/config
    Payload keys: dev (abbrev), o (origin), cmps (components map), stat_t, qos

Every component reads its state from the same ``<prefix>/<topic>`` JSON
status message through a value template. Note that ``mute`` is inverted
relative to the other binary sensors: MuteDeck reports ``active`` when the
microphone is muted, and the Microphone entity is ON when the mic is live.
"""

from __future__ import annotations

import json
from typing import Any

from . import __version__
from .validation import to_title_case

OBJECT_ID = "mutedeck2mqtt_device"
MANUFACTURER = "MuteDeck"
ORIGIN_NAME = "MuteDeck2MQTT"
ORIGIN_URL = "https://github.com/chelming/mutedeck2mqtt/"
NO_REPLY_TOPIC = "mutedeck2mqtt/no-reply"

CONTROL_OPTIONS = ["Zoom", "Teams", "Google Meet", "StreamYard", "Webex", "System"]

ACTIVE_ON = "{{{{ value_json.{field} != 'active' and 'OFF' or 'ON' }}}}"
ACTIVE_OFF = "{{{{ value_json.{field} == 'active' and 'OFF' or 'ON' }}}}"
RAW_VALUE = "{{{{ value_json.{field} }}}}"

# field -> (name, icon, platform, value template)
ENTITY_DEFINITIONS: dict[str, tuple[str, str, str, str]] = {
    "call": ("Call", "mdi:phone", "binary_sensor", ACTIVE_ON),
    "control": ("Control", "mdi:application-cog", "select", RAW_VALUE),
    "mute": ("Microphone", "mdi:microphone", "binary_sensor", ACTIVE_OFF),
    "record": ("Recording", "mdi:record-rec", "binary_sensor", ACTIVE_ON),
    "share": ("Screen sharing", "mdi:monitor-share", "binary_sensor", ACTIVE_ON),
    "video": ("Video", "mdi:video", "binary_sensor", ACTIVE_ON),
}


def device_id(topic: str) -> str:
    return f"{OBJECT_ID}_{topic}"


def discovery_topic(discovery_prefix: str, topic: str) -> str:
    """Discovery config topic for a MuteDeck topic (one per topic)."""
    return f"{discovery_prefix}/device/{device_id(topic)}/config"


def status_topic(prefix: str, topic: str) -> str:
    return f"{prefix}/{topic}"


def build_component(topic: str, prefix: str, field: str) -> dict[str, Any]:
    """Build the abbreviated ``cmps`` entry for one status field."""
    name, icon, platform, template = ENTITY_DEFINITIONS[field]
    comp: dict[str, Any] = {
        "cmd_t": NO_REPLY_TOPIC,
        "en": True,
        "ent_cat": "diagnostic",
        "icon": icon,
        "name": name,
        "obj_id": f"{topic}_{field}",
        "opt": False,
    }
    if platform == "select":
        comp["options"] = list(CONTROL_OPTIONS)
    comp["p"] = platform
    comp["stat_t"] = status_topic(prefix, topic)
    comp["uniq_id"] = f"{topic}_{field}_mutedeck2mqtt"
    comp["val_tpl"] = template.format(field=field)
    return comp


def build_discovery_payload(topic: str, prefix: str) -> dict[str, Any]:
    """Build the device bundle for ``topic`` publishing state under ``prefix``.

    Pure function of its inputs; only the origin ``sw`` follows the package
    version.
    """
    cmps = {
        f"{topic}_{field}": build_component(topic, prefix, field)
        for field in sorted(ENTITY_DEFINITIONS)
    }
    return {
        "dev": {
            "ids": [device_id(topic)],
            "name": to_title_case(topic),
            "mf": MANUFACTURER,
        },
        "o": {
            "name": ORIGIN_NAME,
            "sw": __version__,
            "url": ORIGIN_URL,
        },
        "cmps": cmps,
        "stat_t": status_topic(prefix, topic),
        "qos": 0,
    }


def encode_payload(payload: Any, sort_keys: bool = False) -> str:
    """Compact JSON encoding used for every publish."""
    return json.dumps(payload, separators=(",", ":"), sort_keys=sort_keys)
