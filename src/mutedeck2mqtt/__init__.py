"""
MuteDeck2MQTT - MuteDeck call status bridge for MQTT and Home Assistant.

Receives the periodic status webhook posted by MuteDeck, republishes it to
an MQTT broker and announces the matching Home Assistant device through
MQTT discovery.
"""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("mutedeck2mqtt")
except PackageNotFoundError:
    # Package is not installed
    __version__ = "0.0.0-dev"

__all__ = [
    "__version__",
]
