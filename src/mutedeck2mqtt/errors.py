"""Exception hierarchy for MuteDeck2MQTT.

Request-level errors (``DecodeError``, ``MissingField``, ``PublishError``) are
recovered at the HTTP boundary and mapped to status codes there. Configuration
and broker connection errors are fatal at startup.
"""

from __future__ import annotations

from typing import Any


class BridgeError(Exception):
    """Base class for all bridge errors."""


class ConfigError(BridgeError, ValueError):
    """Configuration value present but unusable."""


class ConfigMissing(ConfigError):
    """One or more required configuration values are absent."""

    def __init__(self, missing: list[str]):
        self.missing = list(missing)
        super().__init__(f"Missing environment variables: {self.missing}")


class DecodeError(BridgeError, ValueError):
    """Request body is not a JSON object."""


class MissingField(BridgeError, KeyError):
    """A required status key is absent from the request body."""

    def __init__(self, key: str):
        self.key = key
        super().__init__(f"Missing required key: {key}")

    def __str__(self) -> str:
        # KeyError would otherwise repr() the message
        return str(self.args[0])


class PublishError(BridgeError):
    """The broker rejected or failed a publish."""

    def __init__(self, topic: str, cause: Any):
        self.topic = topic
        self.cause = cause
        super().__init__(f"Error publishing to MQTT topic {topic}: {cause}")


class BrokerConnectionError(BridgeError, ConnectionError):
    """Initial connection to the broker failed."""
