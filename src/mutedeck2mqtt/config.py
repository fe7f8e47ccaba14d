"""
Configuration management for MuteDeck2MQTT.

Values come from an optional YAML file, layered under environment variables
(the variable names match the container image's documented settings).
"""

import os
from pathlib import Path
from typing import Any, Optional

from dotenv import dotenv_values
import yaml

from .errors import ConfigError, ConfigMissing

# Lazy one-time .env loading flag
_ENV_LOADED = False

# Dot-notation config key -> environment variable
ENV_OVERRIDES = {
    "mqtt.host": "MQTT_HOST",
    "mqtt.port": "MQTT_PORT",
    "mqtt.username": "MQTT_USER",
    "mqtt.password": "MQTT_PASS",
    "mqtt.client_id": "MQTT_CLIENT_ID",
    "mqtt.keepalive": "MQTT_KEEPALIVE",
    "mqtt.connect_timeout": "MQTT_CONNECT_TIMEOUT",
    "mqtt.publish_timeout": "MQTT_PUBLISH_TIMEOUT",
    "home_assistant.discovery_prefix": "HOME_ASSISTANT_DISCOVERY_TOPIC",
    "home_assistant.status_topic": "HOME_ASSISTANT_STATUS_TOPIC",
    "bridge.discovery_delay": "DISCOVERY_DELAY",
    "logging.level": "LOG_LEVEL",
    "web_server.host": "WEB_SERVER_HOST",
    "web_server.port": "PORT",
}

REQUIRED_KEYS = ("mqtt.host", "mqtt.password", "mqtt.username")


def _load_env_once() -> None:
    global _ENV_LOADED
    if _ENV_LOADED:
        return
    # System environment wins; a .env in the working directory only fills gaps.
    env_file = Path.cwd() / ".env"
    values = dotenv_values(env_file) if env_file.exists() else {}
    for k, v in values.items():
        if k and v is not None and k not in os.environ:
            os.environ[k] = str(v)
    _ENV_LOADED = True


def _defaults() -> dict:
    return {
        "mqtt": {
            "host": None,
            "port": 1883,
            "username": None,
            "password": None,
            "client_id": "mutedeck2mqtt",
            "keepalive": 60,
            "connect_timeout": 10.0,
            "publish_timeout": None,
        },
        "home_assistant": {
            "discovery_prefix": "homeassistant",
            "status_topic": "homeassistant/status",
        },
        "bridge": {
            "default_topic": "mutedeck",
            "default_prefix": "mutedeck2mqtt",
            "discovery_delay": 2.0,
        },
        "logging": {"level": "INFO"},
        "web_server": {"host": "0.0.0.0", "port": 8080},
    }


def _merge(base: dict, override: dict) -> dict:
    merged = dict(base)
    for k, v in override.items():
        if isinstance(v, dict) and isinstance(merged.get(k), dict):
            merged[k] = _merge(merged[k], v)
        else:
            merged[k] = v
    return merged


class Config:
    """Configuration manager with validation and defaults."""

    config_path: Optional[str] = None

    def __init__(self, config_data: dict):
        """Initialize configuration from dictionary (merged over defaults)."""
        _load_env_once()
        self._data = _merge(_defaults(), config_data or {})
        self.config_path = None

    @classmethod
    def from_file(cls, config_path: str) -> "Config":
        """Load configuration from YAML file."""
        path = Path(config_path)
        if not path.exists():
            raise FileNotFoundError(f"Configuration file not found: {config_path}")

        with open(path) as f:
            data = yaml.safe_load(f) or {}

        instance = cls(data)
        instance.config_path = str(path)
        return instance

    @classmethod
    def from_defaults(cls) -> "Config":
        """Create configuration with default values."""
        instance = cls({})
        instance.config_path = "defaults"
        return instance

    @classmethod
    def from_env(cls) -> "Config":
        """Defaults plus environment overrides (the container entrypoint path)."""
        instance = cls({})
        instance.config_path = "environment"
        return instance

    def get(self, key: str, default: Any = None) -> Any:
        """Get configuration value using dot notation."""
        value: Any = self._data
        for k in key.split("."):
            if isinstance(value, dict) and k in value:
                value = value[k]
            else:
                value = default
                break

        # Environment variable override; empty means unset
        env_key = ENV_OVERRIDES.get(key)
        env_value = os.getenv(env_key) if env_key else None
        if env_value:
            if isinstance(value, bool):
                return env_value.lower() in ("true", "1", "yes", "on")
            elif isinstance(value, int):
                try:
                    return int(env_value)
                except ValueError:
                    pass
            elif isinstance(value, float):
                try:
                    return float(env_value)
                except ValueError:
                    pass
            return env_value

        # Handle ${VARIABLE} expansion in string values
        if isinstance(value, str) and value.startswith("${") and value.endswith("}"):
            expanded_value = os.getenv(value[2:-1])
            if expanded_value is not None:
                return expanded_value

        return value

    def validate(self) -> None:
        """Raise if required connection settings are absent or unusable."""
        missing = []
        for key in REQUIRED_KEYS:
            val = self.get(key)
            if val is None or val == "" or str(val).startswith("${"):
                missing.append(ENV_OVERRIDES[key])
        if missing:
            raise ConfigMissing(missing)

        for key in ("mqtt.port", "web_server.port"):
            val = self.get(key)
            try:
                int(val)
            except (TypeError, ValueError) as e:
                raise ConfigError(f"Invalid {ENV_OVERRIDES[key]}: {val!r}") from e

        for key, convert in (
            ("mqtt.keepalive", int),
            ("mqtt.connect_timeout", float),
            ("mqtt.publish_timeout", float),
            ("bridge.discovery_delay", float),
        ):
            val = self.get(key)
            if key == "mqtt.publish_timeout" and (val is None or val == ""):
                continue
            try:
                convert(val)
            except (TypeError, ValueError) as e:
                raise ConfigError(f"Invalid {ENV_OVERRIDES[key]}: {val!r}") from e

    @property
    def mqtt_host(self) -> Optional[str]:
        """Get MQTT broker host."""
        return self.get("mqtt.host")

    @property
    def mqtt_port(self) -> int:
        """Get MQTT port."""
        return int(self.get("mqtt.port", 1883))

    @property
    def mqtt_username(self) -> Optional[str]:
        """Get MQTT username."""
        return self.get("mqtt.username")

    @property
    def mqtt_password(self) -> Optional[str]:
        """Get MQTT password."""
        return self.get("mqtt.password")

    @property
    def mqtt_client_id(self) -> str:
        """Get MQTT client ID."""
        return self.get("mqtt.client_id") or "mutedeck2mqtt"

    @property
    def mqtt_keepalive(self) -> int:
        return int(self.get("mqtt.keepalive", 60))

    @property
    def mqtt_connect_timeout(self) -> float:
        return float(self.get("mqtt.connect_timeout", 10.0))

    @property
    def mqtt_publish_timeout(self) -> Optional[float]:
        """Bound on waiting for a publish to complete; None waits indefinitely."""
        val = self.get("mqtt.publish_timeout")
        if val is None or val == "":
            return None
        return float(val)

    @property
    def discovery_prefix(self) -> str:
        return self.get("home_assistant.discovery_prefix") or "homeassistant"

    @property
    def ha_status_topic(self) -> str:
        return self.get("home_assistant.status_topic") or "homeassistant/status"

    @property
    def default_topic(self) -> str:
        return self.get("bridge.default_topic") or "mutedeck"

    @property
    def default_prefix(self) -> str:
        return self.get("bridge.default_prefix") or "mutedeck2mqtt"

    @property
    def discovery_delay(self) -> float:
        """Seconds to pause after a first discovery publish."""
        return float(self.get("bridge.discovery_delay", 2.0))

    @property
    def log_level(self) -> str:
        return str(self.get("logging.level") or "INFO").upper()

    @property
    def web_host(self) -> str:
        """Get web server host."""
        return self.get("web_server.host", "0.0.0.0")

    @property
    def web_port(self) -> int:
        """Get web server port."""
        return int(self.get("web_server.port", 8080))
