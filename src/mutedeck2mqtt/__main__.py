#!/usr/bin/env python3
"""
MuteDeck2MQTT CLI - run the webhook to MQTT bridge service.
"""

import argparse
import logging
from pathlib import Path
import sys
from typing import Optional

from .config import Config
from .discovery_cache import DiscoveryCache
from .errors import BrokerConnectionError, ConfigError
from .handler import StatusRequestHandler
from .lifecycle import LifecycleListener
from .mqtt_client import MQTTBridgeClient
from .web import BridgeServer

LOG_LEVELS = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARN": logging.WARNING,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
}


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="mutedeck2mqtt",
        description="MuteDeck2MQTT: MuteDeck webhook to MQTT bridge with Home Assistant discovery",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Connection settings come from the environment (MQTT_HOST, MQTT_USER,
MQTT_PASS, ...) or an optional YAML file; environment values win.

Examples:
  mutedeck2mqtt                          # configure from environment
  mutedeck2mqtt --config config.yaml     # YAML file plus environment
  mutedeck2mqtt --debug                  # force debug logging
        """,
    )
    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {_get_version()}"
    )
    parser.add_argument(
        "--config",
        type=str,
        default=None,
        help="path to YAML configuration file",
    )
    parser.add_argument("--debug", action="store_true", help="enable debug output")
    return parser


def _get_version() -> str:
    """Get the package version."""
    try:
        from mutedeck2mqtt import __version__

        return __version__
    except ImportError:
        return "0.0.0-dev"


def _resolve_log_level(name: str, debug: bool = False) -> int:
    if debug:
        return logging.DEBUG
    return LOG_LEVELS.get(str(name).upper(), logging.INFO)


def _setup_logging(level: int = logging.INFO) -> None:
    """Setup logging configuration."""
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def load_config(config_path: Optional[str]) -> Config:
    if config_path and Path(config_path).exists():
        return Config.from_file(config_path)
    if config_path:
        logging.warning("Config file %s not found, using environment", config_path)
    return Config.from_env()


def build_service(config: Config):
    """Wire cache, broker client, lifecycle listener, handler and server."""
    cache = DiscoveryCache()
    client = MQTTBridgeClient.from_config(config)
    lifecycle = LifecycleListener(cache, client)
    lifecycle.attach(client, config.ha_status_topic)
    handler = StatusRequestHandler(
        client,
        cache,
        discovery_prefix=config.discovery_prefix,
        discovery_delay=config.discovery_delay,
        default_topic=config.default_topic,
        default_prefix=config.default_prefix,
    )
    server = BridgeServer(handler, mqtt_client=client, lifecycle=lifecycle)
    return client, server


def main(argv: Optional[list[str]] = None) -> int:
    """Main entry point."""
    parser = create_parser()
    args = parser.parse_args(argv)

    config = load_config(args.config)
    level = _resolve_log_level(config.log_level, args.debug)
    _setup_logging(level)

    try:
        config.validate()
    except ConfigError as e:
        logging.critical("%s", e)
        return 1

    client, server = build_service(config)
    try:
        client.connect()
    except BrokerConnectionError as e:
        logging.critical("%s", e)
        return 1

    try:
        server.start(
            host=config.web_host,
            port=config.web_port,
            log_level=logging.getLevelName(level).lower(),
        )
    finally:
        client.disconnect()
    return 0


if __name__ == "__main__":
    sys.exit(main())
