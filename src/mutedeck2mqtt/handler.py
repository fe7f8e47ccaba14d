"""Per-request processing of MuteDeck webhook posts.

decode -> validate -> announce topic once -> publish status.

Called from a worker thread for each HTTP request. A publish failure
propagates as PublishError; a failed first discovery leaves the topic
unmarked so the next periodic post from MuteDeck tries again.
"""

from __future__ import annotations

import json
import logging
import time
from typing import Any, Optional, Union

from .discovery import build_discovery_payload, discovery_topic, status_topic
from .discovery_cache import DiscoveryCache
from .errors import DecodeError, MissingField, PublishError
from .validation import validate_status_record

logger = logging.getLogger(__name__)

DEFAULT_TOPIC = "mutedeck"
DEFAULT_PREFIX = "mutedeck2mqtt"


def decode_body(body: Union[bytes, str]) -> dict[str, Any]:
    """Decode a request body into a status record dict."""
    try:
        data = json.loads(body)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise DecodeError(str(e)) from e
    if not isinstance(data, dict):
        raise DecodeError(
            f"expected a JSON object, got {type(data).__name__}"
        )
    return data


class StatusRequestHandler:
    """Orchestrates validation, one-time discovery and status publishing."""

    def __init__(
        self,
        publisher: Any,
        cache: DiscoveryCache,
        discovery_prefix: str = "homeassistant",
        discovery_delay: float = 0.0,
        default_topic: str = DEFAULT_TOPIC,
        default_prefix: str = DEFAULT_PREFIX,
    ):
        self.publisher = publisher
        self.cache = cache
        self.discovery_prefix = discovery_prefix
        self.discovery_delay = discovery_delay
        self.default_topic = default_topic
        self.default_prefix = default_prefix

    def resolve(
        self, topic: Optional[str], prefix: Optional[str]
    ) -> tuple[str, str]:
        """Apply defaults; empty query values count as absent."""
        return topic or self.default_topic, prefix or self.default_prefix

    def ensure_discovery(self, topic: str, prefix: str) -> bool:
        """Publish the discovery bundle for ``topic`` unless already sent.

        Returns True when a bundle was published by this call.
        """
        logger.debug("Checking discovery topic")
        key = discovery_topic(self.discovery_prefix, topic)
        with self.cache.lock:
            if self.cache.is_sent(key):
                return False
            logger.debug("Preparing discovery topic")
            document = build_discovery_payload(topic, prefix)
            try:
                body = self.publisher.publish_discovery(key, document)
            except PublishError as e:
                logger.error("Error publishing discovery message: %s", e)
                raise
            logger.info("Discovery message sent to topic: %s", key)
            logger.debug("Discovery message body: %s", body)
            self.cache.mark_sent(key, document)
            if self.discovery_delay > 0:
                # Let Home Assistant create the entities before the first state
                time.sleep(self.discovery_delay)
        return True

    def handle(
        self,
        body: Union[bytes, str],
        topic: Optional[str] = None,
        prefix: Optional[str] = None,
        client_ip: str = "unknown",
    ) -> str:
        """Process one webhook post; returns the status topic published to."""
        logger.debug("Request received from IP: %s", client_ip)
        logger.debug("Incoming body: %r", body)

        record = decode_body(body)
        try:
            validate_status_record(record)
        except MissingField as e:
            logger.error(
                "Request from %s missing required key: %s", client_ip, e.key
            )
            raise

        topic, prefix = self.resolve(topic, prefix)
        self.ensure_discovery(topic, prefix)

        channel = status_topic(prefix, topic)
        try:
            body_out = self.publisher.publish_status(channel, record)
        except PublishError as e:
            logger.error("Error publishing status message: %s", e)
            raise
        logger.info("MQT: %s = %s", channel, body_out)
        return channel
