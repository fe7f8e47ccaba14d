"""Home Assistant birth message handling.

Discovery bundles are published without the retain flag, so Home Assistant
forgets them when it restarts. It announces each start by publishing
``online`` to its status topic; on that message every bundle sent so far is
published again. Replay does not touch the per-topic ``sent`` flags.
"""

from __future__ import annotations

import logging
from typing import Any, Union

from .discovery_cache import DiscoveryCache
from .errors import PublishError

logger = logging.getLogger(__name__)

STATE_UNKNOWN = "unknown"
STATE_ONLINE = "online"
STATE_OFFLINE = "offline"


class LifecycleListener:
    """Tracks the consumer's availability and replays discovery on birth."""

    def __init__(
        self,
        cache: DiscoveryCache,
        publisher: Any,
        birth_payload: str = "online",
        will_payload: str = "offline",
    ):
        self.cache = cache
        self.publisher = publisher
        self.birth_payload = birth_payload
        self.will_payload = will_payload
        self.state = STATE_UNKNOWN

    def attach(self, client: Any, status_topic: str = "homeassistant/status") -> None:
        client.add_subscription(status_topic, self.handle_status)

    def handle_status(self, payload: Union[bytes, str]) -> int:
        """Process a status message; returns the number of bundles resent."""
        if isinstance(payload, bytes):
            payload = payload.decode("utf-8", errors="ignore")
        text = payload.strip()

        if text == self.birth_payload:
            self.state = STATE_ONLINE
            logger.info("Home Assistant is online, resending discovery message")
            return self.replay()
        if text == self.will_payload:
            self.state = STATE_OFFLINE
            logger.info("Home Assistant went offline")
            return 0
        logger.debug("Ignoring Home Assistant status payload %r", text)
        return 0

    def replay(self) -> int:
        """Republish every stored bundle; a failed entry does not stop the loop."""
        resent = 0
        with self.cache.lock:
            for key, document in self.cache.snapshot():
                try:
                    body = self.publisher.publish_discovery(key, document)
                except PublishError as e:
                    logger.error("Error publishing discovery message: %s", e)
                    continue
                resent += 1
                logger.info("Resent discovery message to topic: %s", key)
                logger.debug("Resent discovery message body: %s", body)
        return resent
