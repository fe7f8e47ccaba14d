"""Process-wide record of which discovery bundles have been published.

The cache is owned by the service wiring and shared between the request
handler (one worker thread per HTTP request) and the lifecycle listener (the
paho network thread). A single re-entrant lock guards it; callers hold
``cache.lock`` across check -> build -> publish -> mark so a topic is announced
at most once, and the replay loop holds it while republishing.

Entries are never evicted and ``sent`` is never cleared.
"""

from __future__ import annotations

import threading
from typing import Any


class DiscoveryCache:
    """Discovery topic -> (sent flag, last published document)."""

    def __init__(self) -> None:
        self.lock = threading.RLock()
        self._sent: dict[str, bool] = {}
        self._documents: dict[str, dict[str, Any]] = {}

    def is_sent(self, key: str) -> bool:
        """Return whether ``key`` has already been announced."""
        with self.lock:
            return self._sent.get(key, False)

    def mark_sent(self, key: str, document: dict[str, Any]) -> None:
        """Record a successful publish of ``document`` to ``key``."""
        with self.lock:
            self._sent[key] = True
            self._documents[key] = document

    def snapshot(self) -> list[tuple[str, dict[str, Any]]]:
        """All stored documents, for replay. Order is not significant."""
        with self.lock:
            return list(self._documents.items())

    def __len__(self) -> int:
        with self.lock:
            return len(self._documents)

    def __contains__(self, key: object) -> bool:
        with self.lock:
            return key in self._sent
