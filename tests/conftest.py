from pathlib import Path
import sys

import pytest

# Add only the src directory to path, not the project root
project_root = Path(__file__).parent.parent
src_path = str(project_root / "src")
if src_path not in sys.path:
    sys.path.insert(0, src_path)

from mutedeck2mqtt.errors import PublishError  # noqa: E402


class FakePublisher:
    """Records publishes; topics listed in ``fail_topics`` raise PublishError."""

    def __init__(self):
        self.discovery = []
        self.status = []
        self.fail_topics: set[str] = set()

    def publish_discovery(self, key, document):
        if key in self.fail_topics:
            raise PublishError(key, "not authorized")
        self.discovery.append((key, document))
        return "{}"

    def publish_status(self, channel, record):
        if channel in self.fail_topics:
            raise PublishError(channel, "not authorized")
        self.status.append((channel, dict(record)))
        return "{}"


@pytest.fixture
def fake_publisher():
    return FakePublisher()
