"""Tests for per-request webhook processing."""

import json
import threading

import pytest

from mutedeck2mqtt.discovery import build_discovery_payload
from mutedeck2mqtt.discovery_cache import DiscoveryCache
from mutedeck2mqtt.errors import DecodeError, MissingField, PublishError
from mutedeck2mqtt.handler import StatusRequestHandler, decode_body

DISCOVERY_KEY = "homeassistant/device/mutedeck2mqtt_device_MyRoom/config"

BODY = json.dumps(
    {
        "call": "active",
        "control": "zoom-meeting",
        "mute": "inactive",
        "record": "disabled",
        "share": "disabled",
        "video": "active",
    }
)


@pytest.fixture
def cache():
    return DiscoveryCache()


@pytest.fixture
def handler(fake_publisher, cache):
    return StatusRequestHandler(fake_publisher, cache)


class TestDecodeBody:
    def test_object(self):
        assert decode_body(b'{"a": 1}') == {"a": 1}

    def test_malformed_json(self):
        with pytest.raises(DecodeError):
            decode_body(b'{"call": ')

    def test_non_object(self):
        with pytest.raises(DecodeError):
            decode_body(b"[1, 2]")

    def test_invalid_utf8(self):
        with pytest.raises(DecodeError):
            decode_body(b"\xff\xfe{")


class TestStatusRequestHandler:
    def test_example_request(self, handler, fake_publisher, cache):
        channel = handler.handle(BODY, topic="MyRoom")

        assert channel == "mutedeck2mqtt/MyRoom"
        assert [k for k, _ in fake_publisher.discovery] == [DISCOVERY_KEY]
        assert fake_publisher.discovery[0][1] == build_discovery_payload(
            "MyRoom", "mutedeck2mqtt"
        )
        assert fake_publisher.status == [
            (
                "mutedeck2mqtt/MyRoom",
                {
                    "call": "active",
                    "control": "Zoom",
                    "mute": "inactive",
                    "record": "disabled",
                    "share": "disabled",
                    "video": "active",
                },
            )
        ]
        assert cache.is_sent(DISCOVERY_KEY)

    def test_defaults_for_absent_or_empty_params(self, handler, fake_publisher):
        handler.handle(BODY)
        handler.handle(BODY, topic="", prefix="")
        assert [c for c, _ in fake_publisher.status] == [
            "mutedeck2mqtt/mutedeck",
            "mutedeck2mqtt/mutedeck",
        ]
        assert [k for k, _ in fake_publisher.discovery] == [
            "homeassistant/device/mutedeck2mqtt_device_mutedeck/config"
        ]

    def test_custom_prefix_and_discovery_root(self, fake_publisher, cache):
        handler = StatusRequestHandler(fake_publisher, cache, discovery_prefix="ha")
        handler.handle(BODY, topic="desk", prefix="calls")
        key, doc = fake_publisher.discovery[0]
        assert key == "ha/device/mutedeck2mqtt_device_desk/config"
        assert doc["stat_t"] == "calls/desk"
        assert fake_publisher.status[0][0] == "calls/desk"

    def test_discovery_published_once_per_topic(self, handler, fake_publisher):
        for _ in range(5):
            handler.handle(BODY, topic="MyRoom")
        handler.handle(BODY, topic="Other")

        assert [k for k, _ in fake_publisher.discovery] == [
            DISCOVERY_KEY,
            "homeassistant/device/mutedeck2mqtt_device_Other/config",
        ]
        assert len(fake_publisher.status) == 6

    def test_missing_field_publishes_nothing(self, handler, fake_publisher, cache):
        body = json.loads(BODY)
        del body["video"]
        with pytest.raises(MissingField) as exc:
            handler.handle(json.dumps(body), topic="MyRoom", client_ip="10.0.0.5")
        assert str(exc.value) == "Missing required key: video"
        assert fake_publisher.discovery == []
        assert fake_publisher.status == []
        assert len(cache) == 0

    def test_missing_field_is_logged(self, handler, caplog):
        with pytest.raises(MissingField):
            handler.handle('{"call": "active"}', client_ip="10.0.0.5")
        assert "Request from 10.0.0.5 missing required key: control" in caplog.text

    def test_decode_error_publishes_nothing(self, handler, fake_publisher):
        with pytest.raises(DecodeError):
            handler.handle(b"not json")
        assert fake_publisher.discovery == []
        assert fake_publisher.status == []

    def test_discovery_failure_leaves_key_unmarked(
        self, handler, fake_publisher, cache
    ):
        fake_publisher.fail_topics.add(DISCOVERY_KEY)
        with pytest.raises(PublishError):
            handler.handle(BODY, topic="MyRoom")
        assert not cache.is_sent(DISCOVERY_KEY)
        assert fake_publisher.status == []

        # Next periodic post retries discovery
        fake_publisher.fail_topics.clear()
        handler.handle(BODY, topic="MyRoom")
        assert [k for k, _ in fake_publisher.discovery] == [DISCOVERY_KEY]
        assert cache.is_sent(DISCOVERY_KEY)

    def test_status_failure_keeps_discovery(self, handler, fake_publisher, cache):
        fake_publisher.fail_topics.add("mutedeck2mqtt/MyRoom")
        with pytest.raises(PublishError):
            handler.handle(BODY, topic="MyRoom")
        assert cache.is_sent(DISCOVERY_KEY)
        assert len(fake_publisher.discovery) == 1

    def test_discovery_delay_sleeps_only_on_first_publish(
        self, fake_publisher, cache, monkeypatch
    ):
        sleeps = []
        monkeypatch.setattr("mutedeck2mqtt.handler.time.sleep", sleeps.append)
        handler = StatusRequestHandler(fake_publisher, cache, discovery_delay=2.0)
        handler.handle(BODY, topic="MyRoom")
        handler.handle(BODY, topic="MyRoom")
        assert sleeps == [2.0]

    def test_concurrent_requests_publish_discovery_once(
        self, handler, fake_publisher
    ):
        barrier = threading.Barrier(10)

        def worker():
            barrier.wait()
            handler.handle(BODY, topic="MyRoom")

        threads = [threading.Thread(target=worker) for _ in range(10)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(fake_publisher.discovery) == 1
        assert len(fake_publisher.status) == 10
