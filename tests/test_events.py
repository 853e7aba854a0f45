"""Tests for Redis lifecycle events (client mocked)."""

import json
from unittest.mock import MagicMock

import pytest
import redis

from store_platform.services import events


@pytest.fixture
def fake_redis(monkeypatch):
    r = MagicMock()
    monkeypatch.setattr(events, "_redis_client", r)
    return r


def test_disabled_without_redis_url():
    assert events.get_redis() is None
    assert events.read_events("abc123") == []
    assert events.redis_status() == "disabled"
    events.publish_event("abc123", "CREATED", "Store created")


def test_publish_appends_stream_and_broadcasts(fake_redis):
    events.publish_event("abc123", "READY", "Store is ready", "ready")

    key, entry = fake_redis.xadd.call_args.args
    assert key == "store:events:abc123"
    assert entry["type"] == "READY"
    assert entry["status"] == "ready"
    assert fake_redis.xadd.call_args.kwargs["maxlen"] == events.STREAM_MAXLEN

    channel, payload = fake_redis.publish.call_args.args
    assert channel == "store:events"
    assert json.loads(payload)["store"] == "abc123"


def test_publish_failure_is_non_fatal(fake_redis):
    fake_redis.xadd.side_effect = redis.ConnectionError("down")
    events.publish_event("abc123", "READY", "Store is ready")


def test_read_events(fake_redis):
    fake_redis.xrange.return_value = [
        ("1-0", {"type": "CREATED", "message": "Store created", "status": "provisioning",
                 "timestamp": "2026-01-01T00:00:00Z"}),
        ("2-0", {"type": "READY", "message": "Store is ready", "status": "ready",
                 "timestamp": "2026-01-01T00:01:00Z"}),
    ]
    result = events.read_events("abc123")
    assert [e["event"] for e in result] == ["CREATED", "READY"]
    assert result[1]["status"] == "ready"


def test_read_failure_returns_empty(fake_redis):
    fake_redis.xrange.side_effect = redis.ConnectionError("down")
    assert events.read_events("abc123") == []
    fake_redis.ping.side_effect = redis.ConnectionError("down")
    assert events.redis_status() == "disconnected"
