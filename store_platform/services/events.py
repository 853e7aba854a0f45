"""
Store lifecycle events on Redis Streams (optional, degrades gracefully if unavailable).

Each store gets a capped stream `store:events:<store_id>`; every event is
also published on the global `store:events` channel for live dashboards.
"""

import json as _json
import logging
from datetime import datetime, timezone
from typing import Optional

import redis

from ..config import settings

logger = logging.getLogger("events")

STREAM_MAXLEN = 100
CHANNEL = "store:events"

_redis_client: Optional[redis.Redis] = None


def _now() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def _stream_key(store_id: str) -> str:
    return f"store:events:{store_id}"


def get_redis() -> Optional[redis.Redis]:
    """Lazy-init Redis client. Returns None if disabled or unavailable."""
    global _redis_client
    if _redis_client is not None:
        return _redis_client
    if not settings.REDIS_URL:
        return None
    try:
        _redis_client = redis.Redis.from_url(settings.REDIS_URL, decode_responses=True)
        _redis_client.ping()
        logger.info(f"Redis connected: {settings.REDIS_URL}")
        return _redis_client
    except redis.RedisError as e:
        logger.warning(f"Redis unavailable (non-fatal): {e}")
        _redis_client = None
        return None


def publish_event(store_id: str, event_type: str, message: str, status: str = ""):
    """Append to the store's stream and broadcast. Failures are non-fatal."""
    r = get_redis()
    if not r:
        return
    entry = {
        "store": store_id,
        "type": event_type,
        "message": message,
        "status": status,
        "timestamp": _now(),
    }
    try:
        r.xadd(_stream_key(store_id), entry, maxlen=STREAM_MAXLEN)
        r.publish(CHANNEL, _json.dumps(entry))
    except redis.RedisError as e:
        logger.debug(f"Redis publish failed (non-fatal): {e}")


def read_events(store_id: str, count: int = 50) -> list[dict]:
    """Oldest-first events for a store; empty when Redis is disabled."""
    r = get_redis()
    if not r:
        return []
    try:
        entries = r.xrange(_stream_key(store_id), count=count)
    except redis.RedisError as e:
        logger.debug(f"Redis stream read failed: {e}")
        return []
    return [
        {
            "timestamp": data.get("timestamp", ""),
            "event": data.get("type", ""),
            "message": data.get("message", ""),
            "status": data.get("status", ""),
        }
        for _entry_id, data in entries
    ]


def redis_status() -> str:
    r = get_redis()
    if not r:
        return "disabled"
    try:
        r.ping()
        return "connected"
    except redis.RedisError:
        return "disconnected"
