"""
Reconciliation events on Redis Streams (optional — graceful degradation if unavailable).
"""
import json
import logging
from datetime import datetime, timezone
from typing import Optional

import redis

logger = logging.getLogger("visitors_operator.events")

STREAM_MAXLEN = 100
CHANNEL = "visitors:events"


def _now() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


class EventPublisher:
    """Publishes pass outcomes to a per-app stream and a global channel."""

    def __init__(self, url: str = ""):
        self.url = url
        self._client: Optional[redis.Redis] = None

    def _get_redis(self) -> Optional[redis.Redis]:
        """Lazy-init Redis client. Returns None if unavailable."""
        if self._client is not None:
            return self._client
        if not self.url:
            return None
        try:
            self._client = redis.Redis.from_url(self.url, decode_responses=True)
            self._client.ping()
            logger.info(f"Redis connected: {self.url}")
            return self._client
        except redis.RedisError as e:
            logger.warning(f"Redis unavailable (non-fatal): {e}")
            self._client = None
            return None

    def publish(self, namespace: str, name: str, event_type: str, message: str, phase: str = ""):
        r = self._get_redis()
        if not r:
            return
        entry = {
            "type": event_type,
            "message": message,
            "phase": phase,
            "timestamp": _now(),
            "app": f"{namespace}/{name}",
        }
        try:
            r.xadd(f"visitors:events:{namespace}:{name}", entry, maxlen=STREAM_MAXLEN)
            r.publish(CHANNEL, json.dumps(entry))
        except redis.RedisError as e:
            logger.debug(f"Redis publish failed (non-fatal): {e}")

    def forget(self, namespace: str, name: str):
        """Drop the stream of a deleted app."""
        r = self._get_redis()
        if not r:
            return
        try:
            r.delete(f"visitors:events:{namespace}:{name}")
        except redis.RedisError as e:
            logger.debug(f"Redis stream cleanup failed (non-fatal): {e}")
