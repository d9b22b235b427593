"""
Fire-and-forget telemetry sink.
Appends exam events to a capped Redis list for the analytics side to drain.
Disabled unless TELEMETRY_REDIS_URL is set; never raises.
"""

import os
import json
import logging
from datetime import datetime, timezone
from typing import Optional

import redis

log = logging.getLogger(__name__)

# ─── Config ────────────────────────────────────────────────────────────────────

TELEMETRY_REDIS_URL = os.getenv("TELEMETRY_REDIS_URL")
TELEMETRY_STREAM_KEY = os.getenv("TELEMETRY_STREAM_KEY", "reviewly:events")
MAX_EVENTS = 10_000

_redis_client: Optional[redis.Redis] = None


def get_redis() -> Optional[redis.Redis]:
    """Get or create Redis connection (None when telemetry is disabled)."""
    global _redis_client
    if _redis_client is None and TELEMETRY_REDIS_URL:
        _redis_client = redis.from_url(
            TELEMETRY_REDIS_URL,
            decode_responses=True,
            socket_connect_timeout=0.5,
            socket_timeout=0.5,
        )
    return _redis_client


def capture(user_id: str, event: str, properties: Optional[dict] = None) -> None:
    """Record one server-side event. Errors are logged and dropped."""
    r = get_redis()
    if r is None:
        return
    payload = json.dumps({
        "distinct_id": str(user_id),
        "event": event,
        "properties": properties or {},
        "timestamp": datetime.now(timezone.utc).isoformat(),
    })
    try:
        r.rpush(TELEMETRY_STREAM_KEY, payload)
        r.ltrim(TELEMETRY_STREAM_KEY, -MAX_EVENTS, -1)
    except redis.RedisError as e:
        log.debug("Telemetry event '%s' dropped: %s", event, e)
