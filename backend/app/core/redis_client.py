from __future__ import annotations

import redis

from app.core.config import settings


def get_redis() -> redis.Redis:
    timeout = float(settings.redis_socket_timeout_seconds)
    return redis.Redis.from_url(
        settings.redis_url,
        decode_responses=True,
        socket_timeout=timeout,
        socket_connect_timeout=timeout,
    )
