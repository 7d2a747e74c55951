from __future__ import annotations

import time
import uuid
from contextlib import contextmanager
from typing import Iterator

from app.core.config import settings
from app.core.redis_client import get_redis


class LockTimeout(RuntimeError):
    def __init__(self, key: str, waited_seconds: float):
        super().__init__(f"could not acquire lock {key!r} within {waited_seconds:.1f}s")
        self.key = key
        self.waited_seconds = waited_seconds


# Compare-and-delete in one server-side step.
_RELEASE_SCRIPT = """
if redis.call("get", KEYS[1]) == ARGV[1] then
    return redis.call("del", KEYS[1])
end
return 0
"""


def ranking_lock_key(test_type_id: str) -> str:
    return f"locks:leaderboard:{test_type_id}"


@contextmanager
def redis_lock(
    key: str,
    *,
    ttl_seconds: int | None = None,
    wait_seconds: float | None = None,
    poll_seconds: float = 0.05,
) -> Iterator[str]:
    """Single-writer section keyed in Redis.

    The lock value is a random token; release only deletes the key if it still
    holds our token, so an expired-and-reacquired lock is never released by the
    previous holder.
    """

    ttl = max(1, int(ttl_seconds if ttl_seconds is not None else settings.ranking_lock_ttl_seconds))
    wait = max(0.0, float(wait_seconds if wait_seconds is not None else settings.ranking_lock_wait_seconds))

    r = get_redis()
    token = uuid.uuid4().hex
    t0 = time.monotonic()
    while not r.set(key, token, nx=True, ex=ttl):
        waited = time.monotonic() - t0
        if waited >= wait:
            raise LockTimeout(key, waited)
        time.sleep(poll_seconds)

    try:
        yield token
    finally:
        r.eval(_RELEASE_SCRIPT, 1, key, token)
