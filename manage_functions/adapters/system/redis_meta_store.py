# /manage_functions/adapters/system/redis_meta_store.py
from __future__ import annotations

import logging

import redis

LOG = logging.getLogger("adapter.meta_store.redis")


class RedisMetaStore:
    """Reads manager meta values from the fields of a single redis hash."""

    def __init__(self, redis_url: str, key: str = "meta") -> None:
        self._r = redis.Redis.from_url(redis_url, decode_responses=True)
        self._key = key

    def get(self, name: str) -> str | None:
        value = self._r.hget(self._key, name)
        LOG.debug("meta.get", extra={"extra": {"key": self._key, "name": name, "found": value is not None}})
        return value

    def set(self, name: str, value: str | int) -> None:
        self._r.hset(self._key, mapping={name: str(value)})
        LOG.info("meta.set", extra={"extra": {"key": self._key, "name": name}})
