"""
Navigation Service — rallying cry → objectives → initiatives → tasks tree.

The tree is read-heavy and rebuilt from four tables, so it is served through
``NavigationCache``:
  - entries keyed by cycle id, expiring after ``ttl`` seconds (default 300)
  - Redis when REDIS_URL points at one, so every worker sees an invalidation;
    otherwise an in-process store whose clock is injectable for tests
  - every RCDO mutation calls ``invalidate_cycle()`` for its cycle
"""

from __future__ import annotations

import json
import logging
import time
from typing import Callable

import redis

from cadence.models import db
from cadence.models.rcdo import RallyingCry, StrategyCycle

logger = logging.getLogger(__name__)

DEFAULT_TTL = 300
KEY_PREFIX = "nav:"


# ── Backends ─────────────────────────────────────────────────────────────

class _MemoryBackend:
    """Dict store with the subset of the Redis API the cache uses."""

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._store: dict[str, tuple[str, float]] = {}

    def get(self, key):
        entry = self._store.get(key)
        if entry is None:
            return None
        value, expires = entry
        if self._clock() >= expires:
            self._store.pop(key, None)
            return None
        return value

    def setex(self, key, ttl_seconds, value):
        self._store[key] = (value, self._clock() + ttl_seconds)

    def delete(self, *keys):
        return sum(1 for k in keys if self._store.pop(k, None) is not None)

    def keys(self, pattern):
        """Simple glob matching for 'prefix*' patterns."""
        now = self._clock()
        live = [k for k, (_, expires) in self._store.items() if now < expires]
        if pattern.endswith("*"):
            return [k for k in live if k.startswith(pattern[:-1])]
        return [k for k in live if k == pattern]

    def ping(self):
        return True


def _get_backend(redis_url: str | None, clock: Callable[[], float]):
    """Redis when configured and reachable, otherwise the in-process store."""
    if redis_url and not redis_url.startswith("memory://"):
        try:
            client = redis.from_url(redis_url, decode_responses=True)
            client.ping()
            logger.info("Navigation cache: using Redis at %s", redis_url.split("@")[-1])
            return client
        except (redis.RedisError, ValueError) as exc:
            logger.warning("Redis unavailable (%s), falling back to memory cache", exc)
    return _MemoryBackend(clock)


# ── Cache ────────────────────────────────────────────────────────────────

class NavigationCache:
    """Per-cycle TTL cache. Values are stored as JSON and returned as fresh copies."""

    def __init__(self, ttl: float = DEFAULT_TTL, clock: Callable[[], float] = time.monotonic, backend=None):
        self.ttl = ttl
        self.backend = backend if backend is not None else _MemoryBackend(clock)
        self.hits = 0
        self.misses = 0

    @staticmethod
    def _key(cycle_id: str) -> str:
        return f"{KEY_PREFIX}{cycle_id}"

    def get(self, cycle_id: str):
        raw = self.backend.get(self._key(cycle_id))
        if raw is None:
            self.misses += 1
            return None
        self.hits += 1
        return json.loads(raw)

    def set(self, cycle_id: str, value: dict) -> None:
        self.backend.setex(self._key(cycle_id), int(self.ttl), json.dumps(value))

    def get_or_build(self, cycle_id: str, builder: Callable[[str], dict]) -> dict:
        value = self.get(cycle_id)
        if value is None:
            value = builder(cycle_id)
            self.set(cycle_id, value)
        return value

    def invalidate(self, cycle_id: str) -> bool:
        return self.backend.delete(self._key(cycle_id)) > 0

    def clear(self) -> None:
        keys = self.backend.keys(f"{KEY_PREFIX}*")
        if keys:
            self.backend.delete(*keys)

    def __len__(self):
        return len(self.backend.keys(f"{KEY_PREFIX}*"))


_cache = NavigationCache()


def get_cache() -> NavigationCache:
    return _cache


def configure_cache(
    ttl: float = DEFAULT_TTL,
    clock: Callable[[], float] = time.monotonic,
    redis_url: str | None = None,
) -> NavigationCache:
    """Replace the process-wide cache (called by the app factory and tests)."""
    global _cache
    _cache = NavigationCache(ttl=ttl, backend=_get_backend(redis_url, clock))
    return _cache


def invalidate_cycle(cycle_id: str | None) -> None:
    if cycle_id and _cache.invalidate(cycle_id):
        logger.debug("Navigation cache invalidated for cycle %s", cycle_id)


def build_tree(cycle_id: str) -> dict:
    cycle = db.session.get(StrategyCycle, cycle_id)
    rc = RallyingCry.query.filter_by(cycle_id=cycle_id).first() if cycle else None
    tree = {"cycle_id": cycle_id, "rallying_cry": None, "objectives": []}
    if rc is None:
        return tree

    tree["rallying_cry"] = {"id": rc.id, "title": rc.title, "status": rc.status}
    for obj in rc.objectives:
        tree["objectives"].append({
            "id": obj.id,
            "title": obj.title,
            "status": obj.status,
            "health": obj.health,
            "initiatives": [
                {
                    "id": si.id,
                    "title": si.title,
                    "status": si.status,
                    "tasks": [{"id": t.id, "title": t.title, "status": t.status} for t in si.tasks],
                }
                for si in obj.initiatives
            ],
        })
    return tree


def get_navigation_tree(cycle_id: str) -> dict:
    return _cache.get_or_build(cycle_id, build_tree)
