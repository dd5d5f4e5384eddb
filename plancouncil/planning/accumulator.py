"""
Output Accumulator

Keeps the longest observed copy of each step's output for a run, so the
final artifact is built from full-fidelity outputs even when the caller
echoes back summarized versions.

Design decisions:
- Storage behind an async OutputStore ABC (memory, file, Redis)
- One namespace per task slug; keys are step ids
- A write never replaces a longer value (per-key monotonic length)
- Progress tracking must never block planning: write failures are
  logged and swallowed by the accumulator, not the stores
"""

import json
import logging
from abc import ABC, abstractmethod
from pathlib import Path

import redis.asyncio as redis
from redis.exceptions import RedisError, WatchError

from plancouncil.config.settings import PlannerSettings, RedisSettings
from plancouncil.core.exceptions import ConfigurationError, StoreError
from plancouncil.planning.workflow import task_slug

logger = logging.getLogger(__name__)


class OutputStore(ABC):
    """Abstract key-value storage for accumulated step outputs."""

    @abstractmethod
    async def get_all(self, namespace: str) -> dict[str, str]:
        """All stored outputs for a namespace (empty when absent)."""
        pass

    @abstractmethod
    async def get(self, namespace: str, key: str) -> str | None:
        """A single stored output."""
        pass

    @abstractmethod
    async def set_if_longer(self, namespace: str, key: str, value: str) -> str:
        """
        Store ``value`` unless the existing value is at least as long.

        Returns the value held after the call.
        """
        pass

    @abstractmethod
    async def delete(self, namespace: str) -> None:
        """Remove a namespace entirely."""
        pass

    async def close(self) -> None:
        """Release any held resources."""
        return None


class InMemoryOutputStore(OutputStore):
    """In-memory store for testing and single-process use."""

    def __init__(self):
        self._data: dict[str, dict[str, str]] = {}

    async def get_all(self, namespace: str) -> dict[str, str]:
        return dict(self._data.get(namespace, {}))

    async def get(self, namespace: str, key: str) -> str | None:
        return self._data.get(namespace, {}).get(key)

    async def set_if_longer(self, namespace: str, key: str, value: str) -> str:
        bucket = self._data.setdefault(namespace, {})
        existing = bucket.get(key)
        if existing is not None and len(existing) >= len(value):
            return existing
        bucket[key] = value
        return value

    async def delete(self, namespace: str) -> None:
        self._data.pop(namespace, None)


class FileOutputStore(OutputStore):
    """
    One JSON object per namespace under a cache directory.

    Missing or malformed files read as empty. Not safe for concurrent
    writers on the same namespace.
    """

    def __init__(self, cache_dir: Path | str):
        self._cache_dir = Path(cache_dir)

    def path_for(self, namespace: str) -> Path:
        return self._cache_dir / f"{namespace}.json"

    def _read(self, namespace: str) -> dict[str, str]:
        path = self.path_for(namespace)
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return {}
        except (OSError, ValueError) as e:
            logger.warning(f"Ignoring unreadable cache {path}: {e}")
            return {}

        if not isinstance(data, dict):
            return {}
        return {str(k): v for k, v in data.items() if isinstance(v, str)}

    def _write(self, namespace: str, data: dict[str, str]) -> None:
        path = self.path_for(namespace)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(json.dumps(data, indent=2), encoding="utf-8")
        except OSError as e:
            raise StoreError(
                f"Failed to write cache {path}",
                context={"namespace": namespace},
                cause=e,
            ) from e

    async def get_all(self, namespace: str) -> dict[str, str]:
        return self._read(namespace)

    async def get(self, namespace: str, key: str) -> str | None:
        return self._read(namespace).get(key)

    async def set_if_longer(self, namespace: str, key: str, value: str) -> str:
        data = self._read(namespace)
        existing = data.get(key)
        if existing is not None and len(existing) >= len(value):
            return existing
        data[key] = value
        self._write(namespace, data)
        return value

    async def delete(self, namespace: str) -> None:
        try:
            self.path_for(namespace).unlink(missing_ok=True)
        except OSError as e:
            raise StoreError(
                f"Failed to delete cache for {namespace}",
                context={"namespace": namespace},
                cause=e,
            ) from e


class RedisOutputStore(OutputStore):
    """
    One Redis hash per namespace, expiring after ``ttl_seconds``.

    Compare-and-set runs inside WATCH/MULTI so concurrent writers to the
    same key cannot shrink it.
    """

    def __init__(
        self,
        redis_client: redis.Redis,
        prefix: str = "plancouncil:outputs:",
        ttl_seconds: int = 86400,
    ):
        self._redis = redis_client
        self._prefix = prefix
        self._ttl = ttl_seconds

    def key_for(self, namespace: str) -> str:
        return f"{self._prefix}{namespace}"

    @staticmethod
    def _decode(value: str | bytes | None) -> str | None:
        if isinstance(value, bytes):
            return value.decode("utf-8")
        return value

    async def get_all(self, namespace: str) -> dict[str, str]:
        try:
            raw = await self._redis.hgetall(self.key_for(namespace))
        except RedisError as e:
            raise StoreError(f"Failed to read outputs for {namespace}", cause=e) from e
        return {self._decode(k): self._decode(v) for k, v in raw.items()}

    async def get(self, namespace: str, key: str) -> str | None:
        try:
            return self._decode(await self._redis.hget(self.key_for(namespace), key))
        except RedisError as e:
            raise StoreError(f"Failed to read {key} for {namespace}", cause=e) from e

    async def set_if_longer(self, namespace: str, key: str, value: str) -> str:
        redis_key = self.key_for(namespace)
        try:
            async with self._redis.pipeline(transaction=True) as pipe:
                while True:
                    try:
                        await pipe.watch(redis_key)
                        existing = self._decode(await pipe.hget(redis_key, key))
                        if existing is not None and len(existing) >= len(value):
                            await pipe.unwatch()
                            return existing

                        pipe.multi()
                        pipe.hset(redis_key, key, value)
                        pipe.expire(redis_key, self._ttl)
                        await pipe.execute()
                        return value
                    except WatchError:
                        logger.debug(f"Concurrent update on {redis_key}:{key}, retrying")
                        continue
        except RedisError as e:
            raise StoreError(
                f"Failed to write {key} for {namespace}",
                context={"namespace": namespace, "key": key},
                cause=e,
            ) from e

    async def delete(self, namespace: str) -> None:
        try:
            await self._redis.delete(self.key_for(namespace))
        except RedisError as e:
            raise StoreError(f"Failed to delete outputs for {namespace}", cause=e) from e

    async def close(self) -> None:
        await self._redis.aclose()


class OutputAccumulator:
    """
    Records just-completed step outputs and serves the cached map.

    All failures degrade to an empty or partial map; the coordinator
    never sees an exception from here.
    """

    def __init__(self, store: OutputStore):
        self._store = store

    @property
    def store(self) -> OutputStore:
        return self._store

    async def load(self, task: str) -> dict[str, str]:
        """Cached outputs for a task (empty on any read failure)."""
        try:
            return await self._store.get_all(task_slug(task))
        except StoreError as e:
            logger.warning(f"Could not load accumulated outputs: {e}")
            return {}

    async def record(self, task: str, step_id: str, prior: dict[str, str]) -> dict[str, str]:
        """
        Record ``prior[step_id]`` if it is longer than the cached copy.

        Only the just-completed step is written; other keys in ``prior``
        are ignored. Returns the cached map after the write.
        """
        slug = task_slug(task)
        cached = await self.load(task)

        value = prior.get(step_id)
        if not value:
            return cached

        try:
            cached[step_id] = await self._store.set_if_longer(slug, step_id, value)
        except StoreError as e:
            logger.warning(
                f"Failed to accumulate output for step {step_id}: {e}",
                extra={"task_slug": slug, "step_id": step_id},
            )
        return cached

    async def clear(self, task: str) -> None:
        """Drop the cache for a task."""
        try:
            await self._store.delete(task_slug(task))
        except StoreError as e:
            logger.warning(f"Failed to clear accumulated outputs: {e}")


def create_store(
    planner: PlannerSettings,
    redis_settings: RedisSettings | None = None,
) -> OutputStore:
    """Build the configured output store backend."""
    backend = planner.store_backend

    if backend == "memory":
        return InMemoryOutputStore()

    if backend == "file":
        return FileOutputStore(planner.cache_dir)

    if backend == "redis":
        redis_settings = redis_settings or RedisSettings()
        client = redis.from_url(redis_settings.url, decode_responses=True)
        return RedisOutputStore(
            client,
            prefix=redis_settings.key_prefix,
            ttl_seconds=planner.accumulator_ttl_seconds,
        )

    raise ConfigurationError(
        f"Unknown store backend: {backend}",
        context={"store_backend": backend},
    )
