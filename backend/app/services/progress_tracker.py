"""Latest-progress snapshots mirrored into Redis for cheap status polling."""

from __future__ import annotations

import json
import logging
import ssl
from typing import Any

from redis import Redis
from redis.exceptions import RedisError

logger = logging.getLogger(__name__)

PROGRESS_PREFIX = "jobs:progress:"
DEFAULT_TTL_SECONDS = 24 * 3600


def _key(job_id: str) -> str:
    return f"{PROGRESS_PREFIX}{job_id}"


class ProgressCache:
    """Best-effort snapshot cache; Redis availability never breaks ingestion."""

    def __init__(self, client: Redis, ttl_seconds: int = DEFAULT_TTL_SECONDS) -> None:
        self._client = client
        self._ttl_seconds = ttl_seconds

    @classmethod
    def from_url(cls, url: str, ttl_seconds: int = DEFAULT_TTL_SECONDS) -> "ProgressCache":
        # Upstash only speaks TLS and ships certificates redis-py cannot verify.
        if ".upstash.io" in url and url.startswith("redis://"):
            url = url.replace("redis://", "rediss://", 1)
        client = Redis.from_url(url, decode_responses=True, socket_connect_timeout=2)
        if url.startswith("rediss://"):
            client.connection_pool.connection_kwargs["ssl_cert_reqs"] = ssl.CERT_NONE
        return cls(client, ttl_seconds)

    def store(self, job_id: str, snapshot: dict[str, Any]) -> None:
        """Persist the latest snapshot so status endpoints can skip the database."""
        try:
            self._client.set(_key(job_id), json.dumps(snapshot), ex=self._ttl_seconds)
        except RedisError as e:
            logger.warning(f"Failed to cache progress for job {job_id}: {e}")

    def fetch(self, job_id: str) -> dict[str, Any]:
        """Return the cached snapshot, or an empty dict when unavailable."""
        try:
            raw = self._client.get(_key(job_id))
        except RedisError as e:
            logger.warning(f"Failed to read cached progress for job {job_id}: {e}")
            return {}
        if not raw:
            return {}
        try:
            return json.loads(raw)
        except json.JSONDecodeError:
            return {}

    def ping(self) -> bool:
        return bool(self._client.ping())

    def close(self) -> None:
        try:
            self._client.close()
        except RedisError as e:
            logger.warning(f"Error closing Redis client: {e}")
