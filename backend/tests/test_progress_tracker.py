"""Tests for the Redis progress snapshot cache."""

import json
from unittest.mock import MagicMock

from redis.exceptions import ConnectionError as RedisConnectionError

from app.services.progress_tracker import PROGRESS_PREFIX, ProgressCache


def test_store_writes_json_with_ttl():
    client = MagicMock()
    cache = ProgressCache(client, ttl_seconds=60)

    cache.store("job-1", {"status": "processing", "processedRows": 25})

    key, raw = client.set.call_args.args
    assert key == f"{PROGRESS_PREFIX}job-1"
    assert json.loads(raw) == {"status": "processing", "processedRows": 25}
    assert client.set.call_args.kwargs == {"ex": 60}


def test_fetch_round_trips_snapshot():
    client = MagicMock()
    client.get.return_value = json.dumps({"status": "completed"})

    assert ProgressCache(client).fetch("job-1") == {"status": "completed"}
    client.get.assert_called_once_with(f"{PROGRESS_PREFIX}job-1")


def test_fetch_missing_or_corrupt_snapshot_is_empty():
    client = MagicMock()
    client.get.return_value = None
    assert ProgressCache(client).fetch("job-1") == {}

    client.get.return_value = "{not json"
    assert ProgressCache(client).fetch("job-1") == {}


def test_redis_outage_is_logged_not_raised(caplog):
    client = MagicMock()
    client.set.side_effect = RedisConnectionError("connection refused")
    client.get.side_effect = RedisConnectionError("connection refused")
    cache = ProgressCache(client)

    cache.store("job-1", {"status": "processing"})
    assert cache.fetch("job-1") == {}
    assert "Failed to cache progress for job job-1" in caplog.text
    assert "Failed to read cached progress for job job-1" in caplog.text
