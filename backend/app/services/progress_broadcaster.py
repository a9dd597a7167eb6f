"""Fan job progress out to live Server-Sent Events subscribers.

The broadcaster keeps, per job id, the set of attached observers. Sending
never blocks: every observer owns a bounded buffer that its HTTP response
drains at its own pace. An observer that cannot accept a frame is skipped,
so one slow or vanished client never stalls the import worker.
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import AsyncIterator
from typing import Any, Protocol

from app.db.models.import_job import is_terminal

logger = logging.getLogger(__name__)

PROGRESS_EVENT = "progress"
DONE_EVENT = "done"
KEEPALIVE_FRAME = ": ping\n\n"


class ObserverGone(Exception):
    """Raised when an observer can no longer accept events."""


class Observer(Protocol):
    def send(self, event: str, data: Any) -> None: ...

    def close(self) -> None: ...


def format_sse(event: str, data: Any) -> str:
    """Encode one SSE message."""
    return f"event: {event}\ndata: {json.dumps(data, default=str)}\n\n"


class SSEObserver:
    """Observer backed by an in-memory frame buffer for a streaming response."""

    def __init__(self, max_buffered: int = 100) -> None:
        self._frames: asyncio.Queue[str | None] = asyncio.Queue()
        self._max_buffered = max_buffered
        self.closed = False

    def send(self, event: str, data: Any) -> None:
        if self.closed:
            raise ObserverGone("observer is closed")
        if self._frames.qsize() >= self._max_buffered:
            raise ObserverGone("observer buffer is full")
        self._frames.put_nowait(format_sse(event, data))

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        self._frames.put_nowait(None)

    async def frames(self, keepalive_seconds: float) -> AsyncIterator[str]:
        """Yield buffered frames until closed, pinging while idle."""
        while True:
            try:
                frame = await asyncio.wait_for(self._frames.get(), timeout=keepalive_seconds)
            except asyncio.TimeoutError:
                yield KEEPALIVE_FRAME
                continue
            if frame is None:
                return
            yield frame


class ProgressBroadcaster:
    def __init__(self) -> None:
        self._observers: dict[str, set[Observer]] = {}

    def attach(self, job_id: str, observer: Observer, status: str | None = None) -> bool:
        """Subscribe ``observer`` to a job.

        A job already in a terminal state gets one ``done`` event and the
        observer is closed instead of registered. Returns whether the
        observer was registered.
        """
        if is_terminal(status):
            _send(observer, DONE_EVENT, {"jobId": job_id, "status": status})
            _close(observer)
            return False
        self._observers.setdefault(job_id, set()).add(observer)
        logger.debug(f"Observer attached to job {job_id} ({len(self._observers[job_id])} total)")
        return True

    def detach(self, job_id: str, observer: Observer) -> None:
        observers = self._observers.get(job_id)
        if not observers:
            return
        observers.discard(observer)
        if not observers:
            del self._observers[job_id]

    def publish(self, job_id: str, event: str, payload: Any) -> None:
        """Best-effort delivery to every observer of ``job_id``."""
        for observer in list(self._observers.get(job_id, ())):
            _send(observer, event, payload)

    def publish_and_close(self, job_id: str, event: str, payload: Any) -> None:
        """Send a final event, end every observer connection and forget the job."""
        observers = self._observers.pop(job_id, set())
        for observer in observers:
            _send(observer, event, payload)
            _close(observer)
        if observers:
            logger.info(f"Closed {len(observers)} observer(s) for job {job_id}")

    def observer_count(self, job_id: str) -> int:
        return len(self._observers.get(job_id, ()))

    def has_job(self, job_id: str) -> bool:
        return job_id in self._observers


def _send(observer: Observer, event: str, payload: Any) -> bool:
    try:
        observer.send(event, payload)
        return True
    except Exception as e:
        logger.debug(f"Dropping {event} event for unreachable observer: {e}")
        return False


def _close(observer: Observer) -> None:
    try:
        observer.close()
    except Exception as e:
        logger.debug(f"Error closing observer: {e}")
