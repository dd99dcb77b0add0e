"""Background tree rebuild worker."""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass
from queue import Empty, Queue
from typing import Generic, TypeVar

logger = logging.getLogger(__name__)

ParamsT = TypeVar("ParamsT")
PayloadT = TypeVar("PayloadT")


@dataclass(frozen=True)
class RebuildRequest(Generic[ParamsT]):
    """One rebuild job."""

    request_id: int
    params: ParamsT


@dataclass(frozen=True)
class RebuildResult(Generic[ParamsT, PayloadT]):
    """Completed rebuild payload from the background worker."""

    request: RebuildRequest[ParamsT]
    payload: PayloadT

    @property
    def request_id(self) -> int:
        return self.request.request_id


class TreeRebuildScheduler(Generic[ParamsT, PayloadT]):
    """Single-threaded latest-request-wins rebuild scheduler.

    A new request replaces any request still waiting; the one already
    building runs to completion and its result is still delivered, so
    consumers compare request ids before applying.
    """

    def __init__(self, build: Callable[[ParamsT], PayloadT], *, name: str = "promptree-rebuild") -> None:
        self._build = build
        self._name = name
        self._lock = threading.Lock()
        self._idle = threading.Condition(self._lock)
        self._pending: RebuildRequest[ParamsT] | None = None
        self._running = False
        self._next_request_id = 1
        self._results: Queue[RebuildResult[ParamsT, PayloadT]] = Queue()

    def _worker(self) -> None:
        while True:
            with self._lock:
                request = self._pending
                self._pending = None
                if request is None:
                    self._running = False
                    self._idle.notify_all()
                    return

            try:
                payload = self._build(request.params)
            except Exception:
                logger.exception("Rebuild %d failed", request.request_id)
                continue
            self._results.put(RebuildResult(request=request, payload=payload))

    def schedule(self, params: ParamsT) -> int:
        """Queue/replace pending rebuild work and return its request id."""
        with self._lock:
            request_id = self._next_request_id
            self._next_request_id += 1
            self._pending = RebuildRequest(request_id=request_id, params=params)
            if self._running:
                return request_id
            self._running = True

        worker = threading.Thread(target=self._worker, name=self._name, daemon=True)
        worker.start()
        return request_id

    def reserve_request_id(self) -> int:
        """Issue a request id for work done outside the worker.

        Results of every request scheduled before it compare as older.
        """
        with self._lock:
            request_id = self._next_request_id
            self._next_request_id += 1
            return request_id

    @property
    def latest_request_id(self) -> int:
        """Return the most recently issued request id, or 0 when none was."""
        with self._lock:
            return self._next_request_id - 1

    def drain_results(self) -> list[RebuildResult[ParamsT, PayloadT]]:
        """Drain all completed rebuild results."""
        out: list[RebuildResult[ParamsT, PayloadT]] = []
        while True:
            try:
                out.append(self._results.get_nowait())
            except Empty:
                break
        return out

    def wait_idle(self, timeout: float | None = None) -> bool:
        """Block until no request is pending or building; ``False`` on timeout."""
        with self._idle:
            return self._idle.wait_for(lambda: not self._running, timeout=timeout)


__all__ = [
    "RebuildRequest",
    "RebuildResult",
    "TreeRebuildScheduler",
]
