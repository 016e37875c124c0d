"""Parallel execution helpers for the tile render pipeline."""
from __future__ import annotations

import concurrent.futures
import logging
import threading
from collections import deque
from contextlib import contextmanager
from typing import Deque, Generic, Iterator, Optional, TypeVar


LOGGER = logging.getLogger("tile_render.parallel")

T = TypeVar("T")


class QueueClosed(Exception):
    """Raised by :class:`ClosableQueue` once no more items can flow."""


class ClosableQueue(Generic[T]):
    """Bounded FIFO shared between threads with a one-shot close signal.

    ``put`` blocks while the queue is full and ``get`` blocks while it is
    empty. After :meth:`close`, ``put`` raises :class:`QueueClosed` and
    ``get`` keeps returning buffered items until the queue is drained, then
    raises :class:`QueueClosed`. Closing wakes every blocked thread.
    """

    def __init__(self, capacity: int, name: str = "queue") -> None:
        if capacity < 1:
            raise ValueError(f"Queue capacity must be at least 1, got {capacity}")
        self.capacity = capacity
        self.name = name
        self._items: Deque[T] = deque()
        self._closed = False
        self._mutex = threading.Lock()
        self._not_empty = threading.Condition(self._mutex)
        self._not_full = threading.Condition(self._mutex)

    def put(self, item: T) -> None:
        with self._not_full:
            while len(self._items) >= self.capacity and not self._closed:
                self._not_full.wait()
            if self._closed:
                raise QueueClosed(f"{self.name} is closed")
            self._items.append(item)
            self._not_empty.notify()

    def get(self) -> T:
        with self._not_empty:
            while not self._items and not self._closed:
                self._not_empty.wait()
            if not self._items:
                raise QueueClosed(f"{self.name} is closed and drained")
            item = self._items.popleft()
            self._not_full.notify()
            return item

    def close(self) -> None:
        """Signal that no more items will be put. Safe to call repeatedly."""

        with self._mutex:
            if self._closed:
                return
            self._closed = True
            self._not_empty.notify_all()
            self._not_full.notify_all()
        LOGGER.debug("Closed %s with %d buffered items", self.name, len(self))

    @property
    def closed(self) -> bool:
        with self._mutex:
            return self._closed

    def __len__(self) -> int:
        with self._mutex:
            return len(self._items)

    def __iter__(self) -> Iterator[T]:
        while True:
            try:
                yield self.get()
            except QueueClosed:
                return


def create_thread_pool(max_workers: Optional[int] = None) -> concurrent.futures.ThreadPoolExecutor:
    """Create a thread pool executor with named threads."""

    return concurrent.futures.ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="tile_render")


@contextmanager
def limited_threads(max_workers: Optional[int]) -> Iterator[None]:
    """Context manager that logs thread usage for diagnostics."""

    LOGGER.debug("Starting thread pool with up to %s workers", max_workers)
    try:
        yield
    finally:
        LOGGER.debug("Thread pool with %s workers completed", max_workers)
