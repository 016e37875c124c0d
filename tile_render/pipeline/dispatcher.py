"""Split the canvas into tiles and feed them to the work queue."""
from __future__ import annotations

import logging
import threading
from typing import Iterable, Iterator, List, Optional

from ..core.config import ConfigurationError
from ..core.utils_color import ColorFunction
from ..core.utils_parallel import ClosableQueue, QueueClosed
from .work import Box, WorkItem

LOGGER = logging.getLogger("tile_render.dispatcher")


def iter_tile_boxes(width: int, height: int, tile_size: int) -> Iterator[Box]:
    """Yield ``(x, y, width, height)`` for every tile, column by column."""

    if width <= 0 or height <= 0 or tile_size <= 0:
        raise ConfigurationError(f"Invalid tiling {width}x{height} with tile size {tile_size}")
    if width % tile_size or height % tile_size:
        raise ConfigurationError(
            f"Tile size {tile_size} does not evenly divide a {width}x{height} image"
        )
    for x in range(0, width, tile_size):
        for y in range(0, height, tile_size):
            yield x, y, tile_size, tile_size


def iter_work_items(width: int, height: int, tile_size: int, color_function: ColorFunction) -> Iterator[WorkItem]:
    for x, y, dx, dy in iter_tile_boxes(width, height, tile_size):
        yield WorkItem(x, y, dx, dy, color_function)


def build_work_items(width: int, height: int, tile_size: int, color_function: ColorFunction) -> List[WorkItem]:
    return list(iter_work_items(width, height, tile_size, color_function))


def dispatch(
    work_queue: ClosableQueue[WorkItem],
    items: Iterable[WorkItem],
    cancel_event: Optional[threading.Event] = None,
) -> int:
    """Submit *items* to *work_queue* and close it; return how many went in.

    Blocks while the queue is full. Submission stops early when
    *cancel_event* is set or the queue gets closed by someone else.
    """

    submitted = 0
    try:
        for item in items:
            if cancel_event is not None and cancel_event.is_set():
                LOGGER.info("Dispatch cancelled after %d work items", submitted)
                break
            work_queue.put(item)
            submitted += 1
    except QueueClosed:
        LOGGER.info("Work queue closed during dispatch after %d work items", submitted)
    finally:
        work_queue.close()
    LOGGER.debug("Dispatched %d work items", submitted)
    return submitted
