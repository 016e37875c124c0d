"""Tile workers: turn work items into fully colored tiles."""
from __future__ import annotations

import logging
import threading
from typing import Optional

import numpy as np

from ..core.utils_parallel import ClosableQueue, QueueClosed
from .work import Tile, WorkItem

LOGGER = logging.getLogger("tile_render.worker")


def render_tile(item: WorkItem) -> Tile:
    """Color every pixel of *item*'s rectangle into a fresh tile buffer.

    Pixel ``(x, y)`` of the canvas lands at row ``y - item.y`` and column
    ``x - item.x`` of the tile. Color functions that provide
    ``evaluate_grid`` are evaluated over the whole rectangle at once.
    """

    evaluate_grid = getattr(item.color_function, "evaluate_grid", None)
    if evaluate_grid is not None:
        ys, xs = np.mgrid[item.y:item.y + item.height, item.x:item.x + item.width]
        pixels = np.asarray(evaluate_grid(xs, ys), dtype=np.uint8)
        if pixels.shape != (item.height, item.width, 4):
            raise ValueError(
                f"evaluate_grid returned shape {pixels.shape}, expected {(item.height, item.width, 4)}"
            )
        return Tile(item.x, item.y, pixels)

    pixels = np.zeros((item.height, item.width, 4), dtype=np.uint8)
    for xx in range(item.x, item.x + item.width):
        for yy in range(item.y, item.y + item.height):
            pixels[yy - item.y, xx - item.x] = item.color_function(xx, yy)
    return Tile(item.x, item.y, pixels)


def worker_loop(
    work_queue: ClosableQueue[WorkItem],
    result_queue: ClosableQueue[Tile],
    cancel_event: Optional[threading.Event] = None,
) -> int:
    """Render work items until the work queue is drained and closed.

    Returns the number of tiles handed to *result_queue*. Exits early when
    *cancel_event* is set or the result queue has been closed.
    """

    rendered = 0
    name = threading.current_thread().name
    for item in work_queue:
        if cancel_event is not None and cancel_event.is_set():
            LOGGER.debug("%s cancelled after %d tiles", name, rendered)
            break
        tile = render_tile(item)
        try:
            result_queue.put(tile)
        except QueueClosed:
            LOGGER.debug("%s stopping, result queue closed", name)
            break
        rendered += 1
    LOGGER.debug("%s finished with %d tiles", name, rendered)
    return rendered
