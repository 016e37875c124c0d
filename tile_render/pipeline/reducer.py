"""Single-writer compositing of finished tiles onto the output canvas."""
from __future__ import annotations

import logging

import numpy as np
from PIL import Image

from ..core.utils_parallel import ClosableQueue
from .work import Tile

LOGGER = logging.getLogger("tile_render.reducer")


class Canvas:
    """RGBA pixel grid that records how often each pixel was written.

    Only the reducer thread writes to a canvas, so no locking is done here.
    """

    def __init__(self, width: int, height: int) -> None:
        self.width = width
        self.height = height
        self.pixels = np.zeros((height, width, 4), dtype=np.uint8)
        self._coverage = np.zeros((height, width), dtype=np.uint16)
        self.tiles_composited = 0

    @property
    def size(self) -> tuple[int, int]:
        return self.width, self.height

    def composite(self, tile: Tile) -> None:
        """Copy *tile* onto the canvas at its origin, replacing what is there."""

        left, top, right, bottom = tile.box
        if left < 0 or top < 0 or right > self.width or bottom > self.height:
            raise ValueError(f"Tile {tile.box} lies outside the {self.width}x{self.height} canvas")
        self.pixels[top:bottom, left:right] = tile.pixels
        self._coverage[top:bottom, left:right] += 1
        self.tiles_composited += 1

    def is_complete(self) -> bool:
        """True when every pixel has been written exactly once."""

        return bool(np.all(self._coverage == 1))

    def missing_count(self) -> int:
        return int(np.count_nonzero(self._coverage == 0))

    def overlap_count(self) -> int:
        return int(np.count_nonzero(self._coverage > 1))

    def to_image(self) -> Image.Image:
        return Image.fromarray(self.pixels)


def reduce_loop(result_queue: ClosableQueue[Tile], canvas: Canvas) -> int:
    """Composite tiles in arrival order until the queue is drained and closed."""

    reduced = 0
    for tile in result_queue:
        canvas.composite(tile)
        reduced += 1
    LOGGER.debug("Reducer composited %d tiles", reduced)
    return reduced
