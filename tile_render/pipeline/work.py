"""Work items handed to workers and the tiles they produce."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Tuple

import numpy as np

from ..core.utils_color import ColorFunction

Box = Tuple[int, int, int, int]


@dataclass(frozen=True)
class WorkItem:
    """A rectangle of the canvas plus the color function that fills it."""

    x: int
    y: int
    width: int
    height: int
    color_function: ColorFunction

    @property
    def box(self) -> Box:
        """``(left, top, right, bottom)`` with exclusive right and bottom."""

        return self.x, self.y, self.x + self.width, self.y + self.height


@dataclass
class Tile:
    """Rendered pixels for one work item, positioned by its canvas origin."""

    x: int
    y: int
    pixels: np.ndarray

    @property
    def width(self) -> int:
        return int(self.pixels.shape[1])

    @property
    def height(self) -> int:
        return int(self.pixels.shape[0])

    @property
    def box(self) -> Box:
        return self.x, self.y, self.x + self.width, self.y + self.height
