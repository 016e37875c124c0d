"""Per-pixel color functions used to fill tiles."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol, Tuple

import numpy as np

from .config import ConfigurationError, RenderConfig

RGBA = Tuple[int, int, int, int]


class ColorFunction(Protocol):
    """Map an absolute canvas coordinate to an RGBA color.

    Implementations must be stateless: the same ``(x, y)`` always yields the
    same color, no matter which worker asks or in what order.
    """

    def __call__(self, x: int, y: int) -> RGBA:
        ...


def clamp_channel(value: int) -> int:
    """Clamp *value* to the 0-255 range of an 8-bit channel."""

    return max(0, min(255, int(value)))


@dataclass(frozen=True)
class GradientColor:
    """Red follows x, green follows y, relative to a reference rectangle.

    With the full image as reference the canvas holds one smooth gradient.
    With the tile as reference every tile repeats the same gradient, so the
    output shows a hard edge at each tile boundary.
    """

    reference_width: int
    reference_height: int
    blue: int = 100
    alpha: int = 255

    def __post_init__(self) -> None:
        if self.reference_width <= 0 or self.reference_height <= 0:
            raise ConfigurationError("Gradient reference dimensions must be positive")

    def __call__(self, x: int, y: int) -> RGBA:
        red = (x % self.reference_width) * 255 // self.reference_width
        green = (y % self.reference_height) * 255 // self.reference_height
        return red, green, clamp_channel(self.blue), clamp_channel(self.alpha)

    def evaluate_grid(self, xs: np.ndarray, ys: np.ndarray) -> np.ndarray:
        """Vectorized form of :meth:`__call__` over coordinate grids.

        *xs* and *ys* are integer arrays of the same shape; the result has
        that shape plus a trailing channel axis of length four.
        """

        out = np.empty(xs.shape + (4,), dtype=np.uint8)
        out[..., 0] = (xs % self.reference_width) * 255 // self.reference_width
        out[..., 1] = (ys % self.reference_height) * 255 // self.reference_height
        out[..., 2] = clamp_channel(self.blue)
        out[..., 3] = clamp_channel(self.alpha)
        return out


def image_gradient(config: RenderConfig) -> GradientColor:
    return GradientColor(config.width, config.height)


def tile_gradient(config: RenderConfig) -> GradientColor:
    return GradientColor(config.tile_size, config.tile_size)


def color_function_for(config: RenderConfig) -> GradientColor:
    """Return the gradient selected by ``config.gradient_reference``."""

    if config.gradient_reference == "image":
        return image_gradient(config)
    if config.gradient_reference == "tile":
        return tile_gradient(config)
    raise ConfigurationError(f"Unknown gradient reference {config.gradient_reference!r}")
