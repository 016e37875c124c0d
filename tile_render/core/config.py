"""Configuration module for the tile render pipeline."""
from __future__ import annotations

from dataclasses import dataclass, fields
from pathlib import Path
from typing import Dict, Mapping, Optional


IMAGE_WIDTH = 1000
IMAGE_HEIGHT = 1000
TILE_SIZE = 100
QUEUE_CAPACITY = 1000
OUTPUT_FILE = Path("example.png")
LOG_FILE: Optional[Path] = None

# "image" draws one gradient across the whole canvas, "tile" repeats it per tile.
GRADIENT_REFERENCE = "image"
GRADIENT_REFERENCES = ("image", "tile")


class ConfigurationError(ValueError):
    """Raised when the render configuration cannot produce a valid tiling."""


@dataclass
class RenderConfig:
    """Runtime configuration for the tile render pipeline."""

    width: int = IMAGE_WIDTH
    height: int = IMAGE_HEIGHT
    tile_size: int = TILE_SIZE
    workers: Optional[int] = None
    queue_capacity: int = QUEUE_CAPACITY
    output_path: Path = OUTPUT_FILE
    gradient_reference: str = GRADIENT_REFERENCE
    log_file: Optional[Path] = LOG_FILE

    @property
    def columns(self) -> int:
        return self.width // self.tile_size

    @property
    def rows(self) -> int:
        return self.height // self.tile_size

    @property
    def tile_count(self) -> int:
        return self.columns * self.rows

    @property
    def worker_count(self) -> int:
        """Pool size, one worker per tile column unless set explicitly."""

        if self.workers is not None:
            return self.workers
        return max(1, self.columns)

    def as_dict(self) -> Dict[str, object]:
        """Return the configuration as a plain dictionary."""

        return {
            "IMAGE_WIDTH": self.width,
            "IMAGE_HEIGHT": self.height,
            "TILE_SIZE": self.tile_size,
            "WORKERS": self.worker_count,
            "QUEUE_CAPACITY": self.queue_capacity,
            "OUTPUT_FILE": self.output_path,
            "GRADIENT_REFERENCE": self.gradient_reference,
            "LOG_FILE": self.log_file,
        }


def validate_config(config: RenderConfig) -> RenderConfig:
    """Check the tiling preconditions and return *config* unchanged."""

    for name in ("width", "height", "tile_size", "queue_capacity"):
        value = getattr(config, name)
        if not isinstance(value, int) or value <= 0:
            raise ConfigurationError(f"{name} must be a positive integer, got {value!r}")
    if config.workers is not None and (not isinstance(config.workers, int) or config.workers < 1):
        raise ConfigurationError(f"workers must be at least 1, got {config.workers!r}")
    if config.width % config.tile_size or config.height % config.tile_size:
        raise ConfigurationError(
            f"Tile size {config.tile_size} does not evenly divide a {config.width}x{config.height} image"
        )
    if config.gradient_reference not in GRADIENT_REFERENCES:
        raise ConfigurationError(
            f"Unknown gradient reference {config.gradient_reference!r}, expected one of {GRADIENT_REFERENCES}"
        )
    return config


def build_config(overrides: Optional[Mapping[str, object]] = None) -> RenderConfig:
    """Create a validated configuration with optional overrides.

    Keys in *overrides* are :class:`RenderConfig` field names; unknown keys
    and ``None`` values are ignored so argparse namespaces can be passed
    through directly.
    """

    known = {item.name for item in fields(RenderConfig)}
    values = {}
    for key, value in (overrides or {}).items():
        if key in known and value is not None:
            values[key] = value
    if "output_path" in values:
        values["output_path"] = Path(values["output_path"])
    if values.get("log_file") is not None:
        values["log_file"] = Path(values["log_file"])
    return validate_config(RenderConfig(**values))
