"""Command line interface for the tile render pipeline."""
from __future__ import annotations

import argparse
import logging
from pathlib import Path
from typing import Optional, Sequence

from .core import config
from .core.utils_io import PersistenceError
from .pipeline import RenderError, TileRenderPipeline

LOGGER = logging.getLogger("tile_render.main_render")


def _configure_logging(log_path: Optional[Path], verbose: bool = False) -> None:
    """Log to the console, and also to *log_path* when one is given."""

    level = logging.DEBUG if verbose else logging.INFO
    formatter = logging.Formatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s", "%Y-%m-%d %H:%M:%S")
    console_handler = logging.StreamHandler()
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)
    handlers: list[logging.Handler] = [console_handler]
    if log_path is not None:
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_path, encoding="utf-8")
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        handlers.append(file_handler)
    logging.basicConfig(level=level, handlers=handlers, force=True)


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Render a gradient image tile by tile on a worker pool")
    parser.add_argument("--width", type=int, default=config.IMAGE_WIDTH, help="Image width in pixels")
    parser.add_argument("--height", type=int, default=config.IMAGE_HEIGHT, help="Image height in pixels")
    parser.add_argument(
        "--tile-size",
        type=int,
        default=config.TILE_SIZE,
        help="Tile edge in pixels; must divide width and height",
    )
    parser.add_argument(
        "--workers",
        type=int,
        default=None,
        help="Number of worker threads (default: one per tile column)",
    )
    parser.add_argument(
        "--queue-capacity",
        type=int,
        default=config.QUEUE_CAPACITY,
        help="Capacity of the work and result queues",
    )
    parser.add_argument(
        "--gradient",
        choices=config.GRADIENT_REFERENCES,
        default=config.GRADIENT_REFERENCE,
        help="Stretch the gradient over the whole image or repeat it in every tile",
    )
    parser.add_argument("--output", type=Path, default=config.OUTPUT_FILE, help="PNG file to write")
    parser.add_argument(
        "--log-file",
        type=Path,
        default=config.LOG_FILE,
        help="Also write the log to this file (default: console only)",
    )
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging")
    return parser.parse_args(argv)


def build_runtime_config(args: argparse.Namespace) -> config.RenderConfig:
    overrides = {
        "width": args.width,
        "height": args.height,
        "tile_size": args.tile_size,
        "workers": args.workers,
        "queue_capacity": args.queue_capacity,
        "gradient_reference": args.gradient,
        "output_path": args.output.resolve(),
        "log_file": args.log_file.resolve() if args.log_file is not None else None,
    }
    return config.build_config(overrides)


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = parse_args(argv)
    try:
        _configure_logging(args.log_file, verbose=args.verbose)
    except OSError as exc:
        _configure_logging(None, verbose=args.verbose)
        LOGGER.error("Cannot write log file %s: %s", args.log_file, exc)
        raise SystemExit(2) from exc
    try:
        cfg = build_runtime_config(args)
    except config.ConfigurationError as exc:
        LOGGER.error("Invalid configuration: %s", exc)
        raise SystemExit(2) from exc
    LOGGER.info("Configuration resolved -> %s", cfg.as_dict())

    pipeline = TileRenderPipeline(cfg)
    try:
        pipeline.run()
    except PersistenceError as exc:
        LOGGER.error("Failed to save image: %s", exc)
        raise SystemExit(1) from exc
    except RenderError as exc:
        LOGGER.exception("Render failed: %s", exc)
        raise SystemExit(1) from exc
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
