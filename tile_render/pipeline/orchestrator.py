"""Orchestrates dispatch, rendering, reduction and persistence of a canvas."""
from __future__ import annotations

import concurrent.futures
import logging
import threading
import time
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

from PIL import Image

from ..core.config import RenderConfig, validate_config
from ..core.utils_color import ColorFunction, color_function_for
from ..core.utils_io import SafeFileManager
from ..core.utils_parallel import ClosableQueue, create_thread_pool, limited_threads
from .dispatcher import dispatch, iter_work_items
from .reducer import Canvas, reduce_loop
from .work import Tile, WorkItem
from .worker import worker_loop

LOGGER = logging.getLogger("tile_render.pipeline")


class RenderError(RuntimeError):
    """Raised when a pipeline stage fails or the canvas comes out incomplete."""


@dataclass
class RenderResult:
    """Outcome of one pipeline run."""

    canvas: Canvas
    workers: int
    tiles_dispatched: int
    tiles_rendered: int
    tiles_composited: int
    elapsed: float
    cancelled: bool = False
    output_path: Optional[Path] = None

    @property
    def image(self) -> Image.Image:
        return self.canvas.to_image()


class TileRenderPipeline:
    """Render a canvas tile by tile on a worker pool and save it as PNG.

    The calling thread dispatches work items. ``worker_count`` threads render
    tiles and a single reducer thread composites them, so the canvas only
    ever has one writer. A cancelled pipeline stays cancelled.
    """

    def __init__(
        self,
        config: Optional[RenderConfig] = None,
        color_function: Optional[ColorFunction] = None,
        file_manager: Optional[SafeFileManager] = None,
    ) -> None:
        self.config = validate_config(config or RenderConfig())
        self.color_function = color_function or color_function_for(self.config)
        self.file_manager = file_manager or SafeFileManager()
        self.logger = LOGGER
        self._cancel_event = threading.Event()
        self._work_queue: Optional[ClosableQueue[WorkItem]] = None
        self._result_queue: Optional[ClosableQueue[Tile]] = None

    @property
    def cancelled(self) -> bool:
        return self._cancel_event.is_set()

    def cancel(self) -> None:
        """Stop dispatching and let in-flight tiles drain into the canvas."""

        if not self._cancel_event.is_set():
            self.logger.info("Cancellation requested")
        self._cancel_event.set()
        if self._work_queue is not None:
            self._work_queue.close()

    def _abort(self) -> None:
        self._cancel_event.set()
        for queue in (self._work_queue, self._result_queue):
            if queue is not None:
                queue.close()

    def _on_stage_done(self, future: concurrent.futures.Future) -> None:
        exc = future.exception()
        if exc is not None:
            self.logger.error("Pipeline stage failed: %s", exc)
            self._abort()

    def render_canvas(self) -> RenderResult:
        """Run dispatch, rendering and reduction without persisting.

        The result queue is closed only once every worker has exited.
        """

        cfg = self.config
        workers = cfg.worker_count
        canvas = Canvas(cfg.width, cfg.height)
        work_queue: ClosableQueue[WorkItem] = ClosableQueue(cfg.queue_capacity, name="work queue")
        result_queue: ClosableQueue[Tile] = ClosableQueue(cfg.queue_capacity, name="result queue")
        self._work_queue, self._result_queue = work_queue, result_queue
        if self._cancel_event.is_set():
            work_queue.close()

        self.logger.info(
            "Rendering %dx%d canvas as %d tiles of %dpx with %d workers",
            cfg.width,
            cfg.height,
            cfg.tile_count,
            cfg.tile_size,
            workers,
        )
        start_time = time.perf_counter()
        with limited_threads(workers), create_thread_pool(max_workers=workers + 1) as executor:
            worker_futures: List[concurrent.futures.Future] = []
            for _ in range(workers):
                future = executor.submit(worker_loop, work_queue, result_queue, self._cancel_event)
                future.add_done_callback(self._on_stage_done)
                worker_futures.append(future)
            reducer_future = executor.submit(reduce_loop, result_queue, canvas)
            reducer_future.add_done_callback(self._on_stage_done)

            items = iter_work_items(cfg.width, cfg.height, cfg.tile_size, self.color_function)
            try:
                dispatched = dispatch(work_queue, items, self._cancel_event)
            finally:
                concurrent.futures.wait(worker_futures)
                result_queue.close()
                concurrent.futures.wait([reducer_future])
        elapsed = time.perf_counter() - start_time

        failures = [f.exception() for f in worker_futures + [reducer_future] if f.exception() is not None]
        if failures:
            raise RenderError(f"{len(failures)} pipeline stage(s) failed: {failures[0]}") from failures[0]

        result = RenderResult(
            canvas=canvas,
            workers=workers,
            tiles_dispatched=dispatched,
            tiles_rendered=sum(f.result() for f in worker_futures),
            tiles_composited=reducer_future.result(),
            elapsed=elapsed,
            cancelled=self._cancel_event.is_set(),
        )
        self.logger.debug(
            "Dispatched %d, rendered %d, composited %d tiles in %.3fs",
            result.tiles_dispatched,
            result.tiles_rendered,
            result.tiles_composited,
            elapsed,
        )
        return result

    def run(self) -> RenderResult:
        """Render the canvas and persist it to ``config.output_path``."""

        result = self.render_canvas()
        if result.cancelled:
            self.logger.warning(
                "Render cancelled after %d of %d tiles; nothing was saved",
                result.tiles_composited,
                self.config.tile_count,
            )
            return result
        canvas = result.canvas
        if not canvas.is_complete():
            raise RenderError(
                f"Canvas incomplete: {canvas.missing_count()} pixels missing, "
                f"{canvas.overlap_count()} written more than once"
            )
        result.output_path = self.file_manager.atomic_save(canvas.to_image(), self.config.output_path)
        self.logger.info(
            "Saved %dx%d image to %s (%d tiles, %.2fs)",
            canvas.width,
            canvas.height,
            result.output_path,
            result.tiles_composited,
            result.elapsed,
        )
        return result


def render_image(
    config: Optional[RenderConfig] = None,
    color_function: Optional[ColorFunction] = None,
) -> Image.Image:
    """Render a canvas in memory and return it as a PIL image."""

    result = TileRenderPipeline(config, color_function).render_canvas()
    if not result.canvas.is_complete():
        raise RenderError("Canvas incomplete after rendering")
    return result.image
