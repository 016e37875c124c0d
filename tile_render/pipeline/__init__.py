"""Parallel tile render pipeline."""
from __future__ import annotations

from .dispatcher import build_work_items, dispatch, iter_tile_boxes, iter_work_items
from .orchestrator import RenderError, RenderResult, TileRenderPipeline, render_image
from .reducer import Canvas, reduce_loop
from .work import Tile, WorkItem
from .worker import render_tile, worker_loop

__all__ = [
    "build_work_items",
    "dispatch",
    "iter_tile_boxes",
    "iter_work_items",
    "RenderError",
    "RenderResult",
    "TileRenderPipeline",
    "render_image",
    "Canvas",
    "reduce_loop",
    "Tile",
    "WorkItem",
    "render_tile",
    "worker_loop",
]
