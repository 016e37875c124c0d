"""End-to-end tests for the tile render pipeline."""
from __future__ import annotations

import threading
from pathlib import Path

import numpy as np
import pytest
from PIL import Image

from tile_render.core.config import RenderConfig
from tile_render.core.utils_color import GradientColor
from tile_render.core.utils_io import PersistenceError
from tile_render.pipeline import RenderError, TileRenderPipeline, render_image


def _config(tmp_path: Path, **overrides) -> RenderConfig:
    values = {"width": 200, "height": 100, "tile_size": 20, "output_path": tmp_path / "example.png"}
    values.update(overrides)
    return RenderConfig(**values)


def test_full_size_image_gradient(tmp_path: Path) -> None:
    cfg = RenderConfig(output_path=tmp_path / "example.png")
    result = TileRenderPipeline(cfg).run()

    assert result.tiles_dispatched == result.tiles_rendered == result.tiles_composited == 100
    assert result.workers == 10
    with Image.open(result.output_path) as img:
        assert img.size == (1000, 1000)
        assert img.mode == "RGBA"
        pixels = np.asarray(img)

    coords = np.arange(1000)
    expected_red = (coords * 255 // 1000).astype(np.uint8)
    np.testing.assert_array_equal(pixels[:, :, 0], np.broadcast_to(expected_red, (1000, 1000)))
    np.testing.assert_array_equal(pixels[:, :, 1], np.broadcast_to(expected_red[:, None], (1000, 1000)))
    assert (pixels[:, :, 2] == 100).all()
    assert (pixels[:, :, 3] == 255).all()


def test_tile_gradient_repeats_with_seams(tmp_path: Path) -> None:
    cfg = _config(tmp_path, width=300, height=300, tile_size=100, gradient_reference="tile")
    pixels = np.asarray(render_image(cfg))

    first = pixels[0:100, 0:100]
    for top in (0, 100, 200):
        for left in (0, 100, 200):
            np.testing.assert_array_equal(pixels[top:top + 100, left:left + 100], first)
    assert pixels[0, 99, 0] == 252 and pixels[0, 100, 0] == 0
    assert pixels[99, 0, 1] == 252 and pixels[100, 0, 1] == 0


@pytest.mark.parametrize("workers", [1, 2, 3, 8, 25])
def test_output_is_independent_of_pool_size(tmp_path: Path, workers: int) -> None:
    baseline = np.asarray(render_image(_config(tmp_path, workers=1, queue_capacity=1)))
    other = np.asarray(render_image(_config(tmp_path, workers=workers, queue_capacity=3)))
    np.testing.assert_array_equal(baseline, other)


def test_custom_color_function_without_grid_support(tmp_path: Path) -> None:
    cfg = _config(tmp_path, width=40, height=40, tile_size=10, workers=3)
    gradient = GradientColor(40, 40)

    per_pixel = np.asarray(render_image(cfg, lambda x, y: gradient(x, y)))
    vectorized = np.asarray(render_image(cfg, gradient))
    np.testing.assert_array_equal(per_pixel, vectorized)


def test_single_tile_equals_its_content(tmp_path: Path) -> None:
    cfg = _config(tmp_path, width=50, height=50, tile_size=50)
    pipeline = TileRenderPipeline(cfg)
    result = pipeline.run()

    assert result.tiles_dispatched == 1
    assert result.workers == 1
    expected = GradientColor(50, 50).evaluate_grid(*np.meshgrid(np.arange(50), np.arange(50)))
    np.testing.assert_array_equal(result.canvas.pixels, expected)


def test_run_overwrites_existing_output(tmp_path: Path) -> None:
    target = tmp_path / "example.png"
    target.write_bytes(b"stale")
    TileRenderPipeline(_config(tmp_path)).run()
    with Image.open(target) as img:
        assert img.size == (200, 100)


def test_persistence_failure_leaves_no_output(tmp_path: Path) -> None:
    blocker = tmp_path / "not_a_dir"
    blocker.write_text("file in the way")
    cfg = _config(tmp_path, output_path=blocker / "example.png")

    with pytest.raises(PersistenceError):
        TileRenderPipeline(cfg).run()
    assert blocker.read_text() == "file in the way"
    assert sorted(p.name for p in tmp_path.iterdir()) == ["not_a_dir"]


def test_cancelled_pipeline_saves_nothing(tmp_path: Path) -> None:
    cfg = _config(tmp_path)
    pipeline = TileRenderPipeline(cfg)
    pipeline.cancel()
    result = pipeline.run()

    assert result.cancelled
    assert result.output_path is None
    assert result.tiles_dispatched == 0
    assert not cfg.output_path.exists()


def test_cancel_mid_run_drains_in_flight_tiles(tmp_path: Path) -> None:
    started = threading.Event()
    release = threading.Event()

    def slow(x: int, y: int) -> tuple[int, int, int, int]:
        started.set()
        release.wait(timeout=5)
        return 1, 2, 3, 255

    cfg = _config(tmp_path, width=100, height=100, tile_size=10, workers=2, queue_capacity=2)
    pipeline = TileRenderPipeline(cfg, slow)
    outcome: dict[str, object] = {}
    runner = threading.Thread(target=lambda: outcome.update(result=pipeline.run()))
    runner.start()
    assert started.wait(timeout=5)
    pipeline.cancel()
    release.set()
    runner.join(timeout=30)

    assert not runner.is_alive()
    result = outcome["result"]
    assert result.cancelled
    assert result.tiles_composited == result.tiles_rendered
    assert result.tiles_composited < cfg.tile_count
    assert not cfg.output_path.exists()


def test_failing_color_function_raises_render_error(tmp_path: Path) -> None:
    def broken(x: int, y: int) -> tuple[int, int, int, int]:
        if x >= 100:
            raise ArithmeticError("boom")
        return 0, 0, 0, 255

    cfg = _config(tmp_path, workers=2, queue_capacity=1)
    with pytest.raises(RenderError) as excinfo:
        TileRenderPipeline(cfg, broken).run()
    assert isinstance(excinfo.value.__cause__, ArithmeticError)
    assert not cfg.output_path.exists()
