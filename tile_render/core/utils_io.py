"""I/O helpers for persisting rendered canvases."""
from __future__ import annotations

import logging
import os
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional

from PIL import Image


LOGGER = logging.getLogger("tile_render.io")

_LOCK_REGISTRY: dict[Path, threading.Lock] = {}
_LOCK_REGISTRY_GUARD = threading.Lock()


class PersistenceError(OSError):
    """Raised when the output image cannot be encoded or written."""


def ensure_dir(path: Path) -> Path:
    """Ensure that *path* exists and return it."""

    path.mkdir(parents=True, exist_ok=True)
    return path


def _lock_for(target: Path) -> threading.Lock:
    with _LOCK_REGISTRY_GUARD:
        lock = _LOCK_REGISTRY.get(target)
        if lock is None:
            lock = threading.Lock()
            _LOCK_REGISTRY[target] = lock
    return lock


@contextmanager
def file_lock(path: Path) -> Iterator[None]:
    """Serialize writers of *path* within this process."""

    lock = _lock_for(path.resolve())
    with lock:
        yield


class SafeFileManager:
    """Write images atomically so readers never observe a partial file."""

    def __init__(self, base_dir: Optional[Path] = None) -> None:
        self.base_dir = Path(base_dir) if base_dir is not None else Path.cwd()

    def resolve(self, path: Path | str) -> Path:
        """Resolve *path* relative to :attr:`base_dir`."""

        candidate = Path(path)
        if not candidate.is_absolute():
            candidate = self.base_dir / candidate
        return candidate

    def atomic_save(self, image: Image.Image, path: Path | str, *, format: Optional[str] = None) -> Path:
        """Encode *image* into a sibling temp file, then move it over *path*.

        Any failure removes the temp file and raises :class:`PersistenceError`;
        an existing file at *path* is left untouched in that case.
        """

        destination = self.resolve(path)
        temp_path: Optional[Path] = None
        try:
            ensure_dir(destination.parent)
            with file_lock(destination):
                temp_path = destination.parent / f".{destination.name}.{os.getpid()}.{threading.get_ident()}.tmp"
                image.save(temp_path, format=format or "PNG")
                os.replace(temp_path, destination)
                temp_path = None
        except (OSError, ValueError, KeyError) as exc:
            raise PersistenceError(f"Could not write {destination}: {exc}") from exc
        finally:
            if temp_path is not None:
                try:
                    temp_path.unlink()
                except FileNotFoundError:
                    pass
        LOGGER.debug("Saved %s image to %s", image.size, destination)
        return destination


def atomic_save(image: Image.Image, path: Path | str, base_dir: Optional[Path] = None) -> Path:
    """Convenience wrapper to persist *image* atomically."""

    manager = SafeFileManager(base_dir or Path(path).resolve().parent)
    return manager.atomic_save(image, path)
