"""Thumbnail generation for every EXR file in a folder."""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from pathlib import Path

import numpy as np

from .exrfile import ExrError
from .image_cache import extract_layers_info, find_best_layer, load_specific_layer
from .processing import process_pixels


@dataclass
class ExrThumbnailInfo:
    """A rendered thumbnail of one EXR file with a few facts about the file."""

    path: Path
    file_name: str
    file_size_bytes: int
    num_layers: int
    width: int
    height: int
    image: np.ndarray


def list_exr_files(directory) -> list[Path]:
    """Return the ``.exr`` files directly inside ``directory``, sorted by path."""
    directory = Path(directory)
    return sorted(
        entry
        for entry in directory.iterdir()
        if entry.is_file() and entry.suffix.lower() == ".exr"
    )


def generate_thumbnail(path, thumb_height: int, exposure: float, gamma: float) -> ExrThumbnailInfo:
    """Render the best layer of ``path`` at ``thumb_height`` pixels high.

    The width keeps the aspect ratio; sampling is nearest-neighbour and the
    pixels go through the same exposure, tone curve and gamma as the preview.
    """
    path = Path(path)
    try:
        layers_info = extract_layers_info(path)
    except (ExrError, OSError) as exc:
        raise ExrError(f"Błąd odczytu EXR: {path}: {exc}") from exc
    best = find_best_layer(layers_info)
    try:
        raw, width, height, _ = load_specific_layer(path, best)
    except (ExrError, OSError) as exc:
        raise ExrError(f"Błąd wczytania warstwy '{best}': {path}: {exc}") from exc
    if width <= 0 or height <= 0:
        raise ExrError(f"empty image: {path}")

    scale = np.float32(thumb_height) / np.float32(height)
    thumb_w = int(np.float32(width) * scale)
    xs = np.minimum((np.arange(thumb_w, dtype=np.float32) / scale).astype(np.int64), width - 1)
    ys = np.minimum((np.arange(thumb_height, dtype=np.float32) / scale).astype(np.int64), height - 1)
    source = np.asarray(raw, dtype=np.float32).reshape(height, width, 4)
    sampled = source[ys[:, None], xs[None, :]]
    image = process_pixels(sampled, exposure, gamma)

    try:
        file_size = path.stat().st_size
    except OSError:
        file_size = 0

    return ExrThumbnailInfo(
        path=path,
        file_name=path.name or "?",
        file_size_bytes=file_size,
        num_layers=len(layers_info),
        width=thumb_w,
        height=thumb_height,
        image=image,
    )


def generate_exr_thumbnails_in_dir(directory, thumb_height: int, exposure: float, gamma: float) -> list[ExrThumbnailInfo]:
    """Render thumbnails of all EXR files in ``directory`` (not recursive).

    Files are processed in parallel; files that cannot be read are skipped.
    """
    files = list_exr_files(directory)

    def attempt(path: Path) -> ExrThumbnailInfo | None:
        try:
            return generate_thumbnail(path, thumb_height, exposure, gamma)
        except (ExrError, OSError, ValueError):
            return None

    with ThreadPoolExecutor() as pool:
        results = list(pool.map(attempt, files))
    return [info for info in results if info is not None]