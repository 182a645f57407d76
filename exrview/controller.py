"""Viewer state and the handlers behind its menu, sliders and layer list."""

from __future__ import annotations

import threading
import time
from pathlib import Path

import numpy as np

from .exrfile import ExrError
from .file_operations import get_file_name, open_folder_dialog
from .image_cache import ImageCache
from .layer_tree import (
    ChannelClick,
    LayerClick,
    LayerTree,
    build_layer_tree,
    channel_selection_label,
    parse_clicked_item,
)
from .metadata import build_ui_lines, build_ui_rows, read_and_group_metadata
from .progress import UiProgress
from .thumbnails import ExrThumbnailInfo, generate_exr_thumbnails_in_dir

_LOAD_ERRORS = (ExrError, OSError, ValueError)
_LARGE_IMAGE = 2_000_000
_PREVIEW_LOG_INTERVAL = 0.3
_THUMB_HEIGHT = 150


def _elapsed_ms(start: float) -> int:
    return int((time.perf_counter() - start) * 1000)


class Console:
    """Log lines shown in the console panel."""

    def __init__(self):
        self.lines: list[str] = []

    @property
    def text(self) -> str:
        return "\n".join(self.lines)

    def push(self, line) -> None:
        self.lines.append(str(line))

    def clear(self) -> None:
        self.lines.clear()


class ThrottledUpdate:
    """Collects exposure/gamma changes and hands only the latest ones on at ``flush``."""

    def __init__(self, callback):
        self._callback = callback
        self._lock = threading.Lock()
        self._exposure = None
        self._gamma = None

    def update_exposure(self, value) -> None:
        with self._lock:
            self._exposure = value

    def update_gamma(self, value) -> None:
        with self._lock:
            self._gamma = value

    def flush(self) -> bool:
        """Call back with the pending values; ``False`` when nothing was pending."""
        with self._lock:
            exposure, gamma = self._exposure, self._gamma
            self._exposure = self._gamma = None
        if exposure is None and gamma is None:
            return False
        self._callback(exposure, gamma)
        return True


class Viewer:
    """Everything the viewer window shows, updated by the handler methods."""

    def __init__(self, exposure: float = 0.0, gamma: float = 2.2, *, clock=time.monotonic, schedule=None):
        self.exposure = exposure
        self.gamma = gamma
        self.status_text = ""
        self.progress_value = 0.0
        self.image: np.ndarray | None = None
        self.meta_text = ""
        self.meta_rows: list[tuple[str, str]] = []
        self.layer_tree = LayerTree()
        self.selected_layer_item = ""
        self.current_file_path: Path | None = None
        self.cache: ImageCache | None = None
        self.thumbnails: list[ExrThumbnailInfo] = []
        self.bottom_panel_visible = False
        self.console = Console()
        self.throttle = ThrottledUpdate(self.parameters_changed)
        self._clock = clock
        self._schedule = schedule
        self._last_preview_log: float | None = None

    def set_progress_value(self, value: float) -> None:
        self.progress_value = value

    def set_status_text(self, text: str) -> None:
        self.status_text = text

    def _progress(self) -> UiProgress:
        return UiProgress(self, clock=self._clock, schedule=self._schedule)

    def open_path(self, path) -> None:
        """Load metadata and the best layer of an EXR file and show it."""
        path = Path(path)
        prog = self._progress()
        prog.set(0.05, f"Loading: {path}")
        self.console.push(f'{{"event":"file.open","path":"{path}"}}')

        try:
            meta = read_and_group_metadata(path)
        except _LOAD_ERRORS as exc:
            self.meta_text = f"Błąd odczytu metadanych: {exc}"
            self.console.push(f"[error][meta] {exc}")
            prog.reset()
        else:
            self.meta_text = "\n".join(build_ui_lines(meta))
            self.meta_rows = build_ui_rows(meta)
            self.console.push(f"[meta] layers: {len(meta.layers)}")
            prog.set(0.15, "Metadata loaded")

        self.current_file_path = path

        prog.set(0.25, "Creating image cache...")
        self.console.push("[cache] creating image cache")
        started = time.perf_counter()
        try:
            cache = ImageCache.from_file(path)
        except _LOAD_ERRORS as exc:
            name = get_file_name(path)
            self.status_text = f"Read error '{name}': {exc}"
            self.console.push(f"[error] reading file '{name}': {exc}")
            prog.reset()
            return

        prog.set(0.45, "Cache created, processing...")
        self.console.push("[cache] cache created")
        self.console.push(f'{{"type":"timing","op":"ImageCache.new","ms":{_elapsed_ms(started)}}}')

        exposure, gamma = self.exposure, self.gamma
        pixel_count = len(cache.raw_pixels)
        started = time.perf_counter()
        if pixel_count > _LARGE_IMAGE:
            prog.start_indeterminate("Processing image...")
        image = cache.process_to_image(exposure, gamma)
        self.console.push(
            f'{{"type":"timing","op":"process_to_image","pixels":{pixel_count},"ms":{_elapsed_ms(started)}}}'
        )
        self.console.push(
            f"[preview] image generated: {pixel_count} pixels (exp: {exposure:.2f}, gamma: {gamma:.2f})"
        )

        self.layer_tree = build_layer_tree(cache.layers_info)
        self.console.push(f"[layers] count: {len(cache.layers_info)}")
        for layer in cache.layers_info:
            self.console.push(f"  • {layer.name} (channels: {len(layer.channels)})")

        self.cache = cache
        self.image = image
        self.status_text = f"Loaded: {pixel_count} pixels (exp: {exposure:.2f}, gamma: {gamma:.2f})"
        prog.finish("Ready")

    def click_layer_item(self, clicked_item: str) -> None:
        """React to a click on a row of the layer list."""
        current = self.cache.current_layer_name if self.cache is not None else ""
        click = parse_clicked_item(self.layer_tree, clicked_item, current)
        if isinstance(click, LayerClick):
            self._show_layer(click)
        elif isinstance(click, ChannelClick):
            self._show_channel(click)

    def _show_layer(self, click: LayerClick) -> None:
        layer_name = click.layer_name
        self.console.push(f"[layer] clicked: {click.display_name} (real='{layer_name}')")
        if self.current_file_path is None:
            self.status_text = "Error: No file loaded"
            self.console.push("[error] no file loaded")
            return
        cache = self.cache
        if cache is None:
            return
        try:
            cache.load_layer(self.current_file_path, layer_name)
        except _LOAD_ERRORS as exc:
            self.status_text = f"Error loading layer {layer_name}: {exc}"
            self.console.push(f"[error] loading layer {layer_name}: {exc}")
            return
        self.image = cache.process_to_composite(self.exposure, self.gamma, True)
        self.console.push(f"[layer] {layer_name} → mode: RGB (composite)")
        self.console.push(f"[preview] updated → mode: RGB (composite), layer: {layer_name}")
        info = next((layer for layer in cache.layers_info if layer.name == layer_name), None)
        channels = ", ".join(c.name for c in info.channels) if info is not None else "?"
        self.status_text = f"Layer: {layer_name} | mode: RGB | channels: {channels}"
        self.selected_layer_item = f"📁 {click.display_name}"

    def _show_channel(self, click: ChannelClick) -> None:
        if self.current_file_path is None or self.cache is None:
            return
        cache = self.cache
        layer, short = click.layer_name, click.channel_short
        try:
            cache.load_channel(self.current_file_path, layer, short)
        except _LOAD_ERRORS as exc:
            self.status_text = f"Error loading channel {short}: {exc}"
            self.console.push(f"[error] loading channel {short}@{layer}: {exc}")
            return
        upper = short.upper()
        if upper == "Z" or "DEPTH" in upper:
            mode = "Depth (auto-normalized, inverted)"
            self.image = cache.process_depth_image(True)
        else:
            mode = "Grayscale"
            self.image = cache.process_to_composite(self.exposure, self.gamma, False)
        self.status_text = f"Layer: {layer} | Channel: {short} | mode: {mode}"
        self.console.push(f"[channel] {short}@{layer} → mode: {mode}")
        self.console.push(f"[preview] updated → mode: {mode}, {layer}::{short}")
        self.selected_layer_item = channel_selection_label(self.layer_tree, short, layer)

    def parameters_changed(self, exposure=None, gamma=None) -> None:
        """Re-render the cached image after exposure and/or gamma changed."""
        if exposure is not None:
            self.exposure = exposure
        if gamma is not None:
            self.gamma = gamma
        cache = self.cache
        if cache is None:
            return
        final_exposure, final_gamma = self.exposure, self.gamma
        if len(cache.raw_pixels) > _LARGE_IMAGE:
            self.image = cache.process_to_thumbnail(final_exposure, final_gamma, 2048)
        else:
            self.image = cache.process_to_image(final_exposure, final_gamma)

        now = self._clock()
        if self._last_preview_log is None or now - self._last_preview_log >= _PREVIEW_LOG_INTERVAL:
            self.console.push(f"[preview] updated → params: exp={final_exposure:.2f}, gamma={final_gamma:.2f}")
            self._last_preview_log = now

        if exposure is not None and gamma is not None:
            self.status_text = f"🔄 Exposure: {final_exposure:.2f} EV, Gamma: {final_gamma:.2f}"
        elif exposure is not None:
            self.status_text = f"🔄 Exposure: {final_exposure:.2f} EV"
        elif gamma is not None:
            self.status_text = f"🔄 Gamma: {final_gamma:.2f}"

    def load_folder_thumbnails(self, directory=None) -> list[ExrThumbnailInfo] | None:
        """Render thumbnails of a folder's EXR files; asks for the folder when none is given."""
        self.console.push("[folder] choosing working folder...")
        if directory is None:
            directory = open_folder_dialog()
            if directory is None:
                self.console.push("[folder] selection canceled")
                return None
        directory = Path(directory)
        self.status_text = f"Loading thumbnails: {directory}"
        started = time.perf_counter()
        try:
            thumbs = generate_exr_thumbnails_in_dir(directory, _THUMB_HEIGHT, self.exposure, self.gamma)
        except _LOAD_ERRORS as exc:
            self.status_text = f"Error loading thumbnails: {exc}"
            self.console.push(f"[error][folder] {exc}")
            return None
        thumbs.sort(key=lambda t: t.file_name.lower())
        self.thumbnails = thumbs
        self.status_text = "Thumbnails loaded"
        self.bottom_panel_visible = True
        self.console.push(f"[folder] {len(thumbs)} EXR files | thumbnails in {_elapsed_ms(started)} ms")
        return thumbs

    def clear_console(self) -> None:
        self.console.clear()
        self.status_text = "Console cleared"