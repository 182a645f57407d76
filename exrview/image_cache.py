"""Layer discovery, layer/channel loading and preview rendering of EXR images."""

from __future__ import annotations

from dataclasses import dataclass, field

import numpy as np

from .exrfile import ExrError, ExrLayer, read_exr
from .processing import process_pixels
from .utils import split_layer_and_short

_PRIORITY_NAMES = ("beauty", "Beauty", "RGBA", "rgba", "default", "Default", "combined", "Combined")


def channel_alias_to_short(text: str) -> str:
    """Return the canonical short channel name for a friendly alias.

    ``"red"``, ``"Red"``, ``"R"`` or ``"R8"``-style names become ``"R"``, and
    likewise for G, B and A; anything else comes back trimmed.
    """
    trimmed = text.strip()
    upper = trimmed.upper()
    for short, word in (("R", "RED"), ("G", "GREEN"), ("B", "BLUE"), ("A", "ALPHA")):
        if upper == short or upper.startswith(word):
            return short
    return trimmed


@dataclass
class ChannelInfo:
    """A channel by its short name (the part after the last dot)."""

    name: str


@dataclass
class LayerInfo:
    """A logical layer and the channels that belong to it."""

    name: str
    channels: list[ChannelInfo] = field(default_factory=list)


def _has_rgb(layer: LayerInfo) -> bool:
    names = {ch.name.strip().upper() for ch in layer.channels}
    return {"R", "G", "B"} <= names


def extract_layers_info(path) -> list[LayerInfo]:
    """List logical layers and their channels in order of first appearance."""
    image = read_exr(path)
    layers: dict[str, LayerInfo] = {}
    for layer in image.layers:
        for channel in layer.channels:
            lname, short = split_layer_and_short(channel.name, layer.layer_name)
            layers.setdefault(lname, LayerInfo(lname)).channels.append(ChannelInfo(short))
    return list(layers.values())


def find_best_layer(layers_info: list[LayerInfo]) -> str:
    """Pick the layer best suited as the initial preview."""
    base = next((layer for layer in layers_info if not layer.name), None)
    if base is not None and _has_rgb(base):
        return base.name

    for priority in _PRIORITY_NAMES:
        wanted = priority.lower()
        for layer in layers_info:
            if wanted in layer.name.lower():
                return layer.name

    for layer in layers_info:
        if _has_rgb(layer):
            return layer.name

    return layers_info[0].name if layers_info else "Layer 1"


def _group_matches_loose(lname: str, wanted_lower: str) -> bool:
    lname_lower = lname.lower()
    if not wanted_lower or not lname_lower:
        return not wanted_lower and not lname_lower
    return lname_lower == wanted_lower or wanted_lower in lname_lower or lname_lower in wanted_lower


def _group_matches_prefix(lname: str, wanted_lower: str) -> bool:
    lname_lower = lname.lower()
    if not wanted_lower or not lname_lower:
        return not wanted_lower and not lname_lower
    return (
        lname_lower == wanted_lower
        or lname_lower.startswith(wanted_lower)
        or wanted_lower.startswith(lname_lower)
        or wanted_lower in lname_lower
    )


def _flat(layer: ExrLayer, index: int) -> np.ndarray:
    return layer.channels[index].to_float32().reshape(-1)


def load_specific_layer(path, layer_name: str) -> tuple[np.ndarray, int, int, str]:
    """Load a layer as RGBA float pixels ``(N, 4)``, duplicating missing channels.

    Falls back to the first plain RGBA layer when no channel group matches.
    """
    image = read_exr(path)
    wanted = layer_name.lower()
    for layer in image.layers:
        r = g = b = a = None
        group: list[int] = []
        for idx, channel in enumerate(layer.channels):
            lname, short = split_layer_and_short(channel.name, layer.layer_name)
            if not _group_matches_loose(lname, wanted):
                continue
            group.append(idx)
            su = short.upper()
            if su in ("R", "RED"):
                r = idx
            elif su in ("G", "GREEN"):
                g = idx
            elif su in ("B", "BLUE"):
                b = idx
            elif su in ("A", "ALPHA"):
                a = idx
            elif r is None and su.startswith("R"):
                r = idx
            elif g is None and su.startswith("G"):
                g = idx
            elif b is None and su.startswith("B"):
                b = idx

        if not group:
            continue
        if r is None:
            r = group[0]
        if g is None:
            g = group[1] if len(group) > 1 else r
        if b is None:
            b = group[2] if len(group) > 2 else g

        count = layer.width * layer.height
        alpha = _flat(layer, a) if a is not None else np.ones(count, dtype=np.float32)
        pixels = np.stack([_flat(layer, r), _flat(layer, g), _flat(layer, b), alpha], axis=-1)
        return pixels.astype(np.float32), layer.width, layer.height, layer_name

    pixels, width, height, _ = load_first_rgba_layer(path)
    return pixels, width, height, layer_name


def load_first_rgba_layer(path) -> tuple[np.ndarray, int, int, str]:
    """Load the first part that has ``R``, ``G`` and ``B`` channels (``A`` optional)."""
    image = read_exr(path)
    for layer in image.layers:
        by_name = {ch.name: ch for ch in layer.channels}
        if not all(n in by_name for n in ("R", "G", "B")):
            continue
        planes = [by_name[n].to_float32().reshape(-1) for n in ("R", "G", "B")]
        if "A" in by_name:
            planes.append(by_name["A"].to_float32().reshape(-1))
        else:
            planes.append(np.ones(layer.width * layer.height, dtype=np.float32))
        pixels = np.stack(planes, axis=-1).astype(np.float32)
        return pixels, layer.width, layer.height, "First RGBA Layer"
    raise ExrError("no RGBA layer found")


def load_single_channel_as_grayscale(path, layer_name: str, channel_short: str) -> tuple[np.ndarray, int, int, str]:
    """Load one channel of a layer as grey RGBA pixels (R=G=B=value, A=1)."""
    image = read_exr(path)
    wanted_layer = layer_name.lower()
    wanted_canon = channel_alias_to_short(channel_short)
    wanted_upper = channel_short.upper()

    for layer in image.layers:
        entries = []
        for idx, channel in enumerate(layer.channels):
            lname, short = split_layer_and_short(channel.name, layer.layer_name)
            if _group_matches_prefix(lname, wanted_layer):
                entries.append((idx, channel.name, short))

        def direct(full: str, short: str) -> bool:
            return short == channel_short or full == channel_short or channel_alias_to_short(short) == wanted_canon

        def depth_like(short: str) -> bool:
            su = short.upper()
            return wanted_upper == "Z" and (su == "Z" or "DEPTH" in su or su == "DISTANCE")

        index = next((idx for idx, full, short in entries if direct(full, short)), None)
        if index is None:
            index = next(
                (idx for idx, full, short in entries if depth_like(short) or direct(full, short)),
                None,
            )
        if index is None:
            continue

        values = _flat(layer, index)
        pixels = np.stack([values, values, values, np.ones_like(values)], axis=-1).astype(np.float32)
        return pixels, layer.width, layer.height, layer_name

    raise ExrError(f"Nie znaleziono warstwy '{layer_name}' dla kanału '{channel_short}'")


@dataclass
class ImageCache:
    """Float pixels of the currently shown layer or channel plus layer listing."""

    raw_pixels: np.ndarray
    width: int
    height: int
    layers_info: list[LayerInfo]
    current_layer_name: str

    @classmethod
    def from_file(cls, path) -> "ImageCache":
        """Read the layer list and load the best layer as the initial preview."""
        layers_info = extract_layers_info(path)
        best = find_best_layer(layers_info)
        pixels, width, height, name = load_specific_layer(path, best)
        return cls(pixels, width, height, layers_info, name)

    def _replace(self, loaded: tuple[np.ndarray, int, int, str]) -> None:
        self.raw_pixels, self.width, self.height, self.current_layer_name = loaded

    def load_layer(self, path, layer_name: str) -> None:
        """Replace the cached pixels with an RGB composite of ``layer_name``."""
        self._replace(load_specific_layer(path, layer_name))

    def load_channel(self, path, layer_name: str, channel_short: str) -> None:
        """Replace the cached pixels with one channel shown as greyscale."""
        self._replace(load_single_channel_as_grayscale(path, layer_name, channel_short))

    def _pixels(self) -> np.ndarray:
        return np.asarray(self.raw_pixels, dtype=np.float32).reshape(self.height, self.width, 4)

    def process_to_image(self, exposure: float, gamma: float) -> np.ndarray:
        """Render the cached pixels to an ``(height, width, 4)`` uint8 array."""
        return process_pixels(self._pixels(), exposure, gamma)

    def process_to_composite(self, exposure: float, gamma: float, lighting_rgb: bool) -> np.ndarray:
        """Render as colour, or as grey from the brightest mapped channel."""
        rendered = self.process_to_image(exposure, gamma)
        if lighting_rgb:
            return rendered
        gray = rendered[..., :3].max(axis=-1)
        out = np.empty_like(rendered)
        out[..., 0] = out[..., 1] = out[..., 2] = gray
        out[..., 3] = rendered[..., 3]
        return out

    def process_to_thumbnail(self, exposure: float, gamma: float, max_size: int) -> np.ndarray:
        """Render a nearest-neighbour downscale whose longer side is at most ``max_size``."""
        longest = max(self.width, self.height)
        scale = np.float32(1.0) if longest == 0 else min(np.float32(max_size) / np.float32(longest), np.float32(1.0))
        thumb_w = int(np.float32(self.width) * scale)
        thumb_h = int(np.float32(self.height) * scale)
        xs = (np.arange(thumb_w, dtype=np.float32) / scale).astype(np.int64)
        ys = (np.arange(thumb_h, dtype=np.float32) / scale).astype(np.int64)
        xs = np.minimum(xs, max(self.width - 1, 0))
        ys = np.minimum(ys, max(self.height - 1, 0))
        sampled = self._pixels()[ys[:, None], xs[None, :]] if thumb_w and thumb_h else np.zeros((thumb_h, thumb_w, 4), np.float32)
        return process_pixels(sampled, exposure, gamma)

    def process_depth_image(self, invert: bool) -> np.ndarray:
        """Render the first channel normalised between its 1st and 99th percentile."""
        out = np.zeros((self.height, self.width, 4), dtype=np.uint8)
        values = np.asarray(self.raw_pixels, dtype=np.float32).reshape(-1, 4)[:, 0]
        n = values.size
        if n == 0:
            return out

        lo_idx = int(np.floor(np.float32(n) * np.float32(0.01)))
        hi_idx = max(int(np.ceil(np.float32(n) * np.float32(0.99))) - 1, 0)
        hi_idx = min(hi_idx, n - 1)
        lo = np.float32(np.partition(values, lo_idx)[lo_idx])
        hi = np.float32(np.partition(values, hi_idx)[hi_idx])
        if not np.isfinite(lo) or not np.isfinite(hi) or abs(float(hi) - float(lo)) < 1e-20:
            finite = np.where(np.isfinite(values), values, np.float32(0.0))
            lo, hi = np.float32(finite.min()), np.float32(finite.max())
        if abs(float(hi) - float(lo)) < 1e-12:
            hi = np.float32(lo + np.float32(1.0))

        with np.errstate(invalid="ignore", over="ignore"):
            t = np.clip((values - lo) / (hi - lo), 0.0, 1.0).astype(np.float32)
            if invert:
                t = np.float32(1.0) - t
            scaled = np.floor(t * np.float32(255.0) + np.float32(0.5))
        gray = np.clip(np.nan_to_num(scaled, nan=0.0), 0, 255).astype(np.uint8).reshape(self.height, self.width)
        out[..., 0] = out[..., 1] = out[..., 2] = gray
        out[..., 3] = 255
        return out