"""Reading EXR header metadata and shaping it for display."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

from .exrfile import Attribute, read_exr
from .utils import human_size, split_layer_and_short

GENERAL = "Ogólne"
HEADER = "Nagłówek"
DEFAULT_LAYER_TITLE = "(domyślna)"

_IMAGE_ATTRIBUTE_NAMES = {
    "displayWindow": "display_window",
    "pixelAspectRatio": "pixel_aspect",
    "chromaticities": "chromaticities",
    "timeCode": "time_code",
}


class ChannelGroup(Enum):
    """Logical channel groups, in display order."""

    RGB = "RGB"
    ALPHA = "Alpha"
    DEPTH = "Depth"
    CRYPTOMATTE = "Cryptomatte"
    NORMALS = "Normals"
    MOTION = "Motion"
    OTHER = "Inne"


@dataclass
class MetadataGroup:
    name: str
    items: list[tuple[str, str]] = field(default_factory=list)


@dataclass
class LayerChannelsGroup:
    group_name: str
    channels: list[str] = field(default_factory=list)


@dataclass
class LayerMetadata:
    """One part of the file; an empty name marks the unnamed base layer."""

    name: str
    width: int
    height: int
    channel_groups: list[LayerChannelsGroup] = field(default_factory=list)
    attributes: list[tuple[str, str]] = field(default_factory=list)


@dataclass
class ExrMetadata:
    path: Path
    file_size_bytes: int
    groups: list[MetadataGroup] = field(default_factory=list)
    layers: list[LayerMetadata] = field(default_factory=list)


def classify_channel_group(short_name: str) -> ChannelGroup:
    """Assign a short channel name to its logical group."""
    upper = short_name.upper()
    if upper in ("R", "G", "B"):
        return ChannelGroup.RGB
    if upper == "A" or upper.startswith("ALPHA"):
        return ChannelGroup.ALPHA
    if upper == "Z" or "DEPTH" in upper or upper == "DISTANCE":
        return ChannelGroup.DEPTH
    if "CRYPT" in upper or "MATTE" in upper:
        return ChannelGroup.CRYPTOMATTE
    if upper.startswith("N") or "NORMAL" in upper:
        return ChannelGroup.NORMALS
    if upper.endswith(("VX", "VY", "VZ")) or "MOTION" in upper or "SPEED" in upper:
        return ChannelGroup.MOTION
    return ChannelGroup.OTHER


def group_channels(short_names) -> list[LayerChannelsGroup]:
    """Bucket short channel names into every group, each sorted case-insensitively."""
    buckets: dict[ChannelGroup, list[str]] = {group: [] for group in ChannelGroup}
    for name in short_names:
        buckets[classify_channel_group(name)].append(name)
    return [
        LayerChannelsGroup(group.value, sorted(names, key=str.lower))
        for group, names in buckets.items()
    ]


def _collect_numbers(text: str, allowed: str, convert) -> list:
    numbers = []
    current = ""
    for ch in text + " ":
        if ch in allowed:
            current += ch
            continue
        if current:
            try:
                numbers.append(convert(current))
            except ValueError:
                pass
            current = ""
    return numbers


def pretty_number(text: str, decimals: int) -> str:
    """Format a numeric string with up to three decimals; non-numbers pass through."""
    try:
        value = float(text.strip())
    except ValueError:
        return text
    places = decimals if 0 <= decimals <= 3 else 3
    return f"{value:.{places}f}"


def pretty_display_window(text: str) -> str:
    """Turn a window description holding four integers into position and size."""
    nums = _collect_numbers(text, "0123456789-", int)
    pos = (nums[0], nums[1]) if len(nums) >= 2 else (0, 0)
    size = (nums[2], nums[3]) if len(nums) >= 4 else (0, 0)
    return f"position: ({pos[0]}, {pos[1]}); size: {size[0]}x{size[1]}"


def pretty_chromaticities(text: str) -> str:
    """Pull the R, G, B and white (x, y) pairs out of a chromaticities description."""
    nums = _collect_numbers(text, "0123456789.-", float)
    pairs = [
        (nums[2 * i], nums[2 * i + 1]) if len(nums) >= 2 * i + 2 else (0.0, 0.0)
        for i in range(4)
    ]
    return "  ".join(
        f"{label}: ({x:.3f},{y:.3f})" for label, (x, y) in zip(("R", "G", "B", "W"), pairs)
    )


def _format_attribute(attr: Attribute) -> str:
    kind, value = attr.kind, attr.value
    if kind in ("box2i", "box2f") and isinstance(value, tuple):
        xmin, ymin, xmax, ymax = value
        extra = 1 if kind == "box2i" else 0
        return f"position: ({xmin}, {ymin}), size: ({xmax - xmin + extra}, {ymax - ymin + extra})"
    if kind == "chromaticities" and isinstance(value, tuple):
        labels = ("red", "green", "blue", "white")
        return ", ".join(
            f"{label}: ({value[2 * i]:.6f}, {value[2 * i + 1]:.6f})" for i, label in enumerate(labels)
        )
    if kind == "timecode" and isinstance(value, tuple):
        return f"{{time_and_flags: {value[0]}, user_data: {value[1]}}}"
    if kind == "string":
        return f'"{value}"'
    if kind == "stringvector":
        return "[" + ", ".join(f'"{item}"' for item in value) + "]"
    if isinstance(value, (bytes, bytearray)):
        return bytes(value).hex()
    if isinstance(value, (tuple, list)):
        return "(" + ", ".join(str(v) for v in value) + ")"
    return str(value)


def read_and_group_metadata(path) -> ExrMetadata:
    """Read the headers of an EXR file and arrange them for display."""
    path = Path(path)
    file_size = path.stat().st_size
    image = read_exr(path)

    general = [
        ("Ścieżka", str(path)),
        ("Rozmiar pliku", human_size(file_size)),
        ("Warstwy", str(len(image.layers))),
    ]
    header = [
        (_IMAGE_ATTRIBUTE_NAMES.get(name, name), _format_attribute(attr))
        for name, attr in image.attributes.items()
    ]
    groups = [MetadataGroup(GENERAL, general), MetadataGroup(HEADER, header)]

    layers = []
    for layer in image.layers:
        shorts = [split_layer_and_short(ch.name, layer.layer_name)[1] for ch in layer.channels]
        layers.append(
            LayerMetadata(
                name=layer.layer_name or "",
                width=layer.width,
                height=layer.height,
                channel_groups=group_channels(shorts),
                attributes=[(name, _format_attribute(attr)) for name, attr in layer.attributes.items()],
            )
        )
    layers.sort(key=lambda lm: (lm.name != "", lm.name.lower()))
    return ExrMetadata(path=path, file_size_bytes=file_size, groups=groups, layers=layers)


def _layer_title(layer: LayerMetadata) -> str:
    return layer.name if layer.name else DEFAULT_LAYER_TITLE


def build_ui_lines(meta: ExrMetadata) -> list[str]:
    """Flatten metadata into plain text lines."""
    out = []
    for group in meta.groups:
        out.append(f"[{group.name}]")
        out.extend(value if not key else f"{key}: {value}" for key, value in group.items)
    for layer in meta.layers:
        out.append(f"Warstwa: {_layer_title(layer)}  — {layer.width}x{layer.height}")
        out.extend(f"  {value}" if not key else f"  {key}: {value}" for key, value in layer.attributes)
    return out


def _pretty_header_row(key: str, value: str) -> tuple[str, str]:
    lowered = key.lower()
    if lowered == "display_window":
        return "display_window", pretty_display_window(value)
    if lowered in ("pixel_aspect", "pixel_aspect_ratio"):
        return "pixel_aspect", pretty_number(value, 3)
    if lowered == "chromaticities":
        return "chromaticities", pretty_chromaticities(value)
    if lowered == "time_code":
        return "time_code", value.replace("{", "").replace("}", "").replace(",", " ")
    return key, value


def build_ui_rows(meta: ExrMetadata) -> list[tuple[str, str]]:
    """Flatten metadata into (key, value) rows for a two-column table."""
    rows: list[tuple[str, str]] = [(GENERAL, "")]
    for group in meta.groups:
        if group.name == GENERAL:
            rows.extend(group.items)
    rows.append((HEADER, ""))
    for group in meta.groups:
        if group.name == HEADER:
            rows.extend(_pretty_header_row(key.strip(), value) for key, value in group.items)
    for layer in meta.layers:
        rows.append((f"Warstwa: {_layer_title(layer)}", ""))
        rows.append(("Wymiary", f"{layer.width}x{layer.height}"))
        for key, value in layer.attributes:
            stripped = key.strip()
            rows.append((stripped if stripped else "Atrybut", value))
    return rows