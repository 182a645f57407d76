"""Small helpers shared by the viewer modules."""

from __future__ import annotations

_UNITS = ("B", "KiB", "MiB", "GiB", "TiB", "PiB")


def split_layer_and_short(full: str, base_attr: str | None) -> tuple[str, str]:
    """Split a full channel name into ``(layer, short channel name)``.

    When the part header carries a layer name, that name wins and the short
    name is whatever follows the last dot. Otherwise the full name is cut at
    its last dot; a name without a dot belongs to the unnamed base layer.
    """
    if base_attr is not None:
        return base_attr, full.rsplit(".", 1)[-1]
    layer, dot, short = full.rpartition(".")
    if dot:
        return layer, short
    return "", full


def human_size(num_bytes: int) -> str:
    """Format a byte count with binary units, e.g. ``1.50 KiB``."""
    size = float(num_bytes)
    unit = 0
    while size >= 1024.0 and unit < len(_UNITS) - 1:
        size /= 1024.0
        unit += 1
    if unit == 0:
        return f"{num_bytes} {_UNITS[0]}"
    return f"{size:.2f} {_UNITS[unit]}"