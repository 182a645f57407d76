"""The layer/channel list shown beside the image, and parsing of clicks on it."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from .image_cache import LayerInfo

LAYER_MARK = "📁"
BASE_LAYER_DISPLAY = "Beauty"
LAYER_FONT_SIZE = 12
CHANNEL_FONT_SIZE = 10

_CHANNEL_LABELS = {
    "R": ("🔴", "Red"),
    "G": ("🟢", "Green"),
    "B": ("🔵", "Blue"),
    "A": ("⚪", "Alpha"),
}
_RGBA_EMOJIS = tuple(emoji for emoji, _ in _CHANNEL_LABELS.values())
_ORDER_ALIASES = (("R", "RED"), ("G", "GREEN"), ("B", "BLUE"), ("A", "ALPHA"))


class TreeColor(Enum):
    """Text colour roles for list rows."""

    DEFAULT = "default"
    RED = "red"
    GREEN = "green"
    BLUE = "blue"


@dataclass
class LayerTree:
    """Rows of the list plus lookups from rows and display names to real layers."""

    items: list[str] = field(default_factory=list)
    colors: list[TreeColor] = field(default_factory=list)
    font_sizes: list[int] = field(default_factory=list)
    item_to_layer: dict[str, str] = field(default_factory=dict)
    display_to_real: dict[str, str] = field(default_factory=dict)

    def real_layer(self, display_name: str) -> str:
        return self.display_to_real.get(display_name, display_name)

    def display_layer(self, real_name: str) -> str:
        return next((k for k, v in self.display_to_real.items() if v == real_name), real_name)


@dataclass(frozen=True)
class LayerClick:
    display_name: str
    layer_name: str


@dataclass(frozen=True)
class ChannelClick:
    layer_name: str
    channel_short: str


def normalize_channel_display_to_short(text: str) -> str:
    """Map ``Red``/``r`` style names to ``R``/``G``/``B``/``A``; others unchanged."""
    lower = text.strip().lower()
    for short, word in (("R", "red"), ("G", "green"), ("B", "blue"), ("A", "alpha")):
        if lower in (short.lower(), word):
            return short
    return text


def _trim_start(text: str, prefix: str) -> str:
    while prefix and text.startswith(prefix):
        text = text[len(prefix):]
    return text


def _channel_label(short: str) -> tuple[str, str]:
    if short in ("R", "r", "G", "g", "B", "b", "A", "a"):
        return _CHANNEL_LABELS[short.upper()]
    return "•", short


def _channel_color(display: str) -> TreeColor:
    upper = display.upper()
    if upper.startswith("R"):
        return TreeColor.RED
    if upper.startswith("G"):
        return TreeColor.GREEN
    if upper.startswith("B"):
        return TreeColor.BLUE
    return TreeColor.DEFAULT


def _ordered_channels(layer: LayerInfo) -> list[str]:
    remaining = [c.name.split(".")[-1] for c in layer.channels]
    ordered = []
    for aliases in _ORDER_ALIASES:
        pos = next(
            (i for i, s in enumerate(remaining) if any(s.upper().startswith(a) for a in aliases)),
            None,
        )
        if pos is not None:
            ordered.append(remaining.pop(pos))
    ordered.extend(sorted(remaining, key=str.lower))
    return ordered


def build_layer_tree(layers_info) -> LayerTree:
    """Build the list: each layer row followed by its channels, R/G/B/A first."""
    tree = LayerTree()
    for layer in layers_info:
        display_name = layer.name or BASE_LAYER_DISPLAY
        tree.display_to_real[display_name] = layer.name
        tree.items.append(f"{LAYER_MARK} {display_name}")
        tree.colors.append(TreeColor.DEFAULT)
        tree.font_sizes.append(LAYER_FONT_SIZE)
        for short in _ordered_channels(layer):
            emoji, display_ch = _channel_label(short)
            line = f"    {emoji} {display_ch} @{display_name}"
            tree.item_to_layer[line] = layer.name
            tree.items.append(line)
            tree.colors.append(_channel_color(display_ch))
            tree.font_sizes.append(CHANNEL_FONT_SIZE)
    return tree


def parse_clicked_item(tree: LayerTree, clicked_item: str, current_layer: str):
    """Interpret a clicked row as a layer or channel selection, or ``None``."""
    if clicked_item.startswith(LAYER_MARK):
        display = _trim_start(clicked_item, LAYER_MARK).strip()
        return LayerClick(display, tree.real_layer(display))

    trimmed = clicked_item.strip()
    is_dot = trimmed.startswith("• ")
    if not (is_dot or trimmed.startswith(_RGBA_EMOJIS)):
        return None

    at = trimmed.rfind("@")
    if at >= 0:
        layer = tree.real_layer(trimmed[at + 1:].strip())
        left = trimmed[:at].strip()
        if is_dot:
            short = _trim_start(left, "•").strip()
        else:
            words = left.split()
            short = words[1] if len(words) > 1 else ""
    else:
        layer = tree.item_to_layer.get(clicked_item.rstrip(), current_layer)
        if is_dot:
            short = _trim_start(trimmed, "• ").strip()
        else:
            words = trimmed.split()
            short = words[1] if len(words) > 1 else ""
    return ChannelClick(layer, normalize_channel_display_to_short(short))


def channel_selection_label(tree: LayerTree, channel_short: str, layer_name: str) -> str:
    """The row text to highlight after a channel of ``layer_name`` was shown."""
    display_layer = tree.display_layer(layer_name)
    if channel_short in ("R", "r", "G", "g", "B", "b", "A", "a"):
        emoji, word = _CHANNEL_LABELS[channel_short.upper()]
        return f"    {emoji} {word} @{display_layer}"
    return f"{channel_short} @{display_layer}"