"""Reading and writing of scan-line OpenEXR files (single and multi-part)."""

from __future__ import annotations

import struct
import zlib
from dataclasses import dataclass, field
from enum import IntEnum
from pathlib import Path

import numpy as np

MAGIC = b"\x76\x2f\x31\x01"
_TILED = 0x200
_LONG_NAMES = 0x400
_DEEP = 0x800
_MULTIPART = 0x1000

_STRUCTURAL = {"channels", "compression", "dataWindow", "lineOrder", "name", "type", "chunkCount", "version", "tiles"}
_IMAGE_LEVEL = ("displayWindow", "pixelAspectRatio", "chromaticities", "timeCode")


class ExrError(Exception):
    """Raised for malformed or unsupported EXR data."""


class Compression(IntEnum):
    NONE = 0
    RLE = 1
    ZIPS = 2
    ZIP = 3
    PIZ = 4
    PXR24 = 5
    B44 = 6
    B44A = 7
    DWAA = 8
    DWAB = 9

    @property
    def lines_per_block(self) -> int:
        return {0: 1, 1: 1, 2: 1, 3: 16, 4: 32, 5: 16, 6: 32, 7: 32, 8: 32, 9: 256}[self.value]


_SUPPORTED = {Compression.NONE, Compression.RLE, Compression.ZIPS, Compression.ZIP}


class PixelType(IntEnum):
    UINT = 0
    HALF = 1
    FLOAT = 2

    @property
    def dtype(self) -> np.dtype:
        return np.dtype(("<u4", "<f2", "<f4")[self.value])


_FORMATS = {
    "int": "<i", "float": "<f", "double": "<d", "v2i": "<2i", "v2f": "<2f",
    "v3i": "<3i", "v3f": "<3f", "box2i": "<4i", "box2f": "<4f",
    "chromaticities": "<8f", "timecode": "<2I", "rational": "<iI",
    "m33f": "<9f", "m44f": "<16f", "compression": "<B", "lineOrder": "<B",
    "envmap": "<B", "keycode": "<7i",
}


@dataclass(frozen=True)
class Attribute:
    """A typed header attribute; unknown kinds keep their raw bytes."""

    kind: str
    value: object


@dataclass
class ExrChannel:
    name: str
    data: np.ndarray

    def __post_init__(self):
        arr = np.asarray(self.data)
        if arr.ndim != 2:
            raise ExrError(f"channel {self.name!r} must be two-dimensional")
        if arr.dtype not in (np.float16, np.float32, np.uint32):
            arr = arr.astype(np.float32)
        self.data = arr

    @property
    def pixel_type(self) -> PixelType:
        return {np.dtype(np.uint32): PixelType.UINT, np.dtype(np.float16): PixelType.HALF}.get(
            self.data.dtype, PixelType.FLOAT
        )

    def to_float32(self) -> np.ndarray:
        return self.data.astype(np.float32)


@dataclass
class ExrLayer:
    channels: list[ExrChannel]
    layer_name: str | None = None
    attributes: dict[str, Attribute] = field(default_factory=dict)
    compression: Compression = Compression.NONE
    data_window: tuple[int, int, int, int] | None = None

    def __post_init__(self):
        self.compression = Compression(self.compression)
        if self.data_window is None:
            if not self.channels:
                raise ExrError("a layer without channels needs a data window")
            h, w = self.channels[0].data.shape
            self.data_window = (0, 0, w - 1, h - 1)
        for ch in self.channels:
            if ch.data.shape != (self.height, self.width):
                raise ExrError(f"channel {ch.name!r} does not match the layer size")

    @property
    def width(self) -> int:
        return self.data_window[2] - self.data_window[0] + 1

    @property
    def height(self) -> int:
        return self.data_window[3] - self.data_window[1] + 1

    def channel(self, name: str) -> ExrChannel:
        for ch in self.channels:
            if ch.name == name:
                return ch
        raise KeyError(name)


@dataclass
class ExrImage:
    layers: list[ExrLayer]
    attributes: dict[str, Attribute] = field(default_factory=dict)


class _Reader:
    def __init__(self, data: bytes, pos: int = 0):
        self.data = data
        self.pos = pos

    def take(self, n: int) -> bytes:
        if n < 0 or self.pos + n > len(self.data):
            raise ExrError("unexpected end of file")
        chunk = self.data[self.pos:self.pos + n]
        self.pos += n
        return chunk

    def unpack(self, fmt: str) -> tuple:
        return struct.unpack(fmt, self.take(struct.calcsize(fmt)))

    def cstring(self) -> str:
        end = self.data.find(b"\0", self.pos)
        if end < 0:
            raise ExrError("unterminated string in header")
        text = self.data[self.pos:end].decode("utf-8", errors="replace")
        self.pos = end + 1
        return text

    def peek(self) -> int:
        if self.pos >= len(self.data):
            raise ExrError("unexpected end of file")
        return self.data[self.pos]


def _decode_attr(kind: str, raw: bytes) -> Attribute:
    if kind == "chlist":
        r = _Reader(raw)
        channels = []
        while r.peek() != 0:
            name = r.cstring()
            pt, linear, xs, ys = r.unpack("<iB3xii")
            channels.append((name, pt, linear, xs, ys))
        return Attribute(kind, channels)
    if kind == "string":
        return Attribute(kind, raw.decode("utf-8", errors="replace"))
    if kind == "stringvector":
        r = _Reader(raw)
        items = []
        while r.pos < len(raw):
            (n,) = r.unpack("<i")
            items.append(r.take(n).decode("utf-8", errors="replace"))
        return Attribute(kind, items)
    fmt = _FORMATS.get(kind)
    if fmt and struct.calcsize(fmt) == len(raw):
        values = struct.unpack(fmt, raw)
        return Attribute(kind, values[0] if len(values) == 1 else values)
    return Attribute(kind, raw)


def _encode_value(attr: Attribute) -> bytes:
    kind, value = attr.kind, attr.value
    if kind == "chlist":
        body = b"".join(
            name.encode() + b"\0" + struct.pack("<iB3xii", pt, linear, xs, ys)
            for name, pt, linear, xs, ys in value
        )
        return body + b"\0"
    if kind == "string":
        return str(value).encode()
    if kind == "stringvector":
        return b"".join(struct.pack("<i", len(s.encode())) + s.encode() for s in value)
    fmt = _FORMATS.get(kind)
    if fmt and not isinstance(value, (bytes, bytearray)):
        values = value if isinstance(value, (tuple, list)) else (value,)
        return struct.pack(fmt, *values)
    if isinstance(value, (bytes, bytearray)):
        return bytes(value)
    raise ExrError(f"cannot encode attribute of kind {kind!r}")


def _encode_attr(name: str, attr: Attribute) -> bytes:
    body = _encode_value(attr)
    return name.encode() + b"\0" + attr.kind.encode() + b"\0" + struct.pack("<i", len(body)) + body


def _read_header(r: _Reader) -> dict[str, Attribute]:
    attrs = {}
    while True:
        name = r.cstring()
        if not name:
            return attrs
        kind = r.cstring()
        (size,) = r.unpack("<i")
        attrs[name] = _decode_attr(kind, r.take(size))


def _reconstruct(data: bytes) -> bytes:
    t = np.frombuffer(data, dtype=np.uint8).astype(np.int64)
    if t.size == 0:
        return b""
    t[1:] -= 128
    t = np.cumsum(t) % 256
    half = (t.size + 1) // 2
    out = np.empty(t.size, dtype=np.uint8)
    out[0::2] = t[:half]
    out[1::2] = t[half:]
    return out.tobytes()


def _predict(data: bytes) -> bytes:
    raw = np.frombuffer(data, dtype=np.uint8)
    t = np.concatenate([raw[0::2], raw[1::2]]).astype(np.int64)
    if t.size == 0:
        return b""
    d = t.copy()
    d[1:] = (t[1:] - t[:-1] + 128) % 256
    return d.astype(np.uint8).tobytes()


def _rle_decode(data: bytes) -> bytes:
    out = bytearray()
    i = 0
    while i < len(data):
        count = data[i] - 256 if data[i] > 127 else data[i]
        i += 1
        if count < 0:
            if i - count > len(data):
                raise ExrError("corrupt RLE data")
            out += data[i:i - count]
            i -= count
        else:
            if i >= len(data):
                raise ExrError("corrupt RLE data")
            out += bytes([data[i]]) * (count + 1)
            i += 1
    return bytes(out)


def _rle_encode(data: bytes) -> bytes:
    out = bytearray()
    n = len(data)
    i = 0
    while i < n:
        j = i + 1
        while j < n and data[j] == data[i] and j - i < 128:
            j += 1
        if j - i >= 3:
            out += bytes([j - i - 1, data[i]])
            i = j
            continue
        j = i
        while j < n and j - i < 127 and not (j + 2 < n and data[j] == data[j + 1] == data[j + 2]):
            j += 1
        out.append((-(j - i)) & 0xFF)
        out += data[i:j]
        i = j
    return bytes(out)


def _decompress(comp: Compression, raw: bytes, expected: int) -> bytes:
    if len(raw) == expected:
        return raw
    if comp is Compression.NONE:
        raise ExrError("uncompressed block has the wrong size")
    if comp in (Compression.ZIP, Compression.ZIPS):
        try:
            packed = zlib.decompress(raw)
        except zlib.error as exc:
            raise ExrError(f"corrupt zip block: {exc}") from exc
    else:
        packed = _rle_decode(raw)
    if len(packed) != expected:
        raise ExrError("decompressed block has the wrong size")
    return _reconstruct(packed)


def _compress(comp: Compression, raw: bytes) -> bytes:
    if comp is Compression.NONE:
        return raw
    pre = _predict(raw)
    packed = zlib.compress(pre) if comp in (Compression.ZIP, Compression.ZIPS) else _rle_encode(pre)
    return packed if len(packed) < len(raw) else raw


def _required(header: dict, key: str) -> Attribute:
    try:
        return header[key]
    except KeyError:
        raise ExrError(f"header is missing {key!r}") from None


def _read_part(data: bytes, header: dict, offsets: list[int], index: int, multipart: bool) -> ExrLayer:
    try:
        comp = Compression(_required(header, "compression").value)
    except ValueError:
        raise ExrError("unknown compression") from None
    if comp not in _SUPPORTED:
        raise ExrError(f"compression {comp.name} is not supported")
    xmin, ymin, xmax, ymax = _required(header, "dataWindow").value
    w, h = xmax - xmin + 1, ymax - ymin + 1
    specs = []
    for name, pt, _linear, xs, ys in _required(header, "channels").value:
        if xs != 1 or ys != 1:
            raise ExrError(f"subsampled channel {name!r} is not supported")
        try:
            specs.append((name, PixelType(pt)))
        except ValueError:
            raise ExrError(f"unknown pixel type for {name!r}") from None
    arrays = {name: np.zeros((h, w), dtype=pt.dtype.newbyteorder("=")) for name, pt in specs}
    line_bytes = sum(w * pt.dtype.itemsize for _, pt in specs)
    lpb = comp.lines_per_block
    for offset in offsets:
        r = _Reader(data, offset)
        if multipart:
            (part,) = r.unpack("<i")
            if part != index:
                raise ExrError("chunk belongs to another part")
        y, size = r.unpack("<ii")
        n_lines = min(lpb, ymax - y + 1)
        if y < ymin or n_lines <= 0:
            raise ExrError("chunk outside the data window")
        block = _decompress(comp, r.take(size), n_lines * line_bytes)
        pos = 0
        for line in range(n_lines):
            row = y - ymin + line
            for name, pt in specs:
                arrays[name][row] = np.frombuffer(block, dtype=pt.dtype, count=w, offset=pos)
                pos += w * pt.dtype.itemsize
    name_attr = header.get("name")
    attributes = {k: v for k, v in header.items() if k not in _STRUCTURAL and k not in _IMAGE_LEVEL}
    return ExrLayer(
        channels=[ExrChannel(name, arrays[name]) for name, _ in specs],
        layer_name=name_attr.value if name_attr else None,
        attributes=attributes,
        compression=comp,
        data_window=(xmin, ymin, xmax, ymax),
    )


def read_exr(path) -> ExrImage:
    """Read every layer of a scan-line EXR file."""
    data = Path(path).read_bytes()
    try:
        return _parse(data)
    except struct.error as exc:
        raise ExrError(f"malformed EXR file: {exc}") from exc


def _parse(data: bytes) -> ExrImage:
    if data[:4] != MAGIC:
        raise ExrError("not an OpenEXR file")
    r = _Reader(data, 4)
    (version,) = r.unpack("<I")
    if version & 0xFF != 2:
        raise ExrError("unsupported EXR version")
    if version & (_TILED | _DEEP):
        raise ExrError("tiled and deep files are not supported")
    multipart = bool(version & _MULTIPART)
    headers = []
    if multipart:
        while r.peek() != 0:
            headers.append(_read_header(r))
        r.pos += 1
    else:
        headers.append(_read_header(r))
    layers = []
    tables = []
    for header in headers:
        if multipart:
            kind = header.get("type")
            if kind is None or kind.value != "scanlineimage":
                raise ExrError("only scan-line parts are supported")
            count = _required(header, "chunkCount").value
        else:
            _, ymin, _, ymax = _required(header, "dataWindow").value
            lpb = Compression(_required(header, "compression").value).lines_per_block
            count = -(-(ymax - ymin + 1) // lpb)
        tables.append(list(r.unpack(f"<{count}Q")))
    for index, (header, offsets) in enumerate(zip(headers, tables)):
        layers.append(_read_part(data, header, offsets, index, multipart))
    first = headers[0] if headers else {}
    image_attrs = {k: first[k] for k in _IMAGE_LEVEL if k in first}
    return ExrImage(layers=layers, attributes=image_attrs)


def write_exr(path, layers) -> None:
    """Write layers (or a whole ``ExrImage``) as a scan-line EXR file."""
    image_attrs: dict[str, Attribute] = {}
    if isinstance(layers, ExrImage):
        image_attrs = dict(layers.attributes)
        layers = layers.layers
    parts = list(layers)
    if not parts:
        raise ExrError("nothing to write")
    multipart = len(parts) > 1
    if multipart and any(not p.layer_name for p in parts):
        raise ExrError("every part of a multi-part file needs a layer name")

    headers, chunk_lists = [], []
    long_names = False
    for index, layer in enumerate(parts):
        if layer.compression not in _SUPPORTED:
            raise ExrError(f"compression {layer.compression.name} is not supported")
        channels = sorted(layer.channels, key=lambda c: c.name)
        xmin, ymin, xmax, ymax = layer.data_window
        lpb = layer.compression.lines_per_block
        chunks = []
        for y0 in range(0, layer.height, lpb):
            rows = range(y0, min(y0 + lpb, layer.height))
            raw = b"".join(ch.data[row].astype(ch.pixel_type.dtype).tobytes() for row in rows for ch in channels)
            body = _compress(layer.compression, raw)
            prefix = struct.pack("<i", index) if multipart else b""
            chunks.append(prefix + struct.pack("<ii", ymin + y0, len(body)) + body)
        chunk_lists.append(chunks)

        attrs: dict[str, Attribute] = {
            "channels": Attribute("chlist", [(c.name, int(c.pixel_type), 0, 1, 1) for c in channels]),
            "compression": Attribute("compression", int(layer.compression)),
            "dataWindow": Attribute("box2i", tuple(layer.data_window)),
            "displayWindow": Attribute("box2i", tuple(layer.data_window)),
            "lineOrder": Attribute("lineOrder", 0),
            "pixelAspectRatio": Attribute("float", 1.0),
            "screenWindowCenter": Attribute("v2f", (0.0, 0.0)),
            "screenWindowWidth": Attribute("float", 1.0),
        }
        attrs.update(image_attrs)
        attrs.update({k: v for k, v in layer.attributes.items() if k not in _STRUCTURAL})
        if layer.layer_name is not None:
            attrs["name"] = Attribute("string", layer.layer_name)
        if multipart:
            attrs["type"] = Attribute("string", "scanlineimage")
            attrs["chunkCount"] = Attribute("int", len(chunks))
        names = list(attrs) + [c.name for c in channels]
        long_names = long_names or any(len(n.encode()) > 31 for n in names)
        headers.append(b"".join(_encode_attr(k, v) for k, v in attrs.items()) + b"\0")

    version = 2 | (_MULTIPART if multipart else 0) | (_LONG_NAMES if long_names else 0)
    head = MAGIC + struct.pack("<I", version) + b"".join(headers) + (b"\0" if multipart else b"")
    total = sum(len(c) for c in chunk_lists)
    pos = len(head) + 8 * total
    offsets = []
    for chunk in (c for chunks in chunk_lists for c in chunks):
        offsets.append(pos)
        pos += len(chunk)
    body = b"".join(c for chunks in chunk_lists for c in chunks)
    Path(path).write_bytes(head + struct.pack(f"<{total}Q", *offsets) + body)