import numpy as np
import pytest

from exrview.exrfile import ExrChannel, ExrError, ExrLayer, write_exr
from exrview.image_cache import (
    ChannelInfo,
    ImageCache,
    LayerInfo,
    channel_alias_to_short,
    extract_layers_info,
    find_best_layer,
    load_first_rgba_layer,
    load_single_channel_as_grayscale,
    load_specific_layer,
)
from exrview.processing import process_pixels

H, W = 2, 4


def _plane(value):
    return np.full((H, W), value, dtype=np.float32)


def _layer(channels, name=None):
    return ExrLayer([ExrChannel(n, arr) for n, arr in channels.items()], layer_name=name)


@pytest.fixture
def single_part(tmp_path):
    path = tmp_path / "single.exr"
    write_exr(path, [_layer({
        "R": _plane(0.25), "G": _plane(0.5), "B": _plane(0.75),
        "Z": np.arange(H * W, dtype=np.float32).reshape(H, W),
        "diffuse.X": _plane(2.0),
    })])
    return path


@pytest.fixture
def multi_part(tmp_path):
    path = tmp_path / "multi.exr"
    write_exr(path, [
        _layer({"R": _plane(0.1), "G": _plane(0.2), "B": _plane(0.3), "A": _plane(0.5)}, "beauty"),
        _layer({"depth": _plane(7.0)}, "zpass"),
    ])
    return path


def _info(name, *channels):
    return LayerInfo(name, [ChannelInfo(c) for c in channels])


@pytest.mark.parametrize("text,expected", [
    ("red", "R"), ("Red", "R"), ("R", "R"), (" Green ", "G"),
    ("BLUE", "B"), ("alpha", "A"), ("Z", "Z"), (" depth ", "depth"),
])
def test_channel_alias_to_short(text, expected):
    assert channel_alias_to_short(text) == expected


def test_extract_layers_info_groups_by_prefix(single_part):
    layers = extract_layers_info(single_part)
    assert [layer.name for layer in layers] == ["", "diffuse"]
    assert sorted(c.name for c in layers[0].channels) == ["B", "G", "R", "Z"]
    assert [c.name for c in layers[1].channels] == ["X"]


def test_extract_layers_info_uses_part_names(multi_part):
    layers = extract_layers_info(multi_part)
    assert [layer.name for layer in layers] == ["beauty", "zpass"]
    assert [c.name for c in layers[1].channels] == ["depth"]


def test_find_best_layer_prefers_unnamed_rgb():
    layers = [_info("beauty", "R", "G", "B"), _info("", "R", "G", "B")]
    assert find_best_layer(layers) == ""


def test_find_best_layer_priority_name():
    layers = [_info("spec", "R", "G", "B"), _info("", "Z"), _info("MyCombined", "X")]
    assert find_best_layer(layers) == "MyCombined"


def test_find_best_layer_first_rgb_layer():
    layers = [_info("spec", "X"), _info("diffuse", "r", "g", "b")]
    assert find_best_layer(layers) == "diffuse"


def test_find_best_layer_falls_back():
    assert find_best_layer([_info("a", "X"), _info("b", "Y")]) == "a"
    assert find_best_layer([]) == "Layer 1"


def test_load_specific_layer_rgb(single_part):
    pixels, width, height, name = load_specific_layer(single_part, "")
    assert (width, height, name) == (W, H, "")
    assert pixels.shape == (W * H, 4)
    np.testing.assert_allclose(pixels[0], [0.25, 0.5, 0.75, 1.0])


def test_load_specific_layer_duplicates_single_channel(single_part):
    pixels, _, _, name = load_specific_layer(single_part, "diffuse")
    assert name == "diffuse"
    np.testing.assert_allclose(pixels[:, :3], 2.0)
    np.testing.assert_allclose(pixels[:, 3], 1.0)


def test_load_specific_layer_reads_alpha(multi_part):
    pixels, _, _, _ = load_specific_layer(multi_part, "Beauty")
    np.testing.assert_allclose(pixels[0], [0.1, 0.2, 0.3, 0.5], rtol=1e-6)


def test_load_specific_layer_falls_back_to_rgba(single_part):
    pixels, width, height, name = load_specific_layer(single_part, "nonexistent")
    assert name == "nonexistent"
    assert (width, height) == (W, H)
    np.testing.assert_allclose(pixels[-1], [0.25, 0.5, 0.75, 1.0])


def test_load_first_rgba_layer(multi_part):
    pixels, width, height, name = load_first_rgba_layer(multi_part)
    assert name == "First RGBA Layer"
    assert pixels.shape == (width * height, 4)
    np.testing.assert_allclose(pixels[:, 3], 0.5)


def test_load_first_rgba_layer_without_rgb(tmp_path):
    path = tmp_path / "norgb.exr"
    write_exr(path, [_layer({"Y": _plane(1.0)})])
    with pytest.raises(ExrError):
        load_first_rgba_layer(path)


def test_load_single_channel_by_alias(single_part):
    pixels, _, _, name = load_single_channel_as_grayscale(single_part, "", "red")
    assert name == ""
    np.testing.assert_allclose(pixels[:, :3], 0.25)
    np.testing.assert_allclose(pixels[:, 3], 1.0)


def test_load_single_channel_values(single_part):
    pixels, _, _, _ = load_single_channel_as_grayscale(single_part, "", "Z")
    np.testing.assert_allclose(pixels[:, 0], np.arange(H * W))
    assert np.array_equal(pixels[:, 0], pixels[:, 2])


def test_load_single_channel_depth_variant(multi_part):
    pixels, _, _, _ = load_single_channel_as_grayscale(multi_part, "zpass", "Z")
    np.testing.assert_allclose(pixels[:, :3], 7.0)


def test_load_single_channel_missing(single_part):
    with pytest.raises(ExrError):
        load_single_channel_as_grayscale(single_part, "", "Q")


def test_cache_from_file_and_reload(single_part):
    cache = ImageCache.from_file(single_part)
    assert cache.current_layer_name == ""
    assert (cache.width, cache.height) == (W, H)
    cache.load_layer(single_part, "diffuse")
    assert cache.current_layer_name == "diffuse"
    np.testing.assert_allclose(cache.raw_pixels[:, 0], 2.0)
    cache.load_channel(single_part, "", "G")
    np.testing.assert_allclose(cache.raw_pixels[:, 1], 0.5)


def test_process_to_image_matches_pixel_mapping(single_part):
    cache = ImageCache.from_file(single_part)
    image = cache.process_to_image(0.0, 2.2)
    assert image.shape == (H, W, 4)
    expected = process_pixels(cache.raw_pixels, 0.0, 2.2).reshape(H, W, 4)
    assert np.array_equal(image, expected)


def test_process_to_composite(single_part):
    cache = ImageCache.from_file(single_part)
    color = cache.process_to_image(1.0, 2.2)
    assert np.array_equal(cache.process_to_composite(1.0, 2.2, True), color)
    gray = cache.process_to_composite(1.0, 2.2, False)
    assert np.array_equal(gray[..., 0], color[..., :3].max(axis=-1))
    assert np.array_equal(gray[..., 0], gray[..., 2])
    assert np.array_equal(gray[..., 3], color[..., 3])


def test_process_to_thumbnail(single_part):
    cache = ImageCache.from_file(single_part)
    full = cache.process_to_image(0.0, 2.2)
    assert np.array_equal(cache.process_to_thumbnail(0.0, 2.2, 100), full)
    thumb = cache.process_to_thumbnail(0.0, 2.2, W // 2)
    assert thumb.shape == (H // 2, W // 2, 4)
    assert np.array_equal(thumb[0, 1], full[0, 2])


def test_process_depth_image_ramp():
    values = np.arange(100, dtype=np.float32)
    pixels = np.stack([values, values, values, np.ones_like(values)], axis=-1)
    cache = ImageCache(pixels, 10, 10, [], "")
    normal = cache.process_depth_image(False)[..., 0].reshape(-1)
    inverted = cache.process_depth_image(True)[..., 0].reshape(-1)
    assert normal[0] == 0 and normal[-1] == 255
    assert inverted[0] == 255 and inverted[-1] == 0
    assert np.all(np.diff(normal.astype(int)) >= 0)
    assert np.all(cache.process_depth_image(False)[..., 3] == 255)


def test_process_depth_image_constant():
    pixels = np.tile(np.array([3.0, 3.0, 3.0, 1.0], dtype=np.float32), (6, 1))
    cache = ImageCache(pixels, 3, 2, [], "")
    normal = cache.process_depth_image(False)
    inverted = cache.process_depth_image(True)
    assert normal.shape == (2, 3, 4)
    assert normal[..., :3].tolist() == [[[0, 0, 0]] * 3] * 2
    assert inverted[..., :3].tolist() == [[[255, 255, 255]] * 3] * 2
    assert normal[..., 3].tolist() == [[255] * 3] * 2