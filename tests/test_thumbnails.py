import numpy as np
import pytest

from exrview.exrfile import ExrChannel, ExrError, ExrLayer, write_exr
from exrview.processing import process_pixel
from exrview.thumbnails import (
    ExrThumbnailInfo,
    generate_exr_thumbnails_in_dir,
    generate_thumbnail,
    list_exr_files,
)


def _write_rgb(path, data, layer_name=None):
    data = np.asarray(data, dtype=np.float32)
    layer = ExrLayer([ExrChannel(n, data.copy()) for n in "RGB"], layer_name=layer_name)
    write_exr(path, [layer])
    return path


def test_square_image_keeps_square_thumbnail(tmp_path):
    path = _write_rgb(tmp_path / "sq.exr", np.zeros((8, 8)))
    info = generate_thumbnail(path, 4, 0.0, 2.2)
    assert info.height == 4
    assert info.width == 4
    assert info.image.shape == (info.height, info.width, 4)


def test_wide_image_thumbnail_width_is_proportional(tmp_path):
    path = _write_rgb(tmp_path / "wide.exr", np.zeros((10, 20)))
    info = generate_thumbnail(path, 5, 0.0, 2.2)
    assert (info.width, info.height) == (10, 5)
    assert info.image.shape == (5, 10, 4)


def test_black_image_renders_black_opaque(tmp_path):
    path = _write_rgb(tmp_path / "black.exr", np.zeros((6, 6)))
    info = generate_thumbnail(path, 3, 0.0, 2.2)
    assert np.all(info.image[..., :3] == 0)
    assert np.all(info.image[..., 3] == 255)


def test_nearest_neighbour_sampling_matches_source_pixels(tmp_path):
    data = np.arange(16, dtype=np.float32).reshape(4, 4) / 16.0
    path = _write_rgb(tmp_path / "grad.exr", data)
    info = generate_thumbnail(path, 2, 0.0, 2.2)
    for (ty, tx), (sy, sx) in (((0, 0), (0, 0)), ((1, 1), (2, 2)), ((0, 1), (0, 2))):
        v = float(data[sy, sx])
        assert tuple(int(c) for c in info.image[ty, tx]) == process_pixel(v, v, v, 1.0, 0.0, 2.2)


def test_upscaling_repeats_source_pixels(tmp_path):
    data = np.array([[0.1, 0.9], [0.5, 2.0]], dtype=np.float32)
    path = _write_rgb(tmp_path / "up.exr", data)
    info = generate_thumbnail(path, 4, 0.0, 2.2)
    assert info.image.shape == (4, 4, 4)
    assert np.array_equal(info.image[0, 0], info.image[1, 1])
    assert np.array_equal(info.image[2, 2], info.image[3, 3])
    assert not np.array_equal(info.image[0, 0], info.image[3, 3])


def test_file_facts_are_reported(tmp_path):
    path = _write_rgb(tmp_path / "facts.exr", np.ones((4, 4)))
    info = generate_thumbnail(path, 2, 0.0, 2.2)
    assert isinstance(info, ExrThumbnailInfo)
    assert info.path == path
    assert info.file_name == "facts.exr"
    assert info.file_size_bytes == path.stat().st_size
    assert info.num_layers == 1


def test_multi_part_file_counts_layers(tmp_path):
    data = np.ones((2, 2), dtype=np.float32)
    layers = [
        ExrLayer([ExrChannel(n, data.copy()) for n in "RGB"], layer_name=name)
        for name in ("diffuse", "specular")
    ]
    path = tmp_path / "multi.exr"
    write_exr(path, layers)
    info = generate_thumbnail(path, 2, 0.0, 2.2)
    assert info.num_layers == 2


def test_unreadable_file_raises(tmp_path):
    path = tmp_path / "junk.exr"
    path.write_bytes(b"not an exr file at all")
    with pytest.raises(ExrError):
        generate_thumbnail(path, 4, 0.0, 2.2)


def test_list_exr_files_filters_by_extension(tmp_path):
    _write_rgb(tmp_path / "a.exr", np.zeros((2, 2)))
    (tmp_path / "B.EXR").write_bytes(b"x")
    (tmp_path / "c.png").write_bytes(b"x")
    (tmp_path / "folder.exr").mkdir()
    names = [p.name for p in list_exr_files(tmp_path)]
    assert sorted(names) == ["B.EXR", "a.exr"]


def test_list_exr_files_missing_directory_raises(tmp_path):
    with pytest.raises(OSError):
        list_exr_files(tmp_path / "missing")


def test_directory_thumbnails_skip_broken_files(tmp_path):
    _write_rgb(tmp_path / "one.exr", np.zeros((4, 4)))
    _write_rgb(tmp_path / "two.exr", np.ones((4, 8)))
    (tmp_path / "broken.exr").write_bytes(b"garbage")
    thumbs = generate_exr_thumbnails_in_dir(tmp_path, 2, 0.0, 2.2)
    assert sorted(t.file_name for t in thumbs) == ["one.exr", "two.exr"]
    assert all(t.height == 2 for t in thumbs)
    assert all(t.image.shape == (t.height, t.width, 4) for t in thumbs)