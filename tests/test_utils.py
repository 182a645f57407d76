import pytest

from exrview.utils import human_size, split_layer_and_short


def test_split_without_base_uses_last_dot():
    assert split_layer_and_short("diffuse.direct.R", None) == ("diffuse.direct", "R")


def test_split_without_dot_is_base_layer():
    assert split_layer_and_short("Z", None) == ("", "Z")


def test_split_with_base_attribute_prefers_it():
    assert split_layer_and_short("other.G", "beauty") == ("beauty", "G")
    assert split_layer_and_short("G", "beauty") == ("beauty", "G")


def test_split_with_empty_base():
    assert split_layer_and_short("a.b", "") == ("", "b")


@pytest.mark.parametrize("n", [0, 1, 1023])
def test_human_size_bytes(n):
    assert human_size(n) == f"{n} B"


def test_human_size_kib():
    assert human_size(1024) == "1.00 KiB"
    assert human_size(1536) == "1.50 KiB"


def test_human_size_units_grow():
    assert human_size(1024**2).endswith("MiB")
    assert human_size(1024**5).endswith("PiB")
    assert human_size(1024**6).endswith("PiB")