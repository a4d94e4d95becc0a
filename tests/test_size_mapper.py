"""Unit tests for mapping weights to font sizes."""

import pytest

from litcloud_core import WordCloudConfig, font_weight_for, map_sizes


def test_linear_scale_interpolates_between_bounds():
    sizes = map_sizes({"a": 10, "b": 5, "c": 0}, scale_range=(10, 30))

    assert sizes == pytest.approx({"a": 30.0, "b": 20.0, "c": 10.0})


def test_log_scale_uses_log1p():
    """log1p(99) is twice log1p(9), so "b" lands exactly mid-range."""
    sizes = map_sizes({"a": 99, "b": 9, "c": 0}, scale_range=(10, 30), scale="log")

    assert sizes["a"] == pytest.approx(30.0)
    assert sizes["b"] == pytest.approx(20.0)
    assert sizes["c"] == pytest.approx(10.0)


def test_rank_scale_shares_size_between_ties():
    sizes = map_sizes({"a": 9, "b": 5, "c": 5, "d": 1}, scale_range=(10, 40), scale="rank", curve_power=1.0)

    assert sizes == pytest.approx({"a": 40.0, "b": 30.0, "c": 30.0, "d": 10.0})


@pytest.mark.parametrize("weights", [{"only": 4}, {"a": 2, "b": 2, "c": 2}])
@pytest.mark.parametrize("scale", ["linear", "log", "rank"])
def test_equal_weights_get_the_mid_size(weights, scale):
    sizes = map_sizes(weights, scale_range=(12, 48), scale=scale)

    assert set(sizes.values()) == {30.0}


def test_empty_weights_give_no_sizes():
    assert map_sizes({}, scale_range=(10, 20)) == {}


@pytest.mark.parametrize("scale_range", [(0, 10), (-1, 10), (20, 10), (5,)])
def test_invalid_scale_range(scale_range):
    with pytest.raises(ValueError):
        map_sizes({"a": 1, "b": 2}, scale_range=scale_range)


def test_unknown_scale_is_rejected():
    with pytest.raises(ValueError, match="scale"):
        map_sizes({"a": 1}, scale_range=(1, 2), scale="cubic")


def test_font_weight_bands():
    assert font_weight_for(0, 1, WordCloudConfig().weight_breaks) == "600"
    assert font_weight_for(0, 100, WordCloudConfig().weight_breaks) == "900"
    assert font_weight_for(99, 100, WordCloudConfig().weight_breaks) == "500"


@pytest.mark.parametrize(
    "overrides",
    [
        {"rotation_fraction": 1.5},
        {"rotation_fraction": -0.1},
        {"max_words": 0},
        {"min_freq": -1},
        {"canvas_size": (0, 100)},
        {"collision": "quadtree"},
        {"color_mode": "rainbow"},
        {"ngram": 4},
        {"color_palette": ()},
        {"scale_range": (30, 10)},
    ],
)
def test_config_validation(overrides):
    with pytest.raises(ValueError):
        WordCloudConfig(**overrides).validate()


def test_default_config_is_valid():
    WordCloudConfig().validate()
