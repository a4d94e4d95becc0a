"""Tests for the spiral placement engine."""

import math

import numpy as np
import pytest

from litcloud_core import (
    CanvasExhaustedWarning,
    WordCloudConfig,
    generate_cloud,
    map_sizes,
)
from litcloud_layout import (
    ApproximateMeasurer,
    Canvas,
    PlacedWord,
    layout_words,
    overlapping_pairs,
    spiral_offsets,
)

EXAMPLE = {"word1": 5, "word2": 3, "word3": 3, "word4": 2, "word5": 1}


def random_weights(rng, count):
    letters = list("abcdefghijklmnopqrstuvwxyz")
    weights = {}
    for index in range(count):
        length = int(rng.integers(3, 10))
        token = "".join(rng.choice(letters, size=length)) + str(index)
        weights[token] = int(rng.integers(1, 100))
    return weights


def test_example_cloud_places_every_word():
    """Five words on an 800x600 canvas all fit, the heaviest in the middle."""
    result = generate_cloud(EXAMPLE, config=WordCloudConfig(max_words=5, canvas_size=(800, 600), seed=0))

    assert len(result.placed) == 5
    assert result.dropped == []
    assert [word.text for word in result.placed] == ["word1", "word2", "word3", "word4", "word5"]

    def distance(word):
        x, y = word.center
        return math.hypot(x - 400, y - 300)

    nearest = min(result.placed, key=distance)
    assert nearest.text == "word1"
    assert distance(nearest) <= 1


def test_empty_sizes_give_empty_result():
    result = layout_words({}, canvas_size=(100, 100))

    assert result.placed == []
    assert result.dropped == []


def test_word_larger_than_canvas_is_dropped_without_error():
    sizes = {"leviathan": 90.0, "ship": 10.0}

    result = layout_words(sizes, canvas_size=(120, 60), rng=np.random.default_rng(0))

    assert "leviathan" in result.dropped
    assert [word.text for word in result.placed] == ["ship"]


def test_pipeline_warns_when_words_are_dropped():
    config = WordCloudConfig(canvas_size=(60, 40), rotation_fraction=0.0, seed=3)

    with pytest.warns(CanvasExhaustedWarning):
        result = generate_cloud({"enormous": 10, "tiny": 1}, config=config)

    assert "enormous" in result.dropped


@pytest.mark.parametrize("seed", range(8))
@pytest.mark.parametrize("collision", ["mask", "boxes"])
def test_placed_words_never_overlap(seed, collision):
    rng = np.random.default_rng(seed)
    weights = random_weights(rng, int(rng.integers(5, 40)))
    width, height = int(rng.integers(150, 600)), int(rng.integers(150, 600))
    sizes = map_sizes(weights, scale_range=(6, 60))

    result = layout_words(
        sizes,
        canvas_size=(width, height),
        weights=weights,
        rng=np.random.default_rng(seed),
        rotation_fraction=0.4,
        random_order=bool(seed % 2),
        collision=collision,
    )

    assert overlapping_pairs(result.placed) == []
    for word in result.placed:
        left, top, right, bottom = word.bbox
        assert 0 <= left and 0 <= top and right <= width and bottom <= height
        assert word.rotation in (0, 90)
    assert len(result.placed) + len(result.dropped) == len(weights)


def test_padding_keeps_words_apart():
    sizes = {"alpha": 40.0, "beta": 30.0, "gamma": 20.0, "delta": 20.0}

    result = layout_words(sizes, canvas_size=(500, 400), padding=5, rng=np.random.default_rng(1))

    for index, word in enumerate(result.placed):
        for other in result.placed[index + 1:]:
            left, top, right, bottom = word.bbox
            grown = PlacedWord(word.text, 0, left - 5, top - 5, word.width + 10, word.height + 10, 0, 0)
            assert not grown.overlaps(other)


@pytest.mark.parametrize("seed", range(4))
def test_words_are_placed_in_descending_weight_order(seed):
    rng = np.random.default_rng(seed)
    weights = {f"tok{i}": int(rng.integers(1, 6)) for i in range(25)}
    sizes = map_sizes(weights, scale_range=(8, 30))

    result = layout_words(sizes, canvas_size=(500, 500), weights=weights, rng=np.random.default_rng(seed))

    placed = [word.text for word in result.placed]
    expected = [token for token in sorted(weights, key=lambda t: weights[t], reverse=True) if token in placed]
    assert placed == expected


def test_roomy_canvas_drops_nothing():
    weights = {f"word{i}": 10 - i for i in range(10)}
    sizes = map_sizes(weights, scale_range=(10, 20))
    measurer = ApproximateMeasurer()
    area = sum(measurer.measure(token, size)[0] * measurer.measure(token, size)[1] for token, size in sizes.items())
    assert area * 20 < 1000 * 1000

    result = layout_words(sizes, canvas_size=(1000, 1000), rotation_fraction=0.5, rng=np.random.default_rng(7))

    assert result.dropped == []
    assert len(result.placed) == 10


def test_same_seed_reproduces_layout():
    config = WordCloudConfig(rotation_fraction=0.5, random_order=True, seed=42)
    weights = {f"term{i}": (i * 7) % 13 + 1 for i in range(30)}

    first = generate_cloud(weights, config=config)
    second = generate_cloud(weights, config=config)

    assert first.placed == second.placed
    assert first.dropped == second.dropped


def test_explicit_rng_is_used_instead_of_config_seed():
    config = WordCloudConfig(rotation_fraction=0.5, random_order=True, seed=1)
    weights = {f"term{i}": 30 - i for i in range(20)}

    first = generate_cloud(weights, config=config, rng=np.random.default_rng(99))
    second = generate_cloud(weights, config=config, rng=np.random.default_rng(99))

    assert first.placed == second.placed


def test_mask_and_box_occupancy_agree():
    """Both occupancy structures answer the same overlap question."""
    weights = {f"term{i}": 40 - i for i in range(40)}
    sizes = map_sizes(weights, scale_range=(8, 48))

    masked = layout_words(sizes, canvas_size=(400, 300), collision="mask")
    boxed = layout_words(sizes, canvas_size=(400, 300), collision="boxes")

    assert masked.placed == boxed.placed
    assert masked.dropped == boxed.dropped


def test_rotated_words_swap_their_box():
    result = layout_words({"horizon": 20.0}, canvas_size=(400, 400), rotation_fraction=1.0, rng=np.random.default_rng(0))

    word = result.placed[0]
    width, height = ApproximateMeasurer().measure("horizon", 20.0)
    assert word.rotation == 90
    assert (word.width, word.height) == (height, width)


def test_max_attempts_bounds_the_search():
    sizes = {"first": 30.0, "second": 30.0}

    result = layout_words(sizes, canvas_size=(400, 300), max_attempts=1, rng=np.random.default_rng(0))

    assert [word.text for word in result.placed] == ["first"]
    assert result.dropped == ["second"]


def test_spiral_starts_at_centre_and_is_bounded():
    offsets = list(spiral_offsets(800, 600, theta_step=0.1, spacing=4.0, max_attempts=50))

    assert offsets[0] == (0, 0)
    assert len(offsets) == 50

    unbounded = list(spiral_offsets(100, 100, theta_step=0.5, spacing=10.0, max_attempts=10**9))
    assert 1 < len(unbounded) < 10**9
    assert max(math.hypot(dx, dy) for dx, dy in unbounded) <= math.hypot(100, 100) / 2 + 1


def test_canvas_rejects_bad_arguments():
    with pytest.raises(ValueError):
        Canvas(0, 10)
    with pytest.raises(ValueError):
        Canvas(10, 10, collision="quadtree")


def test_canvas_bounds_and_occupancy():
    canvas = Canvas(100, 50, padding=2)

    assert canvas.is_free(10, 10, 20, 10)
    assert not canvas.is_free(90, 10, 20, 10)
    canvas.occupy(10, 10, 20, 10)
    assert not canvas.is_free(15, 12, 5, 5)
    assert not canvas.is_free(31, 10, 5, 5)
    assert canvas.is_free(32, 10, 5, 5)


def test_placed_word_serialises():
    word = PlacedWord("whale", 3, 10, 20, 30, 12, 0, 14.5, color="#000000")

    assert word.to_dict() == {
        "text": "whale",
        "weight": 3.0,
        "x": 10,
        "y": 20,
        "width": 30,
        "height": 12,
        "rotation": 0,
        "font_size": 14.5,
        "color": "#000000",
        "group": None,
    }
    assert word.center == (25.0, 26.0)
