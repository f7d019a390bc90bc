"""Tests for histogram, median cut, refinement and nearest-color lookup."""

import random

import pytest

from conftest import gradient, raster_from
from imaging.raster import Raster
from quantization.color import PremultipliedColor, StraightColor, squared_distance
from quantization.histogram import Histogram, build_histogram
from quantization.median_cut import ColorBox, reduce
from quantization.refine import nearest_index, quantization_error, refine


def _random_histogram(n: int, seed: int = 7) -> Histogram:
    rng = random.Random(seed)
    histogram = Histogram()
    while len(histogram) < n:
        histogram.add(
            PremultipliedColor(
                rng.randrange(256), rng.randrange(256), rng.randrange(256), 255, rng.randint(1, 50)
            )
        )
    return histogram


# --- color ---


def test_premultiply_rounds_half_up():
    assert StraightColor(255, 128, 1, 128).premultiply()[:4] == (128, 64, 1, 128)


def test_premultiply_transparent_is_black():
    assert StraightColor(200, 100, 50, 0).premultiply()[:4] == (0, 0, 0, 0)


def test_unpremultiply_transparent():
    assert PremultipliedColor(0, 0, 0, 0).unpremultiply()[:4] == (0, 0, 0, 0)


def test_unpremultiply_opaque_round_trip():
    color = StraightColor(12, 34, 56, 255)
    assert color.premultiply().unpremultiply()[:4] == (12, 34, 56, 255)


def test_squared_distance_includes_alpha():
    assert squared_distance(PremultipliedColor(0, 0, 0, 0), PremultipliedColor(1, 2, 3, 4)) == 30


# --- histogram ---


def test_histogram_counts_pixels():
    pixels = bytearray([255, 0, 0, 255] * 3 + [0, 0, 255, 255])
    histogram = build_histogram(Raster(4, 1, pixels))
    assert len(histogram) == 2
    assert histogram.entries[(255, 0, 0, 255)].count == 3
    assert histogram.total_count == 4


def test_histogram_merges_transparent_pixels():
    """Fully transparent pixels premultiply to one key whatever their RGB."""
    pixels = bytearray([255, 0, 0, 0, 0, 255, 0, 0])
    histogram = build_histogram(Raster(2, 1, pixels))
    assert len(histogram) == 1
    assert (0, 0, 0, 0) in histogram


def test_histogram_premultiplies_with_half_up_rounding():
    histogram = build_histogram(Raster(1, 1, bytearray([255, 1, 128, 128])))
    assert list(histogram.entries) == [(128, 1, 64, 128)]


def test_histogram_of_empty_raster():
    assert len(build_histogram(Raster(0, 0, bytearray()))) == 0


# --- median cut ---


def test_reduce_caps_palette_size():
    histogram = _random_histogram(1000)
    palette = reduce(histogram, 64)
    assert len(palette) == 64
    assert all(c.count > 0 for c in palette)
    assert sum(c.count for c in palette) == histogram.total_count


def test_reduce_small_histogram_unchanged():
    histogram = _random_histogram(10)
    palette = reduce(histogram, 256)
    assert sorted(palette) == sorted(histogram.colors)


def test_reduce_to_single_color_is_weighted_average():
    histogram = Histogram()
    histogram.add(PremultipliedColor(0, 0, 0, 255, 3))
    histogram.add(PremultipliedColor(100, 100, 100, 255, 1))
    assert reduce(histogram, 1) == [PremultipliedColor(25, 25, 25, 255, 4)]


def test_reduce_rejects_zero_colors():
    with pytest.raises(ValueError):
        reduce(_random_histogram(5), 0)


def test_reduce_is_deterministic():
    histogram = _random_histogram(500)
    assert reduce(histogram, 32) == reduce(histogram, 32)


def test_box_split_keeps_both_halves_non_empty():
    """One dominant color would put the median on the last entry."""
    box = ColorBox(
        [PremultipliedColor(0, 0, 0, 255, 1), PremultipliedColor(200, 0, 0, 255, 1000)]
    )
    left, right = box.split()
    assert len(left.colors) == 1
    assert len(right.colors) == 1


def test_box_longest_channel():
    box = ColorBox(
        [PremultipliedColor(0, 0, 0, 255), PremultipliedColor(10, 200, 30, 255)]
    )
    assert box.longest_channel() == "g"


# --- refine ---


def test_refine_never_increases_error():
    histogram = _random_histogram(800)
    palette = reduce(histogram, 16)

    errors = [quantization_error(histogram, palette)]
    for iterations in range(1, 6):
        errors.append(quantization_error(histogram, refine(histogram, palette, iterations)))

    for before, after in zip(errors, errors[1:]):
        assert after <= before


def test_refine_keeps_palette_size():
    histogram = build_histogram(raster_from(gradient(64, 64)))
    palette = refine(histogram, reduce(histogram, 32))
    assert len(palette) == 32
    assert all(c.count > 0 for c in palette)


def test_refine_converged_palette_is_stable():
    histogram = Histogram()
    histogram.add(PremultipliedColor(10, 10, 10, 255, 5))
    histogram.add(PremultipliedColor(200, 200, 200, 255, 5))
    palette = reduce(histogram, 2)
    assert refine(histogram, palette) == palette


def test_refine_empty_palette():
    assert refine(_random_histogram(5), []) == []


# --- nearest_index ---


def test_nearest_index_exact_match():
    palette = [PremultipliedColor(0, 0, 0, 255), PremultipliedColor(255, 255, 255, 255)]
    assert nearest_index(StraightColor(250, 250, 250, 255), palette) == 1


def test_nearest_index_tie_goes_to_first():
    palette = [PremultipliedColor(0, 0, 0, 255), PremultipliedColor(20, 0, 0, 255)]
    assert nearest_index(StraightColor(10, 0, 0, 255), palette) == 0


def test_nearest_index_premultiplies_query():
    """Half-transparent white is closer to premultiplied (128,128,128,128)."""
    palette = [
        PremultipliedColor(255, 255, 255, 255),
        PremultipliedColor(128, 128, 128, 128),
    ]
    assert nearest_index(StraightColor(255, 255, 255, 128), palette) == 1
