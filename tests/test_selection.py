"""Tests for strategy selection and quality tuning."""

import pytest

from conftest import make_classification
from schemas import CompressionOptions, ImageType, OutputFormat
from strategies.base import StrategyKind
from strategies.selection import select_strategies, tuned_quality


def _photo(**overrides):
    fields = {
        "type": ImageType.PHOTO,
        "unique_colors": 60_000,
        "has_hard_edges": False,
        "has_smooth_gradients": True,
        "solid_region_ratio": 0.0,
    }
    fields.update(overrides)
    return make_classification(**fields)


# --- select_strategies ---


def test_graphic_gets_palette_and_webp():
    kinds = select_strategies(make_classification())
    assert kinds == [StrategyKind.PALETTE_PNG, StrategyKind.WEBP]


def test_mixed_gets_palette_and_webp():
    kinds = select_strategies(make_classification(type=ImageType.MIXED))
    assert kinds == [StrategyKind.PALETTE_PNG, StrategyKind.WEBP]


def test_opaque_photo_gets_webp_and_jpeg():
    assert select_strategies(_photo()) == [StrategyKind.WEBP, StrategyKind.JPEG]


def test_transparent_photo_skips_jpeg():
    kinds = select_strategies(
        _photo(has_transparency=True, has_significant_transparency=True)
    )
    assert kinds == [StrategyKind.WEBP]


def test_minor_transparency_photo_keeps_jpeg():
    kinds = select_strategies(_photo(has_transparency=True))
    assert StrategyKind.JPEG in kinds


@pytest.mark.parametrize(
    "fmt,expected",
    [
        (OutputFormat.PNG, StrategyKind.PALETTE_PNG),
        (OutputFormat.WEBP, StrategyKind.WEBP),
        (OutputFormat.JPEG, StrategyKind.JPEG),
    ],
)
def test_forced_format_restricts_selection(fmt, expected):
    kinds = select_strategies(_photo(has_significant_transparency=True), CompressionOptions(format=fmt))
    assert kinds == [expected]


def test_auto_format_uses_classification():
    kinds = select_strategies(make_classification(), CompressionOptions(format=OutputFormat.AUTO))
    assert StrategyKind.PALETTE_PNG in kinds


# --- tuned_quality ---


def test_quality_complex_photo_hard_edges():
    assert tuned_quality(StrategyKind.WEBP, _photo(has_hard_edges=True)) == 82


def test_quality_complex_photo_many_colors():
    assert tuned_quality(StrategyKind.WEBP, _photo(unique_colors=150_000)) == 82


def test_quality_simple_photo():
    assert tuned_quality(StrategyKind.WEBP, _photo()) == 85


def test_quality_graphic():
    assert tuned_quality(StrategyKind.WEBP, make_classification()) == 90


def test_quality_jpeg_default():
    assert tuned_quality(StrategyKind.JPEG, _photo()) == 85


def test_quality_override():
    options = CompressionOptions(quality=40)
    assert tuned_quality(StrategyKind.WEBP, _photo(), options) == 40
    assert tuned_quality(StrategyKind.JPEG, _photo(), options) == 40


def test_palette_has_no_quality():
    assert tuned_quality(StrategyKind.PALETTE_PNG, make_classification()) is None
