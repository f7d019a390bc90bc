from schemas import ClassificationResult, CompressionOptions, ImageType, OutputFormat
from strategies.base import StrategyKind

# Photos with hard edges or this many colors get the lower WebP quality
HIGH_COMPLEXITY_COLORS = 100_000

WEBP_QUALITY_COMPLEX_PHOTO = 82
WEBP_QUALITY_PHOTO = 85
WEBP_QUALITY_GRAPHIC = 90
JPEG_QUALITY = 85

_FORCED = {
    OutputFormat.PNG: StrategyKind.PALETTE_PNG,
    OutputFormat.WEBP: StrategyKind.WEBP,
    OutputFormat.JPEG: StrategyKind.JPEG,
}


def select_strategies(
    classification: ClassificationResult,
    options: CompressionOptions | None = None,
) -> list[StrategyKind]:
    """Strategies worth trying for this image, in run order.

    A forced output format restricts the list to that one strategy.
    """
    options = options or CompressionOptions()
    if options.format in _FORCED:
        return [_FORCED[options.format]]

    kinds = []
    if classification.type != ImageType.PHOTO:
        kinds.append(StrategyKind.PALETTE_PNG)
    kinds.append(StrategyKind.WEBP)
    if classification.type == ImageType.PHOTO and not classification.has_significant_transparency:
        kinds.append(StrategyKind.JPEG)
    return kinds


def tuned_quality(
    kind: StrategyKind,
    classification: ClassificationResult,
    options: CompressionOptions | None = None,
) -> int | None:
    """Starting quality for a strategy. None for the lossless palette path."""
    if kind == StrategyKind.PALETTE_PNG:
        return None
    if options is not None and options.quality is not None:
        return options.quality

    if kind == StrategyKind.JPEG:
        return JPEG_QUALITY

    if classification.type == ImageType.PHOTO:
        if classification.has_hard_edges or classification.unique_colors > HIGH_COMPLEXITY_COLORS:
            return WEBP_QUALITY_COMPLEX_PHOTO
        return WEBP_QUALITY_PHOTO
    return WEBP_QUALITY_GRAPHIC
