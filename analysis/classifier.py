import math

from exceptions import ClassificationError
from imaging.raster import Raster
from schemas import ClassificationResult, ImageType

MAX_SAMPLES = 10_000

GRAPHIC_MAX_COLORS = 5_000
PHOTO_MIN_COLORS = 50_000

TRANSPARENCY_RATIO = 0.01
SIGNIFICANT_TRANSPARENCY_RATIO = 0.05

BLOCK_SIZE = 4
SOLID_BLOCK_RANGE = 5
SOLID_REGION_RATIO = 0.3

EDGE_ROWS = 100
HARD_EDGE_DELTA = 100
SMOOTH_DELTA = 30
HARD_EDGE_RATIO = 0.05
SMOOTH_GRADIENT_RATIO = 0.6


def classify(raster: Raster) -> ClassificationResult:
    """Label a raster as photo, graphic or mixed.

    Classification rules, in order:
    - GRAPHIC: < 5,000 unique colors OR hard edges + > 30% flat blocks
    - PHOTO: > 50,000 unique colors AND smooth gradients
    - MIXED: everything else (conservative, steers toward lossless)

    Deterministic, and safe on truncated buffers: samples or blocks that
    fall outside the buffer simply don't contribute.
    """
    return classify_pixels(raster.pixels, raster.width, raster.height)


def classify_pixels(data: bytes | bytearray, width: int, height: int) -> ClassificationResult:
    if width < 0 or height < 0 or ((width == 0 or height == 0) and len(data) > 0):
        raise ClassificationError(
            f"Invalid raster dimensions {width}x{height}",
            width=width,
            height=height,
            buffer_length=len(data),
        )

    total_pixels = width * height
    unique_colors, transparency_ratio = _sample_colors(data, total_pixels)
    solid_region_ratio = _solid_region_ratio(data, width, height)
    has_hard_edges, has_smooth_gradients = _edge_profile(data, width, height)

    if unique_colors < GRAPHIC_MAX_COLORS or (
        has_hard_edges and solid_region_ratio > SOLID_REGION_RATIO
    ):
        image_type = ImageType.GRAPHIC
    elif unique_colors > PHOTO_MIN_COLORS and has_smooth_gradients:
        image_type = ImageType.PHOTO
    else:
        image_type = ImageType.MIXED

    return ClassificationResult(
        type=image_type,
        unique_colors=unique_colors,
        has_hard_edges=has_hard_edges,
        has_smooth_gradients=has_smooth_gradients,
        has_transparency=transparency_ratio > TRANSPARENCY_RATIO,
        has_significant_transparency=transparency_ratio > SIGNIFICANT_TRANSPARENCY_RATIO,
        solid_region_ratio=solid_region_ratio,
    )


def _sample_colors(data: bytes | bytearray, total_pixels: int) -> tuple[int, float]:
    """Strided sample of at most MAX_SAMPLES pixels.

    Returns (estimated unique colors, transparent fraction of samples).
    Partial samples are scaled by log(total) / log(sampled) since each
    extra sample discovers fewer new colors than the last.
    """
    if total_pixels == 0:
        return 0, 0.0

    sample_size = min(MAX_SAMPLES, total_pixels)
    step = max(1, total_pixels // sample_size)
    sampled = -(-total_pixels // step)

    colors = set()
    transparent = 0
    length = len(data)

    for i in range(0, total_pixels, step):
        idx = i * 4
        if idx + 3 >= length:
            break
        if data[idx + 3] < 255:
            transparent += 1
        colors.add((data[idx] << 16) | (data[idx + 1] << 8) | data[idx + 2])

    raw = len(colors)
    if sampled >= total_pixels:
        unique = raw
    else:
        saturation = math.log(total_pixels) / math.log(sampled)
        unique = min(round(raw * saturation), total_pixels)

    return unique, transparent / sampled


def _solid_region_ratio(data: bytes | bytearray, width: int, height: int) -> float:
    """Fraction of full 4x4 blocks whose summed RGB range is below 5."""
    solid = 0
    total = 0
    length = len(data)

    for y in range(0, height - BLOCK_SIZE + 1, BLOCK_SIZE):
        for x in range(0, width - BLOCK_SIZE + 1, BLOCK_SIZE):
            min_r = min_g = min_b = 255
            max_r = max_g = max_b = 0
            seen = False

            for by in range(BLOCK_SIZE):
                row = ((y + by) * width + x) * 4
                for bx in range(BLOCK_SIZE):
                    idx = row + bx * 4
                    if idx + 2 >= length:
                        continue
                    seen = True
                    r, g, b = data[idx], data[idx + 1], data[idx + 2]
                    if r < min_r:
                        min_r = r
                    if r > max_r:
                        max_r = r
                    if g < min_g:
                        min_g = g
                    if g > max_g:
                        max_g = g
                    if b < min_b:
                        min_b = b
                    if b > max_b:
                        max_b = b

            if not seen:
                continue
            total += 1
            if (max_r - min_r) + (max_g - min_g) + (max_b - min_b) < SOLID_BLOCK_RANGE:
                solid += 1

    return solid / total if total > 0 else 0.0


def _edge_profile(data: bytes | bytearray, width: int, height: int) -> tuple[bool, bool]:
    """Horizontal neighbor deltas on every (height / 100)-th row.

    Returns (has_hard_edges, has_smooth_gradients).
    """
    row_step = max(1, height // EDGE_ROWS)
    length = len(data)
    hard = 0
    smooth = 0

    for y in range(0, height, row_step):
        for x in range(1, width - 1):
            idx = (y * width + x) * 4
            # next pixel's blue channel must be inside the buffer
            if idx + 6 >= length:
                continue
            prev = idx - 4
            nxt = idx + 4

            diff_prev = (
                abs(data[idx] - data[prev])
                + abs(data[idx + 1] - data[prev + 1])
                + abs(data[idx + 2] - data[prev + 2])
            )
            diff_next = (
                abs(data[idx] - data[nxt])
                + abs(data[idx + 1] - data[nxt + 1])
                + abs(data[idx + 2] - data[nxt + 2])
            )
            delta = max(diff_prev, diff_next)

            if delta > HARD_EDGE_DELTA:
                hard += 1
            elif 0 < delta < SMOOTH_DELTA:
                smooth += 1

    sampled_rows = max(1, -(-height // row_step))
    total_samples = max(1, width - 2) * sampled_rows

    return hard / total_samples > HARD_EDGE_RATIO, smooth / total_samples > SMOOTH_GRADIENT_RATIO
