"""Write a palette back onto pixels.

Both passes mutate the raster in place with straight-alpha palette colors
and return the per-pixel palette indices (row-major). Callers that need the
original pixels must hand in a copy.
"""

import numpy as np

from imaging.raster import Raster
from quantization.color import round_half_up
from quantization.histogram import premultiply_pixels
from quantization.median_cut import Palette
from quantization.refine import assign

SMOOTH_VARIANCE = 500


def _straight_palette(palette: Palette) -> np.ndarray:
    return np.array([c.unpremultiply()[:4] for c in palette], dtype=np.uint8).reshape(-1, 4)


def _premultiplied_palette(palette: Palette) -> np.ndarray:
    return np.array([c[:4] for c in palette], dtype=np.int64).reshape(-1, 4)


def remap(raster: Raster, palette: Palette) -> np.ndarray:
    """Replace every pixel with its nearest palette color (no error diffusion)."""
    n = raster.pixel_count
    if n == 0 or not palette:
        return np.zeros(n, dtype=np.int64)

    rgba = np.frombuffer(bytes(raster.pixels[: n * 4]), dtype=np.uint8).reshape(-1, 4)
    premultiplied = premultiply_pixels(rgba)

    # Distances are computed once per distinct color, not once per pixel
    unique_colors, inverse = np.unique(premultiplied, axis=0, return_inverse=True)
    labels, _ = assign(unique_colors, _premultiplied_palette(palette))
    indices = labels[inverse.reshape(-1)]

    raster.pixels[: n * 4] = _straight_palette(palette)[indices].tobytes()
    return indices


def smooth_mask(rgb: np.ndarray, threshold: float = SMOOTH_VARIANCE) -> np.ndarray:
    """True where the 3x3 neighborhood (clipped at borders) has low RGB variance.

    rgb is an (H, W, 3) array; variance is summed over channels.
    """
    h, w = rgb.shape[:2]
    values = rgb.astype(np.float64)
    padded = np.pad(values, ((1, 1), (1, 1), (0, 0)))
    valid = np.pad(np.ones((h, w)), 1)

    total = np.zeros((h, w, 3))
    total_sq = np.zeros((h, w, 3))
    count = np.zeros((h, w))
    for dy in range(3):
        for dx in range(3):
            window = padded[dy : dy + h, dx : dx + w]
            total += window
            total_sq += window * window
            count += valid[dy : dy + h, dx : dx + w]

    mean = total / count[..., None]
    variance = (total_sq / count[..., None] - mean * mean).sum(axis=2)
    return variance < threshold


def dither(raster: Raster, palette: Palette) -> np.ndarray:
    """Selective Floyd-Steinberg: error is only diffused from smooth pixels.

    Textured regions are mapped straight to their nearest color so dithering
    noise is not added where it would be visible as grain.
    """
    w, h = raster.width, raster.height
    n = w * h
    if n == 0 or not palette:
        return np.zeros(n, dtype=np.int64)

    pixels = raster.pixels
    rgba = np.frombuffer(bytes(pixels[: n * 4]), dtype=np.uint8).reshape(h, w, 4)
    smooth = smooth_mask(rgba[..., :3]).tolist()

    premultiplied = _premultiplied_palette(palette)
    straight = _straight_palette(palette).tolist()
    cache: dict[tuple[int, int, int, int], int] = {}
    indices = np.zeros(n, dtype=np.int64)

    current = [0.0] * (w * 3)
    for y in range(h):
        following = [0.0] * (w * 3)
        smooth_row = smooth[y]
        for x in range(w):
            p = (y * w + x) * 4
            e = x * 3

            r = min(255.0, max(0.0, pixels[p] + current[e]))
            g = min(255.0, max(0.0, pixels[p + 1] + current[e + 1]))
            b = min(255.0, max(0.0, pixels[p + 2] + current[e + 2]))
            a = pixels[p + 3]

            key = (
                round_half_up(r * a / 255),
                round_half_up(g * a / 255),
                round_half_up(b * a / 255),
                a,
            )
            index = cache.get(key)
            if index is None:
                diff = premultiplied - np.array(key, dtype=np.int64)
                index = int((diff * diff).sum(axis=1).argmin())
                cache[key] = index

            sr, sg, sb, sa = straight[index]
            pixels[p] = sr
            pixels[p + 1] = sg
            pixels[p + 2] = sb
            pixels[p + 3] = sa
            indices[y * w + x] = index

            if a == 0 or not smooth_row[x]:
                continue

            er, eg, eb = r - sr, g - sg, b - sb
            if x + 1 < w:
                current[e + 3] += er * 7 / 16
                current[e + 4] += eg * 7 / 16
                current[e + 5] += eb * 7 / 16
                following[e + 3] += er / 16
                following[e + 4] += eg / 16
                following[e + 5] += eb / 16
            if x > 0:
                following[e - 3] += er * 3 / 16
                following[e - 2] += eg * 3 / 16
                following[e - 1] += eb * 3 / 16
            following[e] += er * 5 / 16
            following[e + 1] += eg * 5 / 16
            following[e + 2] += eb * 5 / 16

        current = following

    return indices
