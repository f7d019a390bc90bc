import numpy as np

from quantization.color import PremultipliedColor, StraightColor, squared_distance
from quantization.histogram import Histogram
from quantization.median_cut import Palette

# Rows per distance block: keeps the (rows, K, 4) intermediate near 32 MB at K=256
_BLOCK_ELEMENTS = 1_048_576


def assign(colors: np.ndarray, palette: np.ndarray) -> tuple[np.ndarray, np.ndarray]:
    """Nearest palette index and squared distance for each row of colors.

    Both arrays are (N, 4) / (K, 4) integer RGBA in premultiplied space.
    Ties resolve to the lowest palette index.
    """
    n = len(colors)
    labels = np.zeros(n, dtype=np.int64)
    distances = np.zeros(n, dtype=np.int64)
    if n == 0 or len(palette) == 0:
        return labels, distances

    rows = max(1, _BLOCK_ELEMENTS // len(palette))
    for start in range(0, n, rows):
        block = colors[start : start + rows]
        diff = block[:, None, :] - palette[None, :, :]
        dist = (diff * diff).sum(axis=2)
        nearest = dist.argmin(axis=1)
        labels[start : start + rows] = nearest
        distances[start : start + rows] = dist[np.arange(len(block)), nearest]

    return labels, distances


def _palette_array(palette: Palette) -> np.ndarray:
    return np.array([c[:4] for c in palette], dtype=np.int64).reshape(-1, 4)


def refine(histogram: Histogram, palette: Palette, max_iterations: int = 5) -> Palette:
    """Lloyd relaxation of a palette against its histogram.

    Each iteration assigns every histogram color to its nearest entry and moves
    each entry to the population-weighted centroid of its cluster. Entries
    with an empty cluster stay put. Stops when nothing moves or after
    max_iterations; no randomness, so the result depends only on the inputs.
    """
    if not palette or len(histogram) == 0:
        return list(palette)

    colors, counts = histogram.to_arrays()
    current = _palette_array(palette)
    populations = np.array([c.count for c in palette], dtype=np.int64)
    k = len(current)

    for _ in range(max_iterations):
        labels, _ = assign(colors, current)

        sums = np.zeros((k, 4), dtype=np.int64)
        np.add.at(sums, labels, colors * counts[:, None])
        totals = np.zeros(k, dtype=np.int64)
        np.add.at(totals, labels, counts)

        occupied = totals > 0
        updated = current.copy()
        weights = totals[occupied][:, None]
        updated[occupied] = (2 * sums[occupied] + weights) // (2 * weights)
        populations = np.where(occupied, totals, populations)

        moved = not np.array_equal(updated, current)
        current = updated
        if not moved:
            break

    return [
        PremultipliedColor(int(r), int(g), int(b), int(a), int(count))
        for (r, g, b, a), count in zip(current.tolist(), populations.tolist())
    ]


def quantization_error(histogram: Histogram, palette: Palette) -> int:
    """Population-weighted total squared distance to the nearest palette entry."""
    colors, counts = histogram.to_arrays()
    _, distances = assign(colors, _palette_array(palette))
    return int((distances * counts).sum())


def nearest_index(color: StraightColor, palette: Palette) -> int:
    """Index of the palette entry closest to a straight-alpha color.

    The palette is premultiplied, so the query is converted first. Ties go to
    the first entry.
    """
    query = color.premultiply()
    best = 0
    best_distance = None
    for i, entry in enumerate(palette):
        distance = squared_distance(query, entry)
        if best_distance is None or distance < best_distance:
            best_distance = distance
            best = i
    return best
