import numpy as np

from imaging.raster import Raster
from quantization.color import PremultipliedColor


class Histogram:
    """Premultiplied (r, g, b, a) key -> PremultipliedColor with pixel count.

    Built once per quantization pass and discarded after palette extraction.
    """

    def __init__(self, entries: dict[tuple[int, int, int, int], PremultipliedColor] | None = None):
        self.entries = entries if entries is not None else {}

    def __len__(self) -> int:
        return len(self.entries)

    def __contains__(self, key) -> bool:
        return key in self.entries

    @property
    def colors(self) -> list[PremultipliedColor]:
        return list(self.entries.values())

    @property
    def total_count(self) -> int:
        return sum(c.count for c in self.entries.values())

    def add(self, color: PremultipliedColor) -> None:
        existing = self.entries.get(color.key)
        if existing is None:
            self.entries[color.key] = color
        else:
            self.entries[color.key] = existing._replace(count=existing.count + color.count)

    def to_arrays(self) -> tuple[np.ndarray, np.ndarray]:
        """(N, 4) int64 channel array and (N,) int64 count array."""
        if not self.entries:
            return np.zeros((0, 4), dtype=np.int64), np.zeros(0, dtype=np.int64)
        table = np.array(list(self.entries.values()), dtype=np.int64)
        return table[:, :4], table[:, 4]


def premultiply_pixels(rgba: np.ndarray) -> np.ndarray:
    """Premultiply an (N, 4) uint8 array, rounding half up, in integer math.

    floor(c * a / 255 + 1/2) == (2 * c * a + 255) // 510
    """
    wide = rgba.astype(np.int64)
    alpha = wide[:, 3:4]
    out = wide.copy()
    out[:, :3] = (2 * wide[:, :3] * alpha + 255) // 510
    return out


def build_histogram(raster: Raster) -> Histogram:
    """Premultiply every pixel and count occurrences of each (r, g, b, a)."""
    usable = min(len(raster.pixels), raster.expected_length) // 4 * 4
    if usable == 0:
        return Histogram()

    rgba = np.frombuffer(bytes(raster.pixels[:usable]), dtype=np.uint8).reshape(-1, 4)
    premultiplied = premultiply_pixels(rgba)

    keys = (
        (premultiplied[:, 0] << 24)
        | (premultiplied[:, 1] << 16)
        | (premultiplied[:, 2] << 8)
        | premultiplied[:, 3]
    )
    unique_keys, counts = np.unique(keys, return_counts=True)

    entries = {}
    for key, count in zip(unique_keys.tolist(), counts.tolist()):
        r, g, b, a = (key >> 24) & 0xFF, (key >> 16) & 0xFF, (key >> 8) & 0xFF, key & 0xFF
        entries[(r, g, b, a)] = PremultipliedColor(r, g, b, a, count)
    return Histogram(entries)
