"""Palette construction by modified median cut.

Boxes are split by population until 75% of the target count exists, then by
volume * population so sparse boxes spanning a large part of the color cube
still get divided.
"""

from quantization.color import PremultipliedColor
from quantization.histogram import Histogram

Palette = list[PremultipliedColor]

POPULATION_PHASE = 0.75

_CHANNELS = {"r": 0, "g": 1, "b": 2}


class ColorBox:
    """A partition of histogram colors with per-channel bounds."""

    __slots__ = ("colors", "population", "r_min", "r_max", "g_min", "g_max", "b_min", "b_max")

    def __init__(self, colors: list[PremultipliedColor]):
        self.colors = colors
        self.population = sum(c.count for c in colors)
        self.r_min = min(c.r for c in colors)
        self.r_max = max(c.r for c in colors)
        self.g_min = min(c.g for c in colors)
        self.g_max = max(c.g for c in colors)
        self.b_min = min(c.b for c in colors)
        self.b_max = max(c.b for c in colors)

    @property
    def volume(self) -> int:
        return (
            (self.r_max - self.r_min + 1)
            * (self.g_max - self.g_min + 1)
            * (self.b_max - self.b_min + 1)
        )

    def longest_channel(self) -> str:
        r_range = self.r_max - self.r_min
        g_range = self.g_max - self.g_min
        b_range = self.b_max - self.b_min

        if r_range >= g_range and r_range >= b_range:
            return "r"
        if g_range >= b_range:
            return "g"
        return "b"

    def split(self) -> tuple["ColorBox", "ColorBox"]:
        """Split at the population-weighted median of the longest channel.

        Both halves always keep at least one color.
        """
        channel = _CHANNELS[self.longest_channel()]
        colors = sorted(self.colors, key=lambda c: c[channel])

        half = self.population / 2
        running = 0
        median = 0
        for i, color in enumerate(colors):
            running += color.count
            if running >= half:
                median = i
                break

        median = min(median, len(colors) - 2)
        return ColorBox(colors[: median + 1]), ColorBox(colors[median + 1 :])

    def average(self) -> PremultipliedColor:
        """Population-weighted mean color, rounded half up."""
        pop = self.population
        if pop == 0:
            return PremultipliedColor(0, 0, 0, 255, 0)

        r_sum = g_sum = b_sum = a_sum = 0
        for c in self.colors:
            r_sum += c.r * c.count
            g_sum += c.g * c.count
            b_sum += c.b * c.count
            a_sum += c.a * c.count

        return PremultipliedColor(
            (2 * r_sum + pop) // (2 * pop),
            (2 * g_sum + pop) // (2 * pop),
            (2 * b_sum + pop) // (2 * pop),
            (2 * a_sum + pop) // (2 * pop),
            pop,
        )


def reduce(histogram: Histogram, max_colors: int) -> Palette:
    """Reduce a histogram to at most max_colors representative colors.

    A histogram that already fits is returned as its own palette.
    """
    if max_colors < 1:
        raise ValueError(f"max_colors must be >= 1, got {max_colors}")

    colors = histogram.colors
    if len(colors) <= max_colors:
        return colors

    boxes = [ColorBox(colors)]
    phase_limit = max_colors * POPULATION_PHASE

    while len(boxes) < max_colors:
        by_population = len(boxes) < phase_limit

        best_index = -1
        best_score = 0
        for i, box in enumerate(boxes):
            if len(box.colors) <= 1:
                continue
            score = box.population if by_population else box.volume * box.population
            if score > best_score:
                best_score = score
                best_index = i

        if best_index < 0:
            break

        left, right = boxes[best_index].split()
        boxes[best_index : best_index + 1] = [left, right]

    return [box.average() for box in boxes]
