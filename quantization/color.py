"""Color values tagged with their alpha space.

Straight and premultiplied colors are distinct types. Distance and
averaging are only defined on PremultipliedColor, so a straight color has to
be converted explicitly before it can meet a palette.
"""

from typing import NamedTuple


def round_half_up(value: float) -> int:
    return int(value + 0.5)


class StraightColor(NamedTuple):
    r: int
    g: int
    b: int
    a: int
    count: int = 1

    def premultiply(self) -> "PremultipliedColor":
        alpha = self.a / 255
        return PremultipliedColor(
            round_half_up(self.r * alpha),
            round_half_up(self.g * alpha),
            round_half_up(self.b * alpha),
            self.a,
            self.count,
        )


class PremultipliedColor(NamedTuple):
    r: int
    g: int
    b: int
    a: int
    count: int = 1

    def unpremultiply(self) -> StraightColor:
        if self.a == 0:
            return StraightColor(0, 0, 0, 0, self.count)
        alpha = self.a / 255
        return StraightColor(
            min(255, round_half_up(self.r / alpha)),
            min(255, round_half_up(self.g / alpha)),
            min(255, round_half_up(self.b / alpha)),
            self.a,
            self.count,
        )

    @property
    def key(self) -> tuple[int, int, int, int]:
        return self.r, self.g, self.b, self.a


def squared_distance(c1: PremultipliedColor, c2: PremultipliedColor) -> int:
    """Squared Euclidean RGBA distance. No square root: only used for ordering."""
    dr = c1.r - c2.r
    dg = c1.g - c2.g
    db = c1.b - c2.b
    da = c1.a - c2.a
    return dr * dr + dg * dg + db * db + da * da
