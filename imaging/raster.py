from dataclasses import dataclass

from PIL import Image

CHANNELS = 4


@dataclass
class Raster:
    """Decoded RGBA pixel buffer (straight alpha, one byte per channel).

    The buffer is not validated against width * height; classifiers must
    tolerate truncated input. Use ``is_complete`` before handing a raster to
    an encoder.
    """

    width: int
    height: int
    pixels: bytearray

    @property
    def pixel_count(self) -> int:
        return self.width * self.height

    @property
    def expected_length(self) -> int:
        return self.pixel_count * CHANNELS

    @property
    def is_complete(self) -> bool:
        return len(self.pixels) >= self.expected_length

    def copy(self) -> "Raster":
        """Independent copy; strategies that mutate pixels work on one of these."""
        return Raster(self.width, self.height, bytearray(self.pixels))

    def to_pillow(self) -> Image.Image:
        return Image.frombytes(
            "RGBA", (self.width, self.height), bytes(self.pixels[: self.expected_length])
        )

    @classmethod
    def from_pillow(cls, img: Image.Image) -> "Raster":
        if img.mode != "RGBA":
            img = img.convert("RGBA")
        return cls(img.width, img.height, bytearray(img.tobytes()))
