import io
import random

import pytest
from PIL import Image, ImageDraw

from imaging.raster import Raster
from schemas import ClassificationResult, ImageType


def encode_image(img: Image.Image, fmt: str = "PNG", **kwargs) -> bytes:
    buf = io.BytesIO()
    img.save(buf, format=fmt, **kwargs)
    return buf.getvalue()


def raster_from(img: Image.Image) -> Raster:
    return Raster.from_pillow(img)


def _channel(value: float) -> int:
    return max(0, min(255, int(value)))


def photo_like(w: int, h: int, seed: int = 42) -> Image.Image:
    """Diagonal color ramps with gaussian grain; nearly every pixel unique."""
    rng = random.Random(seed)
    data = bytearray()
    for y in range(h):
        for x in range(w):
            base = (x / w * 200, y / h * 180, (x + y) / (w + h) * 160)
            data.extend(_channel(v + rng.gauss(0, 25)) for v in base)
    return Image.frombytes("RGB", (w, h), bytes(data))


def gradient(w: int, h: int) -> Image.Image:
    """Horizontal RGB ramp: many colors, smooth neighbors, no hard edges."""
    data = bytearray()
    for y in range(h):
        for x in range(w):
            data.extend(((x * 255) // max(1, w - 1), (y * 255) // max(1, h - 1), 128))
    return Image.frombytes("RGB", (w, h), bytes(data))


LOGO_COLORS = ((20, 90, 200, 255), (220, 40, 40, 255), (250, 200, 0, 255), (30, 160, 70, 255))


def graphic_like(w: int, h: int, seed: int = 42) -> Image.Image:
    """A dozen opaque rectangles in logo colors on white."""
    rng = random.Random(seed)
    img = Image.new("RGBA", (w, h), (255, 255, 255, 255))
    draw = ImageDraw.Draw(img)
    for _ in range(12):
        left, top = rng.randint(0, w - 2), rng.randint(0, h - 2)
        box = [(left, top), (rng.randint(left + 1, w), rng.randint(top + 1, h))]
        draw.rectangle(box, fill=rng.choice(LOGO_COLORS))
    return img


def make_classification(**overrides) -> ClassificationResult:
    fields = {
        "type": ImageType.GRAPHIC,
        "unique_colors": 100,
        "has_hard_edges": True,
        "has_smooth_gradients": False,
        "has_transparency": False,
        "has_significant_transparency": False,
        "solid_region_ratio": 0.9,
    }
    fields.update(overrides)
    return ClassificationResult(**fields)


@pytest.fixture
def graphic_image():
    return graphic_like(64, 64)


@pytest.fixture
def photo_image():
    return photo_like(96, 96)


@pytest.fixture
def gradient_image():
    return gradient(128, 128)


@pytest.fixture
def sample_png(graphic_image):
    return encode_image(graphic_image, "PNG")


@pytest.fixture
def sample_jpeg(photo_image):
    return encode_image(photo_image, "JPEG", quality=95)


@pytest.fixture
def sample_bmp(graphic_image):
    return encode_image(graphic_image.convert("RGB"), "BMP")


@pytest.fixture
def sample_tiff(graphic_image):
    return encode_image(graphic_image.convert("RGB"), "TIFF")


@pytest.fixture
def gradient_png(gradient_image):
    """Uncompressed-ish PNG with far more than 256 colors."""
    return encode_image(gradient_image, "PNG", compress_level=0)
