import io
from enum import Enum

from PIL import Image, UnidentifiedImageError

from config import settings
from exceptions import DecodeError, EncodeError
from imaging.raster import Raster


class Codec(str, Enum):
    PNG = "png"
    WEBP = "webp"
    JPEG = "jpeg"


def decode_native(data: bytes) -> Raster:
    """Decode a natively supported container (PNG, JPEG, WebP, GIF, ...) to RGBA.

    Only the first frame of animated inputs is used.
    """
    try:
        img = Image.open(io.BytesIO(data))
        img.load()
    except (
        UnidentifiedImageError,
        Image.DecompressionBombError,
        OSError,
        SyntaxError,
        ValueError,
    ) as e:
        raise DecodeError(f"Failed to decode image: {e}") from e

    if img.width == 0 or img.height == 0:
        raise DecodeError("Decoded image has zero size")

    return Raster.from_pillow(img)


def encode(raster: Raster, codec: Codec, quality: int | None = None, lossless: bool = False) -> bytes:
    """Encode a raster with one codec.

    Pure function of (raster, options). Any failure, including an empty
    result, raises EncodeError.
    """
    if not raster.is_complete:
        raise EncodeError(
            "Raster buffer is shorter than width * height * 4",
            codec=codec.value,
        )

    img = raster.to_pillow()
    buf = io.BytesIO()
    try:
        if codec == Codec.JPEG:
            _save_jpeg(img, buf, quality)
        elif codec == Codec.WEBP:
            _save_webp(img, buf, quality, lossless)
        else:
            img.save(buf, format="PNG", optimize=True)
    except (OSError, ValueError, KeyError) as e:
        raise EncodeError(f"{codec.value} encode failed: {e}", codec=codec.value) from e

    output = buf.getvalue()
    if not output:
        raise EncodeError(f"{codec.value} encoder returned no data", codec=codec.value)
    return output


def _save_jpeg(img: Image.Image, buf: io.BytesIO, quality: int | None) -> None:
    """JPEG has no alpha channel: flatten onto white."""
    if img.getchannel("A").getextrema() != (255, 255):
        background = Image.new("RGB", img.size, (255, 255, 255))
        background.paste(img, mask=img.getchannel("A"))
        img = background
    else:
        img = img.convert("RGB")

    img.save(
        buf,
        format="JPEG",
        quality=quality if quality is not None else 85,
        optimize=True,
        progressive=True,
    )


def _save_webp(img: Image.Image, buf: io.BytesIO, quality: int | None, lossless: bool) -> None:
    save_kwargs = {
        "format": "WEBP",
        "quality": quality if quality is not None else 80,
        "method": settings.webp_method,
    }
    if lossless:
        save_kwargs["lossless"] = True
    if img.getchannel("A").getextrema() == (255, 255):
        img = img.convert("RGB")
    img.save(buf, **save_kwargs)
