import io
from dataclasses import dataclass
from typing import Protocol

from PIL import Image

from exceptions import DecodeError, DecoderUnavailableError
from imaging.codecs import decode_native
from imaging.raster import Raster
from utils.format_detect import SourceKind
from utils.logging import get_logger

logger = get_logger("normalize")


@dataclass
class DecodedPixels:
    """Raw output of an exotic-format decoder."""

    width: int
    height: int
    channel_count: int
    pixels: bytes


class ExoticDecoder(Protocol):
    """Decoder for containers the built-in codec cannot open."""

    def decode(self, data: bytes, kind: SourceKind) -> DecodedPixels: ...


class PillowExoticDecoder:
    """HEIC/HEIF via pillow-heif, TIFF and BMP via Pillow.

    Emits 3-channel output for opaque images and 4-channel output when the
    source carries alpha, mirroring what libheif-style decoders return.
    """

    def decode(self, data: bytes, kind: SourceKind) -> DecodedPixels:
        if kind == SourceKind.HEIC:
            img = self._open_heif(data)
        else:
            img = Image.open(io.BytesIO(data))
            img.load()

        if img.mode in ("RGBA", "LA", "PA") or "transparency" in img.info:
            img = img.convert("RGBA")
        else:
            img = img.convert("RGB")

        return DecodedPixels(
            width=img.width,
            height=img.height,
            channel_count=len(img.getbands()),
            pixels=img.tobytes(),
        )

    def _open_heif(self, data: bytes) -> Image.Image:
        try:
            import pillow_heif
        except ImportError as e:
            raise DecoderUnavailableError(
                "HEIC decoding requires pillow-heif", kind=SourceKind.HEIC.value
            ) from e

        heif_file = pillow_heif.open_heif(data)
        return heif_file.to_pillow()


default_decoder = PillowExoticDecoder()


def normalize(data: bytes, kind: SourceKind, decoder: ExoticDecoder | None = None) -> Raster:
    """Turn an input of a known kind into an RGBA raster.

    Non-native kinds are delegated to the exotic decoder; native kinds go to
    the built-in codec.

    Raises:
        DecoderUnavailableError: If no decoder can handle the kind.
        DecodeError: If decoding fails or yields zero-sized data.
    """
    if kind == SourceKind.NATIVE:
        return decode_native(data)

    decoder = decoder or default_decoder

    try:
        decoded = decoder.decode(data, kind)
    except DecodeError:
        raise
    except Exception as e:
        raise DecodeError(f"Failed to decode {kind.value} file: {e}", kind=kind.value) from e

    if decoded is None or not decoded.pixels or decoded.width <= 0 or decoded.height <= 0:
        raise DecodeError(f"No image data found in {kind.value} file", kind=kind.value)

    raster = Raster(decoded.width, decoded.height, expand_to_rgba(decoded))
    logger.debug(
        f"Normalized {kind.value} input",
        extra={"context": {"kind": kind.value, "width": raster.width, "height": raster.height}},
    )
    return raster


def expand_to_rgba(decoded: DecodedPixels) -> bytearray:
    """Expand decoder output to 4-channel RGBA.

    3-channel input gets alpha = 255; 4-channel input is copied as is.

    Raises:
        DecodeError: On any other channel count or a short pixel buffer.
    """
    pixel_count = decoded.width * decoded.height
    channels = decoded.channel_count

    if channels not in (3, 4):
        raise DecodeError(
            f"Unsupported decode channel count: {channels}",
            channel_count=channels,
        )

    if len(decoded.pixels) < pixel_count * channels:
        raise DecodeError(
            "Decoded pixel buffer is truncated",
            expected=pixel_count * channels,
            actual=len(decoded.pixels),
        )

    if channels == 4:
        return bytearray(decoded.pixels[: pixel_count * 4])

    src = decoded.pixels
    dst = bytearray(b"\xff" * (pixel_count * 4))
    dst[0::4] = src[0 : pixel_count * 3 : 3]
    dst[1::4] = src[1 : pixel_count * 3 : 3]
    dst[2::4] = src[2 : pixel_count * 3 : 3]
    return dst
