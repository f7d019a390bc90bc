import struct
from enum import Enum

from exceptions import UnsupportedFormatError


class ImageFormat(str, Enum):
    PNG = "png"
    JPEG = "jpeg"
    WEBP = "webp"
    GIF = "gif"
    AVIF = "avif"
    HEIC = "heic"
    TIFF = "tiff"
    BMP = "bmp"


class SourceKind(str, Enum):
    """How an input must be decoded before it reaches the core."""

    HEIC = "heic"
    TIFF = "tiff"
    BMP = "bmp"
    NATIVE = "native"


_KIND_MIME_TYPES = {
    SourceKind.HEIC: ("image/heic", "image/heif"),
    SourceKind.TIFF: ("image/tiff", "image/x-tiff"),
    SourceKind.BMP: ("image/bmp", "image/x-bmp", "image/x-ms-bmp"),
}

_KIND_EXTENSIONS = {
    SourceKind.HEIC: (".heic", ".heif"),
    SourceKind.TIFF: (".tiff", ".tif"),
    SourceKind.BMP: (".bmp",),
}

_HEIC_BRANDS = (b"heic", b"mif1", b"msf1")
_TIFF_MAGIC = (b"II\x2a\x00", b"MM\x00\x2a")

_EXTENSION_FORMATS = {
    "png": ImageFormat.PNG,
    "jpg": ImageFormat.JPEG,
    "jpeg": ImageFormat.JPEG,
    "webp": ImageFormat.WEBP,
    "gif": ImageFormat.GIF,
    "avif": ImageFormat.AVIF,
    "heic": ImageFormat.HEIC,
    "heif": ImageFormat.HEIC,
    "tif": ImageFormat.TIFF,
    "tiff": ImageFormat.TIFF,
    "bmp": ImageFormat.BMP,
}


def identify(data: bytes, mime_hint: str = "", filename: str = "") -> SourceKind:
    """Decide which decoder an input needs.

    Each exotic kind is checked in turn (HEIC, TIFF, BMP) against the MIME
    hint, then the filename extension, then magic bytes. Anything left is
    handed to the built-in codec. The input buffer is only read.
    """
    for kind in (SourceKind.HEIC, SourceKind.TIFF, SourceKind.BMP):
        if _matches_kind(kind, data, mime_hint, filename):
            return kind
    return SourceKind.NATIVE


def _matches_kind(kind: SourceKind, data: bytes, mime_hint: str, filename: str) -> bool:
    mime = (mime_hint or "").strip().lower()
    if mime in _KIND_MIME_TYPES[kind]:
        return True

    name = (filename or "").lower()
    if name.endswith(_KIND_EXTENSIONS[kind]):
        return True

    if kind == SourceKind.HEIC:
        return is_heic(data)
    if kind == SourceKind.TIFF:
        return data[:4] in _TIFF_MAGIC
    return data[:2] == b"BM"


def is_heic(data: bytes) -> bool:
    """True when the buffer opens with an ftyp box (size, then b"ftyp")
    whose major brand at bytes 8-11 is a HEIF still-image brand.
    """
    if len(data) < 12 or data[4:8] != b"ftyp":
        return False
    return data[8:12] in _HEIC_BRANDS


def detect_format(data: bytes, mime_hint: str = "", filename: str = "") -> ImageFormat:
    """Detect the concrete container of an input.

    Magic bytes win; the MIME hint subtype and then the filename extension
    are only consulted when no signature matches.

    Raises:
        UnsupportedFormatError: If nothing identifies the format.
    """
    fmt = _detect_magic(data)
    if fmt is not None:
        return fmt

    subtype = (mime_hint or "").strip().lower().rpartition("/")[2]
    if subtype.startswith("x-"):
        subtype = subtype[2:]
    if subtype == "ms-bmp":
        subtype = "bmp"
    if subtype in _EXTENSION_FORMATS:
        return _EXTENSION_FORMATS[subtype]

    extension = (filename or "").lower().rpartition(".")[2]
    if extension in _EXTENSION_FORMATS:
        return _EXTENSION_FORMATS[extension]

    raise UnsupportedFormatError(
        "Unrecognized file format",
        detected_bytes=data[:16].hex(),
    )


_SIGNATURES = (
    (0, b"\x89PNG\r\n\x1a\n", ImageFormat.PNG),
    (0, b"\xff\xd8\xff", ImageFormat.JPEG),
    (0, b"GIF87a", ImageFormat.GIF),
    (0, b"GIF89a", ImageFormat.GIF),
    (0, b"BM", ImageFormat.BMP),
    (0, _TIFF_MAGIC[0], ImageFormat.TIFF),
    (0, _TIFF_MAGIC[1], ImageFormat.TIFF),
)

_BMFF_BRANDS = {
    b"avif": ImageFormat.AVIF,
    b"avis": ImageFormat.AVIF,
    b"heic": ImageFormat.HEIC,
    b"heix": ImageFormat.HEIC,
    b"mif1": ImageFormat.HEIC,
    b"msf1": ImageFormat.HEIC,
}


def _detect_magic(data: bytes) -> ImageFormat | None:
    if len(data) < 4:
        return None

    if data[:4] == b"RIFF" and data[8:12] == b"WEBP":
        return ImageFormat.WEBP
    for offset, signature, fmt in _SIGNATURES:
        if data[offset : offset + len(signature)] == signature:
            return fmt

    if data[4:8] == b"ftyp":
        return _brand_format(data)
    return None


def _brand_format(data: bytes) -> ImageFormat | None:
    """Map an ftyp box to AVIF or HEIC.

    The major brand sits right after the box type; if it is not one we know,
    the compatible brands (from byte 16 to the end of the box) are scanned
    in order.
    """
    if len(data) < 12:
        return None
    if data[8:12] in _BMFF_BRANDS:
        return _BMFF_BRANDS[data[8:12]]

    (declared,) = struct.unpack_from(">I", data)
    end = min(declared, len(data))
    for start in range(16, end - 3, 4):
        brand = data[start : start + 4]
        if brand in _BMFF_BRANDS:
            return _BMFF_BRANDS[brand]
    return None
