import importlib.util
import io
from functools import lru_cache

from PIL import Image, features

# Extension modules probed by import name; the key is what callers look up.
OPTIONAL_MODULES = {"oxipng": "oxipng", "pillow_heif": "pillow_heif"}


@lru_cache(maxsize=1)
def check_codecs() -> dict[str, bool]:
    """Check which encoders and decoders this interpreter can reach.

    Cached: availability does not change within a process.
    """
    available = {
        "webp": features.check("webp"),
        "jpeg": _pillow_writes("JPEG"),
        "png": _pillow_writes("PNG"),
    }
    for key, module in OPTIONAL_MODULES.items():
        available[key] = importlib.util.find_spec(module) is not None
    return available


def _pillow_writes(fmt: str) -> bool:
    try:
        Image.new("RGB", (1, 1)).save(io.BytesIO(), format=fmt)
    except (KeyError, OSError):
        return False
    else:
        return True
