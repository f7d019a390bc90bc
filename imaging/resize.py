from PIL import Image

from imaging.raster import Raster


def fit_within(
    width: int,
    height: int,
    target_width: int | None,
    target_height: int | None,
) -> tuple[int, int] | None:
    """Dimensions that fit inside the target box with the aspect ratio kept.

    A missing target side falls back to the source side. Returns None when
    no target is given or the image already fits; images are never enlarged.
    """
    if not target_width and not target_height:
        return None

    box_w = target_width or width
    box_h = target_height or height
    if width <= box_w and height <= box_h:
        return None

    scale = min(box_w / width, box_h / height)
    return max(1, round(width * scale)), max(1, round(height * scale))


def resize(raster: Raster, width: int, height: int) -> Raster:
    """Lanczos-resample to exactly width x height. The input is not touched.

    Pillow premultiplies RGBA internally for this filter, so transparent
    pixels do not bleed color into their neighbours.
    """
    img = raster.to_pillow().resize((width, height), Image.LANCZOS)
    return Raster.from_pillow(img)
