import io

import numpy as np
from PIL import Image

from config import settings
from exceptions import EncodeError
from imaging.codecs import Codec
from imaging.raster import Raster
from quantization.dither import dither, remap
from quantization.histogram import Histogram, build_histogram
from quantization.median_cut import Palette, reduce
from quantization.refine import refine
from schemas import StrategyAttempt
from strategies.base import BaseStrategy, StrategyKind
from utils.capabilities import check_codecs
from utils.concurrency import CancellationToken, run_stage
from utils.logging import get_logger

logger = get_logger("strategies.palette")

# Indexed PNG stores at most 8-bit indices
PNG_PALETTE_LIMIT = 256


class PaletteStrategy(BaseStrategy):
    """Indexed PNG: quantize to a palette, write tRNS alpha, squeeze with oxipng.

    Pipeline:
    1. Premultiplied histogram of the raster
    2. Skip if the histogram already fits the cap (unless forced: then the
       exact colors become the palette)
    3. Median cut -> Lloyd refinement
    4. Selective dither (or plain remap for large rasters)
    5. P-mode PNG via Pillow -> oxipng
    """

    kind = StrategyKind.PALETTE_PNG
    codec = Codec.PNG
    lossy = False

    def __init__(
        self,
        max_colors: int | None = None,
        refine_iterations: int | None = None,
        dithering: bool | None = None,
        dither_pixel_limit: int | None = None,
        oxipng_level: int | None = None,
        timeout: float | None = None,
    ):
        super().__init__(timeout=timeout)
        cap = max_colors if max_colors is not None else settings.palette_max_colors
        self.max_colors = max(1, min(cap, PNG_PALETTE_LIMIT))
        self.refine_iterations = (
            refine_iterations if refine_iterations is not None else settings.refine_iterations
        )
        self.dithering = dithering if dithering is not None else settings.palette_dithering
        self.dither_pixel_limit = (
            dither_pixel_limit if dither_pixel_limit is not None else settings.dither_pixel_limit
        )
        self.oxipng_level = oxipng_level if oxipng_level is not None else settings.oxipng_level

    async def attempt(
        self,
        raster: Raster,
        quality: int | None,
        token: CancellationToken | None = None,
        forced: bool = False,
    ) -> StrategyAttempt | None:
        if not raster.is_complete:
            raise EncodeError(
                "Raster buffer is shorter than width * height * 4",
                codec=self.codec.value,
            )

        histogram = await run_stage(
            "histogram", build_histogram, raster, timeout=self.timeout, token=token
        )

        exact = len(histogram) <= self.max_colors
        if exact and not forced:
            logger.debug(
                "Palette strategy skipped: histogram fits cap",
                extra={"context": {"colors": len(histogram), "cap": self.max_colors}},
            )
            return None

        if exact:
            palette = histogram.colors
        else:
            palette = await run_stage(
                "quantize",
                self._quantize,
                histogram,
                timeout=self.timeout,
                token=token,
            )

        use_dither = (
            not exact and self.dithering and raster.pixel_count <= self.dither_pixel_limit
        )
        indices = await run_stage(
            "dither" if use_dither else "remap",
            dither if use_dither else remap,
            raster,
            palette,
            timeout=self.timeout,
            token=token,
        )

        output = await run_stage(
            "encode-palette-png",
            _encode_indexed,
            raster.width,
            raster.height,
            indices,
            palette,
            timeout=self.timeout,
            token=token,
        )

        if check_codecs().get("oxipng", False):
            output = await run_stage(
                "oxipng",
                self._run_oxipng,
                output,
                timeout=self.timeout,
                token=token,
            )

        return self._build_attempt(output, None)

    def _quantize(self, histogram: Histogram) -> Palette:
        palette = reduce(histogram, self.max_colors)
        return refine(histogram, palette, self.refine_iterations)

    def _run_oxipng(self, data: bytes) -> bytes:
        """Run oxipng in-process via pyoxipng library (no subprocess)."""
        import oxipng

        try:
            return oxipng.optimize_from_memory(data, level=self.oxipng_level)
        except oxipng.PngError as e:
            raise EncodeError(f"oxipng failed: {e}", codec=self.codec.value) from e


def _encode_indexed(width: int, height: int, indices: np.ndarray, palette: Palette) -> bytes:
    """Write a P-mode PNG whose palette carries straight RGBA entries.

    Pillow emits the palette alpha as a tRNS chunk.
    """
    img = Image.frombytes("P", (width, height), indices.astype(np.uint8).tobytes())
    flat = bytearray()
    for color in palette:
        flat.extend(color.unpremultiply()[:4])
    img.putpalette(bytes(flat), rawmode="RGBA")

    buf = io.BytesIO()
    try:
        img.save(buf, format="PNG", optimize=True)
    except (OSError, ValueError) as e:
        raise EncodeError(f"png encode failed: {e}", codec="png") from e

    output = buf.getvalue()
    if not output:
        raise EncodeError("png encoder returned no data", codec="png")
    return output
