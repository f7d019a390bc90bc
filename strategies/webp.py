from imaging.codecs import Codec
from imaging.raster import Raster
from schemas import StrategyAttempt
from strategies.base import BaseStrategy, StrategyKind
from utils.concurrency import CancellationToken


class WebpStrategy(BaseStrategy):
    """General-purpose lossy WebP at a classification-tuned quality.

    Alpha is kept; fully opaque rasters are encoded without an alpha plane.
    """

    kind = StrategyKind.WEBP
    codec = Codec.WEBP

    async def attempt(
        self,
        raster: Raster,
        quality: int | None,
        token: CancellationToken | None = None,
        forced: bool = False,
    ) -> StrategyAttempt:
        return await self._encode(raster, quality, token)
