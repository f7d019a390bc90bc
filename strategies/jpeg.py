from imaging.codecs import Codec
from imaging.raster import Raster
from schemas import StrategyAttempt
from strategies.base import BaseStrategy, StrategyKind
from utils.concurrency import CancellationToken


class JpegStrategy(BaseStrategy):
    """Legacy photo codec: optimized progressive JPEG via Pillow.

    Selected only for photos without significant transparency; any residual
    alpha is flattened onto white by the codec.
    """

    kind = StrategyKind.JPEG
    codec = Codec.JPEG

    async def attempt(
        self,
        raster: Raster,
        quality: int | None,
        token: CancellationToken | None = None,
        forced: bool = False,
    ) -> StrategyAttempt:
        return await self._encode(raster, quality, token)
