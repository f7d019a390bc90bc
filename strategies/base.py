from abc import ABC, abstractmethod
from enum import Enum

from imaging.codecs import Codec, encode
from imaging.raster import Raster
from schemas import StrategyAttempt
from utils.capabilities import check_codecs
from utils.concurrency import CancellationToken, run_stage


class StrategyKind(str, Enum):
    PALETTE_PNG = "palette-png"
    WEBP = "webp"
    JPEG = "jpeg"


class BaseStrategy(ABC):
    """One candidate codec + quality combination."""

    kind: StrategyKind
    codec: Codec
    lossy: bool = True

    def __init__(self, timeout: float | None = None):
        self.timeout = timeout

    def available(self) -> bool:
        """Whether the codec this strategy needs is installed."""
        return check_codecs().get(self.codec.value, False)

    @abstractmethod
    async def attempt(
        self,
        raster: Raster,
        quality: int | None,
        token: CancellationToken | None = None,
        forced: bool = False,
    ) -> StrategyAttempt | None:
        """Encode the raster.

        Args:
            raster: A copy owned by this attempt; it may be mutated.
            quality: Codec quality, or None for lossless strategies.
            token: Cancellation token of the owning unit.
            forced: The caller asked for this strategy explicitly.

        Returns:
            StrategyAttempt, or None when the strategy does not apply to
            this raster.

        Raises:
            EncodeError: If the codec fails.
        """

    async def _encode(
        self,
        raster: Raster,
        quality: int | None,
        token: CancellationToken | None,
        lossless: bool = False,
    ) -> StrategyAttempt:
        output = await run_stage(
            f"encode-{self.kind.value}",
            encode,
            raster,
            self.codec,
            quality,
            lossless,
            timeout=self.timeout,
            token=token,
        )
        return self._build_attempt(output, quality)

    def _build_attempt(self, output: bytes, quality: int | None) -> StrategyAttempt:
        return StrategyAttempt(
            strategy=self.kind.value,
            codec=self.codec.value,
            quality=quality,
            output_bytes=output,
            output_size=len(output),
        )
