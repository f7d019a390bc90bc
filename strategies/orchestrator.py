from exceptions import EncodeError, PinchError, UnitCancelledError
from imaging.raster import Raster
from schemas import (
    ClassificationResult,
    CompressionOptions,
    CompressionOutcome,
    OutputFormat,
    StrategyAttempt,
)
from strategies.base import BaseStrategy, StrategyKind
from strategies.jpeg import JpegStrategy
from strategies.palette import PaletteStrategy
from strategies.selection import select_strategies, tuned_quality
from strategies.webp import WebpStrategy
from utils.concurrency import CancellationToken
from utils.logging import get_logger

logger = get_logger("strategies.orchestrator")

MIN_SEARCH_QUALITY = 10
MAX_SEARCH_ITERATIONS = 8
# Stop searching once the output is within this fraction of the target
TARGET_TOLERANCE = 0.9


def default_strategies(timeout: float | None = None) -> dict[StrategyKind, BaseStrategy]:
    return {
        StrategyKind.PALETTE_PNG: PaletteStrategy(timeout=timeout),
        StrategyKind.WEBP: WebpStrategy(timeout=timeout),
        StrategyKind.JPEG: JpegStrategy(timeout=timeout),
    }


class StrategyOrchestrator:
    """Runs the applicable strategies for one image and keeps the smallest output.

    Guarantee: the outcome is never larger than the original. When no attempt
    beats it, the original bytes come back with method="none".
    """

    def __init__(self, strategies: dict[StrategyKind, BaseStrategy] | None = None):
        self.strategies = strategies if strategies is not None else default_strategies()

    async def run(
        self,
        raster: Raster,
        classification: ClassificationResult,
        original: bytes,
        options: CompressionOptions | None = None,
        original_format: str | None = None,
        token: CancellationToken | None = None,
    ) -> CompressionOutcome:
        """Compress one decoded image.

        Args:
            raster: Decoded pixels. Never mutated; each strategy gets a copy.
            classification: Result of classify() for this raster.
            original: Input bytes, returned as-is when nothing is smaller.
            options: Caller constraints.
            original_format: Detected input format, reported on the outcome.
            token: Cancellation token of the owning unit.

        Raises:
            EncodeError: If every applicable strategy failed.
            UnitCancelledError: If the token is cancelled mid-run.
        """
        options = options or CompressionOptions()
        forced = options.format != OutputFormat.AUTO
        attempts: list[StrategyAttempt] = []
        failures: list[PinchError] = []

        for kind in select_strategies(classification, options):
            strategy = self.strategies.get(kind)
            if strategy is None or not strategy.available():
                logger.warning(
                    f"Strategy {kind.value} unavailable, skipping",
                    extra={"context": {"strategy": kind.value}},
                )
                continue

            quality = tuned_quality(kind, classification, options)
            try:
                attempt = await strategy.attempt(raster.copy(), quality, token, forced)
                if (
                    attempt is not None
                    and options.target_size is not None
                    and strategy.lossy
                    and attempt.output_size > options.target_size
                ):
                    attempt = await self._fit_target(
                        strategy, raster, attempt, options.target_size, token
                    )
            except UnitCancelledError:
                raise
            except PinchError as e:
                logger.warning(
                    f"Strategy {kind.value} failed: {e.message}",
                    extra={"context": {"strategy": kind.value, "error_code": e.error_code}},
                )
                failures.append(e)
                continue

            if attempt is not None:
                attempts.append(attempt)

        if not attempts and failures:
            raise EncodeError(
                f"All strategies failed: {failures[-1].message}",
                strategies=len(failures),
            )

        return self._build_outcome(
            original, attempts, classification, options.target_size, original_format
        )

    async def _fit_target(
        self,
        strategy: BaseStrategy,
        raster: Raster,
        first: StrategyAttempt,
        target: int,
        token: CancellationToken | None,
    ) -> StrategyAttempt:
        """Binary-search quality downwards until the output fits target.

        Returns the highest-quality attempt that fits, or the smallest one
        seen when none does. A failing step ends the search early; the
        first attempt is always a valid fallback.
        """
        best_fit = None
        smallest = first
        lo = MIN_SEARCH_QUALITY
        hi = (first.quality if first.quality is not None else 100) - 1

        for _ in range(MAX_SEARCH_ITERATIONS):
            if lo > hi:
                break
            mid = (lo + hi) // 2
            try:
                attempt = await strategy.attempt(raster.copy(), mid, token)
            except UnitCancelledError:
                raise
            except PinchError as e:
                # Keep what the search has found so far
                logger.warning(
                    f"Target size search for {strategy.kind.value} stopped at quality {mid}: {e.message}",
                    extra={"context": {"strategy": strategy.kind.value, "error_code": e.error_code}},
                )
                break

            if attempt is None:
                break
            if attempt.output_size < smallest.output_size:
                smallest = attempt
            if attempt.output_size <= target:
                if best_fit is None or attempt.quality > best_fit.quality:
                    best_fit = attempt
                if attempt.output_size >= target * TARGET_TOLERANCE:
                    break
                lo = mid + 1
            else:
                hi = mid - 1

        logger.debug(
            "Target size search finished",
            extra={
                "context": {
                    "strategy": strategy.kind.value,
                    "target": target,
                    "fits": best_fit is not None,
                }
            },
        )
        return best_fit or smallest

    def _build_outcome(
        self,
        original: bytes,
        attempts: list[StrategyAttempt],
        classification: ClassificationResult,
        target_size: int | None,
        original_format: str | None,
    ) -> CompressionOutcome:
        """Pick the smallest attempt, enforcing the never-larger guarantee."""
        original_size = len(original)
        best = min(attempts, key=lambda a: a.output_size) if attempts else None

        if best is None or best.output_size >= original_size:
            return CompressionOutcome(
                original_size=original_size,
                compressed_size=original_size,
                savings_percent=0.0,
                format=original_format or "unknown",
                original_format=original_format,
                method="none",
                output_bytes=original,
                improved=False,
                target_size_met=target_size is None or original_size <= target_size,
                classification=classification,
                attempts=attempts,
                message="Image is already optimized",
            )

        savings = (original_size - best.output_size) / original_size * 100
        return CompressionOutcome(
            original_size=original_size,
            compressed_size=best.output_size,
            savings_percent=savings,
            format=best.codec,
            original_format=original_format,
            method=best.strategy,
            output_bytes=best.output_bytes,
            improved=True,
            target_size_met=target_size is None or best.output_size <= target_size,
            classification=classification,
            attempts=attempts,
        )
