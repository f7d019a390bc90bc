from analysis.classifier import classify
from exceptions import UnsupportedFormatError
from imaging.normalize import ExoticDecoder, normalize
from imaging.resize import fit_within, resize
from schemas import CompressionOptions, CompressionOutcome
from strategies.orchestrator import StrategyOrchestrator
from utils.concurrency import CancellationToken, checkpoint, run_stage
from utils.format_detect import detect_format, identify
from utils.logging import get_logger

logger = get_logger("pipeline.compressor")


class Compressor:
    """One full run for one file: sniff -> normalize -> classify -> orchestrate."""

    def __init__(
        self,
        orchestrator: StrategyOrchestrator | None = None,
        decoder: ExoticDecoder | None = None,
        timeout: float | None = None,
    ):
        self.orchestrator = orchestrator if orchestrator is not None else StrategyOrchestrator()
        self.decoder = decoder
        self.timeout = timeout

    async def compress(
        self,
        data: bytes,
        mime_hint: str = "",
        filename: str = "",
        options: CompressionOptions | None = None,
        token: CancellationToken | None = None,
    ) -> CompressionOutcome:
        """Compress raw file bytes.

        Args:
            data: Raw input file bytes.
            mime_hint: MIME type supplied by the caller (may be empty).
            filename: Original file name, used for extension sniffing.
            options: Caller constraints.
            token: Cancellation token of the owning unit.

        Returns:
            CompressionOutcome with compressed bytes and stats.

        Raises:
            DecodeError: If the container cannot be decoded.
            EncodeError: If every strategy failed.
            StageTimeoutError: If a delegated call timed out.
            UnitCancelledError: If the token was cancelled.
        """
        options = options or CompressionOptions()
        await checkpoint(token)

        kind = identify(data, mime_hint, filename)
        try:
            original_format = detect_format(data, mime_hint, filename).value
        except UnsupportedFormatError:
            original_format = None

        raster = await run_stage(
            "decode",
            normalize,
            data,
            kind,
            self.decoder,
            timeout=self.timeout,
            token=token,
        )

        resized = False
        size = fit_within(
            raster.width, raster.height, options.target_width, options.target_height
        )
        if size is not None and raster.is_complete:
            logger.debug(
                f"Resizing {raster.width}x{raster.height} to {size[0]}x{size[1]}",
                extra={"context": {"filename": filename}},
            )
            raster = await run_stage(
                "resize", resize, raster, *size, timeout=self.timeout, token=token
            )
            resized = True

        classification = await run_stage(
            "classify", classify, raster, timeout=self.timeout, token=token
        )

        logger.debug(
            f"Classified {filename or 'input'} as {classification.type.value}",
            extra={
                "context": {
                    "source_kind": kind.value,
                    "original_format": original_format,
                    "width": raster.width,
                    "height": raster.height,
                    "unique_colors": classification.unique_colors,
                }
            },
        )

        outcome = await self.orchestrator.run(
            raster,
            classification,
            data,
            options,
            original_format=original_format,
            token=token,
        )
        # The original bytes come back unresized when no attempt beat them
        outcome.resize_applied = resized and outcome.improved
        return outcome
