import asyncio
from typing import Callable, Optional, Sequence

from config import settings
from exceptions import BatchTooLargeError, PinchError, RetryExhaustedError, UnitCancelledError
from pipeline.compressor import Compressor
from pipeline.unit import CompressionUnit, SourceFile
from schemas import CompressionOptions, CompressionReport, UnitStatus
from utils.logging import get_logger

logger = get_logger("pipeline.batch")

TransitionCallback = Callable[[CompressionUnit, UnitStatus, UnitStatus], None]


class BatchPipeline:
    """Bounded worker pool that drives each unit through its lifecycle.

    QUEUED -> PROCESSING -> SUCCESS
                         -> ERROR -> PROCESSING (retry, linear backoff)
                         -> ERROR (terminal: retries exhausted or cancelled)

    At most concurrent_limit units are PROCESSING at any instant. A unit's
    failure never aborts the rest of the batch.
    """

    def __init__(
        self,
        compressor: Compressor | None = None,
        concurrent_limit: int | None = None,
        max_files: int | None = None,
        max_retries: int | None = None,
        retry_backoff: float | None = None,
        on_transition: Optional[TransitionCallback] = None,
    ):
        self.compressor = compressor if compressor is not None else Compressor()
        self.concurrent_limit = max(
            1, concurrent_limit if concurrent_limit is not None else settings.concurrent_limit
        )
        self.max_files = max_files if max_files is not None else settings.max_files
        self.max_retries = max_retries if max_retries is not None else settings.max_retries
        self.retry_backoff = (
            retry_backoff if retry_backoff is not None else settings.retry_backoff_seconds
        )
        self.on_transition = on_transition

        self.units: list[CompressionUnit] = []
        self.results: list[CompressionReport] = []

    def admit(
        self,
        files: Sequence[SourceFile],
        options: CompressionOptions | None = None,
    ) -> list[CompressionUnit]:
        """Create a QUEUED unit per file.

        Raises:
            BatchTooLargeError: If more than max_files are submitted.
                Nothing is admitted in that case.
        """
        if len(files) > self.max_files:
            raise BatchTooLargeError(
                f"Batch of {len(files)} files exceeds limit of {self.max_files}",
                file_count=len(files),
                limit=self.max_files,
            )

        units = [CompressionUnit.from_source(f, options) for f in files]
        self.units.extend(units)
        return units

    async def run(self, units: Sequence[CompressionUnit] | None = None) -> list[CompressionReport]:
        """Process units (default: every QUEUED unit) and return their reports."""
        if units is None:
            units = [u for u in self.units if u.status == UnitStatus.QUEUED]
        if not units:
            return []

        queue: asyncio.Queue[CompressionUnit] = asyncio.Queue()
        for unit in units:
            queue.put_nowait(unit)

        workers = [
            asyncio.create_task(self._worker(queue))
            for _ in range(min(self.concurrent_limit, len(units)))
        ]
        await asyncio.gather(*workers)

        return [unit.to_report() for unit in units]

    async def process(
        self,
        files: Sequence[SourceFile],
        options: CompressionOptions | None = None,
    ) -> list[CompressionReport]:
        """Admit and run a batch in one call."""
        return await self.run(self.admit(files, options))

    def cancel(self, reason: str = "Cancelled") -> None:
        """Cancel every unit that has not reached a terminal state."""
        for unit in self.units:
            if not unit.terminal:
                unit.token.cancel(reason)

    async def _worker(self, queue: asyncio.Queue) -> None:
        while True:
            try:
                unit = queue.get_nowait()
            except asyncio.QueueEmpty:
                return
            try:
                await self._drive(unit)
            finally:
                queue.task_done()

    async def _drive(self, unit: CompressionUnit) -> None:
        while True:
            self._transition(unit, UnitStatus.PROCESSING)
            try:
                outcome = await self.compressor.compress(
                    unit.original_bytes,
                    unit.mime_hint,
                    unit.filename,
                    unit.options,
                    unit.token,
                )
            except UnitCancelledError as e:
                self._fail(unit, e)
                return
            except Exception as e:
                message = e.message if isinstance(e, PinchError) else str(e)
                if unit.token.cancelled:
                    self._fail(unit, UnitCancelledError(message))
                    return
                if unit.attempt < self.max_retries:
                    delay = self.retry_backoff * (unit.attempt + 1)
                    logger.warning(
                        f"Unit failed, retrying in {delay}s: {message}",
                        extra={
                            "unit_id": unit.id,
                            "context": {"attempt": unit.attempt, "filename": unit.filename},
                        },
                    )
                    unit.error = message
                    self._transition(unit, UnitStatus.ERROR)
                    await asyncio.sleep(delay)
                    unit.attempt += 1
                    continue

                self._fail(
                    unit,
                    RetryExhaustedError(
                        message,
                        last_error_code=getattr(e, "error_code", type(e).__name__),
                    ),
                )
                return

            unit.outcome = outcome
            unit.error = None
            unit.error_code = None
            unit.terminal = True
            self._transition(unit, UnitStatus.SUCCESS)
            self.results.append(unit.to_report())
            logger.info(
                "Unit compressed",
                extra={
                    "unit_id": unit.id,
                    "context": {
                        "filename": unit.filename,
                        "method": outcome.method,
                        "original_size": outcome.original_size,
                        "compressed_size": outcome.compressed_size,
                    },
                },
            )
            return

    def _fail(self, unit: CompressionUnit, error: PinchError) -> None:
        """Move a unit to terminal ERROR, recording the typed failure."""
        unit.error = error.message
        unit.error_code = error.error_code
        unit.terminal = True
        self._transition(unit, UnitStatus.ERROR)
        self.results.append(unit.to_report())
        logger.error(
            f"Unit failed: {error.message}",
            extra={
                "unit_id": unit.id,
                "context": {
                    "filename": unit.filename,
                    "attempts": unit.attempt + 1,
                    "error_code": error.error_code,
                    **error.details,
                },
            },
        )

    def _transition(self, unit: CompressionUnit, new: UnitStatus) -> None:
        old = unit.transition(new)
        if self.on_transition is not None:
            self.on_transition(unit, old, new)
