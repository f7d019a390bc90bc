import uuid
from dataclasses import dataclass, field
from typing import Optional

from schemas import CompressionOptions, CompressionOutcome, CompressionReport, UnitStatus
from utils.concurrency import CancellationToken

# ERROR -> PROCESSING is the retry edge
TRANSITIONS = {
    UnitStatus.QUEUED: {UnitStatus.PROCESSING},
    UnitStatus.PROCESSING: {UnitStatus.SUCCESS, UnitStatus.ERROR},
    UnitStatus.ERROR: {UnitStatus.PROCESSING},
    UnitStatus.SUCCESS: set(),
}


@dataclass
class SourceFile:
    """A file handed to the batch: raw bytes plus naming hints."""

    data: bytes
    filename: str = ""
    mime_hint: str = ""


@dataclass
class CompressionUnit:
    """Per-file lifecycle record owned by the batch pipeline."""

    filename: str
    mime_hint: str
    original_bytes: bytes
    options: CompressionOptions = field(default_factory=CompressionOptions)
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    status: UnitStatus = UnitStatus.QUEUED
    attempt: int = 0
    outcome: Optional[CompressionOutcome] = None
    error: Optional[str] = None
    error_code: Optional[str] = None
    terminal: bool = False
    token: CancellationToken = field(default_factory=CancellationToken)

    @classmethod
    def from_source(cls, source: SourceFile, options: CompressionOptions | None = None):
        return cls(
            filename=source.filename,
            mime_hint=source.mime_hint,
            original_bytes=source.data,
            options=options or CompressionOptions(),
        )

    @property
    def original_size(self) -> int:
        return len(self.original_bytes)

    def transition(self, new: UnitStatus) -> UnitStatus:
        """Move to a new status and return the old one.

        Raises:
            ValueError: If the edge is not part of the lifecycle.
        """
        old = self.status
        if new not in TRANSITIONS[old]:
            raise ValueError(f"Illegal transition {old.value} -> {new.value}")
        self.status = new
        return old

    def to_report(self) -> CompressionReport:
        report = CompressionReport(
            id=self.id,
            original_name=self.filename,
            original_size=self.original_size,
            status=self.status,
            attempts=self.attempt + 1 if self.status != UnitStatus.QUEUED else 0,
            error=self.error,
            error_code=self.error_code,
        )
        if self.outcome is not None:
            report.compressed_size = self.outcome.compressed_size
            report.format = self.outcome.format
            report.original_format = self.outcome.original_format
            report.savings_percent = self.outcome.savings_percent
            report.method = self.outcome.method
            report.resize_applied = self.outcome.resize_applied
        return report
