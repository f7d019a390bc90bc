from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class ImageType(str, Enum):
    PHOTO = "photo"
    GRAPHIC = "graphic"
    MIXED = "mixed"


class OutputFormat(str, Enum):
    AUTO = "auto"
    PNG = "png"
    WEBP = "webp"
    JPEG = "jpeg"


class UnitStatus(str, Enum):
    QUEUED = "queued"
    PROCESSING = "processing"
    SUCCESS = "success"
    ERROR = "error"


class ClassificationResult(BaseModel):
    """Snapshot of image characteristics, computed once per input image."""

    model_config = ConfigDict(frozen=True)

    type: ImageType
    unique_colors: int
    has_hard_edges: bool
    has_smooth_gradients: bool
    has_transparency: bool
    has_significant_transparency: bool
    solid_region_ratio: float


class CompressionOptions(BaseModel):
    """Caller constraints (all optional with defaults)."""

    quality: Optional[int] = Field(
        default=None, ge=1, le=100,
        description="Override the classification-tuned lossy quality.",
    )
    target_size: Optional[int] = Field(
        default=None, ge=1,
        description="Upper bound in bytes. Lossy quality is searched "
        "downwards until the output fits.",
    )
    format: OutputFormat = OutputFormat.AUTO
    target_width: Optional[int] = Field(
        default=None, ge=1,
        description="Shrink to fit this width, keeping the aspect ratio.",
    )
    target_height: Optional[int] = Field(
        default=None, ge=1,
        description="Shrink to fit this height, keeping the aspect ratio.",
    )


class StrategyAttempt(BaseModel):
    """One candidate encoding. Attempts are compared only by output_size."""

    strategy: str
    codec: str
    quality: Optional[int] = None
    output_bytes: bytes = b""
    output_size: int


class CompressionOutcome(BaseModel):
    """Internal result passed between orchestrator and batch pipeline."""

    original_size: int
    compressed_size: int
    savings_percent: float
    format: str
    original_format: Optional[str] = None
    method: str
    output_bytes: bytes = b""
    improved: bool
    target_size_met: bool = True
    resize_applied: bool = False
    classification: Optional[ClassificationResult] = None
    attempts: list[StrategyAttempt] = Field(default_factory=list)
    message: Optional[str] = None


class CompressionReport(BaseModel):
    """What the core hands back per unit."""

    id: str
    original_name: str
    original_size: int
    compressed_size: Optional[int] = None
    format: Optional[str] = None
    original_format: Optional[str] = None
    savings_percent: Optional[float] = None
    status: UnitStatus
    method: Optional[str] = None
    resize_applied: bool = False
    attempts: int = 0
    error: Optional[str] = None
    error_code: Optional[str] = None
