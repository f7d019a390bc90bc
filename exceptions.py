class PinchError(Exception):
    """Base exception for all Pinch errors."""

    error_code: str = "internal_error"

    def __init__(self, message: str, **kwargs):
        self.message = message
        self.details = kwargs
        super().__init__(message)


class DecodeError(PinchError):
    """Malformed or unsupported container, truncated buffer, empty decode."""

    error_code = "decode_failed"


class DecoderUnavailableError(DecodeError):
    """The external decoder for an exotic container is not installed."""

    error_code = "decoder_unavailable"


class UnsupportedFormatError(DecodeError):
    """File format not recognized via magic bytes, MIME hint or extension."""

    error_code = "unsupported_format"


class EncodeError(PinchError):
    """Codec call failed or returned no data."""

    error_code = "encode_failed"


class ClassificationError(PinchError):
    """Classifier was handed an impossible raster (programming defect)."""

    error_code = "classification_failed"


class StageTimeoutError(PinchError):
    """A delegated decode/encode call exceeded its timeout."""

    error_code = "stage_timeout"


class UnitCancelledError(PinchError):
    """The unit's cancellation token was triggered."""

    error_code = "cancelled"


class RetryExhaustedError(PinchError):
    """Unit failed on every attempt.

    The message is the last failure's message verbatim; the last failure's
    code is kept in details["last_error_code"].
    """

    error_code = "retry_exhausted"


class BatchTooLargeError(PinchError):
    """Batch exceeds the admission cap; nothing was admitted."""

    error_code = "batch_too_large"
