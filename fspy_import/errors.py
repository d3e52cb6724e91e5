"""
Exception hierarchy for fSpy project decoding and camera derivation.

Every error raised by this package derives from FspyError, which is itself a
ValueError so callers that only care about "bad input" can catch that.
"""

from typing import Optional


class FspyError(ValueError):
    """Base class for all fSpy decoding and geometry errors."""


class FormatError(FspyError):
    """The byte source is not a well-formed fSpy project."""


class UnsupportedVersionError(FspyError):
    """The project header declares a file version this reader cannot decode."""

    def __init__(self, version: int):
        self.version = version
        super().__init__(f"Unsupported fSpy project file version {version}")


class MissingFieldError(FspyError):
    """A required key is absent from the project's JSON state."""

    def __init__(self, field: str):
        self.field = field
        super().__init__(f"Missing required field '{field}' in fSpy project state")


class TruncatedInputError(FspyError):
    """The stream ended before a declared-length region was fully read."""

    def __init__(self, region: str, expected: int, actual: int):
        self.region = region
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Truncated fSpy project: expected {expected} bytes of {region}, got {actual}"
        )


class NonInvertibleTransformError(FspyError):
    """The stored camera transform is singular and yields no camera pose."""

    def __init__(self, det: Optional[float] = None):
        self.det = det
        message = "Camera transform matrix is not invertible"
        if det is not None:
            message += f" (det={det:.3e})"
        super().__init__(message)
