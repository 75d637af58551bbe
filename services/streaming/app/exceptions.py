"""
Streaming service — exception classes.

Domain exceptions are raised by service-layer code (pipeline, dispatcher,
URL signing). HTTP exceptions carry preset status codes and detail messages
and are raised only by the playback controller.
"""
from fastapi import HTTPException, status

from shared.utils.retry import NonRetryableError


# ── Configuration ────────────────────────────────────────────────────────────

class ConfigurationError(Exception):
    """Required settings are missing. Fatal at startup."""

    def __init__(self, missing: list[str]) -> None:
        self.missing = list(missing)
        names = ", ".join(name.upper() for name in self.missing)
        super().__init__(f"Missing required environment variables: {names}")


# ── Validation (never retried) ───────────────────────────────────────────────

class InvalidAssetKeyError(NonRetryableError):
    def __init__(self, key: str) -> None:
        self.key = key
        super().__init__(f"Invalid source key format: {key!r}")


class InvalidNotificationError(NonRetryableError):
    """Queue message body is empty, not JSON, or not an S3 event notification."""


class InvalidVideoKeyError(NonRetryableError):
    def __init__(self, key: str) -> None:
        self.key = key
        super().__init__(f"Invalid video key format: {key!r}")


class UnsupportedQualityError(NonRetryableError):
    def __init__(self, quality: str) -> None:
        self.quality = quality
        super().__init__(f"Unsupported quality: {quality!r}")


# ── Transient operational ────────────────────────────────────────────────────

class EmptySourceError(Exception):
    """Downloaded source file is missing or zero bytes."""


class TaskLaunchError(Exception):
    """ECS accepted the RunTask call but did not start a task."""


# ── Encoder ──────────────────────────────────────────────────────────────────

class EncoderError(Exception):
    def __init__(self, variant: str, message: str) -> None:
        self.variant = variant
        super().__init__(f"[{variant}] {message}")


class CanaryFailedError(Exception):
    """The first (cheapest) variant failed; the job is aborted."""

    def __init__(self, variant: str) -> None:
        self.variant = variant
        super().__init__(f"Canary transcode failed for {variant}")


# ── HTTP ─────────────────────────────────────────────────────────────────────

class VideoKeyRequired(HTTPException):
    def __init__(self) -> None:
        super().__init__(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="videoKey is required",
        )


class InvalidVideoKey(HTTPException):
    def __init__(self, what: str = "videoKey") -> None:
        super().__init__(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid {what} format",
        )


class InvalidExpiry(HTTPException):
    def __init__(self) -> None:
        super().__init__(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="expiresIn must be a positive integer",
        )


class InvalidQuality(HTTPException):
    def __init__(self, allowed: list[str]) -> None:
        super().__init__(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid quality value. Must be one of: {', '.join(allowed)}",
        )


class SignedUrlError(HTTPException):
    def __init__(self, what: str = "signed URL") -> None:
        super().__init__(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to generate {what}",
        )
