"""Custom exceptions and error handling utilities for the garment asset pipeline."""

from __future__ import annotations

from functools import wraps
from typing import Any, Callable, List, Optional, TypeVar

from .logging_config import get_logger


class GarmentAssetsError(Exception):
    """Base exception for all garment asset pipeline errors."""


class ConfigurationError(GarmentAssetsError):
    """Error raised for invalid configuration options."""


class InvalidInputError(GarmentAssetsError):
    """Bytes that are undecodable, of a disallowed format, or out of range."""

    def __init__(self, message: str, reasons: Optional[List[str]] = None):
        super().__init__(message)
        self.reasons = list(reasons or [])

    def __reduce__(self) -> Any:
        return (self.__class__, (str(self), self.reasons))


class ProcessingFailureError(GarmentAssetsError):
    """Unexpected failure while normalizing or encoding an accepted image."""

    def __init__(self, message: str, stage: Optional[str] = None):
        super().__init__(message)
        self.stage = stage

    def __reduce__(self) -> Any:
        return (self.__class__, (str(self), self.stage))


class UploadFailureError(GarmentAssetsError):
    """A variant could not be stored, so the whole asset set failed."""


class UploadTimeoutError(UploadFailureError):
    """An upload attempt exceeded its time budget."""


F = TypeVar("F", bound=Callable[..., Any])


def with_error_handling(func: F) -> F:
    """Wrap a CPU stage so stray exceptions surface as ProcessingFailureError."""

    @wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> Any:  # type: ignore[override]
        logger = get_logger("processor")
        try:
            return func(*args, **kwargs)
        except GarmentAssetsError:
            logger.error("Pipeline error", exc_info=True)
            raise
        except Exception as exc:  # noqa: BLE001
            logger.error(f"Unhandled error in {func.__name__}: {exc}", exc_info=True)
            raise ProcessingFailureError(f"{func.__name__} failed: {exc}") from exc

    return wrapper  # type: ignore[return-value]
