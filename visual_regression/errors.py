"""Exception types raised by the visual regression service."""

from __future__ import annotations

from typing import Any, Optional


class VisualRegressionError(Exception):
    """Base exception for visual regression failures."""

    def __init__(self, message: str, context: Optional[dict[str, Any]] = None):
        self.message = message
        self.context = context or {}
        super().__init__(message)


class ImageDecodeError(VisualRegressionError):
    """Captured or baseline bytes could not be decoded as an image."""


class BaselineIOError(VisualRegressionError):
    """Reading or writing a baseline image failed."""


class LifecycleError(VisualRegressionError):
    """A lifecycle hook was called out of order."""


class ScreenshotMismatchError(VisualRegressionError):
    """A screenshot did not match its baseline within tolerance."""
