"""Screenshot context and comparison result data structures."""

from __future__ import annotations

import base64
import io
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Optional

from PIL import Image
from pydantic import BaseModel, ConfigDict, Field, field_validator

DEFAULT_SCREENSHOT_NAME = "default"


class IgnoreComparison(str, Enum):
    """Pixel comparison modes, from strict to forgiving."""
    NOTHING = "nothing"
    LESS = "less"
    ALPHA = "alpha"
    COLORS = "colors"
    ANTIALIASING = "antialiasing"


class ComparisonStatus(str, Enum):
    COMPARED = "compared"
    BASELINE_CREATED = "baseline_created"
    BASELINE_UPDATED = "baseline_updated"


class Verdict(str, Enum):
    PASS = "pass"
    FAIL = "fail"
    NEW_BASELINE = "new_baseline"
    UPDATED = "updated"


class CaptureOptions(BaseModel):
    """Per-call screenshot capture and comparison options."""
    hide: list[str] = Field(default_factory=list)  # opacity: 0 before capture
    remove: list[str] = Field(default_factory=list)  # display: none before capture
    ignore_comparison: Optional[IgnoreComparison] = None
    mismatch_tolerance: Optional[float] = None
    name: Optional[str] = None
    update_screenshots: Optional[bool] = None

    @field_validator("mismatch_tolerance")
    @classmethod
    def check_tolerance(cls, v: Optional[float]) -> Optional[float]:
        if v is not None and not 0 <= v < 100:
            raise ValueError("mismatch_tolerance must be in [0, 100)")
        return v


class SuiteInfo(BaseModel):
    title: str
    file: Optional[str] = None  # spec file the suite is declared in
    parents: list[str] = Field(default_factory=list)  # enclosing suite titles, outermost first


class TestInfo(BaseModel):
    __test__ = False  # not a pytest test class

    title: str
    full_title: Optional[str] = None
    parent: Optional[str] = None


class ScreenshotMeta(BaseModel):
    current_form_factor: Optional[str] = None


class ScreenshotContext(BaseModel):
    """Everything known about a screenshot at the moment it is taken."""
    capabilities: Optional[dict[str, Any]] = None
    suite: Optional[SuiteInfo] = None
    test: Optional[TestInfo] = None
    meta: Optional[ScreenshotMeta] = None
    options: Optional[CaptureOptions] = None

    def compact(self) -> "ScreenshotContext":
        """Return a copy with empty fields dropped to None."""
        return ScreenshotContext(
            capabilities=self.capabilities or None,
            suite=self.suite,
            test=self.test,
            meta=self.meta if self.meta and self.meta.current_form_factor else None,
            options=self.options if self.options and self.options != CaptureOptions() else None,
        )


def spec_name(file: Optional[str]) -> Optional[str]:
    """Name a spec file by its path without suffix, relative to the working directory when below it.

    >>> spec_name("tests/button-spec.js")
    'tests/button-spec'
    """
    if not file:
        return None
    path = Path(file)
    if path.is_absolute():
        try:
            path = path.relative_to(Path.cwd())
        except ValueError:
            pass
    return path.with_suffix("").as_posix()


class BaselineIdentity(BaseModel):
    """The fields that decide which baseline a screenshot is compared to.

    ``spec`` and ``parents`` keep apart suites that share a title but live in
    different spec files or under different enclosing suites.
    """
    model_config = ConfigDict(frozen=True)

    spec: Optional[str] = None
    parents: tuple[str, ...] = ()
    suite: Optional[str] = None
    test: Optional[str] = None
    name: str = DEFAULT_SCREENSHOT_NAME
    form_factor: Optional[str] = None
    locale: Optional[str] = None
    theme: Optional[str] = None

    @classmethod
    def from_context(
        cls, context: ScreenshotContext, locale: Optional[str] = None, theme: Optional[str] = None,
    ) -> "BaselineIdentity":
        suite = context.suite
        return cls(
            spec=spec_name(suite.file) if suite else None,
            parents=tuple(suite.parents) if suite else (),
            suite=suite.title if suite else None,
            test=context.test.title if context.test else None,
            name=(context.options.name if context.options else None) or DEFAULT_SCREENSHOT_NAME,
            form_factor=context.meta.current_form_factor if context.meta else None,
            locale=locale,
            theme=theme,
        )


@dataclass(frozen=True)
class ComparisonResult:
    """Outcome of checking one screenshot against its baseline."""

    mis_match_percentage: float
    is_same_dimensions: bool
    image: Image.Image  # diff image, or the capture when nothing was diffed
    status: ComparisonStatus = ComparisonStatus.COMPARED

    @property
    def is_exactly_same(self) -> bool:
        return self.is_same_dimensions and self.mis_match_percentage == 0

    def verdict(self, tolerance: float) -> Verdict:
        if self.status == ComparisonStatus.BASELINE_CREATED:
            return Verdict.NEW_BASELINE
        if self.status == ComparisonStatus.BASELINE_UPDATED:
            return Verdict.UPDATED
        if self.is_same_dimensions and self.mis_match_percentage <= tolerance:
            return Verdict.PASS
        return Verdict.FAIL

    def get_image_data_url(self) -> str:
        """Render the result image as a PNG data URL."""
        buf = io.BytesIO()
        self.image.save(buf, format="PNG")
        return "data:image/png;base64," + base64.b64encode(buf.getvalue()).decode("ascii")
