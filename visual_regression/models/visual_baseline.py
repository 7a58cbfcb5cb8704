"""Visual baseline registry data structures."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field


class BaselineEntry(BaseModel):
    key: str  # relative path below reference/, e.g. "en/theme/huge/tests%2Fbutton-spec/Suite/test/default.png"
    spec: Optional[str] = None
    suite: Optional[str] = None  # enclosing suites joined with " > "
    test: Optional[str] = None
    name: str
    form_factor: Optional[str] = None
    locale: Optional[str] = None
    theme: Optional[str] = None
    width: int
    height: int
    captured_at: str  # ISO timestamp
    image_hash: str  # SHA-256 hex digest of the stored PNG


class VisualBaselineRegistry(BaseModel):
    last_updated: str = ""
    baselines: dict[str, BaselineEntry] = Field(default_factory=dict)
