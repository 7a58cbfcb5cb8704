"""Configuration models for the visual regression service."""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any, Optional

from pydantic import BaseModel, Field, field_validator

from visual_regression.models.screenshot import IgnoreComparison


def _default_breakpoints() -> dict[str, int]:
    return {
        "tiny": 0,
        "small": 544,
        "medium": 768,
        "large": 992,
        "huge": 1216,
        "enormous": 1440,
    }


class VisualRegressionConfig(BaseModel):
    # Storage
    baselines_dir: str = "./__snapshots__"

    # Baseline identity
    locale: str = "en"
    theme: str = "terra-default-theme"

    # Comparison
    mismatch_tolerance: float = 0.2
    ignore_comparison: IgnoreComparison = IgnoreComparison.NOTHING
    update_screenshots: bool = False
    save_diff_images: bool = True

    # Form factors, keyed by name with the minimum viewport width
    breakpoints: dict[str, int] = Field(default_factory=_default_breakpoints)

    @field_validator("mismatch_tolerance")
    @classmethod
    def check_tolerance(cls, v: float) -> float:
        if not 0 <= v < 100:
            raise ValueError("mismatch_tolerance must be in [0, 100)")
        return v

    def with_launcher_options(self, launcher_options: Optional[dict[str, Any]]) -> "VisualRegressionConfig":
        """Return a copy where the test runner's locale/theme take precedence."""
        if not launcher_options:
            return self.model_copy()
        overrides = {
            key: launcher_options[key]
            for key in ("locale", "theme")
            if launcher_options.get(key)
        }
        return self.model_copy(update=overrides)

    @classmethod
    def from_env(cls, base: Optional["VisualRegressionConfig"] = None) -> "VisualRegressionConfig":
        """Build a config from the current environment, read at call time."""
        base = base or cls()
        overrides: dict[str, Any] = {}
        if os.environ.get("LOCALE"):
            overrides["locale"] = os.environ["LOCALE"]
        if os.environ.get("THEME"):
            overrides["theme"] = os.environ["THEME"]
        if os.environ.get("UPDATE_SCREENSHOTS"):
            overrides["update_screenshots"] = os.environ["UPDATE_SCREENSHOTS"].lower() in ("1", "true", "yes")
        return base.model_copy(update=overrides)

    @classmethod
    def load(cls, path: str | Path) -> "VisualRegressionConfig":
        """Load config from a JSON file."""
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {path}")
        with open(path) as f:
            data = json.load(f)
        return cls(**data)

    def save(self, path: str | Path) -> None:
        """Save config to a JSON file."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w") as f:
            json.dump(self.model_dump(mode="json"), f, indent=2)
