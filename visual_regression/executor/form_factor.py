"""Form factor detection — device orientation on mobile, breakpoint elsewhere."""

from __future__ import annotations

from typing import Any, Optional

from playwright.async_api import Page

from visual_regression.models.config import VisualRegressionConfig

MOBILE_PLATFORMS = ("android", "ios")


def is_mobile(capabilities: Optional[dict[str, Any]]) -> bool:
    if not capabilities:
        return False
    if capabilities.get("isMobile") or capabilities.get("is_mobile"):
        return True
    platform = str(capabilities.get("platformName", "")).lower()
    return platform in MOBILE_PLATFORMS


def breakpoint_for_width(width: int, breakpoints: dict[str, int]) -> str:
    """Return the largest breakpoint whose minimum width fits."""
    ordered = sorted(breakpoints.items(), key=lambda item: item[1])
    name = ordered[0][0]
    for candidate, min_width in ordered:
        if width >= min_width:
            name = candidate
    return name


async def get_orientation(page: Page) -> str:
    size = page.viewport_size
    if size is None:
        size = await page.evaluate("() => ({width: window.innerWidth, height: window.innerHeight})")
    return "landscape" if size["width"] > size["height"] else "portrait"


async def get_form_factor(
    page: Page,
    capabilities: Optional[dict[str, Any]] = None,
    config: Optional[VisualRegressionConfig] = None,
) -> str:
    if is_mobile(capabilities):
        return await get_orientation(page)
    config = config or VisualRegressionConfig()
    width = await page.evaluate("() => window.innerWidth")
    return breakpoint_for_width(int(width), config.breakpoints)
