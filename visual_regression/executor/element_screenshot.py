"""Element screenshot capture — hides or removes elements, then screenshots one."""

from __future__ import annotations

import logging
from typing import Optional

from playwright.async_api import Page

from visual_regression.models.screenshot import CaptureOptions

logger = logging.getLogger(__name__)


def build_capture_css(hide: list[str], remove: list[str]) -> str:
    rules = []
    if hide:
        rules.append(f"{', '.join(hide)} {{ opacity: 0 !important; }}")
    if remove:
        rules.append(f"{', '.join(remove)} {{ display: none !important; }}")
    return "\n".join(rules)


async def make_element_screenshot(page: Page, selector: str, options: Optional[CaptureOptions] = None) -> bytes:
    """Capture the first element matching ``selector`` as PNG bytes."""
    options = options or CaptureOptions()
    css = build_capture_css(options.hide, options.remove)
    style_tag = await page.add_style_tag(content=css) if css else None
    try:
        return await page.locator(selector).first.screenshot(type="png", animations="disabled")
    finally:
        if style_tag is not None:
            await style_tag.evaluate("el => el.remove()")
            logger.debug("Restored hidden/removed elements after capturing %s", selector)
