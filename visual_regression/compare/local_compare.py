"""Local compare — checks a captured screenshot against its stored baseline."""

from __future__ import annotations

import asyncio
import logging

from PIL import Image

from visual_regression.compare.baseline_store import BaselineStore
from visual_regression.compare.image_diff import decode_image, diff
from visual_regression.models.config import VisualRegressionConfig
from visual_regression.models.screenshot import (
    BaselineIdentity,
    ComparisonResult,
    ComparisonStatus,
    IgnoreComparison,
    ScreenshotContext,
    Verdict,
)

logger = logging.getLogger(__name__)


class LocalCompare:
    """Compares screenshots against baselines kept on the local filesystem."""

    def __init__(self, store: BaselineStore, config: VisualRegressionConfig):
        self.store = store
        self.config = config

    def identity_for(self, context: ScreenshotContext) -> BaselineIdentity:
        return BaselineIdentity.from_context(context, locale=self.config.locale, theme=self.config.theme)

    def tolerance_for(self, context: ScreenshotContext) -> float:
        options = context.options
        if options and options.mismatch_tolerance is not None:
            return options.mismatch_tolerance
        return self.config.mismatch_tolerance

    def _ignore_comparison_for(self, context: ScreenshotContext) -> IgnoreComparison:
        options = context.options
        if options and options.ignore_comparison is not None:
            return options.ignore_comparison
        return self.config.ignore_comparison

    def _update_mode_for(self, context: ScreenshotContext) -> bool:
        options = context.options
        if options and options.update_screenshots is not None:
            return options.update_screenshots
        return self.config.update_screenshots

    async def process_screenshot(self, context: ScreenshotContext, screenshot: bytes | str) -> ComparisonResult:
        """Compare a capture with its baseline, creating or updating the baseline as needed."""
        return await asyncio.to_thread(self._process, context.compact(), screenshot)

    def _process(self, context: ScreenshotContext, screenshot: bytes | str) -> ComparisonResult:
        identity = self.identity_for(context)
        key = self.store.resolve_key(identity)
        captured = decode_image(screenshot)
        update_mode = self._update_mode_for(context)

        with self.store.lock(key):
            baseline = self.store.load(key)

            if baseline is None:
                self.store.save(key, captured, identity)
                logger.warning("No baseline for %s, stored capture as new baseline", key)
                return _without_diff(captured, ComparisonStatus.BASELINE_CREATED)

            if update_mode:
                self.store.save(key, captured, identity)
                logger.info("Updated baseline %s", key)
                return _without_diff(captured, ComparisonStatus.BASELINE_UPDATED)

            result = diff(baseline, captured, self._ignore_comparison_for(context))
            tolerance = self.tolerance_for(context)
            verdict = result.verdict(tolerance)

            if verdict == Verdict.FAIL:
                if self.config.save_diff_images:
                    self.store.save_artifacts(key, captured, result.image)
                logger.warning(
                    "Screenshot %s differs from baseline: %.2f%% mismatch (tolerance %.2f%%, same dimensions: %s)",
                    key, result.mis_match_percentage, tolerance, result.is_same_dimensions,
                )
            else:
                self.store.clear_artifacts(key)
                logger.debug("Screenshot %s matches baseline (%.2f%%)", key, result.mis_match_percentage)
            return result


def _without_diff(captured: Image.Image, status: ComparisonStatus) -> ComparisonResult:
    return ComparisonResult(
        mis_match_percentage=0.0,
        is_same_dimensions=True,
        image=captured,
        status=status,
    )
