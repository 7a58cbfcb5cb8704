"""Visual regression service — test-runner hooks and the check_element command."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Awaitable, Callable, Optional

from playwright.async_api import Page

from visual_regression.compare.baseline_store import BaselineStore
from visual_regression.compare.local_compare import LocalCompare
from visual_regression.errors import LifecycleError, ScreenshotMismatchError
from visual_regression.executor.element_screenshot import make_element_screenshot
from visual_regression.executor.form_factor import get_form_factor
from visual_regression.executor.lifecycle import LifecycleTracker
from visual_regression.models.config import VisualRegressionConfig
from visual_regression.models.screenshot import (
    CaptureOptions,
    ComparisonResult,
    ScreenshotMeta,
    SuiteInfo,
    TestInfo,
    Verdict,
)

logger = logging.getLogger(__name__)

CaptureCommand = Callable[[Page, str, Optional[CaptureOptions]], Awaitable[bytes | str]]
FormFactorResolver = Callable[[Page, Optional[dict[str, Any]], VisualRegressionConfig], Awaitable[str]]
CheckElement = Callable[..., Awaitable[ComparisonResult]]


class VisualRegressionService:
    """Wires screenshot comparison into a test runner's lifecycle."""

    def __init__(
        self,
        config: VisualRegressionConfig | None = None,
        launcher_options: dict[str, Any] | None = None,
        capture: CaptureCommand = make_element_screenshot,
        form_factor: FormFactorResolver = get_form_factor,
    ):
        # Launcher options come from the test runner and win over service config
        self.config = (config or VisualRegressionConfig()).with_launcher_options(launcher_options)
        self.compare = LocalCompare(BaselineStore(Path(self.config.baselines_dir)), self.config)
        self.tracker: LifecycleTracker | None = None
        self.check_element: CheckElement | None = None
        self._capture = capture
        self._form_factor = form_factor

    async def before(self, capabilities: dict[str, Any] | None, page: Page) -> None:
        """Start a run and register ``check_element`` for the given page."""
        self.tracker = LifecycleTracker()
        self.tracker.on_before(capabilities)
        self.check_element = self.wrap_command(page, self._capture)
        logger.info("Visual regression run started (locale=%s, theme=%s, baselines=%s)",
                    self.config.locale, self.config.theme, self.config.baselines_dir)

    def before_suite(self, suite: SuiteInfo) -> None:
        self._active_tracker().on_before_suite(suite)

    def after_suite(self) -> None:
        self._active_tracker().on_after_suite()

    def before_test(self, test: TestInfo) -> None:
        self._active_tracker().on_before_test(test)

    def after_test(self) -> None:
        self._active_tracker().on_after_test()

    def after(self) -> None:
        self._active_tracker().on_after()
        self.check_element = None

    def wrap_command(self, page: Page, command: CaptureCommand) -> CheckElement:
        """Bind a capture command to the page and the current run context."""

        async def wrapped_screenshot_command(
            element_selector: str, options: CaptureOptions | dict[str, Any] | None = None,
        ) -> ComparisonResult:
            tracker = self._active_tracker()
            if isinstance(options, dict):
                options = CaptureOptions(**options)

            current_form_factor = await self._form_factor(page, tracker.capabilities, self.config)
            context = tracker.build_context(
                meta=ScreenshotMeta(current_form_factor=current_form_factor),
                options=options,
            ).compact()
            logger.debug("Checking %s with context %s", element_selector, context.model_dump(exclude_none=True))

            screenshot = await command(page, element_selector, options)
            return await self.compare.process_screenshot(context, screenshot)

        return wrapped_screenshot_command

    async def validate_element(
        self, element_selector: str, options: CaptureOptions | dict[str, Any] | None = None,
    ) -> ComparisonResult:
        """Like ``check_element`` but raises when the screenshot does not match."""
        if self.check_element is None:
            raise LifecycleError("validate_element called before the run started")
        if isinstance(options, dict):
            options = CaptureOptions(**options)
        result = await self.check_element(element_selector, options)

        tolerance = self.config.mismatch_tolerance
        if options and options.mismatch_tolerance is not None:
            tolerance = options.mismatch_tolerance
        verdict = result.verdict(tolerance)
        if verdict == Verdict.FAIL:
            raise ScreenshotMismatchError(
                f"Screenshot of '{element_selector}' differs from baseline: "
                f"{result.mis_match_percentage:.2f}% mismatch (tolerance: {tolerance:.2f}%)",
                {
                    "selector": element_selector,
                    "mis_match_percentage": result.mis_match_percentage,
                    "is_same_dimensions": result.is_same_dimensions,
                },
            )
        if verdict == Verdict.NEW_BASELINE:
            logger.warning("New baseline recorded for '%s'; review it before relying on it", element_selector)
        return result

    def _active_tracker(self) -> LifecycleTracker:
        if self.tracker is None:
            raise LifecycleError("Hook called before the run started")
        return self.tracker
