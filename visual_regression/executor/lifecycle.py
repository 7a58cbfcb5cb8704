"""Lifecycle tracker — remembers which suite and test a screenshot belongs to."""

from __future__ import annotations

import logging
from typing import Any, Optional

from visual_regression.errors import LifecycleError
from visual_regression.models.screenshot import (
    CaptureOptions,
    ScreenshotContext,
    ScreenshotMeta,
    SuiteInfo,
    TestInfo,
)

logger = logging.getLogger(__name__)


class LifecycleTracker:
    """Tracks the current run, suite and test across test-runner hooks.

    One tracker covers one run: it starts with ``on_before`` and ends with
    ``on_after``. Suites nest (one ``describe`` inside another), so open
    suites are kept as a stack and the current suite is the innermost one.
    Suites and tests run one at a time, so no locking is needed.
    """

    def __init__(self) -> None:
        self._capabilities: Optional[dict[str, Any]] = None
        self._suites: list[SuiteInfo] = []
        self._test: Optional[TestInfo] = None
        self._started = False
        self._disposed = False

    @property
    def capabilities(self) -> Optional[dict[str, Any]]:
        return self._capabilities

    @property
    def current_suite(self) -> Optional[SuiteInfo]:
        return self._suites[-1] if self._suites else None

    @property
    def suite_path(self) -> list[str]:
        """Titles of the open suites, outermost first."""
        return [s.title for s in self._suites]

    @property
    def current_test(self) -> Optional[TestInfo]:
        return self._test

    @property
    def is_active(self) -> bool:
        return self._started and not self._disposed

    def on_before(self, capabilities: Optional[dict[str, Any]]) -> None:
        if self._started:
            raise LifecycleError("Run already started")
        self._capabilities = dict(capabilities or {})
        self._started = True
        logger.debug("Run started with capabilities %s", self._capabilities)

    def on_before_suite(self, suite: SuiteInfo) -> None:
        self._require_active("before_suite")
        self._suites.append(suite)
        self._test = None

    def on_after_suite(self) -> None:
        self._require_active("after_suite")
        if not self._suites:
            raise LifecycleError("after_suite called with no open suite")
        self._suites.pop()
        self._test = None

    def on_before_test(self, test: TestInfo) -> None:
        self._require_active("before_test")
        if not self._suites:
            raise LifecycleError(f"Test '{test.title}' started outside of a suite")
        self._test = test

    def on_after_test(self) -> None:
        self._require_active("after_test")
        self._test = None

    def on_after(self) -> None:
        """Dispose the run; further hooks raise."""
        self._suites.clear()
        self._test = None
        self._capabilities = None
        self._disposed = True

    def build_context(
        self, meta: Optional[ScreenshotMeta] = None, options: Optional[CaptureOptions] = None,
    ) -> ScreenshotContext:
        self._require_active("build_context")
        suite = self.current_suite
        if suite is not None and len(self._suites) > 1:
            suite = suite.model_copy(update={"parents": self.suite_path[:-1]})
        return ScreenshotContext(
            capabilities=self._capabilities,
            suite=suite,
            test=self._test,
            meta=meta,
            options=options,
        )

    def _require_active(self, hook: str) -> None:
        if not self._started:
            raise LifecycleError(f"{hook} called before the run started")
        if self._disposed:
            raise LifecycleError(f"{hook} called after the run ended")
