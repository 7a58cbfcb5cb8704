"""Pytest configuration and shared fixtures."""

from pathlib import Path
from unittest.mock import AsyncMock, Mock

import pytest
from playwright.async_api import Page

from tests.image_helpers import png_bytes, solid_image
from visual_regression.compare.baseline_store import BaselineStore
from visual_regression.compare.local_compare import LocalCompare
from visual_regression.models.config import VisualRegressionConfig
from visual_regression.models.screenshot import (
    CaptureOptions,
    ScreenshotContext,
    ScreenshotMeta,
    SuiteInfo,
    TestInfo,
)


# ============================================================================
# Configuration Fixtures
# ============================================================================


@pytest.fixture
def temp_baselines_dir(tmp_path: Path) -> Path:
    """Create a temporary baselines directory."""
    baselines_dir = tmp_path / "__snapshots__"
    baselines_dir.mkdir()
    return baselines_dir


@pytest.fixture
def config(temp_baselines_dir: Path) -> VisualRegressionConfig:
    """Create a test configuration pointing at the temp baselines dir."""
    return VisualRegressionConfig(
        baselines_dir=str(temp_baselines_dir),
        locale="en",
        theme="terra-default-theme",
        mismatch_tolerance=0.2,
    )


@pytest.fixture
def store(temp_baselines_dir: Path) -> BaselineStore:
    return BaselineStore(temp_baselines_dir)


@pytest.fixture
def local_compare(store: BaselineStore, config: VisualRegressionConfig) -> LocalCompare:
    return LocalCompare(store, config)


# ============================================================================
# Context Fixtures
# ============================================================================


@pytest.fixture
def suite_info() -> SuiteInfo:
    return SuiteInfo(title="Button", file="tests/button-spec.js")


@pytest.fixture
def test_info() -> TestInfo:
    return TestInfo(title="renders default", full_title="Button renders default", parent="Button")


@pytest.fixture
def screenshot_context(suite_info: SuiteInfo, test_info: TestInfo) -> ScreenshotContext:
    """A fully populated context for a desktop-sized screenshot."""
    return ScreenshotContext(
        capabilities={"browserName": "chromium"},
        suite=suite_info,
        test=test_info,
        meta=ScreenshotMeta(current_form_factor="huge"),
        options=CaptureOptions(name="primary"),
    )


# ============================================================================
# Playwright Fixtures
# ============================================================================


@pytest.fixture
def mock_page() -> AsyncMock:
    """Create a mock Playwright page."""
    page = AsyncMock(spec=Page)
    page.viewport_size = {"width": 1280, "height": 720}
    page.evaluate = AsyncMock(return_value=1280)
    style_tag = AsyncMock()
    page.add_style_tag = AsyncMock(return_value=style_tag)
    locator = Mock()
    locator.first.screenshot = AsyncMock(return_value=png_bytes(solid_image()))
    page.locator = Mock(return_value=locator)
    return page
