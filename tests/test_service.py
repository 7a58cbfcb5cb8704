"""Tests for the visual regression service and its check_element command."""

from unittest.mock import AsyncMock, Mock

import pytest

from tests.image_helpers import png_bytes, solid_image, with_block
from visual_regression.errors import LifecycleError, ScreenshotMismatchError
from visual_regression.executor.service import VisualRegressionService
from visual_regression.models.screenshot import (
    CaptureOptions,
    ComparisonStatus,
    ScreenshotContext,
    Verdict,
)


def _make_service(config, image=None, form_factor="huge", **kwargs) -> VisualRegressionService:
    capture = AsyncMock(return_value=png_bytes(image if image is not None else solid_image()))
    resolver = AsyncMock(return_value=form_factor)
    return VisualRegressionService(config, capture=capture, form_factor=resolver, **kwargs)


async def _start(service, mock_page, suite_info, test_info, capabilities=None):
    await service.before(capabilities if capabilities is not None else {"browserName": "chromium"}, mock_page)
    service.before_suite(suite_info)
    service.before_test(test_info)


class TestServiceConfig:
    """Tests for config resolution at construction."""

    def test_launcher_options_override_service_options(self, config):
        service = VisualRegressionService(config, launcher_options={"locale": "fr", "theme": "clinical"})
        assert service.config.locale == "fr"
        assert service.config.theme == "clinical"
        assert config.locale == "en"

    def test_empty_launcher_options_keep_service_options(self, config):
        service = VisualRegressionService(config, launcher_options={"locale": None})
        assert service.config.locale == "en"

    def test_store_uses_configured_dir(self, config, temp_baselines_dir):
        service = VisualRegressionService(config)
        assert service.compare.store.baselines_dir == temp_baselines_dir


@pytest.mark.asyncio
class TestCheckElement:
    """Tests for the wrapped check_element command."""

    async def test_before_registers_command(self, config, mock_page):
        service = _make_service(config)
        assert service.check_element is None
        await service.before({}, mock_page)
        assert callable(service.check_element)

    async def test_first_check_creates_baseline(self, config, mock_page, suite_info, test_info):
        service = _make_service(config)
        await _start(service, mock_page, suite_info, test_info)

        result = await service.check_element("#root", CaptureOptions(name="primary"))

        assert result.status == ComparisonStatus.BASELINE_CREATED
        entry = service.compare.store.entries()[0]
        assert entry.suite == "Button"
        assert entry.test == "renders default"
        assert entry.form_factor == "huge"
        assert entry.name == "primary"

    async def test_capture_receives_page_selector_and_options(self, config, mock_page, suite_info, test_info):
        service = _make_service(config)
        await _start(service, mock_page, suite_info, test_info)
        options = CaptureOptions(hide=[".clock"], remove=[".ad"])

        await service.check_element("#root", options)

        service._capture.assert_awaited_once_with(mock_page, "#root", options)
        service._form_factor.assert_awaited_once_with(mock_page, {"browserName": "chromium"}, service.config)

    async def test_dict_options_are_accepted(self, config, mock_page, suite_info, test_info):
        service = _make_service(config)
        await _start(service, mock_page, suite_info, test_info)

        await service.check_element("#root", {"name": "dict-named", "mismatch_tolerance": 1.0})

        passed = service._capture.await_args.args[2]
        assert isinstance(passed, CaptureOptions)
        assert service.compare.store.entries()[0].name == "dict-named"

    async def test_context_is_compacted_and_result_returned_unmodified(self, config, mock_page, suite_info, test_info):
        service = _make_service(config)
        sentinel = Mock()
        service.compare = Mock(process_screenshot=AsyncMock(return_value=sentinel))
        await _start(service, mock_page, suite_info, test_info, capabilities={})

        result = await service.check_element("#root")

        assert result is sentinel
        context, screenshot = service.compare.process_screenshot.await_args.args
        assert isinstance(context, ScreenshotContext)
        assert context.capabilities is None
        assert context.options is None
        assert context.meta.current_form_factor == "huge"
        assert context.suite == suite_info
        assert screenshot == png_bytes(solid_image())

    async def test_second_check_passes(self, config, mock_page, suite_info, test_info):
        service = _make_service(config)
        await _start(service, mock_page, suite_info, test_info)
        await service.check_element("#root")
        result = await service.check_element("#root")
        assert result.verdict(config.mismatch_tolerance) == Verdict.PASS

    async def test_form_factor_separates_baselines(self, config, mock_page, suite_info, test_info):
        desktop = _make_service(config, form_factor="huge")
        await _start(desktop, mock_page, suite_info, test_info)
        await desktop.check_element("#root")

        mobile = _make_service(config, form_factor="portrait")
        await _start(mobile, mock_page, suite_info, test_info)
        result = await mobile.check_element("#root")

        assert result.status == ComparisonStatus.BASELINE_CREATED
        assert len(mobile.compare.store.entries()) == 2

    async def test_hooks_before_run_raise(self, config, suite_info):
        service = _make_service(config)
        with pytest.raises(LifecycleError):
            service.before_suite(suite_info)

    async def test_after_unregisters_command(self, config, mock_page, suite_info, test_info):
        service = _make_service(config)
        await _start(service, mock_page, suite_info, test_info)
        service.after_test()
        service.after_suite()
        service.after()
        assert service.check_element is None
        assert not service.tracker.is_active


@pytest.mark.asyncio
class TestValidateElement:
    """Tests for validate_element()."""

    async def test_raises_on_mismatch(self, config, mock_page, suite_info, test_info):
        service = _make_service(config)
        await _start(service, mock_page, suite_info, test_info)
        await service.check_element("#root")

        service._capture.return_value = png_bytes(with_block(solid_image(), (0, 0, 20, 20)))
        with pytest.raises(ScreenshotMismatchError) as exc_info:
            await service.validate_element("#root")
        assert exc_info.value.context["mis_match_percentage"] == pytest.approx(4.0)

    async def test_option_tolerance_allows_mismatch(self, config, mock_page, suite_info, test_info):
        service = _make_service(config)
        await _start(service, mock_page, suite_info, test_info)
        await service.check_element("#root")

        service._capture.return_value = png_bytes(with_block(solid_image(), (0, 0, 20, 20)))
        result = await service.validate_element("#root", {"mismatch_tolerance": 5.0})
        assert result.verdict(5.0) == Verdict.PASS

    async def test_new_baseline_does_not_raise(self, config, mock_page, suite_info, test_info):
        service = _make_service(config)
        await _start(service, mock_page, suite_info, test_info)
        result = await service.validate_element("#root")
        assert result.verdict(0.2) == Verdict.NEW_BASELINE

    async def test_requires_started_run(self, config):
        service = _make_service(config)
        with pytest.raises(LifecycleError):
            await service.validate_element("#root")
