"""Tests for the capture phase."""

from pathlib import Path
from unittest.mock import AsyncMock

import pytest
from PIL import Image

from theme_qa.analysis.heuristics import ImageHeuristicsAnalyzer
from theme_qa.errors import CaptureAborted, ConfigError
from theme_qa.models.results import Issue
from theme_qa.phases.capture import run_capture, screenshot_path
from theme_qa.viewports import VIEWPORTS

PREVIEW = "https://mautic.example.com/page/preview/42"
THEME = "1270-logan-mautic"


class TestScreenshotPath:
    def test_layout(self, tmp_path):
        path = screenshot_path(tmp_path, THEME, VIEWPORTS[0], "20261019-101500")
        assert path == tmp_path / "1270-logan-mautic-desktop-1920x1080-20261019-101500.png"

    def test_theme_made_filename_safe(self, tmp_path):
        path = screenshot_path(tmp_path, "My Theme/v2", VIEWPORTS[0], "ts")
        assert path.name == "My-Theme-v2-desktop-1920x1080-ts.png"


class TestCapturePhase:
    @pytest.mark.asyncio
    async def test_mobile_matrix(self, client, config, tmp_path):
        result = await run_capture(client, config, PREVIEW, THEME, "mobile", tmp_path, page_id="42")
        assert result.success
        assert result.page_id == "42"
        assert [s.viewport for s in result.screenshots] == [
            "mobile-414x896", "mobile-390x844", "mobile-375x812",
        ]
        for shot in result.screenshots:
            name = Path(shot.path).name
            assert name.startswith(f"{THEME}-{shot.viewport}-")
            assert Path(shot.path).exists()
            assert shot.category == "mobile"

    @pytest.mark.asyncio
    async def test_sets_viewport_per_preset(self, client, site, config, tmp_path):
        await run_capture(client, config, PREVIEW, THEME, "tablet-768x1024", tmp_path)
        with Image.open(site.screenshots[0]) as img:
            assert img.size[0] == 768

    @pytest.mark.asyncio
    async def test_closes_capture_pages(self, client, config, tmp_path):
        await run_capture(client, config, PREVIEW, THEME, "mobile", tmp_path)
        assert not any(name.startswith("capture-") for name in client._pages)

    @pytest.mark.asyncio
    async def test_logs_in_for_unpublished_preview(self, client, site, config, tmp_path):
        await run_capture(client, config, PREVIEW, THEME, "mobile-375x812", tmp_path)
        assert site.logged_in

    @pytest.mark.asyncio
    async def test_without_credentials_skips_login(self, client, site, config, tmp_path):
        config.username = ""
        result = await run_capture(client, config, PREVIEW, THEME, "mobile-375x812", tmp_path)
        assert result.success
        assert site.login_submits == 0

    @pytest.mark.asyncio
    async def test_empty_filter_is_a_usage_error(self, client, config, tmp_path):
        with pytest.raises(ConfigError, match="bogus"):
            await run_capture(client, config, PREVIEW, THEME, "bogus", tmp_path)

    @pytest.mark.asyncio
    async def test_abort_policy_stops_at_first_failure(self, client, site, config, tmp_path):
        site.fail_widths = {390}
        with pytest.raises(CaptureAborted) as exc_info:
            await run_capture(client, config, PREVIEW, THEME, "mobile", tmp_path, page_id="42")
        error = exc_info.value
        assert error.viewport == "mobile-390x844"
        assert [s.viewport for s in error.partial.screenshots] == ["mobile-414x896"]
        assert error.partial.success is False
        assert error.partial.page_id == "42"
        # presets after the failure were never attempted
        assert len(site.screenshots) == 1

    @pytest.mark.asyncio
    async def test_continue_policy_reports_failures(self, client, site, config, tmp_path):
        site.fail_widths = {390}
        result = await run_capture(client, config, PREVIEW, THEME, "mobile", tmp_path, policy="continue")
        assert result.success is False
        assert result.error_kind == "capture_failed"
        assert [s.viewport for s in result.screenshots] == ["mobile-414x896", "mobile-375x812"]
        assert [f.viewport for f in result.failures] == ["mobile-390x844"]

    @pytest.mark.asyncio
    async def test_concurrent_capture_keeps_matrix_order(self, client, config, tmp_path):
        config.capture_concurrency = 4
        result = await run_capture(client, config, PREVIEW, THEME, "all", tmp_path)
        assert [s.viewport for s in result.screenshots] == [p.name for p in VIEWPORTS]
        assert all(Path(s.path).exists() for s in result.screenshots)

    @pytest.mark.asyncio
    async def test_unknown_policy(self, client, config, tmp_path):
        with pytest.raises(ConfigError):
            await run_capture(client, config, PREVIEW, THEME, "mobile", tmp_path, policy="retry")


class TestCaptureAnalysis:
    @pytest.mark.asyncio
    async def test_issues_collected_per_image(self, client, site, config, tmp_path):
        site.blank = True
        analyzer = ImageHeuristicsAnalyzer()
        result = await run_capture(client, config, PREVIEW, THEME, "mobile", tmp_path, analyzer=analyzer)
        assert [i.kind for i in result.issues] == ["blank_render"] * 3
        assert [i.viewport for i in result.issues] == [s.viewport for s in result.screenshots]

    @pytest.mark.asyncio
    async def test_failing_analyzer_never_aborts_capture(self, client, config, tmp_path):
        analyzer = AsyncMock()
        analyzer.name = "broken"
        analyzer.analyze.side_effect = RuntimeError("model unavailable")
        result = await run_capture(client, config, PREVIEW, THEME, "mobile", tmp_path, analyzer=analyzer)
        assert result.success
        assert len(result.screenshots) == 3
        assert result.issues == []

    @pytest.mark.asyncio
    async def test_analyzer_receives_record_and_preset(self, client, config, tmp_path):
        analyzer = AsyncMock()
        analyzer.name = "stub"
        analyzer.analyze.return_value = [Issue(viewport="mobile-375x812", kind="overlap", message="x")]
        result = await run_capture(client, config, PREVIEW, THEME, "mobile-375x812", tmp_path, analyzer=analyzer)
        record, preset = analyzer.analyze.call_args.args
        assert record.viewport == "mobile-375x812"
        assert preset.width == 375
        assert len(result.issues) == 1
