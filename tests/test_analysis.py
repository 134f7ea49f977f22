"""Tests for screenshot analyzers."""

import os
from unittest.mock import AsyncMock, Mock, patch

import pytest

from theme_qa.analysis.base import CompositeAnalyzer, analyze_safely, build_analyzer
from theme_qa.analysis.heuristics import ImageHeuristicsAnalyzer
from theme_qa.analysis.prompts import build_layout_review_prompt
from theme_qa.analysis.vision import AIClient, VisionAnalyzer, parse_verdict
from theme_qa.models.results import Issue
from theme_qa.viewports import filter_viewports

PRESET = filter_viewports("mobile-375x812")[0]


class TestImageHeuristics:
    def test_clean_render(self, tmp_path, create_screenshot_helper):
        record = create_screenshot_helper(tmp_path / "ok.png")
        assert ImageHeuristicsAnalyzer().check_image(record, PRESET) == []

    def test_blank_render(self, tmp_path, create_screenshot_helper):
        record = create_screenshot_helper(tmp_path / "blank.png", blank=True)
        issues = ImageHeuristicsAnalyzer().check_image(record, PRESET)
        assert [i.kind for i in issues] == ["blank_render"]
        assert issues[0].severity == "error"
        assert issues[0].source == "heuristics"

    def test_horizontal_overflow(self, tmp_path, create_screenshot_helper):
        record = create_screenshot_helper(tmp_path / "wide.png", width=520)
        issues = ImageHeuristicsAnalyzer().check_image(record, PRESET)
        assert [i.kind for i in issues] == ["horizontal_overflow"]
        assert "520px" in issues[0].message

    @pytest.mark.asyncio
    async def test_analyze_runs_off_loop(self, tmp_path, create_screenshot_helper):
        record = create_screenshot_helper(tmp_path / "blank.png", blank=True)
        issues = await ImageHeuristicsAnalyzer(blank_threshold=0).analyze(record, PRESET)
        assert [i.kind for i in issues] == ["blank_render"]


class TestComposite:
    @pytest.mark.asyncio
    async def test_concatenates_in_order(self, tmp_path, create_screenshot_helper):
        record = create_screenshot_helper(tmp_path / "ok.png")
        first, second = AsyncMock(), AsyncMock()
        first.analyze.return_value = [Issue(viewport=PRESET.name, kind="a")]
        second.analyze.return_value = [Issue(viewport=PRESET.name, kind="b")]
        issues = await CompositeAnalyzer([first, second]).analyze(record, PRESET)
        assert [i.kind for i in issues] == ["a", "b"]

    @pytest.mark.asyncio
    async def test_failing_member_is_skipped(self, tmp_path, create_screenshot_helper):
        record = create_screenshot_helper(tmp_path / "ok.png")
        broken, working = AsyncMock(), AsyncMock()
        broken.name = "broken"
        broken.analyze.side_effect = ValueError("AI returned invalid JSON")
        working.analyze.return_value = [Issue(viewport=PRESET.name, kind="b")]
        issues = await CompositeAnalyzer([broken, working]).analyze(record, PRESET)
        assert [i.kind for i in issues] == ["b"]

    @pytest.mark.asyncio
    async def test_analyze_safely_missing_file(self, tmp_path, create_screenshot_helper):
        record = create_screenshot_helper(tmp_path / "ok.png")
        record.path = str(tmp_path / "gone.png")
        assert await analyze_safely(ImageHeuristicsAnalyzer(), record, PRESET) == []


class TestBuildAnalyzer:
    def test_heuristics_only_by_default(self, config):
        analyzer = build_analyzer(config)
        assert [a.name for a in analyzer.analyzers] == ["heuristics"]

    def test_vision_without_api_key_falls_back(self, config):
        config.analysis.vision = True
        with patch.dict(os.environ, {}, clear=True):
            analyzer = build_analyzer(config)
        assert [a.name for a in analyzer.analyzers] == ["heuristics"]

    @patch("anthropic.Anthropic")
    def test_vision_enabled(self, mock_anthropic, config):
        config.analysis.vision = True
        with patch.dict(os.environ, {"ANTHROPIC_API_KEY": "test-key"}):
            analyzer = build_analyzer(config)
        assert [a.name for a in analyzer.analyzers] == ["heuristics", "vision"]
        vision = analyzer.analyzers[1]
        assert vision.ai_client.model == config.analysis.vision_model
        assert vision.theme == config.theme

    @patch("anthropic.Anthropic")
    def test_vision_prompt_names_theme_under_test(self, mock_anthropic, config):
        config.analysis.vision = True
        with patch.dict(os.environ, {"ANTHROPIC_API_KEY": "test-key"}):
            analyzer = build_analyzer(config, "other-theme")
        assert analyzer.analyzers[1].theme == "other-theme"


class TestAIClient:
    def test_init_requires_api_key(self):
        with patch.dict(os.environ, {}, clear=True):
            with pytest.raises(EnvironmentError, match="ANTHROPIC_API_KEY"):
                AIClient()

    @patch("anthropic.Anthropic")
    def test_review_image(self, mock_anthropic_class, mock_anthropic_client, tmp_path):
        mock_anthropic_class.return_value = mock_anthropic_client
        image = tmp_path / "shot.png"
        image.write_bytes(b"hello")
        with patch.dict(os.environ, {"ANTHROPIC_API_KEY": "test-key"}):
            client = AIClient(model="claude-test", max_tokens=500)
            text = client.review_image("system", "review", str(image))

        assert text == '{"issues": []}'
        kwargs = mock_anthropic_client.messages.create.call_args.kwargs
        assert kwargs["model"] == "claude-test"
        assert kwargs["max_tokens"] == 500
        assert kwargs["system"] == "system"
        content = kwargs["messages"][0]["content"]
        assert content[0]["source"]["data"] == "aGVsbG8="
        assert content[1]["text"] == "review"


class TestParseVerdict:
    def test_plain_json(self):
        assert parse_verdict('{"issues": []}') == {"issues": []}

    def test_fenced_json(self):
        text = '```json\n{"issues": [{"kind": "overlap"}]}\n```'
        assert parse_verdict(text) == {"issues": [{"kind": "overlap"}]}

    def test_json_inside_prose(self):
        text = 'Here you go:\n{"issues": [{"kind": "overlap"}]}\nThanks'
        assert parse_verdict(text) == {"issues": [{"kind": "overlap"}]}

    def test_garbage(self):
        with pytest.raises(ValueError, match="invalid JSON"):
            parse_verdict("no json here")

    def test_broken_object(self):
        with pytest.raises(ValueError, match="invalid JSON"):
            parse_verdict('{"issues": [}')


class TestVisionAnalyzer:
    @pytest.mark.asyncio
    async def test_converts_verdict_to_issues(self, tmp_path, create_screenshot_helper):
        record = create_screenshot_helper(tmp_path / "ok.png")
        ai_client = Mock()
        ai_client.review_image = Mock(return_value=(
            '{"issues": ['
            '{"kind": "overlap", "severity": "error", "message": "Hero overlaps nav"},'
            '{"kind": "clipped_text", "severity": "critical", "message": "CTA text clipped"},'
            '{"kind": "other"}'
            ']}'
        ))

        issues = await VisionAnalyzer(ai_client, theme="logan").analyze(record, PRESET)

        assert [(i.kind, i.severity) for i in issues] == [("overlap", "error"), ("clipped_text", "warning")]
        assert all(i.source == "vision" and i.viewport == PRESET.name for i in issues)
        kwargs = ai_client.review_image.call_args.kwargs
        assert "mobile-375x812 (375x812)" in kwargs["prompt"]
        assert "Theme: logan" in kwargs["prompt"]
        assert kwargs["image_path"] == record.path

    @pytest.mark.asyncio
    async def test_no_issues(self, tmp_path, create_screenshot_helper, mock_ai_client):
        record = create_screenshot_helper(tmp_path / "ok.png")
        assert await VisionAnalyzer(mock_ai_client).analyze(record, PRESET) == []


def test_prompt_without_theme():
    prompt = build_layout_review_prompt("desktop-1920x1080", 1920, 1080)
    assert "Theme:" not in prompt
    assert "desktop-1920x1080 (1920x1080)" in prompt
