"""Pluggable anomaly flagging per captured screenshot."""

from __future__ import annotations

import logging
from typing import Optional, Protocol

from theme_qa.models.config import QAConfig
from theme_qa.models.results import Issue, ScreenshotRecord
from theme_qa.viewports import ViewportPreset

logger = logging.getLogger(__name__)


class Analyzer(Protocol):
    name: str

    async def analyze(self, screenshot: ScreenshotRecord, preset: ViewportPreset) -> list[Issue]: ...


class CompositeAnalyzer:
    """Runs several analyzers in order and concatenates their issues."""

    name = "composite"

    def __init__(self, analyzers: list[Analyzer]):
        self.analyzers = analyzers

    async def analyze(self, screenshot: ScreenshotRecord, preset: ViewportPreset) -> list[Issue]:
        issues: list[Issue] = []
        for analyzer in self.analyzers:
            issues.extend(await analyze_safely(analyzer, screenshot, preset))
        return issues


async def analyze_safely(
    analyzer: Analyzer, screenshot: ScreenshotRecord, preset: ViewportPreset,
) -> list[Issue]:
    """Run one analyzer; a failing analyzer yields no issues instead of an error."""
    try:
        issues = await analyzer.analyze(screenshot, preset)
    except Exception as e:
        logger.warning("Analyzer %s failed on %s: %s",
                       getattr(analyzer, "name", type(analyzer).__name__), screenshot.path, e)
        return []
    if issues:
        logger.info("Analyzer %s flagged %d issue(s) on %s",
                    getattr(analyzer, "name", "?"), len(issues), preset.name)
    return issues


def build_analyzer(config: QAConfig, theme: Optional[str] = None) -> Analyzer:
    """Default analyzer chain: image heuristics, plus Claude vision when enabled.

    ``theme`` is the theme under test; it defaults to ``config.theme``.
    """
    from theme_qa.analysis.heuristics import ImageHeuristicsAnalyzer

    analyzers: list[Analyzer] = [ImageHeuristicsAnalyzer(blank_threshold=config.analysis.blank_threshold)]
    if config.analysis.vision:
        from theme_qa.analysis.vision import VisionAnalyzer

        try:
            analyzers.append(VisionAnalyzer.from_config(config, theme))
        except EnvironmentError as e:
            logger.warning("Vision analysis unavailable: %s. Using image heuristics only.", e)
    return CompositeAnalyzer(analyzers)
