"""Checks that catch broken renders without a baseline."""

from __future__ import annotations

import asyncio

from PIL import Image

from theme_qa.models.results import Issue, ScreenshotRecord
from theme_qa.viewports import ViewportPreset


class ImageHeuristicsAnalyzer:
    """Flags blank renders and horizontal overflow in full-page screenshots."""

    name = "heuristics"

    def __init__(self, blank_threshold: int = 8):
        self.blank_threshold = blank_threshold

    async def analyze(self, screenshot: ScreenshotRecord, preset: ViewportPreset) -> list[Issue]:
        return await asyncio.to_thread(self.check_image, screenshot, preset)

    def check_image(self, screenshot: ScreenshotRecord, preset: ViewportPreset) -> list[Issue]:
        issues: list[Issue] = []
        with Image.open(screenshot.path) as img:
            width, height = img.size
            low, high = img.convert("L").getextrema()

        if high - low <= self.blank_threshold:
            issues.append(Issue(
                viewport=preset.name,
                screenshot=screenshot.path,
                kind="blank_render",
                severity="error",
                message=f"Page renders as a uniform image (luminance {low}-{high})",
                source=self.name,
            ))

        # Full-page captures grow sideways when content overflows the viewport
        if width > preset.width:
            issues.append(Issue(
                viewport=preset.name,
                screenshot=screenshot.path,
                kind="horizontal_overflow",
                severity="warning",
                message=f"Content is {width}px wide in a {preset.width}px viewport",
                source=self.name,
            ))
        return issues
