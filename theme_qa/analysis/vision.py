"""Asks Claude to review each screenshot for layout defects."""

from __future__ import annotations

import asyncio
import base64
import json
import logging
import os
import re
import time
from typing import Optional

import anthropic

from theme_qa.analysis.prompts import LAYOUT_REVIEW_SYSTEM_PROMPT, build_layout_review_prompt
from theme_qa.models.config import QAConfig
from theme_qa.models.results import Issue, ScreenshotRecord
from theme_qa.viewports import ViewportPreset

logger = logging.getLogger(__name__)

_VALID_SEVERITIES = ("info", "warning", "error")
_FENCE_RE = re.compile(r'^```(?:json)?\s*\n(.*?)\n```\s*$', re.DOTALL | re.MULTILINE)


class AIClient:
    """Claude client for one-shot screenshot reviews."""

    def __init__(self, model: str = "claude-opus-4-6", max_tokens: int = 1500):
        api_key = os.environ.get("ANTHROPIC_API_KEY")
        if not api_key:
            raise EnvironmentError("ANTHROPIC_API_KEY is not set; vision analysis needs it.")
        self.client = anthropic.Anthropic(api_key=api_key, timeout=120.0)
        self.model = model
        self.max_tokens = max_tokens

    def review_image(self, system_prompt: str, prompt: str, image_path: str) -> str:
        """Send a PNG with a review prompt and return Claude's reply text."""
        with open(image_path, "rb") as f:
            data = base64.b64encode(f.read()).decode()

        start = time.time()
        try:
            response = self.client.messages.create(
                model=self.model,
                max_tokens=self.max_tokens,
                system=system_prompt,
                messages=[{
                    "role": "user",
                    "content": [
                        {"type": "image", "source": {"type": "base64", "media_type": "image/png", "data": data}},
                        {"type": "text", "text": prompt},
                    ],
                }],
            )
        except anthropic.APIError as e:
            logger.error("Layout review of %s failed: %s", image_path, e)
            raise

        text = response.content[0].text
        logger.debug("Layout review of %s took %.1fs", image_path, time.time() - start)
        return text


def parse_verdict(text: str) -> dict:
    """Read the reviewer's JSON object, ignoring code fences and surrounding prose."""
    text = text.strip()
    fence = _FENCE_RE.search(text)
    if fence:
        text = fence.group(1)
    first, last = text.find("{"), text.rfind("}")
    if first == -1 or last <= first:
        raise ValueError("Reviewer returned invalid JSON: no object found")
    try:
        return json.loads(text[first:last + 1])
    except json.JSONDecodeError as e:
        logger.debug("Unparsable review reply:\n%s", text[:2000])
        raise ValueError(f"Reviewer returned invalid JSON: {e}") from e


class VisionAnalyzer:
    name = "vision"

    def __init__(self, ai_client: AIClient, theme: str = ""):
        self.ai_client = ai_client
        self.theme = theme

    @classmethod
    def from_config(cls, config: QAConfig, theme: Optional[str] = None) -> "VisionAnalyzer":
        client = AIClient(model=config.analysis.vision_model, max_tokens=config.analysis.vision_max_tokens)
        return cls(client, theme=theme or config.theme)

    async def analyze(self, screenshot: ScreenshotRecord, preset: ViewportPreset) -> list[Issue]:
        text = await asyncio.to_thread(
            self.ai_client.review_image,
            system_prompt=LAYOUT_REVIEW_SYSTEM_PROMPT,
            prompt=build_layout_review_prompt(preset.name, preset.width, preset.height, self.theme),
            image_path=screenshot.path,
        )
        return self.to_issues(parse_verdict(text), screenshot, preset)

    def to_issues(self, data: dict, screenshot: ScreenshotRecord, preset: ViewportPreset) -> list[Issue]:
        issues = []
        for item in data.get("issues") or []:
            if not isinstance(item, dict) or not item.get("message"):
                continue
            severity = str(item.get("severity", "warning")).lower()
            issues.append(Issue(
                viewport=preset.name,
                screenshot=screenshot.path,
                kind=str(item.get("kind") or "other"),
                severity=severity if severity in _VALID_SEVERITIES else "warning",
                message=str(item["message"]),
                source=self.name,
            ))
        return issues
