"""Full-page screenshots of the preview across the viewport matrix."""

from __future__ import annotations

import asyncio
import logging
import re
import time
from pathlib import Path
from typing import Optional

from theme_qa.analysis.base import Analyzer, analyze_safely
from theme_qa.auth.login import ensure_logged_in
from theme_qa.errors import CaptureAborted, ConfigError
from theme_qa.models.config import QAConfig
from theme_qa.models.results import Issue, PhaseResult, ScreenshotRecord, ViewportFailure
from theme_qa.viewports import ViewportPreset, filter_viewports

logger = logging.getLogger(__name__)

PHASE = "capture"


def screenshot_path(out_dir: Path, theme: str, preset: ViewportPreset, timestamp: str) -> Path:
    """``{dir}/{theme}-{preset}-{timestamp}.png`` with the theme made filename-safe."""
    safe_theme = re.sub(r"[^\w.-]+", "-", theme).strip("-") or "theme"
    return out_dir / f"{safe_theme}-{preset.name}-{timestamp}.png"


class _Outcome:
    def __init__(
        self,
        preset: ViewportPreset,
        record: ScreenshotRecord | None = None,
        issues: list[Issue] | None = None,
        error: BaseException | None = None,
    ):
        self.preset = preset
        self.record = record
        self.issues = issues or []
        self.error = error


async def run_capture(
    client,
    config: QAConfig,
    preview_url: str,
    theme: str,
    viewports: str = "all",
    screenshot_dir: str | Path | None = None,
    analyzer: Optional[Analyzer] = None,
    page_id: Optional[str] = None,
    policy: Optional[str] = None,
) -> PhaseResult:
    """Capture every selected preset in matrix order.

    ``policy`` is ``"abort"`` (stop at the first failing preset and raise
    CaptureAborted with what was captured so far) or ``"continue"``
    (attempt every preset and report failures in the result).
    """
    presets = filter_viewports(viewports)
    if not presets:
        raise ConfigError(f"Viewport filter '{viewports}' selects no presets")
    policy = policy or config.capture_policy
    if policy not in ("abort", "continue"):
        raise ConfigError(f"Unknown capture policy: {policy}")

    out_dir = Path(screenshot_dir or config.screenshot_dir)
    out_dir.mkdir(parents=True, exist_ok=True)

    if config.has_credentials:
        # Unpublished previews are only visible to a logged-in session
        await ensure_logged_in(client, config)

    logger.info("Capture: %d viewport(s) [%s], policy=%s, concurrency=%d",
                len(presets), ", ".join(p.name for p in presets), policy, config.capture_concurrency)

    semaphore = asyncio.Semaphore(config.capture_concurrency)
    aborted = asyncio.Event()

    async def _capture_one(index: int, preset: ViewportPreset) -> _Outcome | None:
        async with semaphore:
            if aborted.is_set():
                return None
            logger.info("Capturing [%d/%d]: %s (%dx%d)",
                        index + 1, len(presets), preset.name, preset.width, preset.height)
            try:
                record = await _screenshot(client, config, preview_url, theme, preset, out_dir)
            except Exception as e:
                logger.error("Capture failed for %s: %s", preset.name, e)
                if policy == "abort":
                    aborted.set()
                return _Outcome(preset, error=e)

        issues = await analyze_safely(analyzer, record, preset) if analyzer else []
        return _Outcome(preset, record=record, issues=issues)

    outcomes = await asyncio.gather(*(_capture_one(i, p) for i, p in enumerate(presets)))

    result = PhaseResult(phase=PHASE, page_id=page_id, preview_url=preview_url)
    first_error: _Outcome | None = None
    for outcome in outcomes:
        if outcome is None:
            continue
        if outcome.error is not None:
            result.failures.append(ViewportFailure(viewport=outcome.preset.name, error=str(outcome.error)))
            first_error = first_error or outcome
            continue
        result.screenshots.append(outcome.record)
        result.issues.extend(outcome.issues)

    if first_error is not None:
        result.success = False
        result.summary = (
            f"Captured {len(result.screenshots)}/{len(presets)} viewport(s); "
            f"{len(result.failures)} failed"
        )
        if policy == "abort":
            result.error = str(first_error.error)
            result.error_kind = CaptureAborted.kind
            raise CaptureAborted(first_error.preset.name, first_error.error, result)
        result.error = "; ".join(f"{f.viewport}: {f.error}" for f in result.failures)
        result.error_kind = "capture_failed"
        return result

    result.summary = (
        f"Captured {len(result.screenshots)} viewport(s) of {theme}, "
        f"{len(result.issues)} issue(s) flagged"
    )
    logger.info("Capture: %s", result.summary)
    return result


async def _screenshot(
    client,
    config: QAConfig,
    preview_url: str,
    theme: str,
    preset: ViewportPreset,
    out_dir: Path,
) -> ScreenshotRecord:
    name = f"capture-{preset.name}"
    page = await client.page(name, viewport=preset.size)
    try:
        await page.goto(preview_url, wait_until="domcontentloaded")
        await client.wait_for_load(name, settle_ms=config.settle_ms)
        path = screenshot_path(out_dir, theme, preset, time.strftime("%Y%m%d-%H%M%S"))
        await page.screenshot(path=str(path), full_page=True)
    finally:
        await client.close_page(name)

    logger.debug("Saved %s", path)
    return ScreenshotRecord(
        viewport=preset.name,
        category=preset.category,
        width=preset.width,
        height=preset.height,
        path=str(path),
    )
