"""Setup phase: config, output directory and Mautic reachability."""

from __future__ import annotations

import logging
import os
from pathlib import Path

from theme_qa.errors import ConfigError
from theme_qa.models.config import QAConfig
from theme_qa.models.results import PhaseResult

logger = logging.getLogger(__name__)

PHASE = "setup"
SETUP_PAGE = "setup"


async def run_setup(client, config: QAConfig, screenshot_dir: str | Path | None = None) -> PhaseResult:
    """Idempotent readiness check. Safe to run any number of times."""
    config.require_credentials()

    out_dir = Path(screenshot_dir or config.screenshot_dir)
    out_dir.mkdir(parents=True, exist_ok=True)
    if not os.access(out_dir, os.W_OK):
        raise ConfigError(f"Screenshot directory is not writable: {out_dir}")
    logger.debug("Screenshot directory ready: %s", out_dir)

    login_url = config.url(config.ui.login_path)
    page = await client.page(SETUP_PAGE)
    try:
        response = await page.goto(login_url, wait_until="domcontentloaded")
    finally:
        await client.close_page(SETUP_PAGE)

    status = response.status if response is not None else 0
    if status == 0 or status >= 500:
        return PhaseResult(
            phase=PHASE,
            success=False,
            summary=f"Mautic not reachable at {login_url} (HTTP {status or 'no response'})",
            error=f"HTTP {status or 'no response'} from {login_url}",
            error_kind="unreachable",
        )

    logger.info("Setup: Mautic reachable at %s (HTTP %d)", config.mautic_url, status)
    return PhaseResult(
        phase=PHASE,
        success=True,
        summary=f"Environment ready: Mautic HTTP {status}, screenshots -> {out_dir}",
    )
