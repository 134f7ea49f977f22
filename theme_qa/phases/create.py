"""Builds a temporary landing page that uses the theme under test."""

from __future__ import annotations

import logging
import re
import time
from urllib.parse import urlparse

from theme_qa.auth.login import ADMIN_PAGE, ensure_logged_in
from theme_qa.errors import ResolverError, TemplateNotFoundError
from theme_qa.marker import MarkerStore
from theme_qa.models.config import QAConfig
from theme_qa.models.results import PhaseResult
from theme_qa.snapshot.resolver import click_control, matchers_from_lookup
from theme_qa.url_utils import extract_page_id

logger = logging.getLogger(__name__)

PHASE = "create"


def default_title(theme: str) -> str:
    return f"QA {theme} {time.strftime('%Y-%m-%d %H:%M:%S')}"


async def run_create(
    client,
    config: QAConfig,
    marker: MarkerStore,
    theme: str,
    title: str | None = None,
) -> PhaseResult:
    """Log in, pick the theme, save the page and persist its id.

    The id goes into the marker before this returns, so a crash anywhere
    later still leaves a way to find and delete the page.
    """
    config.require_credentials()
    ui = config.ui
    title = title or default_title(theme)

    await ensure_logged_in(client, config)

    new_url = config.url(ui.new_page_path)
    logger.info("Create: opening %s", new_url)
    await client.goto(ADMIN_PAGE, new_url)
    await client.wait_for_load(ADMIN_PAGE, settle_ms=config.settle_ms)

    lookup = ui.theme_select
    row, control = matchers_from_lookup(lookup, theme=theme)
    try:
        await click_control(client, ADMIN_PAGE, row, control, lookup.search_window, lookup.direction)
    except ResolverError as e:
        raise TemplateNotFoundError(
            f"Theme '{theme}' has no selectable control",
            e.row_matcher, e.control_matcher, e.search_window,
        ) from e
    logger.info("Create: selected theme '%s'", theme)

    page = await client.page(ADMIN_PAGE)
    await page.fill(ui.title_selector, title)
    await page.click(ui.save_selector)

    pattern = re.compile(ui.page_id_pattern)
    try:
        await page.wait_for_url(lambda url: bool(pattern.search(urlparse(url).path)), timeout=30000)
    except Exception:
        pass  # extract_page_id reports the URL we ended up on
    await client.wait_for_load(ADMIN_PAGE)

    page_id = extract_page_id(page.url, ui.page_id_pattern)
    marker.set(page_id)
    logger.info("Create: page %s saved, id persisted to marker", page_id)

    return PhaseResult(
        phase=PHASE,
        success=True,
        page_id=page_id,
        preview_url=config.url(ui.preview_path, id=page_id),
        edit_url=config.url(ui.edit_path, id=page_id),
        title=title,
        summary=f"Created page {page_id} '{title}' with theme '{theme}'",
    )
