"""Deletes the temporary page through the listing's row action menu."""

from __future__ import annotations

import logging
from typing import Optional

from theme_qa.auth.login import ADMIN_PAGE, ensure_logged_in
from theme_qa.errors import AlreadyAbsent, QAError, RowNotFound
from theme_qa.marker import MarkerStore
from theme_qa.models.config import QAConfig
from theme_qa.models.results import PhaseResult
from theme_qa.snapshot.resolver import (
    ROW_NOT_FOUND,
    click_control,
    find_control_near_row,
    matchers_from_lookup,
)

logger = logging.getLogger(__name__)

PHASE = "cleanup"


async def run_cleanup(
    client,
    config: QAConfig,
    marker: MarkerStore,
    page_id: Optional[str] = None,
    skip: bool = False,
) -> PhaseResult:
    """Delete the page, or report why nothing was deleted.

    Without an explicit ``page_id`` the id comes from the marker, which is
    how a later invocation recovers a page orphaned by a crashed run.
    """
    page_id = page_id or marker.get()

    if skip:
        logger.info("Cleanup: skipped, page %s preserved", page_id or "-")
        return PhaseResult(
            phase=PHASE,
            page_id=page_id,
            deleted=False,
            skipped=True,
            summary=f"Cleanup skipped; page {page_id} preserved" if page_id else "Cleanup skipped",
        )

    if not page_id:
        logger.info("Cleanup: no page id given and no marker present")
        return PhaseResult(phase=PHASE, deleted=False, summary="Nothing to clean up")

    try:
        await delete_page(client, config, page_id)
    except AlreadyAbsent:
        logger.info("Cleanup: page %s not in listing, already deleted", page_id)
        _clear_marker(marker, page_id)
        return PhaseResult(
            phase=PHASE,
            page_id=page_id,
            deleted=False,
            summary=f"Page {page_id} already deleted",
        )

    _clear_marker(marker, page_id)
    logger.info("Cleanup: page %s deleted", page_id)
    return PhaseResult(phase=PHASE, page_id=page_id, deleted=True, summary=f"Deleted page {page_id}")


async def delete_page(client, config: QAConfig, page_id: str) -> None:
    """Row action menu -> Delete -> confirm, each step on a fresh snapshot.

    Raises AlreadyAbsent when the listing has no row for ``page_id``.
    """
    config.require_credentials()
    ui = config.ui
    await ensure_logged_in(client, config)

    list_url = config.url(ui.pages_list_path + ui.pages_list_query, id=page_id)
    logger.info("Cleanup: opening listing %s", list_url)
    await client.goto(ADMIN_PAGE, list_url)
    await client.wait_for_load(ADMIN_PAGE, settle_ms=config.settle_ms)

    row, trigger = matchers_from_lookup(ui.row_actions, id=page_id)
    try:
        await click_control(client, ADMIN_PAGE, row, trigger,
                            ui.row_actions.search_window, ui.row_actions.direction)
    except RowNotFound as e:
        raise AlreadyAbsent(f"Page {page_id} is not listed") from e
    logger.debug("Cleanup: row action menu opened for %s", page_id)

    row, delete = matchers_from_lookup(ui.delete_action, id=page_id)
    await click_control(client, ADMIN_PAGE, row, delete,
                        ui.delete_action.search_window, ui.delete_action.direction)

    page = await client.page(ADMIN_PAGE)
    await page.wait_for_timeout(config.settle_ms)
    row, confirm = matchers_from_lookup(ui.confirm_delete, id=page_id)
    await click_control(client, ADMIN_PAGE, row, confirm,
                        ui.confirm_delete.search_window, ui.confirm_delete.direction)
    await client.wait_for_load(ADMIN_PAGE, settle_ms=config.settle_ms)

    # The listing must no longer show the row
    snapshot = await client.snapshot(ADMIN_PAGE)
    row, trigger = matchers_from_lookup(ui.row_actions, id=page_id)
    check = find_control_near_row(snapshot, row, trigger,
                                  ui.row_actions.search_window, ui.row_actions.direction)
    if check.status != ROW_NOT_FOUND:
        raise QAError(f"Page {page_id} is still listed after delete confirmation")


def _clear_marker(marker: MarkerStore, page_id: str) -> None:
    if marker.get() == page_id:
        marker.clear()
