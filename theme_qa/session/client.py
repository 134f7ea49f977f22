"""Named, independent browser pages backed by Playwright.

The workflow only talks to the browser through this class: named pages,
navigation, screenshots, accessibility snapshots and ref resolution.
Every page shares one browser context (and so one login session).
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from playwright.async_api import Browser, BrowserContext, Locator, Page, async_playwright

from theme_qa.errors import StaleReferenceError
from theme_qa.session.browser import create_context, launch_browser
from theme_qa.session.snapshot_script import REF_ATTRIBUTE, SNAPSHOT_JS
from theme_qa.snapshot.model import ElementRef, Snapshot, parse_snapshot

logger = logging.getLogger(__name__)


class SessionClient:
    """Playwright-backed implementation of the session contract."""

    def __init__(self, browser: Browser, context: BrowserContext, navigation_timeout_ms: int = 30000):
        self.browser = browser
        self.context = context
        self.navigation_timeout_ms = navigation_timeout_ms
        self._pages: dict[str, Page] = {}
        self._snapshot_ids: dict[str, int] = {}
        self._snapshot_counter = 0

    async def page(self, name: str, viewport: Optional[dict] = None) -> Page:
        """Return the named page, opening it on first use.

        ``viewport`` sets the page geometry; it is applied on every call so a
        reused name can be re-targeted to another preset.
        """
        page = self._pages.get(name)
        if page is None or page.is_closed():
            logger.debug("Opening page '%s'", name)
            page = await self.context.new_page()
            page.set_default_navigation_timeout(self.navigation_timeout_ms)
            self._pages[name] = page
            self._snapshot_ids.pop(name, None)
        if viewport:
            await page.set_viewport_size(viewport)
        return page

    async def close_page(self, name: str) -> None:
        page = self._pages.pop(name, None)
        self._snapshot_ids.pop(name, None)
        if page is not None and not page.is_closed():
            await page.close()

    async def goto(self, name: str, url: str) -> Page:
        page = await self.page(name)
        logger.debug("Page '%s' -> %s", name, url)
        await page.goto(url, wait_until="domcontentloaded")
        return page

    async def wait_for_load(self, name: str, settle_ms: int = 0) -> None:
        page = await self.page(name)
        await page.wait_for_load_state("load")
        try:
            await page.wait_for_load_state("networkidle", timeout=10000)
        except Exception:
            # Pages with long-polling never go idle; "load" already fired
            logger.debug("Page '%s' did not reach networkidle", name)
        if settle_ms:
            await page.wait_for_timeout(settle_ms)

    async def snapshot_text(self, name: str) -> str:
        """Render the accessibility dump of the named page."""
        page = await self.page(name)
        return await page.evaluate(SNAPSHOT_JS, REF_ATTRIBUTE)

    async def snapshot(self, name: str) -> Snapshot:
        """Capture and parse a snapshot; it becomes the page's current one."""
        text = await self.snapshot_text(name)
        self._snapshot_counter += 1
        self._snapshot_ids[name] = self._snapshot_counter
        snap = parse_snapshot(text, page_name=name, snapshot_id=self._snapshot_counter)
        logger.debug("Snapshot #%d of page '%s': %d nodes", snap.snapshot_id, name, len(snap))
        return snap

    async def resolve_ref(self, name: str, ref: ElementRef) -> Locator:
        """Map a ref from the page's latest snapshot to a live locator."""
        current = self._snapshot_ids.get(name)
        if current is None or ref.snapshot_id != current:
            raise StaleReferenceError(
                f"Ref {ref.ref} belongs to snapshot #{ref.snapshot_id}, "
                f"page '{name}' is at snapshot #{current}"
            )
        page = await self.page(name)
        locator = page.locator(f'[{REF_ATTRIBUTE}="{ref.ref}"]')
        if await locator.count() != 1:
            raise StaleReferenceError(f"Ref {ref.ref} no longer present on page '{name}'")
        return locator

    async def disconnect(self) -> None:
        try:
            for name in list(self._pages):
                await self.close_page(name)
        finally:
            self._pages.clear()
            self._snapshot_ids.clear()
            try:
                await self.context.close()
            finally:
                await self.browser.close()


@asynccontextmanager
async def connect(headless: bool = True) -> AsyncIterator[SessionClient]:
    """Start a browser session; it is torn down on every exit path."""
    async with async_playwright() as p:
        logger.debug("Launching Chromium (headless=%s)", headless)
        browser = await launch_browser(p, headless=headless)
        context = await create_context(browser)
        client = SessionClient(browser, context)
        try:
            yield client
        finally:
            await client.disconnect()
