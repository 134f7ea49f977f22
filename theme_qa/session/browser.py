"""Browser launch helpers."""

from __future__ import annotations

from typing import Optional

from playwright.async_api import Browser, BrowserContext, Playwright

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) "
    "AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/122.0.0.0 Safari/537.36"
)

DEFAULT_VIEWPORT = {"width": 1280, "height": 720}

# Admin UIs behind bot protection reject navigator.webdriver
_INIT_SCRIPT = """
Object.defineProperty(navigator, 'webdriver', { get: () => false });
Object.defineProperty(navigator, 'languages', {
    get: () => ['en-US', 'en'],
});
"""


async def launch_browser(playwright: Playwright, headless: bool = True) -> Browser:
    """Launch Chromium with anti-detection arguments."""
    return await playwright.chromium.launch(
        headless=headless,
        args=[
            "--disable-blink-features=AutomationControlled",
        ],
    )


async def create_context(
    browser: Browser,
    viewport: Optional[dict] = None,
    user_agent: Optional[str] = None,
) -> BrowserContext:
    """Create the browser context shared by every named page of a session.

    Pages in one context share cookies, so a login performed on one page
    authenticates the others.
    """
    context = await browser.new_context(
        viewport=viewport or DEFAULT_VIEWPORT,
        user_agent=user_agent or DEFAULT_USER_AGENT,
        locale="en-US",
        extra_http_headers={
            "Accept-Language": "en-US,en;q=0.9",
        },
    )
    await context.add_init_script(_INIT_SCRIPT)
    return context
