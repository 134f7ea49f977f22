"""Mautic admin login. Logs in once per session and skips when already authenticated."""

from __future__ import annotations

import logging
from typing import Optional

from theme_qa.errors import LoginError
from theme_qa.models.config import QAConfig
from theme_qa.url_utils import same_path

logger = logging.getLogger(__name__)

ADMIN_PAGE = "admin"


class LoginResult:
    """Result of an authentication attempt."""

    def __init__(
        self,
        success: bool,
        skipped: bool = False,
        post_login_url: Optional[str] = None,
    ):
        self.success = success
        self.skipped = skipped
        self.post_login_url = post_login_url


async def ensure_logged_in(client, config: QAConfig, page_name: str = ADMIN_PAGE) -> LoginResult:
    """Make sure the session is authenticated against the Mautic admin.

    An active session is detected by the login URL redirecting elsewhere
    or by the login form being absent; in both cases nothing is submitted.
    """
    config.require_credentials()
    ui = config.ui
    login_url = config.url(ui.login_path)

    logger.info("Login: navigating to %s", login_url)
    page = await client.goto(page_name, login_url)
    await client.wait_for_load(page_name)

    if not same_path(page.url, ui.login_path):
        logger.info("Login: session already active (redirected to %s)", page.url)
        return LoginResult(success=True, skipped=True, post_login_url=page.url)
    if await page.query_selector(ui.username_selector) is None:
        logger.info("Login: no login form on %s, session already active", page.url)
        return LoginResult(success=True, skipped=True, post_login_url=page.url)

    logger.debug("Login: filling form (user=%s)", config.username)
    await page.fill(ui.username_selector, config.username)
    await page.fill(ui.password_selector, config.password)
    await page.click(ui.login_submit_selector)

    try:
        await page.wait_for_url(lambda url: not same_path(url, ui.login_path), timeout=15000)
    except Exception:
        pass  # verified below
    await client.wait_for_load(page_name)

    if same_path(page.url, ui.login_path) and await page.query_selector(ui.password_selector) is not None:
        raise LoginError(f"Login form still showing after submit for user '{config.username}'")

    logger.info("Login: successful, landed on %s", page.url)
    return LoginResult(success=True, post_login_url=page.url)
