"""
Interactive browser login using Playwright.

Accounts behind SSO or MFA cannot log in by replaying the form post. For
those, a real browser window is opened on the portal's login page, the user
completes the login by hand, and the browser's cookies are copied into the
requests session afterwards. Each cookie keeps its domain and path, so the
path-scoped token cookies stay where session_tokens expects them.
"""

from typing import Any, Dict, List, Optional

import requests
from playwright.sync_api import (
    sync_playwright,
    Browser,
    BrowserContext,
    Page,
    TimeoutError as PlaywrightTimeoutError,
)

from .auth import LOGIN_PATH, AuthenticationError
from .logging_utils import get_logger, log_step, log_success, log_warning
from .session_tokens import ACCESS_TOKEN_COOKIES


DEFAULT_LOGIN_TIMEOUT = 180000  # 3 minutes
POLL_INTERVAL = 2000


def has_access_token(cookies: List[Dict[str, Any]]) -> bool:
    """Whether a list of browser cookies contains a non-empty access token."""
    return any(
        c.get('name', '').lower() in ACCESS_TOKEN_COOKIES and c.get('value')
        for c in cookies
    )


def copy_browser_cookies(cookies: List[Dict[str, Any]], session: requests.Session) -> int:
    """
    Copy Playwright cookies into a requests session.

    Args:
        cookies: Cookies as returned by BrowserContext.cookies()
        session: Session to receive them

    Returns:
        Number of cookies copied
    """
    copied = 0
    for cookie in cookies:
        name = cookie.get('name')
        if not name:
            continue

        # Playwright reports session cookies with expires == -1
        expires = cookie.get('expires')
        if expires is None or expires < 0:
            expires = None
        else:
            expires = int(expires)

        session.cookies.set(
            name,
            cookie.get('value', ''),
            domain=cookie.get('domain', ''),
            path=cookie.get('path') or '/',
            secure=bool(cookie.get('secure', False)),
            expires=expires,
            rest={'HttpOnly': None} if cookie.get('httpOnly') else {},
        )
        copied += 1
    return copied


class BrowserLogin:
    """
    Playwright browser session used only to obtain login cookies.
    """

    def __init__(self, base_url: str, headless: bool = False,
                 timeout: int = DEFAULT_LOGIN_TIMEOUT):
        """
        Args:
            base_url: Backend base URL
            headless: Run the browser without a window
            timeout: How long to wait for the login (milliseconds)
        """
        self.base_url = base_url.rstrip('/')
        self.headless = headless
        self.timeout = timeout
        self.logger = get_logger()
        self.playwright = None
        self.browser: Optional[Browser] = None
        self.context: Optional[BrowserContext] = None
        self.page: Optional[Page] = None

    def __enter__(self):
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    def start(self):
        """Start Playwright and open a page."""
        log_step("Starting browser...", self.logger)

        self.playwright = sync_playwright().start()
        self.browser = self.playwright.chromium.launch(headless=self.headless)
        self.context = self.browser.new_context()
        self.page = self.context.new_page()

        self.logger.debug(f"Browser launched (headless={self.headless})")

    def close(self):
        """Close browser and Playwright."""
        if self.page:
            self.page.close()
        if self.context:
            self.context.close()
        if self.browser:
            self.browser.close()
        if self.playwright:
            self.playwright.stop()

        self.logger.debug("Browser closed")

    def login(self, username: Optional[str] = None) -> List[Dict[str, Any]]:
        """
        Wait for the user to log in and return the browser's cookies.

        Args:
            username: Pre-filled into the login form when given

        Returns:
            All cookies of the browser context

        Raises:
            AuthenticationError: If no access token appears before the timeout
        """
        login_url = self.base_url + LOGIN_PATH
        log_step(f"Opening {login_url}...", self.logger)
        self.page.goto(login_url, wait_until='domcontentloaded')

        if username:
            try:
                self.page.locator('input[name="username"]').fill(username, timeout=POLL_INTERVAL)
            except PlaywrightTimeoutError:
                log_warning("Username field not found; enter it in the browser", self.logger)

        self.logger.info("  Complete the login (including SSO/MFA) in the browser window.")

        elapsed = 0
        while elapsed < self.timeout:
            cookies = self.context.cookies()
            if has_access_token(cookies):
                log_success("Login detected", self.logger)
                return cookies

            self.page.wait_for_timeout(POLL_INTERVAL)
            elapsed += POLL_INTERVAL
            if elapsed % 10000 == 0:
                self.logger.debug(f"Still waiting for login... ({elapsed // 1000}s elapsed)")

        raise AuthenticationError(
            f"browser login timed out after {self.timeout // 1000}s without an access token"
        )


def login_with_browser(session: requests.Session, base_url: str,
                       username: Optional[str] = None, headless: bool = False,
                       timeout: int = DEFAULT_LOGIN_TIMEOUT) -> int:
    """
    Log in through a browser window and load its cookies into the session.

    Returns:
        Number of cookies copied into the session
    """
    with BrowserLogin(base_url, headless=headless, timeout=timeout) as browser:
        cookies = browser.login(username)

    copied = copy_browser_cookies(cookies, session)
    get_logger().debug(f"Copied {copied} browser cookie(s) into the HTTP session")
    return copied
