"""
Tests for copying browser cookies into the HTTP session.

The browser itself is not started; only the cookie hand-off is tested.
"""

import time
from unittest.mock import MagicMock, patch

import pytest

from vms_hours.auth import AuthenticationError, new_http_session
from vms_hours.browser_login import (
    BrowserLogin,
    copy_browser_cookies,
    has_access_token,
    login_with_browser,
)
from vms_hours.session_tokens import extract_access_token, extract_xsrf_token


BASE_URL = "https://prowand.pro-unlimited.com"
HOST = "prowand.pro-unlimited.com"


def _browser_cookie(name, value, path="/", expires=-1, secure=True, http_only=False):
    return {
        'name': name,
        'value': value,
        'domain': HOST,
        'path': path,
        'expires': expires,
        'httpOnly': http_only,
        'secure': secure,
        'sameSite': 'Lax',
    }


class TestHasAccessToken:
    """Tests for has_access_token function."""

    def test_present(self):
        """Test detection of the production access token cookie."""
        assert has_access_token([_browser_cookie("ProductionAccess_Token", "t")])

    def test_empty_value(self):
        """Test that an empty token does not count."""
        assert not has_access_token([_browser_cookie("access_token", "")])

    def test_other_cookies(self):
        """Test that unrelated cookies do not count."""
        assert not has_access_token([_browser_cookie("JSESSIONID", "s")])


class TestCopyBrowserCookies:
    """Tests for copy_browser_cookies function."""

    def test_tokens_usable_after_copy(self):
        """Test that path-scoped cookies are found by the token lookup."""
        session = new_http_session()
        copied = copy_browser_cookies([
            _browser_cookie("ProductionAccess_Token", "abc", path="/wand2/", http_only=True),
            _browser_cookie("XSRF-TOKEN", "xs", path="/wand/app/worker/"),
        ], session)

        assert copied == 2
        assert extract_access_token(session, BASE_URL) == "abc"
        assert extract_xsrf_token(session, BASE_URL) == "xs"

    def test_session_cookie_has_no_expiry(self):
        """Test that expires=-1 becomes a session cookie."""
        session = new_http_session()
        copy_browser_cookies([_browser_cookie("a", "1")], session)
        cookie = next(iter(session.cookies))
        assert cookie.expires is None

    def test_expiry_kept(self):
        """Test that a real expiry is carried over."""
        expires = time.time() + 3600
        session = new_http_session()
        copy_browser_cookies([_browser_cookie("a", "1", expires=expires)], session)
        assert next(iter(session.cookies)).expires == int(expires)

    def test_nameless_skipped(self):
        """Test that cookies without a name are ignored."""
        session = new_http_session()
        assert copy_browser_cookies([{'value': 'x'}], session) == 0
        assert len(session.cookies) == 0


class TestBrowserLogin:
    """Tests for the login wait loop with a mocked browser."""

    def _browser(self, cookie_batches, timeout=6000):
        browser = BrowserLogin(BASE_URL, headless=True, timeout=timeout)
        browser.page = MagicMock()
        browser.context = MagicMock()
        browser.context.cookies.side_effect = cookie_batches
        return browser

    def test_waits_for_token(self):
        """Test that polling continues until the token cookie appears."""
        token = _browser_cookie("access_token", "t")
        browser = self._browser([[], [], [token]])

        assert browser.login() == [token]
        browser.page.goto.assert_called_once_with(BASE_URL + "/login.html", wait_until='domcontentloaded')
        assert browser.page.wait_for_timeout.call_count == 2

    def test_prefills_username(self):
        """Test that a given username is typed into the form."""
        browser = self._browser([[_browser_cookie("access_token", "t")]])
        browser.login("jo@example.com")
        browser.page.locator.assert_called_once_with('input[name="username"]')
        browser.page.locator.return_value.fill.assert_called_once()

    def test_timeout(self):
        """Test that no token before the timeout is an authentication error."""
        browser = self._browser([[]] * 10, timeout=4000)
        with pytest.raises(AuthenticationError, match="timed out"):
            browser.login()

    def test_login_with_browser(self):
        """Test the full hand-off into a session."""
        session = new_http_session()
        with patch('vms_hours.browser_login.BrowserLogin') as browser_cls:
            browser_cls.return_value.__enter__.return_value.login.return_value = [
                _browser_cookie("access_token", "t"),
            ]
            assert login_with_browser(session, BASE_URL, headless=True) == 1

        assert extract_access_token(session, BASE_URL) == "t"
