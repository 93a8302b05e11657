"""
Session token extraction.

The backend never returns its tokens in a response body. After login they
only exist as cookies, and those cookies are scoped to different paths
(the site root, the two API mounts, the worker application). A lookup made
against the root path alone misses the deeper ones, so the cookie jar is
queried once per known path and the results are merged.
"""

from http.cookiejar import Cookie, DefaultCookiePolicy
from typing import Iterable, List, Optional, Sequence
from urllib.parse import unquote_plus, urlsplit, urlunsplit
import re
import urllib.request

import requests

from .errors import VMSHoursError


ACCESS_TOKEN_COOKIES = ('productionaccess_token', 'access_token')
XSRF_TOKEN_COOKIES = ('xsrf-token', 'x-xsrf-token', 'xsrftoken', '_xsrf')

COOKIE_LOOKUP_PATHS = (
    '/',
    '/wand',
    '/wand/',
    '/wand2',
    '/wand2/',
    '/wand/app/worker/',
    '/wand/app/worker/index.html',
)

_BAD_ESCAPE_RE = re.compile(r'%(?![0-9A-Fa-f]{2})')
_POLICY = DefaultCookiePolicy()


class SessionTokenError(VMSHoursError):
    """Base class for token extraction failures."""
    pass


class CookieJarNotConfiguredError(SessionTokenError):
    """Raised when the HTTP client has no cookie jar at all."""
    pass


class TokenNotFoundError(SessionTokenError):
    """Raised when no cookie carries the requested token."""
    pass


class AccessTokenNotFoundError(TokenNotFoundError):
    pass


class XSRFTokenNotFoundError(TokenNotFoundError):
    pass


def cookie_lookup_urls(base_url: str) -> List[str]:
    """
    Build one URL per known cookie path on the base URL's host.

    Query string and fragment of the base URL are dropped.
    """
    parts = urlsplit(base_url)
    return [urlunsplit((parts.scheme, parts.netloc, path, '', ''))
            for path in COOKIE_LOOKUP_PATHS]


def _cookies_for_url(jar, url: str) -> List[Cookie]:
    """Cookies the jar would send with a request to the URL."""
    request = urllib.request.Request(url)
    matched = []
    for cookie in jar:
        if not _POLICY.domain_return_ok(cookie.domain, request):
            continue
        if not _POLICY.return_ok_domain(cookie, request):
            continue
        if not _POLICY.path_return_ok(cookie.path, request):
            continue
        if cookie.secure and request.type != 'https':
            continue
        if cookie.is_expired():
            continue
        matched.append(cookie)
    return matched


def collect_session_cookies(session: requests.Session, base_url: str) -> List[Cookie]:
    """
    Collect the cookies visible under every known path of the base host.

    Cookies seen under several paths are returned once (deduplicated on
    case-insensitive name and value). An empty jar yields an empty list.

    Args:
        session: HTTP session whose cookie jar was filled by a login
        base_url: Backend base URL

    Returns:
        List of cookies, in discovery order

    Raises:
        CookieJarNotConfiguredError: If the session has no cookie jar
    """
    jar = getattr(session, 'cookies', None) if session is not None else None
    if jar is None:
        raise CookieJarNotConfiguredError("http cookie jar is not configured")

    seen = set()
    cookies = []
    for url in cookie_lookup_urls(base_url):
        for cookie in _cookies_for_url(jar, url):
            if not cookie.name:
                continue
            key = (cookie.name.lower(), cookie.value)
            if key in seen:
                continue
            seen.add(key)
            cookies.append(cookie)
    return cookies


def _percent_decode(value: str) -> str:
    if _BAD_ESCAPE_RE.search(value):
        raise ValueError(f"invalid percent escape in {value!r}")
    return unquote_plus(value, errors='strict')


def decode_cookie_value(value: str) -> str:
    """
    Strip surrounding quotes and percent-decode a cookie value.

    If the value cannot be decoded (or decodes to nothing), the unquoted
    raw value is returned instead.
    """
    raw = value.strip('"')
    try:
        decoded = _percent_decode(raw)
    except (ValueError, UnicodeDecodeError):
        return raw
    return decoded if decoded else raw


def _find_token(cookies: Iterable[Cookie], names: Sequence[str]) -> Optional[str]:
    for cookie in cookies:
        if cookie.name.lower() in names and cookie.value:
            return decode_cookie_value(cookie.value)
    return None


def extract_access_token(session: requests.Session, base_url: str) -> str:
    """
    Extract the bearer access token from the session cookies.

    Raises:
        AccessTokenNotFoundError: If no access token cookie has a value
        CookieJarNotConfiguredError: If the session has no cookie jar
    """
    token = _find_token(collect_session_cookies(session, base_url), ACCESS_TOKEN_COOKIES)
    if not token:
        raise AccessTokenNotFoundError("access token cookie not found in session")
    return token


def extract_xsrf_token(session: requests.Session, base_url: str) -> str:
    """
    Extract the anti-forgery (XSRF) token from the session cookies.

    Mutating requests must not be sent without it.

    Raises:
        XSRFTokenNotFoundError: If no XSRF cookie has a value
        CookieJarNotConfiguredError: If the session has no cookie jar
    """
    token = _find_token(collect_session_cookies(session, base_url), XSRF_TOKEN_COOKIES)
    if not token:
        raise XSRFTokenNotFoundError("xsrf token cookie not found in session")
    return token
