"""
Form-based login against the workforce portal.

The portal has no token endpoint; logging in means replaying the browser's
login form post. On success the server sets session cookies (including the
access and anti-forgery tokens) in the session's cookie jar.
"""

from typing import Any, Dict, Optional
from urllib.parse import urlsplit

import requests

from .config import DEFAULT_TIMEOUT
from .errors import VMSHoursError
from .logging_utils import get_logger, mask_secret
from .session_tokens import TokenNotFoundError, extract_access_token


USER_AGENT = "magnit-vms-cli/1.0"
LOGIN_PATH = "/login.html"
CURRENT_USER_PATH = "/wand2/api/users/current?noCache=true"

MAX_LOGIN_BODY = 256 * 1024
MAX_ERROR_BODY = 2048


class AuthenticationError(VMSHoursError):
    """Raised when login fails or does not produce an authenticated session."""
    pass


def new_http_session() -> requests.Session:
    """Create an HTTP session with an empty cookie jar."""
    session = requests.Session()
    session.headers['User-Agent'] = USER_AGENT
    return session


def bearer_header(session: requests.Session, base_url: str) -> Dict[str, str]:
    """
    Build the Authorization header from the session's access token cookie.

    Returns an empty dict when no access token is available; the request is
    then sent unauthenticated and the backend decides.
    """
    try:
        token = extract_access_token(session, base_url)
    except TokenNotFoundError:
        get_logger().debug("No access token cookie; sending request without Authorization")
        return {}
    get_logger().debug(f"Using access token {mask_secret(token)}")
    return {'Authorization': f"Bearer {token}"}


def validate_login_response(response: requests.Response):
    """
    Detect failed logins that still return a 2xx page.

    Raises:
        AuthenticationError: If the page reports bad credentials, or if the
            login form is shown again (usually SSO/MFA is required)
    """
    body = response.text[:MAX_LOGIN_BODY].lower()

    if 'invalid username / password' in body or 'invalid username/password' in body:
        raise AuthenticationError("invalid username or password")

    final_path = urlsplit(response.url or '').path
    if (final_path.lower() == LOGIN_PATH
            and 'name="password_login"' in body
            and 'please log in to your account below' in body):
        raise AuthenticationError(
            "login did not establish an authenticated session; verify credentials "
            "or whether your account requires interactive SSO/MFA (try --browser)"
        )


class Authenticator:
    """
    Logs a session in and checks who it is logged in as.
    """

    def __init__(self, base_url: str, session: requests.Session,
                 timeout: int = DEFAULT_TIMEOUT):
        """
        Args:
            base_url: Backend base URL
            session: HTTP session that will receive the login cookies
            timeout: Request timeout in seconds
        """
        self.base_url = base_url.rstrip('/')
        self.session = session
        self.timeout = timeout
        self.logger = get_logger()

    def login(self, username: str, password: str) -> Dict[str, Any]:
        """
        Log in with username and password.

        Returns:
            The current user record, fetched to confirm the session works

        Raises:
            AuthenticationError: If login fails
        """
        if not username or not password:
            raise AuthenticationError("username and password are required")

        self.logger.debug(f"Posting login form for {username}")
        try:
            response = self.session.post(
                self.base_url + LOGIN_PATH,
                data={'username': username, 'password_login': password},
                headers={'Content-Type': 'application/x-www-form-urlencoded'},
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise AuthenticationError(f"login request failed: {e}")

        if response.status_code >= 400:
            raise AuthenticationError(f"login failed with status {response.status_code}")
        validate_login_response(response)

        try:
            return self.current_user()
        except AuthenticationError as e:
            raise AuthenticationError(f"login validation failed: {e}")

    def current_user(self) -> Dict[str, Any]:
        """
        Fetch the logged-in user's record.

        Raises:
            AuthenticationError: If the session is not authenticated
        """
        headers = {'Accept': 'application/json'}
        headers.update(bearer_header(self.session, self.base_url))

        try:
            response = self.session.get(
                self.base_url + CURRENT_USER_PATH,
                headers=headers,
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise AuthenticationError(f"users/current request failed: {e}")

        if response.status_code != 200:
            body = response.text[:MAX_ERROR_BODY].strip()
            raise AuthenticationError(
                f"users/current failed with status {response.status_code}: {body}"
            )

        try:
            user = response.json()
        except ValueError as e:
            raise AuthenticationError(f"decode users/current response: {e}")
        if not isinstance(user, dict):
            raise AuthenticationError("users/current returned an unexpected payload")
        return user


def user_fields(user: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """The subset of the user record shown to the user."""
    user = user or {}
    return {
        'userId': user.get('userId'),
        'fullName': user.get('fullName'),
        'email': user.get('email'),
    }
