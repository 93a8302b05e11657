"""
Client for the portal's worker JSON API.

All requests go through one requests.Session whose cookie jar holds the
login cookies; the bearer token is re-read from the jar for each call.
Requests are issued one at a time with no retry.
"""

from typing import Any, Dict, List, Optional
from urllib.parse import urlencode

import requests

from .auth import CURRENT_USER_PATH, bearer_header
from .config import DEFAULT_TIMEOUT
from .errors import VMSHoursError
from .logging_utils import get_logger
from .models import Engagement, SaveResult


ENGAGEMENTS_PATH = "/wand2/engagement/api/engagement-items"
METADATA_PATH = "/wand2/api/billing/billing-items/0/metadata"
TOTAL_HOURS_PATH = "/wand2/api/billing/billing-items/0/worker/totalhours"
SAVE_PATH = "/wand2/api/billing/billing-items"
WORKER_APP_PATH = "/wand/app/worker/index.html"

MAX_ERROR_BODY = 4096


class APIError(VMSHoursError):
    """
    Raised when an API call fails.

    Attributes:
        status_code: HTTP status, or None if no response was received
    """

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class VMSClient:
    """
    Thin wrapper around the worker API endpoints used for time entry.
    """

    def __init__(self, base_url: str, session: requests.Session,
                 timeout: int = DEFAULT_TIMEOUT):
        self.base_url = base_url.rstrip('/')
        self.session = session
        self.timeout = timeout
        self.logger = get_logger()

    def _headers(self) -> Dict[str, str]:
        headers = {'Accept': 'application/json'}
        headers.update(bearer_header(self.session, self.base_url))
        return headers

    def _get_json(self, path: str, params: Dict[str, Any] = None) -> Any:
        url = self.base_url + path
        if params:
            url = f"{url}?{urlencode(params)}"

        self.logger.debug(f"GET {url}")
        try:
            response = self.session.get(url, headers=self._headers(), timeout=self.timeout)
        except requests.RequestException as e:
            raise APIError(f"GET {url} failed: {e}")

        if response.status_code != 200:
            body = response.text[:MAX_ERROR_BODY].strip()
            raise APIError(
                f"GET {url} returned status {response.status_code}: {body}",
                status_code=response.status_code,
            )

        try:
            return response.json()
        except ValueError as e:
            raise APIError(f"decode GET {url} response: {e}", status_code=response.status_code)

    def get_current_user(self) -> Dict[str, Any]:
        return self._get_json(CURRENT_USER_PATH) or {}

    def get_engagement_items(self, page_no: int = 0, page_size: int = 200) -> List[Engagement]:
        """List the engagements available to the worker."""
        data = self._get_json(ENGAGEMENTS_PATH, {'pageNo': page_no, 'pageSize': page_size})
        content = (data or {}).get('content') or []
        return [Engagement.from_dict(item) for item in content if isinstance(item, dict)]

    def get_metadata(self, engagement_id: int, selected_date_mdy: str) -> Dict[str, Any]:
        """
        Fetch the week document containing the selected date.

        Args:
            engagement_id: Engagement to fetch
            selected_date_mdy: Any date of the week (MM/DD/YYYY)

        Returns:
            Week document, as returned by the backend
        """
        data = self._get_json(METADATA_PATH, {
            'engagementId': engagement_id,
            'selectedDate': selected_date_mdy,
        })
        if not isinstance(data, dict):
            raise APIError("metadata response is not a JSON object")
        return data

    def get_total_hours(self, engagement_id: int, selected_date_mdy: str) -> Dict[str, float]:
        """Fetch the aggregate hours of the week containing the selected date."""
        data = self._get_json(TOTAL_HOURS_PATH, {
            'engagementId': engagement_id,
            'selectedDate': selected_date_mdy,
        })
        if not data:
            return {}
        return {key: float(value) for key, value in data.items() if value is not None}

    def save_billing_items(self, payload: Dict[str, Any], xsrf_token: str) -> SaveResult:
        """
        Post a patched week document.

        Args:
            payload: Week document produced by timecard.patch_day
            xsrf_token: Anti-forgery token from the session cookies

        Returns:
            Parsed save response

        Raises:
            APIError: If the backend rejects the request
        """
        url = self.base_url + SAVE_PATH
        headers = self._headers()
        headers.update({
            'Content-Type': 'application/json',
            'Origin': self.base_url,
            'Referer': self.base_url + WORKER_APP_PATH,
            'x-xsrf-token': xsrf_token,
        })

        self.logger.debug(f"POST {url}")
        try:
            response = self.session.post(url, json=payload, headers=headers, timeout=self.timeout)
        except requests.RequestException as e:
            raise APIError(f"save request failed: {e}")

        if response.status_code != 200:
            body = response.text[:MAX_ERROR_BODY].strip()
            raise APIError(
                f"save failed with status {response.status_code}: {body}",
                status_code=response.status_code,
            )

        try:
            data = response.json()
        except ValueError as e:
            raise APIError(f"decode save response: {e}", status_code=response.status_code)
        return SaveResult.from_dict(data or {})
