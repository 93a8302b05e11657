"""
Tests for the worker API client.
"""

from unittest.mock import MagicMock

import pytest
import requests
from requests.cookies import create_cookie

from vms_hours.api_client import VMSClient, APIError
from vms_hours.auth import new_http_session
from vms_hours.models import Engagement


BASE_URL = "https://prowand.pro-unlimited.com"


def _response(status_code=200, json_data=None, text=""):
    response = MagicMock()
    response.status_code = status_code
    response.text = text
    if isinstance(json_data, Exception):
        response.json.side_effect = json_data
    else:
        response.json.return_value = json_data
    return response


@pytest.fixture
def session():
    s = new_http_session()
    s.cookies.set_cookie(create_cookie(
        "ProductionAccess_Token", "tok", domain="prowand.pro-unlimited.com", path="/wand2/",
    ))
    s.get = MagicMock()
    s.post = MagicMock()
    return s


@pytest.fixture
def client(session):
    return VMSClient(BASE_URL, session, timeout=5)


class TestGetJSON:
    """Tests for GET handling shared by all read endpoints."""

    def test_headers_and_timeout(self, client, session):
        """Test that reads carry Accept, bearer token and timeout."""
        session.get.return_value = _response(json_data={'userId': 1})
        client.get_current_user()

        kwargs = session.get.call_args[1]
        assert kwargs['headers'] == {'Accept': 'application/json', 'Authorization': 'Bearer tok'}
        assert kwargs['timeout'] == 5

    def test_error_status(self, client, session):
        """Test that non-200 responses raise with status and body."""
        session.get.return_value = _response(status_code=500, text="boom")
        with pytest.raises(APIError, match="status 500: boom") as exc_info:
            client.get_current_user()
        assert exc_info.value.status_code == 500

    def test_transport_error(self, client, session):
        """Test that connection errors are wrapped without a status."""
        session.get.side_effect = requests.ConnectionError("down")
        with pytest.raises(APIError) as exc_info:
            client.get_current_user()
        assert exc_info.value.status_code is None

    def test_invalid_json(self, client, session):
        """Test that undecodable bodies raise."""
        session.get.return_value = _response(json_data=ValueError("nope"))
        with pytest.raises(APIError, match="decode"):
            client.get_current_user()


class TestGetEngagementItems:
    """Tests for get_engagement_items method."""

    def test_parses_content(self, client, session):
        """Test that entries become Engagement objects."""
        session.get.return_value = _response(json_data={'content': [
            {'id': 12345678, 'status': 'ACTIVE', 'jobTitle': 'Engineer',
             'buyerName': 'Acme', 'timecardTemplateId': 4},
            "junk",
        ]})

        items = client.get_engagement_items()

        assert items == [Engagement(id=12345678, status='ACTIVE', job_title='Engineer',
                                    buyer_name='Acme', timecard_template_id=4)]
        url = session.get.call_args[0][0]
        assert url == BASE_URL + "/wand2/engagement/api/engagement-items?pageNo=0&pageSize=200"

    def test_empty(self, client, session):
        """Test that a null content list gives no engagements."""
        session.get.return_value = _response(json_data={'content': None})
        assert client.get_engagement_items() == []


class TestGetMetadata:
    """Tests for get_metadata method."""

    def test_query_encoding(self, client, session):
        """Test that the date is URL-encoded in the query."""
        session.get.return_value = _response(json_data={'billingItemDetails': []})

        assert client.get_metadata(12345678, "02/18/2026") == {'billingItemDetails': []}

        url = session.get.call_args[0][0]
        assert url == (BASE_URL + "/wand2/api/billing/billing-items/0/metadata"
                       "?engagementId=12345678&selectedDate=02%2F18%2F2026")

    def test_non_object(self, client, session):
        """Test that a non-object document is rejected."""
        session.get.return_value = _response(json_data=None)
        with pytest.raises(APIError, match="not a JSON object"):
            client.get_metadata(1, "02/18/2026")


class TestGetTotalHours:
    """Tests for get_total_hours method."""

    def test_values(self, client, session):
        """Test that totals are returned as floats with nulls dropped."""
        session.get.return_value = _response(json_data={'totalHours': 40, 'overtime': None})
        assert client.get_total_hours(1, "02/18/2026") == {'totalHours': 40.0}
        assert "/worker/totalhours?" in session.get.call_args[0][0]

    def test_null(self, client, session):
        """Test that a null body gives an empty map."""
        session.get.return_value = _response(json_data=None)
        assert client.get_total_hours(1, "02/18/2026") == {}


class TestSaveBillingItems:
    """Tests for save_billing_items method."""

    def test_post(self, client, session):
        """Test the save request and the parsed result."""
        session.post.return_value = _response(json_data={
            'billingItemId': 991, 'billingItemIds': [991],
            'errors': None, 'billingItemDetailErrors': None,
        })
        payload = {'billingItemDetails': []}

        result = client.save_billing_items(payload, "xs")

        assert result.billing_item_id == 991
        assert result.billing_item_ids == [991]
        assert not result.has_errors

        args, kwargs = session.post.call_args
        assert args[0] == BASE_URL + "/wand2/api/billing/billing-items"
        assert kwargs['json'] is payload
        headers = kwargs['headers']
        assert headers['x-xsrf-token'] == "xs"
        assert headers['Authorization'] == "Bearer tok"
        assert headers['Content-Type'] == "application/json"
        assert headers['Origin'] == BASE_URL
        assert headers['Referer'] == BASE_URL + "/wand/app/worker/index.html"

    def test_validation_errors_reported(self, client, session):
        """Test that embedded validation errors are surfaced."""
        session.post.return_value = _response(json_data={
            'billingItemId': 0, 'errors': ['bad'], 'billingItemDetailErrors': None,
        })
        assert client.save_billing_items({}, "xs").has_errors

    def test_rejected(self, client, session):
        """Test that a non-200 save raises with the status."""
        session.post.return_value = _response(status_code=403, text="forbidden")
        with pytest.raises(APIError, match="save failed with status 403") as exc_info:
            client.save_billing_items({}, "xs")
        assert exc_info.value.status_code == 403

    def test_transport_error(self, client, session):
        """Test that connection errors are wrapped."""
        session.post.side_effect = requests.ConnectionError("reset")
        with pytest.raises(APIError, match="save request failed"):
            client.save_billing_items({}, "xs")
