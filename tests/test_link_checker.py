"""Tests for link_checker module."""
from unittest.mock import MagicMock

import requests

from link_checker import check_update_link, get_session


def test_get_session_mounts_retrying_adapters():
    session = get_session(retries=4)
    adapter = session.get_adapter("https://example.com/addon.xpi")

    assert adapter.max_retries.total == 4
    assert 503 in adapter.max_retries.status_forcelist
    assert session.headers["User-Agent"] == "xpi-update-manifest"


def test_head_ok(mock_http_response):
    session = MagicMock()
    session.head.return_value = mock_http_response(200)

    assert check_update_link("https://h/1.0.xpi", session=session) is True
    session.get.assert_not_called()


def test_head_rejected_falls_back_to_range_get(mock_http_response):
    session = MagicMock()
    session.head.return_value = mock_http_response(405)
    session.get.return_value = mock_http_response(206)

    assert check_update_link("https://h/1.0.xpi", session=session) is True
    _, kwargs = session.get.call_args
    assert kwargs["headers"] == {"Range": "bytes=0-0"}


def test_not_found(mock_http_response):
    session = MagicMock()
    session.head.return_value = mock_http_response(404)
    session.get.return_value = mock_http_response(404)

    assert check_update_link("https://h/1.0.xpi", session=session) is False


def test_network_errors():
    session = MagicMock()
    session.head.side_effect = requests.ConnectionError("down")
    session.get.side_effect = requests.ConnectionError("down")

    assert check_update_link("https://h/1.0.xpi", session=session) is False
