"""Tests for the shared HTTP provider plumbing."""

from __future__ import annotations

from unittest.mock import MagicMock, patch

import httpx
import pytest

from animestream.providers.base import (
    HttpProvider,
    UpstreamError,
    UpstreamNotFoundError,
    browser_headers,
)


class DemoProvider(HttpProvider):
    name = "demo"

    def fetch(self, url: str):
        return self._json(self._request("GET", url), url)


@pytest.fixture
def mock_httpx_client():
    with patch("animestream.providers.base.httpx.Client") as mock_class:
        mock_instance = MagicMock()
        mock_class.return_value = mock_instance
        yield mock_instance


@pytest.fixture
def provider(mock_httpx_client):
    return DemoProvider(timeout=5.0, headers={"X-Test": "1"})


def _response(status_code: int = 200, payload=None) -> MagicMock:
    response = MagicMock()
    response.status_code = status_code
    response.json.return_value = payload
    response.raise_for_status = MagicMock()
    return response


class TestBrowserHeaders:
    """Tests for browser-like request headers."""

    def test_origin_sets_referer(self) -> None:
        headers = browser_headers(origin="https://allanime.to")
        assert headers["Origin"] == "https://allanime.to"
        assert headers["Referer"] == "https://allanime.to"
        assert "Mozilla" in headers["User-Agent"]

    def test_plain(self) -> None:
        headers = browser_headers()
        assert "Origin" not in headers
        assert "Referer" not in headers


class TestRequest:
    """Tests for the retrying request loop."""

    def test_client_configuration(self) -> None:
        with patch("animestream.providers.base.httpx.Client") as mock_class:
            DemoProvider(timeout=5.0, headers={"X-Test": "1"})
        mock_class.assert_called_once_with(timeout=5.0, headers={"X-Test": "1"}, follow_redirects=True)

    def test_success(self, provider, mock_httpx_client) -> None:
        mock_httpx_client.request.return_value = _response(payload={"ok": True})
        assert provider.fetch("https://api.example/x") == {"ok": True}
        mock_httpx_client.request.assert_called_once_with("GET", "https://api.example/x")

    def test_not_found_is_not_retried(self, provider, mock_httpx_client) -> None:
        mock_httpx_client.request.return_value = _response(404)

        with pytest.raises(UpstreamNotFoundError, match="resource not found"):
            provider.fetch("https://api.example/missing")
        assert mock_httpx_client.request.call_count == 1

    @patch("animestream.providers.base.time.sleep")
    def test_rate_limit_honours_retry_after(self, mock_sleep, provider, mock_httpx_client) -> None:
        limited = _response(429)
        limited.headers = {"Retry-After": "2"}
        mock_httpx_client.request.side_effect = [limited, _response(payload=[1])]

        assert provider.fetch("https://api.example/x") == [1]
        mock_sleep.assert_called_once_with(2.0)

    @patch("animestream.providers.base.time.sleep")
    def test_rate_limit_wait_is_capped(self, mock_sleep, provider, mock_httpx_client) -> None:
        limited = _response(429)
        limited.headers = {"Retry-After": "600"}
        mock_httpx_client.request.side_effect = [limited, _response(payload=[])]

        provider.fetch("https://api.example/x")
        mock_sleep.assert_called_once_with(30.0)

    @patch("animestream.providers.base.time.sleep")
    def test_server_errors_back_off(self, mock_sleep, provider, mock_httpx_client) -> None:
        failing = _response(500)
        failing.raise_for_status.side_effect = httpx.HTTPStatusError(
            "server error", request=MagicMock(), response=MagicMock(status_code=500)
        )
        mock_httpx_client.request.side_effect = [failing, failing, _response(payload="done")]

        assert provider.fetch("https://api.example/x") == "done"
        assert [call.args[0] for call in mock_sleep.call_args_list] == [1.0, 2.0]

    @patch("animestream.providers.base.time.sleep")
    def test_gives_up_after_max_retries(self, mock_sleep, provider, mock_httpx_client) -> None:
        mock_httpx_client.request.side_effect = httpx.RequestError("Connection failed")

        with pytest.raises(UpstreamError) as exc_info:
            provider.fetch("https://api.example/x")

        assert "after 3 attempts" in str(exc_info.value)
        assert isinstance(exc_info.value.__cause__, httpx.RequestError)
        assert mock_httpx_client.request.call_count == 3
        assert mock_sleep.call_count == 2

    def test_invalid_json(self, provider, mock_httpx_client) -> None:
        response = _response()
        response.json.side_effect = ValueError("Expecting value")
        mock_httpx_client.request.return_value = response

        with pytest.raises(UpstreamError, match="invalid JSON"):
            provider.fetch("https://api.example/x")

    def test_context_manager_closes_client(self, mock_httpx_client) -> None:
        with DemoProvider():
            pass
        mock_httpx_client.close.assert_called_once()
