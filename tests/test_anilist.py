"""Tests for the AniList title lookup."""

from __future__ import annotations

from unittest.mock import MagicMock, patch

import httpx
import pytest

from animestream.providers.anilist import ANILIST_URL, AniListClient
from animestream.providers.base import UpstreamError


@pytest.fixture
def mock_httpx_client():
    with patch("animestream.providers.base.httpx.Client") as mock_class:
        mock_instance = MagicMock()
        mock_class.return_value = mock_instance
        yield mock_instance


@pytest.fixture
def client(mock_httpx_client):
    return AniListClient()


def _response(payload, status_code: int = 200) -> MagicMock:
    response = MagicMock()
    response.status_code = status_code
    response.json.return_value = payload
    response.raise_for_status = MagicMock()
    return response


def _media(english=None, romaji=None, native=None) -> dict:
    return {
        "data": {
            "Media": {
                "id": 5114,
                "idMal": 5114,
                "title": {"english": english, "romaji": romaji, "native": native},
            }
        }
    }


class TestTitleForMal:
    """Tests for MAL id lookups."""

    def test_english_title_preferred(self, client, mock_httpx_client) -> None:
        mock_httpx_client.request.return_value = _response(
            _media("Fullmetal Alchemist: Brotherhood", "Hagane no Renkinjutsushi: Fullmetal Alchemist", "鋼の錬金術師")
        )

        assert client.title_for_mal(5114) == "Fullmetal Alchemist: Brotherhood"

        args, kwargs = mock_httpx_client.request.call_args
        assert args == ("POST", ANILIST_URL)
        assert kwargs["json"]["variables"] == {"malId": 5114}
        assert "Media(idMal: $malId, type: ANIME)" in kwargs["json"]["query"]

    def test_falls_back_to_romaji_then_native(self, client, mock_httpx_client) -> None:
        mock_httpx_client.request.side_effect = [
            _response(_media(romaji="Sousou no Frieren", native="葬送のフリーレン")),
            _response(_media(native="葬送のフリーレン")),
        ]

        assert client.title_for_mal(52991) == "Sousou no Frieren"
        assert client.title_for_mal(1) == "葬送のフリーレン"

    def test_cached(self, client, mock_httpx_client) -> None:
        mock_httpx_client.request.return_value = _response(_media("One Piece"))

        assert client.title_for_mal(21) == "One Piece"
        assert client.title_for_mal(21) == "One Piece"
        mock_httpx_client.request.assert_called_once()

    def test_not_found(self, client, mock_httpx_client) -> None:
        mock_httpx_client.request.return_value = _response(
            {"errors": [{"message": "Not Found.", "status": 404}], "data": {"Media": None}}, status_code=404
        )
        assert client.title_for_mal(999999) is None

    def test_null_media(self, client, mock_httpx_client) -> None:
        mock_httpx_client.request.return_value = _response({"data": {"Media": None}})
        assert client.title_for_mal(999999) is None

    def test_malformed_media(self, client, mock_httpx_client) -> None:
        mock_httpx_client.request.return_value = _response({"data": {"Media": {"title": "not an object"}}})
        with pytest.raises(UpstreamError, match="malformed"):
            client.title_for_mal(5114)

    @patch("animestream.providers.base.time.sleep")
    def test_unreachable(self, mock_sleep, client, mock_httpx_client) -> None:
        mock_httpx_client.request.side_effect = httpx.RequestError("Connection failed")
        with pytest.raises(UpstreamError):
            client.title_for_mal(5114)
