"""Tests for the torrent feed client."""

from __future__ import annotations

from unittest.mock import MagicMock, patch

import httpx
import pytest

from animestream.providers.base import UpstreamError
from animestream.providers.feeds import (
    ANIDB_PROVIDER,
    ANIMETOSHO,
    NYAA,
    TOSHO_JSON_URL,
    TorrentFeedClient,
    animetosho_queries,
    clean_query_name,
    nyaa_queries,
    parse_animetosho_entry,
    parse_nyaa_entry,
    short_query_name,
)

HASH_A = "a" * 40
HASH_B = "b" * 40
HASH_C = "c" * 40


def _item(title: str, info_hash: str, seeders: int) -> str:
    return f"""
<item>
<title>{title}</title>
<link>https://nyaa.si/download/{seeders}.torrent</link>
<guid isPermaLink="true">https://nyaa.si/view/{seeders}</guid>
<pubDate>Fri, 06 Oct 2023 16:01:00 -0000</pubDate>
<nyaa:seeders>{seeders}</nyaa:seeders>
<nyaa:leechers>3</nyaa:leechers>
<nyaa:infoHash>{info_hash}</nyaa:infoHash>
<nyaa:size>1.4 GiB</nyaa:size>
</item>"""


def _rss(*items: str) -> str:
    return (
        '<?xml version="1.0" encoding="UTF-8"?>\n'
        '<rss xmlns:atom="http://www.w3.org/2005/Atom" xmlns:nyaa="https://nyaa.si/xmlns/nyaa" version="2.0">\n'
        "<channel><title>Nyaa</title><link>https://nyaa.si/</link><description>search</description>"
        + "".join(items)
        + "</channel></rss>"
    )


NYAA_RSS = _rss(
    _item("[Erai-raws] Sousou no Frieren - 05 [720p].mkv", HASH_A, 300),
    _item("[SubsPlease] Sousou no Frieren - 05 (1080p) [F00DCAFE].mkv", HASH_B, 1200),
    _item("[SubsPlease] Sousou no Frieren - 06 (1080p) [0BADF00D].mkv", HASH_C, 900),
)


@pytest.fixture
def mock_httpx_client():
    with patch("animestream.providers.base.httpx.Client") as mock_class:
        mock_instance = MagicMock()
        mock_class.return_value = mock_instance
        yield mock_instance


@pytest.fixture
def client(mock_httpx_client):
    return TorrentFeedClient(max_queries=2)


def _text_response(text: str) -> MagicMock:
    response = MagicMock()
    response.status_code = 200
    response.text = text
    response.raise_for_status = MagicMock()
    return response


class TestQueries:
    """Tests for feed query construction."""

    def test_clean_name(self) -> None:
        assert clean_query_name("Frieren: Beyond Journey's End!") == "Frieren Beyond Journeys End"
        assert clean_query_name("“Oshi no Ko”  ") == "Oshi no Ko"

    def test_short_name(self) -> None:
        assert short_query_name("Frieren: Beyond Journey's End") == "Frieren"
        assert short_query_name("The Apothecary Diaries") == "Apothecary Diaries"

    def test_nyaa_first_season(self) -> None:
        assert nyaa_queries("Frieren: Beyond Journey's End", 1, 5) == [
            "Frieren 05",
            "Frieren Beyond Journeys End 05",
            "Frieren S01E05",
        ]

    def test_nyaa_later_season(self) -> None:
        assert nyaa_queries("Frieren", 2, 12) == ["Frieren S02E12", "Frieren Season 2 12"]

    def test_animetosho(self) -> None:
        assert animetosho_queries("Frieren", 1, 5) == ["Frieren 05", "Frieren S01E05"]
        assert animetosho_queries("Frieren", 2, 5) == ["Frieren S02E05", "Frieren Season 2 05"]


class TestEntryParsing:
    """Tests for turning feed entries into releases."""

    def test_nyaa_entry_with_magnet_link(self) -> None:
        entry = {"title": "Show - 05", "link": f"magnet:?xt=urn:btih:{HASH_A}&dn=Show", "nyaa_seeders": "7"}
        release = parse_nyaa_entry(entry, "Nyaa")
        assert release.info_hash == HASH_A.upper()
        assert release.magnet == entry["link"]
        assert release.seeders == 7

    def test_nyaa_entry_without_hash(self) -> None:
        assert parse_nyaa_entry({"title": "Show - 05", "link": "https://nyaa.si/view/1"}, "Nyaa") is None
        assert parse_nyaa_entry({"nyaa_infohash": HASH_A}, "Nyaa") is None

    def test_animetosho_entry(self) -> None:
        by_link = {"title": "Show - 05", "link": f"https://animetosho.org/view/show.n1/{HASH_A}"}
        by_magnet = {
            "title": "Show - 05",
            "link": "https://animetosho.org/view/show.n1",
            "links": [{"href": "https://animetosho.org/"}, {"href": f"magnet:?xt=urn:btih:{HASH_B}"}],
        }
        assert parse_animetosho_entry(by_link, "AnimeTosho").info_hash == HASH_A.upper()
        assert parse_animetosho_entry(by_magnet, "AnimeTosho").info_hash == HASH_B.upper()
        assert parse_animetosho_entry({"title": "Show - 05", "link": "https://x"}, "AnimeTosho") is None


class TestFeedSearch:
    """Tests for RSS feed searches."""

    def test_nyaa_search(self, client, mock_httpx_client) -> None:
        mock_httpx_client.request.return_value = _text_response(NYAA_RSS)

        releases = client.search(NYAA, "Frieren: Beyond Journey's End", 1, 5)

        assert [release.info_hash for release in releases] == [HASH_B.upper(), HASH_A.upper()]
        best = releases[0]
        assert best.provider == "Nyaa"
        assert best.quality == "1080p"
        assert best.seeders == 1200
        assert best.size == "1.4 GiB"
        assert best.published == "2023-10-06T16:01:00+00:00"
        assert best.match_reason == "exact_match"
        mock_httpx_client.request.assert_called_once_with(
            "GET", "https://nyaa.si/", params={"page": "rss", "q": "Frieren 05", "c": "1_0", "f": "0"}
        )

    def test_falls_back_to_next_query(self, client, mock_httpx_client) -> None:
        mock_httpx_client.request.side_effect = [_text_response(_rss()), _text_response(NYAA_RSS)]

        releases = client.search("nyaa", "Frieren", 1, 5)

        assert len(releases) == 2
        assert mock_httpx_client.request.call_count == 2
        assert mock_httpx_client.request.call_args.kwargs["params"]["q"] == "Frieren S01E05"

    def test_results_are_cached(self, client, mock_httpx_client) -> None:
        mock_httpx_client.request.return_value = _text_response(NYAA_RSS)
        client.search(NYAA, "Frieren", 1, 5)
        client.search(NYAA, "frieren", 1, 5)
        assert mock_httpx_client.request.call_count == 1

    def test_no_results_is_not_an_error(self, client, mock_httpx_client) -> None:
        mock_httpx_client.request.return_value = _text_response(_rss())
        assert client.search(ANIMETOSHO, "Frieren", 1, 5) == []
        params = mock_httpx_client.request.call_args.kwargs["params"]
        assert params["filter[0][t]"] == "nyaa_class"

    @patch("animestream.providers.base.time.sleep")
    def test_every_query_failing_raises(self, mock_sleep, client, mock_httpx_client) -> None:
        mock_httpx_client.request.side_effect = httpx.RequestError("Connection failed")

        with pytest.raises(UpstreamError, match="every query failed"):
            client.search(NYAA, "Frieren", 1, 5)
        assert mock_httpx_client.request.call_count == 6

    @patch("animestream.providers.base.time.sleep")
    def test_one_failed_query_is_tolerated(self, mock_sleep, client, mock_httpx_client) -> None:
        failure = httpx.RequestError("Connection failed")
        mock_httpx_client.request.side_effect = [failure, failure, failure, _text_response(NYAA_RSS)]

        assert len(client.search(NYAA, "Frieren", 1, 5)) == 2


class TestAniDbSearch:
    """Tests for the AnimeTosho JSON feed keyed by AniDB id."""

    def test_search_anidb(self, client, mock_httpx_client) -> None:
        response = MagicMock()
        response.status_code = 200
        response.json.return_value = [
            {
                "title": "[SubsPlease] Sousou no Frieren - 05 (1080p)",
                "info_hash": HASH_A,
                "magnet_uri": f"magnet:?xt=urn:btih:{HASH_A}",
                "seeders": 50,
                "total_size": 1610612736,
                "timestamp": 1696608060,
            },
            {"title": "[SubsPlease] Sousou no Frieren - 04 (1080p)", "info_hash": HASH_B},
            {"title": "no hash"},
            {"title": "bad", "info_hash": HASH_C, "seeders": "many"},
        ]
        mock_httpx_client.request.return_value = response

        releases = client.search_anidb(17617, 1, 5)

        assert len(releases) == 1
        release = releases[0]
        assert release.provider == ANIDB_PROVIDER
        assert release.size == "1.50 GB"
        assert release.magnet == f"magnet:?xt=urn:btih:{HASH_A}"
        assert release.published == "2023-10-06T16:01:00+00:00"
        mock_httpx_client.request.assert_called_once_with("GET", TOSHO_JSON_URL, params={"aid": "17617"})

    def test_unexpected_shape(self, client, mock_httpx_client) -> None:
        response = MagicMock()
        response.status_code = 200
        response.json.return_value = {"error": "nope"}
        mock_httpx_client.request.return_value = response

        with pytest.raises(UpstreamError):
            client.search_anidb(1, 1, 1)


class TestSynonymSearch:
    """Tests for the alternate-title fallback."""

    def test_first_synonym_with_results_wins(self, client, monkeypatch: pytest.MonkeyPatch) -> None:
        calls = []
        found = [MagicMock()]

        def fake_search(feed, title, season, episode):
            calls.append(title)
            if title == "Attack Titan":
                return found
            if title == "Shingeki no Kyojin":
                raise UpstreamError("down")
            return []

        monkeypatch.setattr(client, "search", fake_search)

        result = client.search_synonyms(["No", "Shingeki no Kyojin", "Attack Titan", "AoT", "Fourth"], 1, 5)

        assert result is found
        assert calls == ["Shingeki no Kyojin", "Attack Titan"]

    def test_limited_to_three_synonyms(self, client, monkeypatch: pytest.MonkeyPatch) -> None:
        calls = []
        monkeypatch.setattr(client, "search", lambda feed, title, season, episode: calls.append(title) or [])

        assert client.search_synonyms(["One", "Two", "Three", "Four"], 1, 5) == []
        assert calls == ["One", "Two", "Three"]
