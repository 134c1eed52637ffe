from __future__ import annotations

import logging

import pytest

from animestream.matcher.absolute_episode import to_absolute
from animestream.reference_data import build_reference_data


@pytest.fixture
def table():
    return build_reference_data(
        {
            "season_offsets": {
                "seriesX": {
                    "seasons": [
                        {"season": 20, "start": 878, "end": 891},
                        {"season": 21, "start": 892, "end": 1085},
                    ]
                }
            }
        }
    )


class TestToAbsolute:
    """Tests for catalog season to absolute episode mapping."""

    def test_first_episode_of_mapped_season(self, table) -> None:
        assert to_absolute("seriesX", 21, 1, table) == 892

    def test_out_of_range_episode_is_clamped(self, table, caplog) -> None:
        with caplog.at_level(logging.INFO, logger="animestream.matcher.absolute_episode"):
            assert to_absolute("seriesX", 21, 300, table) == 1085
        assert "capping" in caplog.text

    def test_last_episode_of_season(self, table) -> None:
        assert to_absolute("seriesX", 20, 14, table) == 891

    def test_unknown_series_passes_through(self, table) -> None:
        assert to_absolute("tt0000001", 3, 7, table) == 7

    def test_unmapped_season_passes_through(self, table, caplog) -> None:
        with caplog.at_level(logging.INFO, logger="animestream.matcher.absolute_episode"):
            assert to_absolute("seriesX", 5, 4, table) == 4
        assert "No season mapping" in caplog.text

    def test_monotonic_within_season(self, table) -> None:
        values = [to_absolute("seriesX", 21, episode, table) for episode in range(1, 250)]
        assert values == sorted(values)
        assert all(892 <= value <= 1085 for value in values)

    def test_bundled_one_piece_table(self) -> None:
        assert to_absolute("tt0388629", 21, 1) == 892
        assert to_absolute("tt0388629", 22, 1) == 1086
        assert to_absolute("tt0388629", 1, 8) == 8
