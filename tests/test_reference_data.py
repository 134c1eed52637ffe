from __future__ import annotations

from pathlib import Path

import pytest

from animestream.reference_data import (
    ReferenceDataError,
    build_reference_data,
    default_reference_data,
    load_reference_data,
)


class TestDefaultReferenceData:
    """Tests for the bundled tables."""

    def test_loaded_once(self) -> None:
        assert default_reference_data() is default_reference_data()

    def test_one_piece_ranges(self) -> None:
        reference = default_reference_data()
        season = reference.season_range("tt0388629", 21)
        assert season is not None
        assert (season.absolute_start, season.absolute_end) == (892, 1085)
        assert reference.season_range("tt0388629", 99) is None
        assert reference.season_range("tt0000000", 1) is None

    def test_pins_and_aliases(self) -> None:
        reference = default_reference_data()
        assert reference.pinned_id("tt5626028", 2) == "JYfouPvxtkY5923Me"
        assert reference.pinned_id(None, 2) is None
        assert reference.title_aliases["attack on titan"] == ("Shingeki no Kyojin",)
        assert "jujutsu kaisen" in reference.season_queries(2)

    def test_tables_are_read_only(self) -> None:
        reference = default_reference_data()
        with pytest.raises(TypeError):
            reference.pinned_ids[("tt1", 1)] = "x"  # type: ignore[index]


class TestBuildReferenceData:
    """Tests for validation and freezing of raw tables."""

    def test_alias_keys_are_lowercased(self) -> None:
        reference = build_reference_data({"title_aliases": {"  Demon Slayer ": ["Kimetsu no Yaiba"]}})
        assert dict(reference.title_aliases) == {"demon slayer": ("Kimetsu no Yaiba",)}

    def test_season_queries_only_for_requested_season(self) -> None:
        reference = build_reference_data(
            {"season_aliases": {"show": [{"season": 2, "queries": ["Show II"]}]}}
        )
        assert dict(reference.season_queries(2)) == {"show": ("Show II",)}
        assert dict(reference.season_queries(1)) == {}

    def test_gap_is_rejected(self) -> None:
        data = {
            "season_offsets": {
                "tt1": {"seasons": [{"season": 1, "start": 1, "end": 10}, {"season": 2, "start": 12, "end": 20}]}
            }
        }
        with pytest.raises(ReferenceDataError) as excinfo:
            build_reference_data(data, source="test.yaml")
        assert "test.yaml" in str(excinfo.value)
        assert excinfo.value.report is not None
        assert excinfo.value.report.errors[0].code == "season-gap"

    def test_unknown_section_is_rejected(self) -> None:
        with pytest.raises(ReferenceDataError):
            build_reference_data({"offsets": {}})

    def test_blank_alias_key_warns(self, caplog: pytest.LogCaptureFixture) -> None:
        reference = build_reference_data({"title_aliases": {" ": ["Nothing"]}})
        assert dict(reference.title_aliases) == {}
        assert "Blank alias key" in caplog.text


class TestLoadReferenceData:
    """Tests for loading tables from disk."""

    def test_load_file(self, tmp_path: Path) -> None:
        path = tmp_path / "reference.yaml"
        path.write_text(
            "season_offsets:\n"
            "  tt42:\n"
            "    seasons:\n"
            "      - {season: 1, start: 1, end: 12}\n"
            "      - {season: 2, start: 13, end: 24}\n",
            encoding="utf-8",
        )
        reference = load_reference_data(path)
        assert reference.season_range("tt42", 2).absolute_start == 13

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(ReferenceDataError, match="Unable to read"):
            load_reference_data(tmp_path / "missing.yaml")

    def test_malformed_yaml(self, tmp_path: Path) -> None:
        path = tmp_path / "broken.yaml"
        path.write_text("season_offsets: [unclosed\n", encoding="utf-8")
        with pytest.raises(ReferenceDataError, match="Unable to read"):
            load_reference_data(path)
