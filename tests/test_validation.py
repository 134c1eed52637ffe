from __future__ import annotations

from typing import Any, Dict

import pytest

from animestream.validation import (
    FIX_SUGGESTION_REGISTRY,
    ValidationReport,
    validate_config_data,
    validate_reference_data,
)


def _offsets(*seasons: Dict[str, int]) -> Dict[str, Any]:
    return {"season_offsets": {"tt1": {"name": "Show", "seasons": list(seasons)}}}


class TestValidateReferenceData:
    """Tests for reference table validation."""

    def test_bundled_shape_is_valid(self) -> None:
        data = _offsets({"season": 1, "start": 1, "end": 10}, {"season": 2, "start": 11, "end": 20})
        data["pinned_ids"] = [{"series_id": "tt1", "season": 1, "external_id": "abc"}]
        data["title_aliases"] = {"show": ["Shou"]}
        report = validate_reference_data(data)
        assert report.is_valid
        assert report.warnings == []

    def test_empty_is_valid(self) -> None:
        assert validate_reference_data({}).is_valid

    @pytest.mark.parametrize(
        ("seasons", "code"),
        [
            (({"season": 1, "start": 1, "end": 10}, {"season": 2, "start": 12, "end": 20}), "season-gap"),
            (({"season": 1, "start": 1, "end": 10}, {"season": 2, "start": 10, "end": 20}), "season-gap"),
            (({"season": 2, "start": 1, "end": 10}, {"season": 1, "start": 11, "end": 20}), "season-order"),
            (({"season": 1, "start": 10, "end": 5},), "season-order"),
        ],
    )
    def test_range_invariants(self, seasons, code: str) -> None:
        report = validate_reference_data(_offsets(*seasons))
        assert not report.is_valid
        assert report.errors[0].code == code
        assert report.errors[0].path.startswith("season_offsets.tt1.seasons[")
        assert report.errors[0].fix_suggestion

    def test_schema_error_path_and_suggestion(self) -> None:
        report = validate_reference_data(_offsets({"season": "one", "start": 1, "end": 10}))
        assert not report.is_valid
        issue = report.errors[0]
        assert issue.code == "schema"
        assert issue.path == "season_offsets.tt1.seasons[0].season"
        assert issue.fix_suggestion == "Change this field to a integer value"

    def test_duplicate_pin(self) -> None:
        pin = {"series_id": "tt1", "season": 1, "external_id": "abc"}
        report = validate_reference_data({"pinned_ids": [pin, dict(pin, external_id="def")]})
        assert [issue.code for issue in report.errors] == ["duplicate-pin"]
        assert report.errors[0].path == "pinned_ids[1]"

    def test_blank_alias_key_is_a_warning(self) -> None:
        report = validate_reference_data({"title_aliases": {"  ": ["x"]}})
        assert report.is_valid
        assert report.warnings[0].code == "blank-alias"


class TestValidateConfigData:
    """Tests for configuration validation."""

    def test_empty_config(self) -> None:
        assert validate_config_data({}).is_valid

    def test_unknown_feed(self) -> None:
        report = validate_config_data({"torrents": {"feeds": ["nyaa", "piratebay"]}})
        assert not report.is_valid
        assert report.errors[0].path == "torrents.feeds[1]"
        assert report.errors[0].fix_suggestion == "Use one of the allowed values for this field"

    def test_unknown_matching_key(self) -> None:
        report = validate_config_data({"matching": {"treshold": 50}})
        assert report.errors[0].fix_suggestion == "Remove the unknown key or check it for typos"

    def test_threshold_order(self) -> None:
        report = validate_config_data({"matching": {"default_threshold": 80, "verified_threshold": 70}})
        assert [issue.code for issue in report.errors] == ["threshold-order"]

    def test_enabled_without_feeds_warns(self) -> None:
        report = validate_config_data({"torrents": {"enabled": True, "feeds": []}})
        assert report.is_valid
        assert report.warnings[0].code == "no-feeds"


class TestValidationReport:
    """Tests for the report container."""

    def test_summary_lists_errors(self) -> None:
        report = ValidationReport()
        report.add_error("a.b", "broken", "custom")
        report.add_warning("c", "odd", "custom")
        assert not report.is_valid
        assert report.summary() == "a.b: broken"
        assert report.errors[0].fix_suggestion is None

    def test_registry_codes(self) -> None:
        assert {"schema", "season-gap", "season-order", "threshold-order"} <= set(FIX_SUGGESTION_REGISTRY)
