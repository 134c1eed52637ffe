from __future__ import annotations

from pathlib import Path

import pytest

from animestream.utils import (
    coerce_int,
    env_bool,
    env_list,
    expand_env,
    load_yaml_file,
    ordinal_suffix,
    parse_env_bool,
)


@pytest.mark.parametrize(
    ("value", "expected"),
    [(1, "st"), (2, "nd"), (3, "rd"), (4, "th"), (11, "th"), (12, "th"), (13, "th"), (21, "st"), (112, "th")],
)
def test_ordinal_suffix(value: int, expected: str) -> None:
    assert ordinal_suffix(value) == expected


@pytest.mark.parametrize(
    ("value", "expected"),
    [(5, 5), ("12", 12), (" 7 ", 7), ("abc", None), (None, None), (True, None), ("", None)],
)
def test_coerce_int(value, expected) -> None:
    assert coerce_int(value) == expected


def test_expand_env_walks_nested_values(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("ANIMESTREAM_TEST_VALUE", "expanded")
    data = {"a": "${ANIMESTREAM_TEST_VALUE}", "b": ["$ANIMESTREAM_TEST_VALUE", 3], "c": {"d": None}}
    assert expand_env(data) == {"a": "expanded", "b": ["expanded", 3], "c": {"d": None}}


def test_load_yaml_file_empty_document(tmp_path: Path) -> None:
    path = tmp_path / "empty.yaml"
    path.write_text("", encoding="utf-8")
    assert load_yaml_file(path) == {}


@pytest.mark.parametrize(
    ("value", "expected"),
    [("1", True), ("YES", True), (" on ", True), ("0", False), ("off", False), ("maybe", None), (None, None)],
)
def test_parse_env_bool(value, expected) -> None:
    assert parse_env_bool(value) is expected


def test_env_helpers(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("ANIMESTREAM_TEST_BOOL", "true")
    monkeypatch.setenv("ANIMESTREAM_TEST_LIST", " nyaa, ,animetosho ")
    monkeypatch.delenv("ANIMESTREAM_TEST_MISSING", raising=False)

    assert env_bool("ANIMESTREAM_TEST_BOOL") is True
    assert env_list("ANIMESTREAM_TEST_LIST") == ["nyaa", "animetosho"]
    assert env_list("ANIMESTREAM_TEST_MISSING") is None
    assert env_bool("ANIMESTREAM_TEST_MISSING") is None
