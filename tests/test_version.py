from __future__ import annotations

from importlib import metadata

import pytest

from animestream import version


def test_build_version_wins(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("BUILD_VERSION", " 1.2.3 ")
    assert version.get_version() == "1.2.3"


def test_installed_metadata(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("BUILD_VERSION", raising=False)
    monkeypatch.setattr(version.metadata, "version", lambda name: "0.3.0")
    assert version.get_version() == "0.3.0"


def test_git_fallback(monkeypatch: pytest.MonkeyPatch) -> None:
    def not_installed(name: str) -> str:
        raise metadata.PackageNotFoundError(name)

    monkeypatch.delenv("BUILD_VERSION", raising=False)
    monkeypatch.setattr(version.metadata, "version", not_installed)
    monkeypatch.setattr(version, "_git_sha", lambda: "abc1234")
    assert version.get_version() == "dev (abc1234)"

    monkeypatch.setattr(version, "_git_sha", lambda: None)
    assert version.get_version() == "0.0.0+unknown"
