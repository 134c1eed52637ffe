from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from .utils import env_bool, env_list, load_yaml_file
from .validation import ValidationReport, validate_config_data

LOGGER = logging.getLogger(__name__)

ENV_LOG_LEVEL = "ANIMESTREAM_LOG_LEVEL"
ENV_TORRENTS = "ANIMESTREAM_TORRENTS"
ENV_FEEDS = "ANIMESTREAM_FEEDS"
ENV_REFERENCE_DATA = "ANIMESTREAM_REFERENCE_DATA"

KNOWN_FEEDS = ("nyaa", "animetosho")


class ConfigError(ValueError):
    """Raised when a configuration file cannot be loaded or fails validation."""

    def __init__(self, message: str, report: ValidationReport | None = None) -> None:
        super().__init__(message)
        self.report = report


@dataclass(frozen=True)
class MatchThresholds:
    """Tunable constants of the show-identity scoring.

    The defaults were tuned against live upstream search results; changing
    them changes which shows get matched.
    """

    default_threshold: float = 60.0
    verified_threshold: float = 75.0
    exact_score: float = 100.0
    containment_score: float = 80.0
    fuzzy_scale: float = 0.9
    tv_bonus: float = 3.0
    movie_bonus: float = 2.0
    alias_search_limit: int = 5
    search_limit: int = 15


@dataclass
class ProviderSettings:
    enabled: bool = True
    base_url: str | None = None
    timeout: float = 15.0
    headers: dict[str, str] = field(default_factory=dict)


@dataclass
class CacheSettings:
    search_ttl_seconds: int = 5 * 60
    search_max_entries: int = 100
    crosswalk_ttl_seconds: int = 24 * 60 * 60
    crosswalk_max_entries: int = 500
    feed_ttl_seconds: int = 10 * 60
    feed_max_entries: int = 200


@dataclass
class TorrentSettings:
    enabled: bool = True
    feeds: list[str] = field(default_factory=lambda: list(KNOWN_FEEDS))
    max_queries: int = 2
    max_results: int = 5
    timeout: float = 8.0


@dataclass
class Settings:
    log_level: str = "INFO"
    log_file: Path | None = None
    reference_data: Path | None = None
    matching: MatchThresholds = field(default_factory=MatchThresholds)
    allanime: ProviderSettings = field(default_factory=ProviderSettings)
    crosswalk: ProviderSettings = field(default_factory=ProviderSettings)
    anilist: ProviderSettings = field(default_factory=ProviderSettings)
    cache: CacheSettings = field(default_factory=CacheSettings)
    torrents: TorrentSettings = field(default_factory=TorrentSettings)


def _build_thresholds(data: dict[str, Any]) -> MatchThresholds:
    defaults = MatchThresholds()
    values: dict[str, Any] = {}
    for name in (
        "default_threshold",
        "verified_threshold",
        "containment_score",
        "fuzzy_scale",
        "tv_bonus",
        "movie_bonus",
    ):
        values[name] = float(data.get(name, getattr(defaults, name)))
    for name in ("alias_search_limit", "search_limit"):
        values[name] = int(data.get(name, getattr(defaults, name)))
    return MatchThresholds(**values)


def _build_provider_settings(data: dict[str, Any]) -> ProviderSettings:
    base_url = data.get("base_url")
    if isinstance(base_url, str):
        base_url = base_url.strip() or None
    return ProviderSettings(
        enabled=bool(data.get("enabled", True)),
        base_url=base_url,
        timeout=float(data.get("timeout", ProviderSettings.timeout)),
        headers={str(key): str(value) for key, value in (data.get("headers") or {}).items()},
    )


def _build_cache_settings(data: dict[str, Any]) -> CacheSettings:
    defaults = CacheSettings()
    return CacheSettings(**{name: int(data.get(name, getattr(defaults, name))) for name in defaults.__dict__})


def _build_torrent_settings(data: dict[str, Any]) -> TorrentSettings:
    feeds = data.get("feeds")
    return TorrentSettings(
        enabled=bool(data.get("enabled", True)),
        feeds=[str(feed).lower() for feed in feeds] if feeds is not None else list(KNOWN_FEEDS),
        max_queries=int(data.get("max_queries", TorrentSettings.max_queries)),
        max_results=int(data.get("max_results", TorrentSettings.max_results)),
        timeout=float(data.get("timeout", TorrentSettings.timeout)),
    )


def _optional_path(value: Any) -> Path | None:
    if value is None:
        return None
    text = str(value).strip()
    if not text:
        return None
    return Path(text).expanduser()


def build_settings(data: dict[str, Any]) -> Settings:
    """Validate a raw configuration mapping and build ``Settings`` from it."""
    report = validate_config_data(data)
    for warning in report.warnings:
        LOGGER.warning("Config %s: %s", warning.path, warning.message)
    if not report.is_valid:
        raise ConfigError(f"Invalid configuration: {report.summary()}", report)

    general = data.get("settings") or {}
    providers = data.get("providers") or {}
    return Settings(
        log_level=str(general.get("log_level", "INFO")).upper(),
        log_file=_optional_path(general.get("log_file")),
        reference_data=_optional_path(general.get("reference_data")),
        matching=_build_thresholds(data.get("matching") or {}),
        allanime=_build_provider_settings(providers.get("allanime") or {}),
        crosswalk=_build_provider_settings(providers.get("crosswalk") or {}),
        anilist=_build_provider_settings(providers.get("anilist") or {}),
        cache=_build_cache_settings(data.get("cache") or {}),
        torrents=_build_torrent_settings(data.get("torrents") or {}),
    )


def apply_env_overrides(settings: Settings) -> Settings:
    """Apply ``ANIMESTREAM_*`` environment variables on top of ``settings``."""
    log_level = os.getenv(ENV_LOG_LEVEL)
    if log_level and log_level.strip():
        settings.log_level = log_level.strip().upper()

    torrents = env_bool(ENV_TORRENTS)
    if torrents is not None:
        settings.torrents.enabled = torrents

    feeds = env_list(ENV_FEEDS)
    if feeds is not None:
        lowered = [feed.lower() for feed in feeds]
        unknown = [feed for feed in lowered if feed not in KNOWN_FEEDS]
        if unknown:
            raise ConfigError(f"{ENV_FEEDS} lists unknown feeds: {', '.join(unknown)}")
        settings.torrents.feeds = lowered

    reference_path = _optional_path(os.getenv(ENV_REFERENCE_DATA))
    if reference_path is not None:
        settings.reference_data = reference_path
    return settings


def load_config(path: Path | None = None) -> Settings:
    """Load settings from a YAML file, falling back to defaults.

    A missing or unspecified file yields default settings; environment
    overrides are applied in both cases.

    Raises:
        ConfigError: If the file cannot be parsed or fails validation
    """
    data: dict[str, Any] = {}
    if path is not None:
        if path.exists():
            try:
                data = load_yaml_file(path)
            except (OSError, yaml.YAMLError) as exc:
                raise ConfigError(f"Unable to read configuration {path}: {exc}") from exc
            if not isinstance(data, dict):
                raise ConfigError(f"Configuration {path} must be a mapping at the top level")
        else:
            LOGGER.info("Configuration file %s not found; using defaults", path)
    return apply_env_overrides(build_settings(data))
