"""Read-only lookup tables shipped with the package.

``data/reference_data.yaml`` holds season offsets for long-running series
numbered continuously upstream, pinned show ids, title aliases and
per-season search aliases. The bundled file is parsed and validated once per
process; an alternate file can be supplied through configuration.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from functools import lru_cache
from importlib import resources
from pathlib import Path
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional, Tuple

import yaml

from .models import SeasonRange
from .utils import load_yaml_file
from .validation import ValidationReport, validate_reference_data

LOGGER = logging.getLogger(__name__)

SeasonOffsetTable = Mapping[str, Tuple[SeasonRange, ...]]


class ReferenceDataError(ValueError):
    """Raised when a reference-data file is unreadable or violates its invariants."""

    def __init__(self, message: str, report: Optional[ValidationReport] = None) -> None:
        super().__init__(message)
        self.report = report


def _empty_mapping() -> Mapping[Any, Any]:
    return MappingProxyType({})


@dataclass(frozen=True)
class ReferenceData:
    season_offsets: SeasonOffsetTable = field(default_factory=_empty_mapping)
    pinned_ids: Mapping[Tuple[str, int], str] = field(default_factory=_empty_mapping)
    title_aliases: Mapping[str, Tuple[str, ...]] = field(default_factory=_empty_mapping)
    season_aliases: Mapping[str, Mapping[int, Tuple[str, ...]]] = field(default_factory=_empty_mapping)

    def season_range(self, series_id: str, season: int) -> Optional[SeasonRange]:
        for season_range in self.season_offsets.get(series_id, ()):
            if season_range.season == season:
                return season_range
        return None

    def pinned_id(self, series_id: Optional[str], season: int) -> Optional[str]:
        if not series_id:
            return None
        return self.pinned_ids.get((series_id, season))

    def season_queries(self, season: int) -> Mapping[str, Tuple[str, ...]]:
        """Per-season search aliases for ``season``, keyed like ``title_aliases``."""
        return MappingProxyType(
            {key: seasons[season] for key, seasons in self.season_aliases.items() if season in seasons}
        )


def build_reference_data(data: Mapping[str, Any], *, source: str = "<memory>") -> ReferenceData:
    """Validate raw tables and freeze them into a ``ReferenceData``.

    Raises:
        ReferenceDataError: If the tables fail schema or range validation
    """
    raw: Dict[str, Any] = dict(data or {})
    report = validate_reference_data(raw)
    for warning in report.warnings:
        LOGGER.warning("Reference data %s: %s (%s)", source, warning.message, warning.path)
    if not report.is_valid:
        raise ReferenceDataError(f"Invalid reference data in {source}: {report.summary()}", report)

    offsets: Dict[str, Tuple[SeasonRange, ...]] = {}
    for series_id, entry in (raw.get("season_offsets") or {}).items():
        offsets[str(series_id)] = tuple(
            SeasonRange(item["season"], item["start"], item["end"]) for item in entry["seasons"]
        )

    pins: Dict[Tuple[str, int], str] = {
        (pin["series_id"], pin["season"]): pin["external_id"] for pin in raw.get("pinned_ids") or []
    }

    title_aliases: Dict[str, Tuple[str, ...]] = {}
    for key, terms in (raw.get("title_aliases") or {}).items():
        normalized = key.strip().lower()
        if normalized:
            title_aliases[normalized] = tuple(terms)

    season_aliases: Dict[str, Mapping[int, Tuple[str, ...]]] = {}
    for key, seasons in (raw.get("season_aliases") or {}).items():
        normalized = key.strip().lower()
        if normalized:
            season_aliases[normalized] = MappingProxyType({item["season"]: tuple(item["queries"]) for item in seasons})

    return ReferenceData(
        season_offsets=MappingProxyType(offsets),
        pinned_ids=MappingProxyType(pins),
        title_aliases=MappingProxyType(title_aliases),
        season_aliases=MappingProxyType(season_aliases),
    )


def load_reference_data(path: Path) -> ReferenceData:
    """Load reference tables from a YAML file on disk."""
    try:
        data = load_yaml_file(path)
    except (OSError, yaml.YAMLError) as exc:
        raise ReferenceDataError(f"Unable to read reference data {path}: {exc}") from exc
    reference = build_reference_data(data, source=str(path))
    LOGGER.debug(
        "Loaded reference data from %s: %d offset series, %d pins",
        path,
        len(reference.season_offsets),
        len(reference.pinned_ids),
    )
    return reference


@lru_cache
def default_reference_data() -> ReferenceData:
    """Return the tables bundled with the package, parsed once."""
    with resources.as_file(resources.files(__package__) / "data" / "reference_data.yaml") as path:
        return load_reference_data(path)
