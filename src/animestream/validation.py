from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Sequence

from jsonschema import Draft7Validator


@dataclass(slots=True)
class ValidationIssue:
    """Represents a single validation problem."""

    severity: str
    path: str
    message: str
    code: str
    fix_suggestion: Optional[str] = None


@dataclass(slots=True)
class ValidationReport:
    """Aggregates validation warnings and errors."""

    errors: List[ValidationIssue] = field(default_factory=list)
    warnings: List[ValidationIssue] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.errors

    def add_error(self, path: str, message: str, code: str) -> None:
        self.errors.append(
            ValidationIssue(
                severity="error",
                path=path,
                message=message,
                code=code,
                fix_suggestion=_fix_suggestion(path, message, code),
            )
        )

    def add_warning(self, path: str, message: str, code: str) -> None:
        self.warnings.append(
            ValidationIssue(
                severity="warning",
                path=path,
                message=message,
                code=code,
                fix_suggestion=_fix_suggestion(path, message, code),
            )
        )

    def summary(self) -> str:
        lines = [f"{issue.path}: {issue.message}" for issue in self.errors]
        return "; ".join(lines)


_FEED_NAMES = ["nyaa", "animetosho"]
_LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]

_STRING_LIST = {"type": "array", "items": {"type": "string", "minLength": 1}}

REFERENCE_DATA_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "properties": {
        "season_offsets": {
            "type": "object",
            "additionalProperties": {
                "type": "object",
                "properties": {
                    "name": {"type": "string"},
                    "seasons": {
                        "type": "array",
                        "minItems": 1,
                        "items": {
                            "type": "object",
                            "properties": {
                                "season": {"type": "integer", "minimum": 1},
                                "start": {"type": "integer", "minimum": 1},
                                "end": {"type": "integer", "minimum": 1},
                            },
                            "required": ["season", "start", "end"],
                            "additionalProperties": False,
                        },
                    },
                },
                "required": ["seasons"],
                "additionalProperties": True,
            },
        },
        "pinned_ids": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "series_id": {"type": "string", "minLength": 1},
                    "season": {"type": "integer", "minimum": 1},
                    "external_id": {"type": "string", "minLength": 1},
                },
                "required": ["series_id", "season", "external_id"],
                "additionalProperties": False,
            },
        },
        "title_aliases": {
            "type": "object",
            "additionalProperties": _STRING_LIST,
        },
        "season_aliases": {
            "type": "object",
            "additionalProperties": {
                "type": "array",
                "items": {
                    "type": "object",
                    "properties": {
                        "season": {"type": "integer", "minimum": 1},
                        "queries": _STRING_LIST,
                    },
                    "required": ["season", "queries"],
                    "additionalProperties": False,
                },
            },
        },
    },
    "additionalProperties": False,
}

CONFIG_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "properties": {
        "settings": {
            "type": "object",
            "properties": {
                "log_level": {"type": "string", "enum": _LOG_LEVELS},
                "log_file": {"type": ["string", "null"]},
                "reference_data": {"type": ["string", "null"]},
            },
            "additionalProperties": True,
        },
        "matching": {
            "type": "object",
            "properties": {
                "default_threshold": {"type": "number", "minimum": 0, "maximum": 100},
                "verified_threshold": {"type": "number", "minimum": 0, "maximum": 100},
                "containment_score": {"type": "number", "minimum": 0, "maximum": 100},
                "fuzzy_scale": {"type": "number", "exclusiveMinimum": 0, "maximum": 1},
                "tv_bonus": {"type": "number", "minimum": 0},
                "movie_bonus": {"type": "number", "minimum": 0},
                "alias_search_limit": {"type": "integer", "minimum": 1},
                "search_limit": {"type": "integer", "minimum": 1},
            },
            "additionalProperties": False,
        },
        "providers": {
            "type": "object",
            "properties": {
                "allanime": {"$ref": "#/definitions/provider"},
                "crosswalk": {"$ref": "#/definitions/provider"},
                "anilist": {"$ref": "#/definitions/provider"},
            },
            "additionalProperties": True,
        },
        "cache": {
            "type": "object",
            "properties": {
                "search_ttl_seconds": {"type": "integer", "minimum": 1},
                "search_max_entries": {"type": "integer", "minimum": 1},
                "crosswalk_ttl_seconds": {"type": "integer", "minimum": 1},
                "crosswalk_max_entries": {"type": "integer", "minimum": 1},
                "feed_ttl_seconds": {"type": "integer", "minimum": 1},
                "feed_max_entries": {"type": "integer", "minimum": 1},
            },
            "additionalProperties": False,
        },
        "torrents": {
            "type": "object",
            "properties": {
                "enabled": {"type": "boolean"},
                "feeds": {
                    "type": "array",
                    "items": {"type": "string", "enum": _FEED_NAMES},
                },
                "max_queries": {"type": "integer", "minimum": 1},
                "max_results": {"type": "integer", "minimum": 1},
                "timeout": {"type": "number", "exclusiveMinimum": 0},
            },
            "additionalProperties": False,
        },
    },
    "additionalProperties": True,
    "definitions": {
        "provider": {
            "type": "object",
            "properties": {
                "enabled": {"type": "boolean"},
                "base_url": {"type": "string", "minLength": 1},
                "timeout": {"type": "number", "exclusiveMinimum": 0},
                "headers": {
                    "type": "object",
                    "additionalProperties": {"type": "string"},
                },
            },
            "additionalProperties": True,
        },
    },
}


FixSuggestionGenerator = Callable[[str, str], Optional[str]]


def _suggest_schema_fix(path: str, message: str) -> Optional[str]:
    if "is a required property" in message:
        return "Add the required field"
    if "is not of type" in message:
        for token, label in (
            ("'string'", "string"),
            ("'object'", "object/mapping"),
            ("'array'", "array/list"),
            ("'boolean'", "boolean"),
            ("'integer'", "integer"),
            ("'number'", "number"),
        ):
            if token in message:
                return f"Change this field to a {label} value"
    if "is not one of" in message:
        return "Use one of the allowed values for this field"
    if "Additional properties are not allowed" in message:
        return "Remove the unknown key or check it for typos"
    return None


def _suggest_range_fix(path: str, message: str) -> Optional[str]:
    return "Each season must start right after the previous season's last episode"


def _suggest_threshold_fix(path: str, message: str) -> Optional[str]:
    return "Set verified_threshold to a value at least as high as default_threshold"


FIX_SUGGESTION_REGISTRY: Dict[str, FixSuggestionGenerator] = {
    "schema": _suggest_schema_fix,
    "season-gap": _suggest_range_fix,
    "season-order": _suggest_range_fix,
    "threshold-order": _suggest_threshold_fix,
}


def _fix_suggestion(path: str, message: str, code: str) -> Optional[str]:
    generator = FIX_SUGGESTION_REGISTRY.get(code)
    if generator:
        return generator(path, message)
    return None


def _format_jsonschema_path(path: Sequence[Any]) -> str:
    if not path:
        return "<root>"
    tokens: List[str] = []
    for part in path:
        if isinstance(part, int):
            if tokens:
                tokens[-1] = f"{tokens[-1]}[{part}]"
            else:
                tokens.append(f"[{part}]")
        else:
            tokens.append(str(part))
    return ".".join(tokens) if tokens else "<root>"


def _schema_errors(schema: Dict[str, Any], data: Any, report: ValidationReport) -> None:
    validator = Draft7Validator(schema)
    for error in sorted(validator.iter_errors(data), key=lambda exc: _format_jsonschema_path(exc.absolute_path)):
        report.add_error(_format_jsonschema_path(error.absolute_path), error.message, "schema")


def validate_reference_data(data: Dict[str, Any]) -> ValidationReport:
    """Validate reference tables against the schema and their range invariants.

    Season ranges of a series must be ascending by season, have
    ``start <= end`` and be contiguous (each start is the previous end + 1).
    Duplicate pinned ``(series_id, season)`` keys are errors; alias keys
    that are empty after lowercasing are warnings.
    """
    report = ValidationReport()
    _schema_errors(REFERENCE_DATA_SCHEMA, data, report)
    if not report.is_valid:
        return report

    for series_id, entry in (data.get("season_offsets") or {}).items():
        previous: Optional[Dict[str, int]] = None
        for index, season_range in enumerate(entry["seasons"]):
            path = f"season_offsets.{series_id}.seasons[{index}]"
            if season_range["start"] > season_range["end"]:
                report.add_error(
                    path,
                    f"Season {season_range['season']} starts at {season_range['start']} after its end {season_range['end']}",
                    "season-order",
                )
            if previous is not None:
                if season_range["season"] <= previous["season"]:
                    report.add_error(
                        path,
                        f"Season {season_range['season']} listed after season {previous['season']}",
                        "season-order",
                    )
                elif season_range["start"] != previous["end"] + 1:
                    report.add_error(
                        path,
                        f"Season {season_range['season']} starts at {season_range['start']}, "
                        f"expected {previous['end'] + 1}",
                        "season-gap",
                    )
            previous = season_range

    seen_pins: Dict[tuple, int] = {}
    for index, pin in enumerate(data.get("pinned_ids") or []):
        key = (pin["series_id"], pin["season"])
        if key in seen_pins:
            report.add_error(
                f"pinned_ids[{index}]",
                f"Duplicate pin for {pin['series_id']} season {pin['season']} (also at index {seen_pins[key]})",
                "duplicate-pin",
            )
        else:
            seen_pins[key] = index

    for section in ("title_aliases", "season_aliases"):
        for key in data.get(section) or {}:
            if not key.strip():
                report.add_warning(f"{section}", "Blank alias key is never matched", "blank-alias")

    return report


def validate_config_data(data: Dict[str, Any]) -> ValidationReport:
    """Validate application configuration against schema and semantic rules.

    Args:
        data: The configuration mapping as loaded from YAML

    Returns:
        ValidationReport containing any errors or warnings found
    """
    report = ValidationReport()
    _schema_errors(CONFIG_SCHEMA, data, report)

    matching = data.get("matching") if isinstance(data, dict) else None
    if isinstance(matching, dict):
        default = matching.get("default_threshold")
        verified = matching.get("verified_threshold")
        if isinstance(default, (int, float)) and isinstance(verified, (int, float)) and verified < default:
            report.add_error(
                "matching.verified_threshold",
                f"verified_threshold ({verified}) is lower than default_threshold ({default})",
                "threshold-order",
            )

    torrents = data.get("torrents") if isinstance(data, dict) else None
    if isinstance(torrents, dict) and torrents.get("enabled") and torrents.get("feeds") == []:
        report.add_warning("torrents.feeds", "Torrents are enabled but no feeds are configured", "no-feeds")

    return report
