from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Optional, Sequence

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from . import __version__
from .config import ConfigError, Settings, load_config
from .logging_utils import configure_logging
from .matcher import choose_file, parse_filename, to_absolute
from .models import TorrentFileCandidate
from .reference_data import ReferenceData, ReferenceDataError, default_reference_data, load_reference_data
from .service import StreamService
from .stremio_ids import parse_stream_id
from .validation import ValidationReport

LOGGER = logging.getLogger(__name__)

CONSOLE = Console()

DEFAULT_CONFIG = Path("animestream.yaml")


def _settings(args: argparse.Namespace) -> Settings:
    settings = load_config(args.config)
    level = "DEBUG" if args.verbose else settings.log_level
    configure_logging(level, log_file=settings.log_file)
    return settings


def _reference(settings: Settings) -> ReferenceData:
    if settings.reference_data is not None:
        return load_reference_data(settings.reference_data)
    return default_reference_data()


def _optional(value: Optional[object]) -> str:
    return "-" if value is None else str(value)


def parse_file_argument(value: str) -> TorrentFileCandidate:
    """Parse ``NAME:SIZE`` into a file candidate; the size is in bytes."""
    name, separator, size = value.rpartition(":")
    if not separator or not name:
        raise argparse.ArgumentTypeError(f"expected NAME:SIZE, got {value!r}")
    try:
        size_bytes = int(size)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"size must be an integer number of bytes in {value!r}") from exc
    return TorrentFileCandidate(filename=name, size_bytes=size_bytes)


def print_report(report: ValidationReport, label: str) -> None:
    for severity, issues, style in (("error", report.errors, "red"), ("warning", report.warnings, "yellow")):
        if not issues:
            continue
        table = Table(title=f"{label}: {len(issues)} {severity}(s)", title_style=f"bold {style}", show_header=True)
        table.add_column("Path", style="cyan", overflow="fold")
        table.add_column("Message", overflow="fold")
        table.add_column("Suggestion", style="dim italic", overflow="fold")
        for issue in issues:
            table.add_row(
                escape(issue.path or "-"),
                f"{escape(issue.message)} [dim]({issue.code})[/dim]",
                issue.fix_suggestion or "",
            )
        CONSOLE.print(table)
    if report.is_valid:
        CONSOLE.print(f"[bold green]✓ {label} passed validation.[/bold green]")


def run_parse(args: argparse.Namespace) -> int:
    table = Table(title="Filename parse")
    table.add_column("Filename", overflow="fold")
    table.add_column("Kind")
    table.add_column("Season", justify="right")
    table.add_column("Episode", justify="right")
    table.add_column("Batch range")
    table.add_column("Rule", style="dim")
    for filename in args.filenames:
        trace: dict = {}
        info = parse_filename(filename, trace=trace)
        batch = f"{info.batch_range[0]}-{info.batch_range[1]}" if info.batch_range else "-"
        table.add_row(
            escape(filename),
            info.kind,
            _optional(info.season),
            _optional(info.episode),
            batch,
            trace.get("rule", "-"),
        )
    CONSOLE.print(table)
    return 0


def run_absolute(args: argparse.Namespace) -> int:
    settings = _settings(args)
    absolute = to_absolute(args.series_id, args.season, args.episode, _reference(settings))
    CONSOLE.print(f"{args.series_id} S{args.season}E{args.episode} → absolute episode [bold]{absolute}[/bold]")
    return 0


def run_select_file(args: argparse.Namespace) -> int:
    selection = choose_file(args.files, args.season, args.episode)
    if selection.file is None:
        CONSOLE.print(f"[red]No playable file ({selection.reason})[/red]")
        return 1
    style = "green" if selection.confident else "yellow"
    selected = selection.file
    CONSOLE.print(
        f"[{style}]{escape(selected.filename)}[/{style}] ({selected.size_bytes} bytes, {selection.reason})"
    )
    return 0 if selection.confident else 2


def run_streams(args: argparse.Namespace) -> int:
    settings = _settings(args)
    if args.no_torrents:
        settings.torrents.enabled = False
    try:
        request = parse_stream_id(args.id, media_type=args.type)
    except ValueError as exc:
        CONSOLE.print(f"[red]{escape(str(exc))}[/red]")
        return 1

    with StreamService(settings, reference=_reference(settings)) as service:
        result = service.streams(request, title=args.title)

    resolution = result.resolution
    CONSOLE.print(
        f"Show: [bold]{escape(resolution.title or resolution.external_id or 'not found')}[/bold] "
        f"({resolution.tier or '-'}), absolute episode {result.absolute_episode}"
    )
    if result.streams:
        table = Table(title="Direct streams")
        table.add_column("Provider")
        table.add_column("Type")
        table.add_column("Quality")
        table.add_column("URL", overflow="fold")
        for stream in result.streams:
            table.add_row(escape(stream.provider), stream.translation, stream.quality, escape(stream.url))
        CONSOLE.print(table)
    if result.torrents:
        table = Table(title="Torrent releases")
        table.add_column("Title", overflow="fold")
        table.add_column("Quality")
        table.add_column("RAW")
        table.add_column("Seeders", justify="right")
        table.add_column("Size")
        table.add_column("Provider")
        for release in result.torrents:
            table.add_row(
                escape(release.title),
                release.quality,
                "yes" if release.is_raw else "",
                str(release.seeders),
                release.size or "-",
                release.provider,
            )
        CONSOLE.print(table)
    for warning in result.warnings:
        CONSOLE.print(f"[yellow]⚠ {escape(warning)}[/yellow]")
    return 0 if not result.is_empty else 1


def run_validate_config(args: argparse.Namespace) -> int:
    try:
        settings = load_config(args.config)
    except ConfigError as exc:
        if exc.report is not None:
            print_report(exc.report, "Configuration")
        else:
            CONSOLE.print(f"[red]{escape(str(exc))}[/red]")
        return 1
    CONSOLE.print("[bold green]✓ Configuration passed validation.[/bold green]")
    try:
        _reference(settings)
    except ReferenceDataError as exc:
        if exc.report is not None:
            print_report(exc.report, "Reference data")
        else:
            CONSOLE.print(f"[red]{escape(str(exc))}[/red]")
        return 1
    CONSOLE.print("[bold green]✓ Reference data passed validation.[/bold green]")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="animestream", description="Anime episode resolution toolkit.")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--config", type=Path, default=DEFAULT_CONFIG, help="Path to the YAML configuration file")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    subparsers = parser.add_subparsers(dest="command", required=True)

    parse_cmd = subparsers.add_parser("parse", help="Show what the filename parser reads from release names")
    parse_cmd.add_argument("filenames", nargs="+", metavar="FILENAME")
    parse_cmd.set_defaults(handler=run_parse)

    absolute_cmd = subparsers.add_parser("absolute", help="Map a catalog season/episode to the absolute episode")
    absolute_cmd.add_argument("series_id", metavar="SERIES")
    absolute_cmd.add_argument("season", type=int)
    absolute_cmd.add_argument("episode", type=int)
    absolute_cmd.set_defaults(handler=run_absolute)

    select_cmd = subparsers.add_parser("select-file", help="Pick the episode file from a torrent file listing")
    select_cmd.add_argument("--season", type=int, default=1)
    select_cmd.add_argument("--episode", type=int, required=True)
    select_cmd.add_argument("files", nargs="+", type=parse_file_argument, metavar="NAME:SIZE")
    select_cmd.set_defaults(handler=run_select_file)

    streams_cmd = subparsers.add_parser("streams", help="Resolve a catalog id and list streams (uses the network)")
    streams_cmd.add_argument("id", metavar="ID", help="tt0388629:21:5, mal-5114:1:3 or kitsu:1:1:5")
    streams_cmd.add_argument("--title", help="Catalog title, looked up from Cinemeta when omitted")
    streams_cmd.add_argument("--type", default="series", choices=["series", "movie"])
    streams_cmd.add_argument("--no-torrents", action="store_true", help="Skip the torrent feeds")
    streams_cmd.set_defaults(handler=run_streams)

    validate_cmd = subparsers.add_parser("validate-config", help="Validate the configuration and reference data")
    validate_cmd.set_defaults(handler=run_validate_config)
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(list(argv) if argv is not None else None)
    try:
        return args.handler(args)
    except (ConfigError, ReferenceDataError) as exc:
        CONSOLE.print(f"[red]{escape(str(exc))}[/red]")
        return 1


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
