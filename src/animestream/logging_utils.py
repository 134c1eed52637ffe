from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping, Sequence
from pathlib import Path
from textwrap import wrap
from typing import Union

from rich.console import Console
from rich.logging import RichHandler

WRAP_WIDTH = 100
LABEL_WIDTH = 20
INDENT = "    "

FILE_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"

FieldMapping = Union[Mapping[str, object], Sequence[tuple[str, object]]]


def configure_logging(
    level: str | int = "INFO",
    *,
    log_file: Path | None = None,
    console: Console | None = None,
) -> None:
    """Route ``animestream`` logs to a rich console handler and an optional file.

    Calling this again replaces the handlers installed by the previous call.
    """
    numeric = logging.getLevelName(level.upper()) if isinstance(level, str) else level
    if not isinstance(numeric, int):
        raise ValueError(f"Unknown log level: {level}")

    logger = logging.getLogger("animestream")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    console_handler = RichHandler(console=console, show_path=False, rich_tracebacks=True, markup=False)
    console_handler.setFormatter(logging.Formatter("%(message)s"))
    logger.addHandler(console_handler)

    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setFormatter(logging.Formatter(FILE_FORMAT))
        logger.addHandler(file_handler)

    logger.setLevel(numeric)
    logger.propagate = False


def _items(fields: FieldMapping) -> list[tuple[str, object]]:
    if isinstance(fields, Mapping):
        return list(fields.items())
    return list(fields)


def _text(value: object) -> str:
    if value is None:
        return ""
    if isinstance(value, str):
        return value.strip()
    if isinstance(value, (list, tuple, set)):
        return ", ".join(_text(item) for item in value)
    return str(value)


def _wrapped(text: str, width: int) -> list[str]:
    lines: list[str] = []
    for raw_line in text.splitlines() or [""]:
        lines.extend(wrap(raw_line, width=width) or [""])
    return lines


class LogBlock:
    """Multi-line log message with a title, aligned fields and bullet sections."""

    def __init__(self, title: str, *, pad_top: bool = True) -> None:
        self.lines: list[str] = [""] if pad_top else []
        self.lines.extend([title, "-" * len(title)])

    def fields(self, fields: FieldMapping | None) -> "LogBlock":
        items = _items(fields or [])
        if not items:
            return self
        label_width = max(min(max(len(str(key)) for key, _ in items), LABEL_WIDTH), 8)
        value_width = max(WRAP_WIDTH - len(INDENT) - label_width - 4, 32)
        for key, value in items:
            first, *rest = _wrapped(_text(value), value_width)
            self.lines.append(f"{INDENT}{str(key):<{label_width}}: {first}")
            self.lines.extend(f"{INDENT}{'':<{label_width}}  {line}" for line in rest)
        return self

    def section(self, heading: str, items: Iterable[object], *, empty_label: str = "(none)") -> "LogBlock":
        if self.lines and self.lines[-1]:
            self.lines.append("")
        self.lines.append(f"{heading}:")
        values = [item for item in items if item is not None]
        if not values:
            self.lines.append(f"{INDENT}{empty_label}")
            return self
        for item in values:
            first, *rest = _wrapped(_text(item), max(WRAP_WIDTH - len(INDENT) - 2, 24))
            self.lines.append(f"{INDENT}- {first}")
            self.lines.extend(f"{INDENT}  {line}" for line in rest)
        return self

    def render(self) -> str:
        return "\n".join(self.lines).rstrip()


def render_fields_block(title: str, fields: FieldMapping, *, pad_top: bool = True) -> str:
    return LogBlock(title, pad_top=pad_top).fields(fields).render()


def render_section_block(
    title: str,
    sections: Sequence[tuple[str, Sequence[object]]],
    *,
    pad_top: bool = True,
) -> str:
    block = LogBlock(title, pad_top=pad_top)
    for heading, items in sections:
        block.section(heading, items)
    return block.render()
