"""Helpers for event log files: line decoding and index naming."""

from __future__ import annotations

import json
import re
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Optional, Union

from .errors import ParseError
from .events import RawEvent, parse_event

EVENT_FILE_PREFIX = "events-"
EVENT_FILE_SUFFIX = ".ndjson"
EVENT_FILE_GLOB = f"{EVENT_FILE_PREFIX}*{EVENT_FILE_SUFFIX}"
PREVIEW_LENGTH = 100

_DATE_IN_FILENAME = re.compile(r"events-(\d{4}-\d{2}-\d{2})\.ndjson")


def utc_today() -> str:
    return datetime.now(timezone.utc).date().isoformat()


def event_filename(day: Union[str, date]) -> str:
    """``events-YYYY-MM-DD.ndjson`` for the given day."""
    if isinstance(day, date):
        day = day.isoformat()
    return f"{EVENT_FILE_PREFIX}{day}{EVENT_FILE_SUFFIX}"


def extract_date_from_filename(file_path: Union[str, Path]) -> str:
    """Date token of an event file name, or today's UTC date if there is none."""
    match = _DATE_IN_FILENAME.search(Path(file_path).name)
    if match:
        return match.group(1)
    return utc_today()


def get_index_name(index_prefix: str, day: str) -> str:
    return f"{index_prefix}-{day}"


def preview(line: str) -> str:
    return line[:PREVIEW_LENGTH]


def parse_line(line: str) -> Optional[RawEvent]:
    """
    Decode one NDJSON line into an event.

    Args:
        line: Raw line (with or without trailing newline)

    Returns:
        Parsed event, or None for a blank line

    Raises:
        ParseError: If the line is not valid JSON or lacks the event envelope
    """
    stripped = line.strip()
    if not stripped:
        return None

    # The poller's logger sometimes emits "{," at the start of a record
    if stripped.startswith("{,"):
        stripped = "{" + stripped[2:]

    try:
        record = json.loads(stripped)
    except json.JSONDecodeError as e:
        raise ParseError(f"Failed to parse NDJSON line: {e}", preview(line)) from e

    try:
        return parse_event(record)
    except ParseError as e:
        e.line_preview = preview(line)
        raise
