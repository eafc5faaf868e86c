"""Batch import of historical event files.

Each matched file is streamed line by line, transformed, and submitted as a
single bulk upsert into the daily index named after the file's date.
"""

from __future__ import annotations

import glob
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from .errors import ParseError, StoreRequestError
from .identity import generate_doc_id
from .registry import Registry
from .store import ERROR_SAMPLE_SIZE, BulkItem
from .transform import transform_event
from .utils import (
    EVENT_FILE_GLOB,
    extract_date_from_filename,
    get_index_name,
    parse_line,
    preview,
)

logger = logging.getLogger(__name__)


@dataclass
class FileImportResult:
    """Outcome of importing a single file."""

    path: Path
    index: str
    parsed: int = 0
    indexed: int = 0
    failed: int = 0
    parse_errors: int = 0
    error_sample: list = field(default_factory=list)


@dataclass
class ImportSummary:
    """Aggregate outcome of a batch import run."""

    files: list[FileImportResult] = field(default_factory=list)

    @property
    def parsed(self) -> int:
        return sum(f.parsed for f in self.files)

    @property
    def indexed(self) -> int:
        return sum(f.indexed for f in self.files)

    @property
    def failed(self) -> int:
        return sum(f.failed for f in self.files)

    @property
    def parse_errors(self) -> int:
        return sum(f.parse_errors for f in self.files)


def resolve_pattern(data_dir: Path, pattern: Optional[str] = None) -> str:
    """Default to every event file in the data dir; bare patterns are relative to it."""
    if not pattern:
        return str(Path(data_dir) / EVENT_FILE_GLOB)
    if "/" in pattern:
        return pattern
    return str(Path(data_dir) / pattern)


def import_file(
    store,
    file_path: Path,
    index_prefix: str,
    registry: Optional[Registry] = None,
) -> FileImportResult:
    """
    Import one NDJSON file with a single bulk upsert.

    Lines that fail to parse are logged and skipped. Per-document failures
    are counted and a small sample of their errors is kept.

    Args:
        store: Document store client (see ElasticsearchStore)
        file_path: Path to the NDJSON file
        index_prefix: Index name prefix
        registry: Registry snapshot used for enrichment

    Returns:
        FileImportResult

    Raises:
        StoreConnectionError: If the store cannot be reached
    """
    file_path = Path(file_path)
    index_name = get_index_name(index_prefix, extract_date_from_filename(file_path))
    result = FileImportResult(path=file_path, index=index_name)
    logger.info(f"Importing {file_path} to index {index_name}")

    items = []
    with open(file_path, "rb") as handle:
        for line_number, raw in enumerate(handle, start=1):
            try:
                line = raw.decode("utf-8")
            except UnicodeDecodeError as e:
                result.parse_errors += 1
                logger.error(
                    f"{file_path}:{line_number}: invalid UTF-8 ({e}) "
                    f"(line preview: {preview(raw.decode('utf-8', errors='replace'))!r})"
                )
                continue
            try:
                event = parse_line(line)
            except ParseError as e:
                result.parse_errors += 1
                logger.error(
                    f"{file_path}:{line_number}: {e} (line preview: {e.line_preview!r})"
                )
                continue
            if event is None:
                continue

            result.parsed += 1
            items.append(
                BulkItem(
                    index=index_name,
                    doc_id=generate_doc_id(event),
                    document=transform_event(event, registry).to_document(),
                )
            )

    if not items:
        logger.info(f"No events to index in {file_path}")
        return result

    try:
        bulk = store.bulk_upsert(items)
    except StoreRequestError as e:
        result.failed = len(items)
        result.error_sample = [{"status": e.status_code, "error": e.body[:500]}]
        logger.error(f"Bulk request for {index_name} was rejected: {e}")
        return result

    result.indexed = bulk.indexed
    result.failed = bulk.failed
    result.error_sample = bulk.error_sample(ERROR_SAMPLE_SIZE)
    if bulk.failed:
        logger.error(
            f"Failed to index {bulk.failed} documents to {index_name}: {result.error_sample}"
        )
    logger.info(f"Indexed {bulk.indexed} documents to {index_name}")
    return result


def import_files(
    store,
    data_dir: Path,
    index_prefix: str,
    registry: Optional[Registry] = None,
    pattern: Optional[str] = None,
) -> ImportSummary:
    """
    Import every event file matching the pattern, in filename order.

    Args:
        store: Document store client
        data_dir: Directory holding events-YYYY-MM-DD.ndjson files
        index_prefix: Index name prefix
        registry: Registry snapshot used for enrichment
        pattern: Optional glob; without a "/" it is relative to data_dir

    Returns:
        ImportSummary over all files
    """
    glob_pattern = resolve_pattern(data_dir, pattern)
    logger.info(f"Starting batch import with pattern: {glob_pattern}")

    summary = ImportSummary()
    files = sorted(glob.glob(glob_pattern))
    if not files:
        logger.info(f"No NDJSON files found for pattern: {glob_pattern}")
        return summary

    logger.info(f"Found {len(files)} files to import")
    for file_path in files:
        summary.files.append(import_file(store, Path(file_path), index_prefix, registry))

    logger.info(
        f"Batch import complete: indexed {summary.indexed} documents, "
        f"{summary.failed} failed, {summary.parse_errors} lines skipped"
    )
    return summary
