import csv
import io
from itertools import islice
import logging
from pathlib import Path

import requests

from casepulse.config import Settings
from casepulse.schemas import SourceTable


logger = logging.getLogger(__name__)


class SourceFetchError(RuntimeError):
    pass


def parse_source_table(text: str, *, delimiter: str = ";", header_row: int = 0) -> SourceTable:
    stream = io.StringIO(text, newline="")
    # Preamble above the header; consumed here so quoted newlines below are untouched.
    for _ in islice(stream, header_row):
        pass

    reader = csv.DictReader(stream, delimiter=delimiter)
    try:
        headers = [header.strip() for header in reader.fieldnames or ()]
        if not any(headers):
            return SourceTable(records=[], errors=("source has no header row",))
        reader.fieldnames = headers
        expected = len(reader.fieldnames)

        records: list[dict[str, str | None]] = []
        errors: list[str] = []
        for row in reader:
            values = [value for key, value in row.items() if key is not None]
            # DictReader already skips fully empty lines; skip delimiter-only rows too.
            if not any((value or "").strip() for value in values) and None not in row:
                continue
            if None in row:
                errors.append(f"line {header_row + reader.line_num}: too many fields (expected {expected})")
                continue
            if any(value is None for value in values):
                errors.append(f"line {header_row + reader.line_num}: too few fields (expected {expected})")
                continue
            records.append(dict(row))
    except csv.Error as exc:
        return SourceTable(records=[], errors=(f"csv error: {exc}",))

    return SourceTable(records=records, errors=tuple(errors))


def _read_text(settings: Settings) -> str:
    if settings.source_path:
        path = Path(settings.source_path)
        if not path.exists():
            raise SourceFetchError(f"source file not found: {path}")
        return path.read_text(encoding="utf-8-sig")

    if not settings.source_url:
        raise SourceFetchError("neither SOURCE_PATH nor SOURCE_URL is configured")

    try:
        response = requests.get(settings.source_url, timeout=settings.source_timeout_seconds)
        response.raise_for_status()
    except requests.RequestException as exc:
        raise SourceFetchError(f"source fetch failed: {exc}") from exc
    return response.content.decode("utf-8-sig")


def fetch_source_table(settings: Settings) -> SourceTable:
    text = _read_text(settings)
    table = parse_source_table(text, delimiter=settings.source_delimiter, header_row=settings.source_header_row)
    if table.errors:
        logger.error("source table has structural errors", extra={"errors": list(table.errors)})
    logger.info("source table fetched", extra={"rows": len(table.records)})
    return table
