"""Parsing of communication dates whose day/month order is not stable.

The sheet has been exported both as ``dd/mm/yyyy`` and ``mm/dd/yyyy`` with no
locale marker. Day-first is assumed unless the second component cannot be a
month.
"""

from datetime import date, datetime
import logging


logger = logging.getLogger(__name__)

EPOCH = date(1970, 1, 1)


class DateParseError(ValueError):
    pass


def _split_components(value: str) -> list[str]:
    parts = [part.strip() for part in value.split("/")]
    if len(parts) == 3:
        # "25/12/2025 10:30" -> drop the time portion of the year component.
        parts[2] = parts[2].split(" ", 1)[0]
    return parts


def _is_number(part: str) -> bool:
    return part.isascii() and part.isdigit()


def _day_month(first: int, second: int) -> tuple[int, int]:
    if second > 12 and first <= 12:
        return second, first
    return first, second


def parse_case_date(value: str | None) -> date:
    text = (value or "").strip()
    if not text:
        return EPOCH

    parts = _split_components(text)
    if len(parts) != 3:
        try:
            return datetime.fromisoformat(text).date()
        except ValueError as exc:
            raise DateParseError(f"unrecognised date format: {text!r}") from exc

    if not all(_is_number(part) for part in parts):
        raise DateParseError(f"non-numeric date component: {text!r}")

    try:
        first, second, year = (int(part) for part in parts)
        day, month = _day_month(first, second)
        return date(year, month, day)
    except (ValueError, OverflowError) as exc:
        raise DateParseError(f"impossible calendar date: {text!r}") from exc


def is_ambiguous(value: str | None) -> bool:
    """True when both leading components could be a month and they differ."""
    parts = _split_components((value or "").strip())
    if len(parts) != 3 or not all(_is_number(part) for part in parts[:2]):
        return False
    if len(parts[0]) > 2 or len(parts[1]) > 2:
        return False
    first, second = int(parts[0]), int(parts[1])
    return first <= 12 and second <= 12 and first != second


def date_sort_key(value: str | None) -> tuple[date, bool]:
    """Return ``(date, parsed)``; unparseable values order as the epoch."""
    try:
        return parse_case_date(value), True
    except DateParseError as exc:
        logger.warning("date parse anomaly, ordering as epoch", extra={"raw_date": value, "error": str(exc)})
        return EPOCH, False
