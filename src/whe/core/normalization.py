"""Text and date normalization utilities."""

import math
import unicodedata
from datetime import date, datetime, time, timezone
from typing import Any, Optional


def coerce_datetime(value: Any) -> Any:
    """Turn a date or a date-only string into a midnight datetime.

    Anything else is returned untouched so pydantic can parse (or reject) it.
    """
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime.combine(value, time.min)
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        if len(text) == 10 and text[4] == "-" and text[7] == "-":
            try:
                return datetime.combine(date.fromisoformat(text), time.min)
            except ValueError:
                return value
    return value


def collation_key(text: Optional[str]) -> str:
    """Sort key that ignores case and accents ("émile" sorts with "Emile")."""
    if not text:
        return ""
    decomposed = unicodedata.normalize("NFKD", text)
    stripped = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    return stripped.casefold()


def matches_text(haystack: Optional[str], needle: str) -> bool:
    """Case-insensitive substring match; ``needle`` must already be casefolded."""
    return bool(haystack) and needle in haystack.casefold()


def align_to(value: datetime, now: datetime) -> datetime:
    """Express ``value`` in the same timezone convention as ``now``.

    Aware values are converted to ``now``'s zone and naive values are read
    in it. When ``now`` is naive, aware values are converted to naive UTC.
    """
    if now.tzinfo is None:
        if value.tzinfo is None:
            return value
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    if value.tzinfo is None:
        return value.replace(tzinfo=now.tzinfo)
    return value.astimezone(now.tzinfo)


def start_of_day(moment: datetime) -> datetime:
    return moment.replace(hour=0, minute=0, second=0, microsecond=0)


def sort_timestamp(value: datetime) -> float:
    """POSIX timestamp treating naive datetimes as UTC, for mixed-zone sorting."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.timestamp()


def percent_half_up(part: int, whole: int) -> int:
    """Whole-number percentage rounded half up; 0 when ``whole`` is 0."""
    if whole <= 0:
        return 0
    return int(math.floor(part * 100 / whole + 0.5))
