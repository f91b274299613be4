"""Brazilian date helpers (DD/MM/YYYY).

Stored records carry dates as ``DD/MM/YYYY`` strings. They are converted to
:class:`datetime.date` once, when records are decoded, and formatted back only
when a response is rendered.
"""

import re
from datetime import date, datetime

from pj_summary.errors import InvalidDateError, InvalidRangeError

_BR_DATE = re.compile(r"^(\d{1,2})/(\d{1,2})/(\d{4})$")
_ISO_DATE = re.compile(r"^(\d{4})-(\d{2})-(\d{2})(?:[T ].*)?$")
_OFX_DATE = re.compile(r"^(\d{4})(\d{2})(\d{2})$")


def parse_br_date(text: str) -> date:
    """Parse a ``DD/MM/YYYY`` (or ISO ``YYYY-MM-DD``) string.

    Raises:
        InvalidDateError: If the text is not a valid calendar date.
    """
    parsed = coerce_date(text)
    if parsed is None:
        raise InvalidDateError(f"Data inválida: {text!r}. Use DD/MM/YYYY")
    return parsed


def coerce_date(value: object) -> date | None:
    """Best-effort conversion of a stored date value; ``None`` when unusable."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str):
        return None

    text = value.strip()
    if not text:
        return None

    if match := _BR_DATE.match(text):
        day, month, year = match.groups()
    elif match := _ISO_DATE.match(text):
        year, month, day = match.groups()
    elif match := _OFX_DATE.match(text):
        year, month, day = match.groups()
    else:
        return None

    try:
        return date(int(year), int(month), int(day))
    except ValueError:
        return None


def format_br(value: date) -> str:
    """Format a date as ``DD/MM/YYYY``."""
    return value.strftime("%d/%m/%Y")


def to_iso_from_br(text: str) -> str:
    """Convert ``DD/MM/YYYY`` to ``YYYY-MM-DD``."""
    return parse_br_date(text).isoformat()


def is_between_dates(value: date | None, start: date, end: date) -> bool:
    """Inclusive range check; undated values are never inside a range."""
    if value is None:
        return False
    return start <= value <= end


def coverage_days(start: date | None, end: date | None) -> int | None:
    """Number of calendar days covered by ``[start, end]``, both inclusive."""
    if start is None or end is None:
        return None
    diff = (end - start).days
    return diff + 1 if diff >= 0 else None


def ensure_valid_range(start: date | None, end: date | None) -> None:
    """Reject a period whose start is after its end.

    Raises:
        InvalidRangeError: If both bounds are known and ``start > end``.
    """
    if start is not None and end is not None and start > end:
        raise InvalidRangeError("Período inválido: data inicial maior que final")
