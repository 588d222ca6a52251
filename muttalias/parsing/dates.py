"""Message Date header resolution.

Tries the RFC 5322 parser first, then python-dateutil for the deviations
real mailers produce. Anything still unparsable is kept as raw text.
"""

import logging
import re
from datetime import UTC, datetime
from email.utils import parsedate_to_datetime

from dateutil import parser as date_parser

from muttalias.schemas.alias import ResolvedDate

logger = logging.getLogger(__name__)

CANONICAL_FORMAT = "%Y-%m-%d@%H:%M:%S"
SECONDS_PER_DAY = 86400

_WHITESPACE_RE = re.compile(r"\s+")
_COMMENT_RE = re.compile(r"\([^)]*\)")

# dateutil fills missing fields from ``default``. Two leap-year defaults that
# differ in year, month and day expose any field the header did not carry.
_SENTINEL_DEFAULTS = (datetime(2000, 1, 1), datetime(2004, 2, 2))

# Non-English month and weekday abbreviations seen in the wild.
_FOREIGN_TOKENS = {
    "mär": "Mar",
    "mrz": "Mar",
    "mai": "May",
    "okt": "Oct",
    "dez": "Dec",
    "janv": "Jan",
    "févr": "Feb",
    "fevr": "Feb",
    "avr": "Apr",
    "juin": "Jun",
    "juil": "Jul",
    "août": "Aug",
    "aout": "Aug",
    "déc": "Dec",
    "ene": "Jan",
    "abr": "Apr",
    "ago": "Aug",
    "dic": "Dec",
    "mo": "Mon",
    "di": "Tue",
    "mi": "Wed",
    "do": "Thu",
    "fr": "Fri",
    "sa": "Sat",
    "so": "Sun",
}
_TOKEN_RE = re.compile(r"[^\W\d_]+\.?", re.UNICODE)


def _anglicize(value: str) -> str:
    def _swap(match: re.Match) -> str:
        word = match.group(0)
        return _FOREIGN_TOKENS.get(word.rstrip(".").lower(), word)

    return _TOKEN_RE.sub(_swap, value)


def _as_utc(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC)


def _parse_rfc5322(value: str) -> datetime | None:
    try:
        return parsedate_to_datetime(value)
    except (TypeError, ValueError, IndexError):
        return None


def _parse_lenient(value: str) -> datetime | None:
    """dateutil fuzzy parse, accepted only if year, month and day were all present."""
    cleaned = _anglicize(_COMMENT_RE.sub(" ", value))
    try:
        first, second = (
            date_parser.parse(cleaned, fuzzy=True, default=default)
            for default in _SENTINEL_DEFAULTS
        )
    except (ValueError, OverflowError, TypeError, date_parser.ParserError):
        return None
    if first.date() != second.date():
        logger.debug("Date header has no complete calendar date: %r", value)
        return None
    return first


def resolve_date(raw: str) -> ResolvedDate:
    """Parse a Date header into a UTC timestamp plus its canonical text.

    On failure the raw text (whitespace collapsed) is kept for reference,
    or ``unknown`` when the header was empty.
    """
    value = _WHITESPACE_RE.sub(" ", raw or "").strip()
    if not value:
        return ResolvedDate(timestamp=None, text="unknown")

    for parse in (_parse_rfc5322, _parse_lenient):
        dt = parse(value)
        if dt is not None:
            dt = _as_utc(dt)
            return ResolvedDate(timestamp=dt, text=dt.strftime(CANONICAL_FORMAT))

    logger.debug("Unparsable date header: %r", value)
    return ResolvedDate(timestamp=None, text=value)


def age_in_days(resolved: ResolvedDate, now: datetime) -> int | None:
    """Whole days between the message date and ``now``; None when unparsed."""
    if resolved.timestamp is None:
        return None
    return int((now - resolved.timestamp).total_seconds() // SECONDS_PER_DAY)


def within_max_age(resolved: ResolvedDate, now: datetime, max_age_days: int) -> bool:
    """Strict age check: ``age < max_age``. 0 means unlimited.

    An unparsed date only passes an unlimited check.
    """
    if max_age_days == 0:
        return True
    age = age_in_days(resolved, now)
    if age is None:
        return False
    return age < max_age_days
