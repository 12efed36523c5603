# remindbot - Discord Reminder Bot
# Copyright (c) 2025-2026 Slash Daemon slashdaemon@protonmail.com
#
# This program is free software: you can redistribute it and/or modify
# it under the terms of the GNU Affero General Public License as published by
# the Free Software Foundation, version 3 of the License.
#
# This program is distributed in the hope that it will be useful,
# but WITHOUT ANY WARRANTY; without even the implied warranty of
# MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE. See the
# GNU Affero General Public License for more details.
#
# You should have received a copy of the GNU Affero General Public License
# along with this program. If not, see <https://www.gnu.org/licenses/>.
#
# Commercial licensing: [slashdaemon@protonmail.com]

"""
Time Parser Module

Parses the time part of a reminder request into an absolute unix timestamp.
Supports relative intervals ("2 hours 30 minutes", "2hrs", "1 day and 3 hours"),
24-hour clock times with an optional UTC offset ("18:00", "18:00-3:00") and,
as a last resort, free-form dates understood by dateparser ("tomorrow 10am").
"""

import logging
import re
from datetime import datetime
from typing import Optional, Union

import dateparser
import pytz
from dateutil.relativedelta import relativedelta

logger = logging.getLogger("remindbot.reminders.time_parser")

# Canonical unit -> accepted spellings
UNIT_ALIASES = {
    "second": ("s", "sec", "secs", "second", "seconds"),
    "minute": ("m", "min", "mins", "minute", "minutes"),
    "hour": ("h", "hr", "hrs", "hour", "hours"),
    "day": ("d", "day", "days"),
    "week": ("w", "wk", "wks", "week", "weeks"),
    "month": ("mo", "mon", "mons", "month", "months"),
    "year": ("y", "yr", "yrs", "year", "years"),
}

_ALIAS_TO_UNIT = {
    alias: unit for unit, aliases in UNIT_ALIASES.items() for alias in aliases
}

# Longest spellings first so "hrs" wins over "h"
_UNIT_PATTERN = "|".join(sorted(_ALIAS_TO_UNIT, key=len, reverse=True))

_INTERVAL_PART = re.compile(rf"(\d+)\s*({_UNIT_PATTERN})\b", re.IGNORECASE)

_PART = rf"\d+\s*(?:{_UNIT_PATTERN})\b"
_SEPARATOR = r"(?:\s*,\s*(?:and\s+)?|\s+and\s+|\s+)"

# A leading interval clause followed by arbitrary trailing text
_INTERVAL_WITH_TRAILING = re.compile(
    rf"^\s*\+?(?P<interval>{_PART}(?:{_SEPARATOR}{_PART})*)(?P<trailing>.*)$",
    re.IGNORECASE | re.DOTALL,
)

# HH:MM with an optional signed HH:MM offset, e.g. 18:00 or 18:00-3:00
_CLOCK = re.compile(
    r"(?P<hour>[01]?\d|2[0-3]):(?P<minute>[0-5]\d)"
    r"(?:(?P<sign>[+-])?(?P<off_hour>[01]?\d|2[0-3]):(?P<off_minute>[0-5]\d))?"
)

Timestamp = Union[int, float]


class TimeParseError(Exception):
    """Raised when a time expression cannot be turned into an instant."""

    pass


def validate_timezone(tz_name: str) -> bool:
    """
    Validate that a timezone name is valid.

    Args:
        tz_name: IANA timezone name (e.g., "America/Los_Angeles")

    Returns:
        True if valid, False otherwise
    """
    try:
        pytz.timezone(tz_name)
        return True
    except pytz.UnknownTimeZoneError:
        return False


def normalize_interval(interval: str) -> str:
    """
    Rewrite an interval clause into canonical unit names.

    "2hrs, 5 mins" -> "2 hours 5 minutes"
    """
    parts = []
    for amount, alias in _INTERVAL_PART.findall(interval):
        count = int(amount)
        unit = _ALIAS_TO_UNIT[alias.lower()]
        parts.append(f"{count} {unit}{'' if count == 1 else 's'}")
    return " ".join(parts)


def parse_relative(text: str) -> Optional[tuple[str, str]]:
    """
    Split a leading interval clause from the text that follows it.

    Args:
        text: e.g. "2 days 3 hours grab a beer"

    Returns:
        (normalized interval, trailing text) or None if the text does not
        start with an interval
    """
    match = _INTERVAL_WITH_TRAILING.match(text)
    if not match:
        return None

    interval = normalize_interval(match.group("interval"))
    trailing = match.group("trailing").lstrip(" ,")
    return interval, trailing.strip()


def parse_absolute(token: str) -> bool:
    """Check whether a token is a 24-hour clock time, optionally with an offset."""
    return bool(token) and _CLOCK.fullmatch(token.strip()) is not None


def normalize_expression(expression: str) -> str:
    """Normalize a time expression for storage, canonicalising pure intervals."""
    relative = parse_relative(expression)
    if relative and not relative[1]:
        return relative[0]
    return expression.strip()


def _as_datetime(now: Timestamp) -> datetime:
    return datetime.fromtimestamp(now, pytz.UTC)


def _resolve_clock(expression: str, now: datetime, timezone: str) -> Optional[int]:
    match = _CLOCK.fullmatch(expression)
    if not match:
        return None

    if match.group("off_hour") is not None:
        minutes = int(match.group("off_hour")) * 60 + int(match.group("off_minute"))
        if match.group("sign") == "-":
            minutes = -minutes
        tz = pytz.FixedOffset(minutes)
    else:
        tz = pytz.timezone(timezone)

    today = now.astimezone(tz).date()
    local = tz.localize(
        datetime(
            today.year,
            today.month,
            today.day,
            int(match.group("hour")),
            int(match.group("minute")),
        )
    )
    return int(local.timestamp())


def _resolve_interval(expression: str, now: datetime) -> Optional[int]:
    relative = parse_relative(expression)
    if relative is None or relative[1]:
        return None

    amounts: dict[str, int] = {}
    for amount, alias in _INTERVAL_PART.findall(relative[0]):
        unit = _ALIAS_TO_UNIT[alias.lower()] + "s"
        amounts[unit] = amounts.get(unit, 0) + int(amount)

    try:
        return int((now + relativedelta(**amounts)).timestamp())
    except (ValueError, OverflowError) as e:
        raise TimeParseError(f"Interval out of range: '{relative[0]}'") from e


def _resolve_natural(expression: str, now: datetime, timezone: str) -> Optional[int]:
    tz = pytz.timezone(timezone)
    settings = {
        "TIMEZONE": timezone,
        "RETURN_AS_TIMEZONE_AWARE": True,
        "PREFER_DATES_FROM": "future",
        "RELATIVE_BASE": now.astimezone(tz).replace(tzinfo=None),
    }

    parsed = dateparser.parse(expression, settings=settings)
    if parsed is None:
        return None
    return int(parsed.timestamp())


def resolve(expression: str, now: Timestamp, timezone: str = "UTC") -> int:
    """
    Turn a time expression into an absolute unix timestamp.

    The expression is first read as an absolute clock time, then as a
    relative offset from now, then handed to dateparser. The first reading
    that succeeds wins. A result at or before ``now`` is returned as is; the
    caller decides what "already past" means.

    Args:
        expression: "18:00", "18:00-3:00", "2 hours 30 minutes", "tomorrow 9am"
        now: Reference instant in unix seconds
        timezone: Zone for clock times without an offset suffix

    Returns:
        Unix timestamp in seconds

    Raises:
        TimeParseError: If no reading succeeds
    """
    expression = expression.strip()
    if not expression:
        raise TimeParseError("Empty time expression")

    if not validate_timezone(timezone):
        logger.warning(f"Invalid timezone '{timezone}', falling back to UTC")
        timezone = "UTC"

    reference = _as_datetime(now)

    timestamp = _resolve_clock(expression, reference, timezone)
    if timestamp is None:
        timestamp = _resolve_interval(expression, reference)
    if timestamp is None:
        timestamp = _resolve_natural(expression, reference, timezone)

    if timestamp is None:
        raise TimeParseError(f"Could not parse time expression: '{expression}'")
    return timestamp


def format_timestamp(timestamp: Timestamp, timezone: str = "UTC") -> str:
    """Render a due instant as "Monday, 05th January 2026 18:00 (UTC)"."""
    if not validate_timezone(timezone):
        timezone = "UTC"
    local = datetime.fromtimestamp(timestamp, pytz.timezone(timezone))
    day = local.day
    if 11 <= day % 100 <= 13:
        suffix = "th"
    else:
        suffix = {1: "st", 2: "nd", 3: "rd"}.get(day % 10, "th")
    return (
        f"{local.strftime('%A')}, {local.strftime('%d')}{suffix} "
        f"{local.strftime('%B %Y %H:%M')} ({timezone})"
    )
