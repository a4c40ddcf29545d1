"""
Fixed text grammars for moderation commands.

Durations ("10m", "2 horas", "3d") and lock-hour times of day ("22:00",
"7h30", "noon") are the only free-form inputs the engine interprets.
Malformed input raises ParseError; there are no silent defaults.
"""

import re

from warden.constants import MS_PER_DAY, MS_PER_HOUR, MS_PER_MINUTE
from warden.database.models import ClockTime
from warden.errors import ParseError

# Unit spellings accepted after the amount, mapped to milliseconds
DURATION_UNITS: dict[str, int] = {
    "m": MS_PER_MINUTE,
    "min": MS_PER_MINUTE,
    "mins": MS_PER_MINUTE,
    "minute": MS_PER_MINUTE,
    "minutes": MS_PER_MINUTE,
    "minuto": MS_PER_MINUTE,
    "minutos": MS_PER_MINUTE,
    "h": MS_PER_HOUR,
    "hr": MS_PER_HOUR,
    "hrs": MS_PER_HOUR,
    "hour": MS_PER_HOUR,
    "hours": MS_PER_HOUR,
    "hora": MS_PER_HOUR,
    "horas": MS_PER_HOUR,
    "d": MS_PER_DAY,
    "day": MS_PER_DAY,
    "days": MS_PER_DAY,
    "dia": MS_PER_DAY,
    "dias": MS_PER_DAY,
}

NAMED_TIMES: dict[str, ClockTime] = {
    "midnight": ClockTime(hour=0, minute=0),
    "meia-noite": ClockTime(hour=0, minute=0),
    "meianoite": ClockTime(hour=0, minute=0),
    "noon": ClockTime(hour=12, minute=0),
    "meio-dia": ClockTime(hour=12, minute=0),
    "meiodia": ClockTime(hour=12, minute=0),
}

_DURATION_RE = re.compile(r"^(\d+)\s*([a-z]+)$")
_CLOCK_RE = re.compile(r"^(\d{1,2})\s*[:h]\s*(\d{2})$")
_HOUR_RE = re.compile(r"^(\d{1,2})\s*h?$")


def parse_duration(text: str | None) -> int:
    """
    Parse a mute duration into milliseconds.

    Args:
        text: An integer followed by a minute, hour or day unit, with or
            without a space (e.g. "10m", "2h", "3 dias").

    Returns:
        int: Duration in milliseconds (always positive).

    Raises:
        ParseError: If the text does not match the grammar or is zero.
    """
    if not text:
        raise ParseError("Duration is empty. Examples: '10m', '2h', '3d'.")

    match = _DURATION_RE.match(text.strip().lower())
    if not match:
        raise ParseError(f"Invalid duration {text!r}. Examples: '10m', '2h', '3d'.")

    amount, unit = int(match.group(1)), match.group(2)
    if unit not in DURATION_UNITS:
        raise ParseError(f"Unknown duration unit {unit!r}. Use minutes, hours or days.")
    if amount <= 0:
        raise ParseError("Duration must be greater than zero.")

    return amount * DURATION_UNITS[unit]


def parse_time_of_day(text: str | None) -> ClockTime:
    """
    Parse a lock-hour time of day.

    Accepts "HH:MM", "HHhMM", "HHh", a bare hour, or the words for
    midnight and noon.

    Raises:
        ParseError: If the text does not match or is out of range.
    """
    if not text:
        raise ParseError("Time is empty. Examples: '22:00', '7h30', 'midnight'.")

    value = text.strip().lower()
    if value in NAMED_TIMES:
        return NAMED_TIMES[value].model_copy()

    match = _CLOCK_RE.match(value)
    if match:
        hour, minute = int(match.group(1)), int(match.group(2))
    else:
        match = _HOUR_RE.match(value)
        if not match:
            raise ParseError(f"Invalid time {text!r}. Examples: '22:00', '7h30', 'midnight'.")
        hour, minute = int(match.group(1)), 0

    if hour > 23 or minute > 59:
        raise ParseError(f"Time {text!r} is out of range.")

    return ClockTime(hour=hour, minute=minute)


def format_duration(duration_ms: int) -> str:
    """
    Format a duration using its largest whole unit.

    Args:
        duration_ms: Duration in milliseconds.

    Returns:
        Formatted string like "3 day(s)" or "10 minute(s)".
    """
    if not duration_ms or duration_ms <= 0:
        return "0"

    seconds = duration_ms // 1000
    minutes = seconds // 60
    hours = minutes // 60
    days = hours // 24
    if days:
        return f"{days} day(s)"
    if hours:
        return f"{hours} hour(s)"
    if minutes:
        return f"{minutes} minute(s)"
    return f"{seconds} second(s)"
