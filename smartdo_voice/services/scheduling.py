import re
from datetime import datetime, timedelta

from smartdo_voice.domain.models import ResolvedSchedule


WEEKDAYS = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")
DEFAULT_HOUR = 9

# Searched anywhere in the phrase: "2 PM", "14:00", "at 11:45am"
_TIME_PATTERN = re.compile(r"(\d{1,2})(?::(\d{1,2}))?\s*(am|pm)?", re.IGNORECASE)


def resolve(
    day_phrase: str | None,
    time_phrase: str | None,
    reference: datetime,
) -> ResolvedSchedule:
    """Turn loose day/time phrases into a concrete instant relative to `reference`.

    Best-effort: unparseable phrases are treated as absent and nothing raises.
    Only full weekday names move the date, always to the next occurrence with
    today counting as the next occurrence. Parsed hours and minutes are not
    range-checked; they are added to midnight, so "25:00" rolls into the
    following day.
    """
    offset = _day_offset(day_phrase, reference)
    parsed = _parse_time(time_phrase)

    if parsed is None:
        hours, minutes = DEFAULT_HOUR, 0
    else:
        hours, minutes = parsed

    midnight = reference.replace(hour=0, minute=0, second=0, microsecond=0)
    timestamp = midnight + timedelta(days=offset if offset is not None else 0, hours=hours, minutes=minutes)

    return ResolvedSchedule(
        timestamp=timestamp,
        day_was_explicit=offset is not None,
        time_was_explicit=parsed is not None,
    )


def _day_offset(day_phrase: str | None, reference: datetime) -> int | None:
    if not day_phrase:
        return None
    name = day_phrase.strip().lower()
    if name not in WEEKDAYS:
        return None
    return (WEEKDAYS.index(name) - reference.weekday()) % 7


def _parse_time(time_phrase: str | None) -> tuple[int, int] | None:
    if not time_phrase:
        return None
    match = _TIME_PATTERN.search(time_phrase)
    if match is None:
        return None

    hours = int(match.group(1))
    minutes = int(match.group(2) or 0)
    meridiem = (match.group(3) or "").upper()
    if meridiem == "PM" and hours < 12:
        hours += 12
    if meridiem == "AM" and hours == 12:
        hours = 0
    return hours, minutes
