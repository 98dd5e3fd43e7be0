"""
Bookable consultation slots.

30-minute slots inside business hours (09:00-18:00, Mon-Fri, in the caller's
timezone) over the next 14 days, minus past times and anything overlapping an
appointment already on the CRM calendar. If the calendar cannot be read we
still offer slots, just without conflict filtering.
"""
import logging
from datetime import datetime, timedelta, timezone
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from homemaxx.config import (
    BUSINESS_DAYS, BUSINESS_HOURS_END, BUSINESS_HOURS_START,
    DEFAULT_TIMEZONE, SCHEDULING_WINDOW_DAYS, SLOT_MINUTES,
)
from homemaxx.services import ghl

logger = logging.getLogger('services.scheduling')


def resolve_timezone(name):
    """ZoneInfo for `name`, falling back to the default timezone."""
    try:
        return ZoneInfo(name or DEFAULT_TIMEZONE), (name or DEFAULT_TIMEZONE)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning("Unknown timezone '%s', using %s", name, DEFAULT_TIMEZONE)
        return ZoneInfo(DEFAULT_TIMEZONE), DEFAULT_TIMEZONE


def _parse_time(value):
    """ISO-8601 → aware datetime; times without an offset are taken as UTC."""
    parsed = datetime.fromisoformat(str(value).replace('Z', '+00:00'))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _busy_intervals(appointments):
    intervals = []
    for appointment in appointments:
        try:
            intervals.append((_parse_time(appointment['startTime']), _parse_time(appointment['endTime'])))
        except (KeyError, TypeError, ValueError):
            logger.warning("Skipping appointment with unreadable times: %r", appointment)
    return intervals


def _display_time(dt):
    return f"{dt.hour % 12 or 12}:{dt:%M %p}"


def _display_date(dt):
    return f"{dt:%A, %B} {dt.day}"


def generate_slots(now, tz, appointments=(), days=SCHEDULING_WINDOW_DAYS):
    """
    Date-grouped free slots: [{'date': 'Monday, June 3', 'slots': [...]}, ...].

    `now` must be timezone-aware; slots starting at or before it are skipped.
    """
    busy = _busy_intervals(appointments)
    local_now = now.astimezone(tz)
    first_day = local_now.date()
    groups = []

    for offset in range(days + 1):
        day = first_day + timedelta(days=offset)
        if day.weekday() not in BUSINESS_DAYS:
            continue

        day_slots = []
        start = datetime(day.year, day.month, day.day, BUSINESS_HOURS_START, tzinfo=tz)
        close = datetime(day.year, day.month, day.day, BUSINESS_HOURS_END, tzinfo=tz)
        while start < close:
            end = start + timedelta(minutes=SLOT_MINUTES)
            free = not any(start < busy_end and end > busy_start for busy_start, busy_end in busy)
            if start > now and free:
                day_slots.append({
                    'startTime': start.astimezone(timezone.utc).isoformat().replace('+00:00', 'Z'),
                    'endTime': end.astimezone(timezone.utc).isoformat().replace('+00:00', 'Z'),
                    'displayTime': _display_time(start),
                    'displayDate': _display_date(start),
                })
            start = end

        if day_slots:
            groups.append({'date': day_slots[0]['displayDate'], 'slots': day_slots})

    return groups


def get_available_slots(timezone_name=None, now=None):
    """Free slots for the booking widget. Returns (groups, timezone name)."""
    tz, tz_name = resolve_timezone(timezone_name)
    now = now or datetime.now(timezone.utc)
    end = now + timedelta(days=SCHEDULING_WINDOW_DAYS)

    try:
        appointments = ghl.fetch_appointments(now, end)
    except Exception as e:
        logger.error("Could not fetch GHL appointments, offering unfiltered slots: %s", e)
        appointments = []

    return generate_slots(now, tz, appointments), tz_name
