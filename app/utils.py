# Utility functions for the event calendar api

import os
import time
import secrets
import logging
import datetime
from typing import Optional, List, Union
from dateutil import parser, tz

logger = logging.getLogger(__name__)

CALENDAR_TIMEZONE = os.getenv("CALENDAR_TIMEZONE", "Europe/Sofia")

# Alphabet of generated record keys, ordered so that keys sort by creation time
PUSH_CHARS = "-0123456789ABCDEFGHIJKLMNOPQRSTUVWXYZ_abcdefghijklmnopqrstuvwxyz"

def generate_push_id():
    """Generate a 20-character record key: 8 characters of millisecond timestamp, 12 random"""
    now = int(time.time() * 1000)
    stamp = []
    for _ in range(8):
        stamp.append(PUSH_CHARS[now % 64])
        now //= 64
    return ''.join(reversed(stamp)) + ''.join(secrets.choice(PUSH_CHARS) for _ in range(12))

def calendar_zone():
    """Return the tzinfo for the configured calendar timezone"""
    zone = tz.gettz(CALENDAR_TIMEZONE)
    if zone is None:
        logger.warning(f"Unknown timezone '{CALENDAR_TIMEZONE}', falling back to UTC")
        return tz.UTC
    return zone

def localize(dt: datetime.datetime) -> datetime.datetime:
    """Express a datetime in the calendar timezone; naive values are read as wall-clock time there"""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=calendar_zone())
    return dt.astimezone(calendar_zone())

def end_of_day(day: datetime.date) -> datetime.datetime:
    """Last instant of a calendar day in the calendar timezone"""
    return datetime.datetime.combine(day, datetime.time.max, tzinfo=calendar_zone())

def weekday_index(dt: Union[datetime.date, datetime.datetime]) -> int:
    """Day of week with 0=Sunday..6=Saturday"""
    return (dt.weekday() + 1) % 7

def parse_day_list(value) -> Optional[List[int]]:
    """
    Parse a set of day numbers as submitted by the series form.

    Args:
        value: None, a comma-separated string ("1, 15"), or a list of ints / numeric strings

    Returns:
        Optional[List[int]]: The day numbers, or None if nothing was given

    Raises:
        ValueError: If an entry is not an integer
    """
    if value is None:
        return None
    if isinstance(value, str):
        parts = [part.strip() for part in value.split(",")]
        value = [part for part in parts if part]
    days = []
    for item in value:
        if isinstance(item, bool):
            raise ValueError(f"Invalid day number: {item}")
        days.append(int(item))
    return days or None

def validate_time_format(time_str):
    """
    Validate time format (ISO 8601) and return as datetime object

    Args:
        time_str: Time string to validate

    Returns:
        datetime: Parsed datetime object if valid, None otherwise
    """
    try:
        return parser.isoparse(time_str)
    except ValueError:
        logger.error(f"Invalid time format: {time_str}")
        return None
