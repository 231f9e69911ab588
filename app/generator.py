"""
Occurrence generation for recurring event series.

Expands a recurrence rule and a first occurrence window into the ordered
list of concrete (start, end) windows to materialize. Every step is computed
by the pure function ``step``; nothing here performs I/O.
"""

import os
import calendar
import datetime
import logging
import warnings
from typing import List, NamedTuple, Optional

from dateutil.relativedelta import relativedelta

import utils
from recurrence import RecurrenceRule, RecurrenceType, EndType, validate_rule

logger = logging.getLogger(__name__)

DEFAULT_MAX_OCCURRENCES = int(os.getenv("SERIES_MAX_OCCURRENCES", "730"))


class GenerationLimitWarning(UserWarning):
    """The safety cap cut a series short; the stored series is incomplete."""


class OccurrenceWindow(NamedTuple):
    start: datetime.datetime
    end: datetime.datetime

    @property
    def duration(self) -> datetime.timedelta:
        return self.end - self.start


class GenerationResult(NamedTuple):
    windows: List[OccurrenceWindow]
    truncated: bool


def _days_in_month(year: int, month: int) -> int:
    return calendar.monthrange(year, month)[1]


def _next_weekly_start(start: datetime.datetime, rule: RecurrenceRule) -> datetime.datetime:
    days = sorted(rule.days_of_week)
    current_day = utils.weekday_index(start)

    later_this_week = [day for day in days if day > current_day]
    if later_this_week:
        return start + datetime.timedelta(days=later_this_week[0] - current_day)

    # Roll to the Sunday that opens the next week (never zero days), skip the
    # interval's idle weeks, then land on the first selected weekday.
    to_next_week = (7 - current_day) % 7 or 7
    offset = to_next_week + 7 * (rule.interval - 1) + days[0]
    return start + datetime.timedelta(days=offset)


def _next_monthly_start(start: datetime.datetime, rule: RecurrenceRule) -> datetime.datetime:
    days = sorted(rule.days_of_month)
    month_length = _days_in_month(start.year, start.month)

    later_this_month = [day for day in days if start.day < day <= month_length]
    if later_this_month:
        return start.replace(day=later_this_month[0])

    target = start.replace(day=1) + relativedelta(months=rule.interval)
    day = min(days[0], _days_in_month(target.year, target.month))
    return target.replace(day=day)


def step(current: OccurrenceWindow, rule: RecurrenceRule) -> Optional[OccurrenceWindow]:
    """
    Compute the window that follows ``current`` under ``rule``.

    Time of day is carried over unchanged and the window keeps its duration.
    Month arithmetic clamps to the last day of the target month and works from
    the previous start's day, so a clamped month is not recovered later
    (Jan 31, Feb 29, Mar 29, ...).

    Returns:
        Optional[OccurrenceWindow]: The next window, or None when the rule's
        type has no stepping rule
    """
    start = current.start

    if rule.type == RecurrenceType.DAILY:
        next_start = start + datetime.timedelta(days=rule.interval)
    elif rule.type == RecurrenceType.WEEKLY:
        if rule.days_of_week:
            next_start = _next_weekly_start(start, rule)
        else:
            next_start = start + datetime.timedelta(days=7 * rule.interval)
    elif rule.type == RecurrenceType.MONTHLY:
        if rule.days_of_month:
            next_start = _next_monthly_start(start, rule)
        else:
            next_start = start + relativedelta(months=rule.interval)
    elif rule.type == RecurrenceType.YEARLY:
        next_start = start + relativedelta(years=rule.interval)
    else:
        return None

    return OccurrenceWindow(next_start, next_start + current.duration)


def _comparable_end_date(end_date: datetime.datetime, reference: datetime.datetime) -> datetime.datetime:
    if reference.tzinfo is not None and end_date.tzinfo is None:
        return end_date.replace(tzinfo=reference.tzinfo)
    if reference.tzinfo is None and end_date.tzinfo is not None:
        return end_date.replace(tzinfo=None)
    return end_date


def generate_occurrences(
    rule: RecurrenceRule,
    first_start: datetime.datetime,
    first_end: datetime.datetime,
    max_occurrences: int = DEFAULT_MAX_OCCURRENCES,
) -> GenerationResult:
    """
    Expand a rule into its occurrence windows.

    Args:
        rule: Recurrence rule, validated here before anything is generated
        first_start: Start of the first occurrence, emitted unchanged
        first_end: End of the first occurrence, emitted unchanged
        max_occurrences: Hard cap on the number of windows

    Returns:
        GenerationResult: The windows in order, and whether the cap cut them short

    Raises:
        InvalidRuleError: If the rule fails validation
    """
    if max_occurrences < 1:
        raise ValueError(f"max_occurrences must be at least 1, got {max_occurrences}")

    rule = validate_rule(rule)
    end_date = None
    if rule.end_type == EndType.ON_DATE:
        end_date = _comparable_end_date(rule.end_date, first_start)

    windows: List[OccurrenceWindow] = []
    truncated = False
    current = OccurrenceWindow(first_start, first_end)

    while current is not None:
        if windows:
            if end_date is not None and current.start > end_date:
                break
            if rule.end_type == EndType.AFTER_OCCURRENCES and len(windows) >= rule.occurrences_count:
                break
            if len(windows) >= max_occurrences:
                truncated = True
                break
        windows.append(current)
        current = step(current, rule)

    if rule.type == RecurrenceType.CUSTOM:
        logger.warning("Recurrence type 'custom' has no stepping rule, only the first occurrence was generated")
    if truncated:
        logger.warning(f"Series generation stopped at the cap of {max_occurrences} occurrences")
        warnings.warn(
            f"Series truncated at {max_occurrences} occurrences",
            GenerationLimitWarning,
            stacklevel=2,
        )

    return GenerationResult(windows, truncated)
