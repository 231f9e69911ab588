"""Recurrence rule model and validation."""
import datetime
import logging
from enum import Enum
from typing import Optional, List, Any, Dict

from pydantic import BaseModel, ValidationError, field_validator

import utils

logger = logging.getLogger(__name__)


class InvalidRuleError(ValueError):
    """A recurrence rule failed structural validation."""


class RecurrenceType(str, Enum):
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    YEARLY = "yearly"
    CUSTOM = "custom"  # accepted for compatibility, has no stepping rule


class EndType(str, Enum):
    NEVER = "never"
    ON_DATE = "onDate"
    AFTER_OCCURRENCES = "afterOccurrences"


class RecurrenceRule(BaseModel):
    """How an event series repeats."""

    type: RecurrenceType
    interval: int = 1
    days_of_week: Optional[List[int]] = None  # 0-6 for Sunday-Saturday
    days_of_month: Optional[List[int]] = None  # 1-31
    end_type: EndType = EndType.NEVER
    end_date: Optional[datetime.datetime] = None  # inclusive
    occurrences_count: Optional[int] = None  # counts the first occurrence

    @field_validator("days_of_week", "days_of_month", mode="before")
    @classmethod
    def _split_day_list(cls, value):
        return utils.parse_day_list(value)

    @field_validator("end_date", mode="before")
    @classmethod
    def _date_only_means_end_of_day(cls, value):
        if isinstance(value, datetime.datetime):
            return value
        if isinstance(value, datetime.date):
            return utils.end_of_day(value)
        if isinstance(value, str):
            parsed = utils.validate_time_format(value.strip())
            if parsed is None:
                raise ValueError(f"Invalid end date: {value}")
            if len(value.strip()) == 10:
                return utils.end_of_day(parsed.date())
            return parsed
        return value


def _normalized_days(days: Optional[List[int]]) -> Optional[List[int]]:
    if not days:
        return None
    return sorted(set(days))


def validate_rule(rule: RecurrenceRule) -> RecurrenceRule:
    """
    Check a rule for structural problems and return a normalized copy.

    Day sets come back sorted and de-duplicated, the day set that does not
    apply to the rule's type is dropped, and end fields that do not match
    end_type are cleared. The given rule is not modified.

    Raises:
        InvalidRuleError: If the rule cannot be used for generation
    """
    if rule.interval < 1:
        raise InvalidRuleError(f"Interval must be at least 1, got {rule.interval}")

    days_of_week = _normalized_days(rule.days_of_week)
    days_of_month = _normalized_days(rule.days_of_month)

    if days_of_week and days_of_month:
        raise InvalidRuleError("days_of_week and days_of_month cannot both be set")
    if days_of_week and any(day < 0 or day > 6 for day in days_of_week):
        raise InvalidRuleError(f"Days of week must be between 0 and 6, got {days_of_week}")
    if days_of_month and any(day < 1 or day > 31 for day in days_of_month):
        raise InvalidRuleError(f"Days of month must be between 1 and 31, got {days_of_month}")

    if rule.end_type == EndType.ON_DATE and rule.end_date is None:
        raise InvalidRuleError("An end date is required when the series ends on a date")
    if rule.end_type == EndType.AFTER_OCCURRENCES and (rule.occurrences_count is None or rule.occurrences_count < 1):
        raise InvalidRuleError(f"Occurrences count must be at least 1, got {rule.occurrences_count}")

    return rule.model_copy(update={
        "days_of_week": days_of_week if rule.type == RecurrenceType.WEEKLY else None,
        "days_of_month": days_of_month if rule.type == RecurrenceType.MONTHLY else None,
        "end_date": rule.end_date if rule.end_type == EndType.ON_DATE else None,
        "occurrences_count": rule.occurrences_count if rule.end_type == EndType.AFTER_OCCURRENCES else None,
    })


def parse_rule(data: Dict[str, Any]) -> RecurrenceRule:
    """Build and validate a rule from raw input, reporting every problem as InvalidRuleError."""
    try:
        rule = RecurrenceRule.model_validate(data)
    except ValidationError as e:
        raise InvalidRuleError(f"Invalid recurrence rule: {e}") from e
    return validate_rule(rule)
