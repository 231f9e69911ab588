"""
Event series orchestration.

Wires rule validation, occurrence generation and persistence together.
Writes are independent per record and there is no multi-record transaction:
a failed batch leaves the occurrences already written in place. Occurrence
ids are derived from the series id and the occurrence index, so calling
``materialize_series`` again after a failure rewrites the same records
instead of duplicating them.
"""

import asyncio
import datetime
import logging
from typing import Callable, List, NamedTuple, Optional

import utils
from generator import DEFAULT_MAX_OCCURRENCES, GenerationResult, OccurrenceWindow, generate_occurrences
from recurrence import InvalidRuleError, RecurrenceRule, validate_rule
from schemas import BaseEventData, EventOccurrence, EventSeries
from series_store import SeriesStore, EVENTS_PATH

logger = logging.getLogger(__name__)


class SeriesCreateResult(NamedTuple):
    series_id: str
    occurrence_ids: List[str]
    truncated: bool


def _utcnow() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc)


def occurrence_id(series_id: str, index: int) -> str:
    return f"{series_id}-{index:04d}"


def _check_window(start: datetime.datetime, end: datetime.datetime):
    if end < start:
        raise InvalidRuleError(f"Event ends ({end.isoformat()}) before it starts ({start.isoformat()})")


def build_occurrences(series: EventSeries, windows: List[OccurrenceWindow]) -> List[EventOccurrence]:
    """Stamp each generated window with the series' shared fields."""
    base = series.base_event_data.model_dump()
    base["title"] = f"{series.name}: {base['title']}"
    return [
        EventOccurrence(
            **base,
            id=occurrence_id(series.id, index),
            series_id=series.id,
            start=window.start,
            end=window.end,
            selected_date=window.start.date(),
        )
        for index, window in enumerate(windows)
    ]


def preview_occurrences(
    rule: RecurrenceRule,
    first_start: datetime.datetime,
    first_end: datetime.datetime,
    max_occurrences: int = DEFAULT_MAX_OCCURRENCES,
):
    """Validate and expand a rule without writing anything."""
    first_start, first_end = utils.localize(first_start), utils.localize(first_end)
    _check_window(first_start, first_end)
    return generate_occurrences(rule, first_start, first_end, max_occurrences)


async def _write_occurrences(series_store: SeriesStore, series: EventSeries, result: GenerationResult):
    occurrences = build_occurrences(series, result.windows)
    # Every write is attempted; successful writes stay and the first failure is raised
    results = await asyncio.gather(
        *(series_store.create_occurrence(occurrence) for occurrence in occurrences),
        return_exceptions=True
    )
    errors = [error for error in results if isinstance(error, BaseException)]
    if errors:
        logger.error(f"Failed to write {len(errors)} of {len(occurrences)} occurrences of series {series.id}")
        raise errors[0]
    return SeriesCreateResult(series.id, [occurrence.id for occurrence in occurrences], result.truncated)


async def create_event_series(
    series_store: SeriesStore,
    name: str,
    rule: RecurrenceRule,
    base_event_data: BaseEventData,
    first_start: datetime.datetime,
    first_end: datetime.datetime,
    max_occurrences: int = DEFAULT_MAX_OCCURRENCES,
    clock: Callable[[], datetime.datetime] = _utcnow,
) -> SeriesCreateResult:
    """
    Create a series record and materialize all of its occurrences.

    Args:
        series_store: Where the series and occurrences are written
        name: Series name, prefixed onto every occurrence title
        rule: Recurrence rule
        base_event_data: Fields shared by every occurrence
        first_start: Start of the first occurrence; naive values use the calendar timezone
        first_end: End of the first occurrence
        max_occurrences: Safety cap passed to the generator
        clock: Source of the created_at timestamp

    Returns:
        SeriesCreateResult: Series id, occurrence ids, and whether the cap truncated the series

    Raises:
        InvalidRuleError: Before any write, if the rule or first window is invalid
        StoreError: If a write fails; occurrences already written are kept
    """
    rule = validate_rule(rule)
    first_start, first_end = utils.localize(first_start), utils.localize(first_end)
    _check_window(first_start, first_end)
    # Generate up front so a bad rule never leaves a series record behind
    generated = generate_occurrences(rule, first_start, first_end, max_occurrences)

    series = EventSeries(
        name=name,
        creator_id=base_event_data.creator_id,
        creator_handle=base_event_data.handle,
        created_at=clock(),
        recurrence=rule,
        base_event_data=base_event_data,
        first_start=first_start,
        first_end=first_end,
    )
    series_id = await series_store.create_series(series)
    series = series.model_copy(update={"id": series_id})

    result = await _write_occurrences(series_store, series, generated)
    if result.truncated:
        logger.warning(f"Series {series_id} was truncated at {len(result.occurrence_ids)} occurrences")
    logger.info(f"Created series '{name}' ({series_id}) with {len(result.occurrence_ids)} occurrences")
    return result


async def materialize_series(
    series_store: SeriesStore,
    series_id: str,
    max_occurrences: int = DEFAULT_MAX_OCCURRENCES,
) -> Optional[SeriesCreateResult]:
    """
    Regenerate and rewrite every occurrence of a stored series.

    Safe to repeat: each occurrence is written under the same id each time.

    Returns:
        Optional[SeriesCreateResult]: None if the series does not exist
    """
    series = await series_store.get_series(series_id)
    if series is None:
        return None
    first_start = utils.localize(series.first_start)
    first_end = utils.localize(series.first_end)
    generated = generate_occurrences(series.recurrence, first_start, first_end, max_occurrences)
    result = await _write_occurrences(series_store, series, generated)
    logger.info(f"Materialized {len(result.occurrence_ids)} occurrences of series {series_id}")
    return result


async def create_event(
    series_store: SeriesStore,
    base_event_data: BaseEventData,
    start: datetime.datetime,
    end: datetime.datetime,
) -> EventOccurrence:
    """Create a standalone event that belongs to no series."""
    start, end = utils.localize(start), utils.localize(end)
    _check_window(start, end)
    event = EventOccurrence(
        **base_event_data.model_dump(),
        id=series_store.store.push(EVENTS_PATH),
        series_id=None,
        start=start,
        end=end,
        selected_date=start.date(),
    )
    await series_store.create_occurrence(event)
    logger.info(f"Created event '{event.title}' ({event.id})")
    return event


async def delete_event(series_store: SeriesStore, event_id: str) -> None:
    """Delete one event; the series record and sibling occurrences are untouched."""
    await series_store.delete_occurrence(event_id)
    logger.info(f"Deleted event {event_id}")


async def delete_event_series(series_store: SeriesStore, series_id: str) -> int:
    return await series_store.delete_series(series_id)
