"""
Series store: event series and occurrence records over a DocumentStore.

Layout:
    event_series/{series_id}                       series definition
    series_occurrences/{series_id}/{event_id}      index of a series' occurrences
    events/{event_id}                              occurrence or standalone event
    users/{handle}/events/{event_id}               per-owner copy of the event
    event_reports/{event_id}/{report_id}           reports against an event
"""

import asyncio
import datetime
import logging
from typing import List, Optional, Tuple

from schemas import EventSeries, EventOccurrence, EventReport
from store import DocumentStore, StoreError

logger = logging.getLogger(__name__)

SERIES_PATH = "event_series"
SERIES_INDEX_PATH = "series_occurrences"
EVENTS_PATH = "events"
REPORTS_PATH = "event_reports"


class SeriesDeletionError(StoreError):
    """Some occurrences of a series could not be deleted."""

    def __init__(self, series_id: str, failures: List[Tuple[str, BaseException]]):
        self.series_id = series_id
        self.failures = failures
        failed_ids = ", ".join(event_id for event_id, _ in failures)
        super().__init__(f"Failed to delete {len(failures)} occurrence(s) of series {series_id}: {failed_ids}")


def _record(model) -> dict:
    return model.model_dump(mode="json", exclude_none=True)


def _owner_index_path(handle: str, event_id: str) -> str:
    return f"users/{handle}/events/{event_id}"


def _series_index_path(series_id: str, event_id: str) -> str:
    return f"{SERIES_INDEX_PATH}/{series_id}/{event_id}"


class SeriesStore:
    """Persist, read and delete event series and their occurrences."""

    def __init__(self, store: DocumentStore):
        self.store = store

    async def create_series(self, series: EventSeries) -> str:
        """Write the series record under a fresh id and return the id."""
        series_id = self.store.push(SERIES_PATH)
        record = _record(series.model_copy(update={"id": series_id}))
        self.store.set(f"{SERIES_PATH}/{series_id}", record)
        return series_id

    async def get_series(self, series_id: str) -> Optional[EventSeries]:
        record = self.store.get(f"{SERIES_PATH}/{series_id}")
        if record is None:
            return None
        return EventSeries.model_validate(record)

    async def create_occurrence(self, occurrence: EventOccurrence) -> None:
        """Write one occurrence and its index entries. Rewriting the same id overwrites it."""
        record = _record(occurrence)
        self.store.set(f"{EVENTS_PATH}/{occurrence.id}", record)
        if occurrence.series_id is not None:
            self.store.set(_series_index_path(occurrence.series_id, occurrence.id), True)
        self.store.set(_owner_index_path(occurrence.handle, occurrence.id), record)

    async def get_occurrence(self, event_id: str) -> Optional[EventOccurrence]:
        record = self.store.get(f"{EVENTS_PATH}/{event_id}")
        if record is None:
            return None
        return EventOccurrence.model_validate(record)

    async def delete_occurrence(self, event_id: str) -> None:
        """Remove an occurrence, its reports and its index entries. Absent ids are a no-op."""
        record = self.store.get(f"{EVENTS_PATH}/{event_id}")
        if record is None:
            logger.warning(f"Event {event_id} already absent, nothing to delete")
            return
        self.store.remove(f"{EVENTS_PATH}/{event_id}")
        self.store.remove(f"{REPORTS_PATH}/{event_id}")
        if record.get("series_id"):
            self.store.remove(_series_index_path(record["series_id"], event_id))
        if record.get("handle"):
            self.store.remove(_owner_index_path(record["handle"], event_id))

    async def list_occurrences_by_series(self, series_id: str) -> List[EventOccurrence]:
        """All occurrences tagged with ``series_id``, ordered by start."""
        index = self.store.get(f"{SERIES_INDEX_PATH}/{series_id}") or {}
        occurrences = []
        for event_id in index:
            record = self.store.get(f"{EVENTS_PATH}/{event_id}")
            # Index entries can outlive a partially failed delete
            if record is not None and record.get("series_id") == series_id:
                occurrences.append(EventOccurrence.model_validate(record))
        occurrences.sort(key=lambda occurrence: (occurrence.start, occurrence.id))
        return occurrences

    async def list_owner_events(self, handle: str) -> List[EventOccurrence]:
        records = self.store.get(f"users/{handle}/events") or {}
        events = [EventOccurrence.model_validate(record) for record in records.values()]
        events.sort(key=lambda event: (event.start, event.id))
        return events

    async def delete_series(self, series_id: str) -> int:
        """
        Remove every occurrence of a series, then the series record.

        Occurrence deletes run as one batch and every one is attempted even
        when some fail. The series record and index are kept until all
        occurrences are gone, so a failed delete can be retried. Occurrences
        written after the listing are not seen.

        Returns:
            int: Number of occurrences deleted

        Raises:
            SeriesDeletionError: If any occurrence could not be deleted
        """
        occurrences = await self.list_occurrences_by_series(series_id)
        results = await asyncio.gather(
            *(self.delete_occurrence(occurrence.id) for occurrence in occurrences),
            return_exceptions=True
        )

        failures = []
        for occurrence, result in zip(occurrences, results):
            if isinstance(result, BaseException):
                logger.warning(f"Failed to delete occurrence {occurrence.id} of series {series_id}: {result}")
                failures.append((occurrence.id, result))
        if failures:
            raise SeriesDeletionError(series_id, failures)

        self.store.remove(f"{SERIES_INDEX_PATH}/{series_id}")
        self.store.remove(f"{SERIES_PATH}/{series_id}")
        logger.info(f"Deleted series {series_id} with {len(occurrences)} occurrences")
        return len(occurrences)

    async def report_event(self, event_id: str, reported_by: str, reason: str) -> EventReport:
        report_id = self.store.push(f"{REPORTS_PATH}/{event_id}")
        report = EventReport(
            id=report_id,
            event_id=event_id,
            reported_by=reported_by,
            reason=reason,
            created_on=datetime.datetime.now(datetime.timezone.utc),
        )
        self.store.set(f"{REPORTS_PATH}/{event_id}/{report_id}", _record(report))
        return report

    async def list_reports(self, event_id: str) -> List[EventReport]:
        records = self.store.get(f"{REPORTS_PATH}/{event_id}") or {}
        reports = [EventReport.model_validate(record) for record in records.values()]
        reports.sort(key=lambda report: report.created_on)
        return reports
