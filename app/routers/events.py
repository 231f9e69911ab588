# Events route of the API: standalone events, single occurrence deletion and reports

import logging
from fastapi import APIRouter, HTTPException, Header, Depends
from typing import List
from pydantic import ValidationError
import schemas
import series_service
import store
from recurrence import InvalidRuleError
from series_store import SeriesStore
from routers.series import get_series_store

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/", response_model=schemas.EventOccurrence)
async def create_event(
        body: schemas.EventCreate,
        creator_id: str = Header(..., alias="X-Creator-Id"),
        creator_handle: str = Header(..., alias="X-Creator-Handle"),
        series_store: SeriesStore = Depends(get_series_store),
):
    """Create a single event that is not part of any series"""
    try:
        base_event_data = schemas.BaseEventData(
            **body.model_dump(exclude={"start", "end"}),
            creator_id=creator_id,
            handle=creator_handle,
        )
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    if creator_id not in base_event_data.participants:
        base_event_data.participants.insert(0, creator_id)

    try:
        return await series_service.create_event(series_store, base_event_data, body.start, body.end)
    except InvalidRuleError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except store.StoreError as e:
        logger.error(f"Failed to create event '{body.title}': {e}")
        raise HTTPException(status_code=500, detail=f"Failed to create event: {e}")


@router.get("/{event_id}", response_model=schemas.EventOccurrence)
async def get_event(
        event_id: str,
        series_store: SeriesStore = Depends(get_series_store),
):
    """Get a single event or series occurrence"""
    try:
        event = await series_store.get_occurrence(event_id)
    except store.StoreError as e:
        logger.error(f"Failed to retrieve event {event_id}: {e}")
        raise HTTPException(status_code=500, detail=f"Failed to retrieve event {event_id}: {e}")

    if event is None:
        raise HTTPException(status_code=404, detail="Event not found")
    return event


@router.delete("/{event_id}", response_model=schemas.MessageResponse)
async def delete_event(
        event_id: str,
        series_store: SeriesStore = Depends(get_series_store),
):
    """Delete one event or occurrence; deleting an absent event succeeds"""
    try:
        await series_service.delete_event(series_store, event_id)
    except store.StoreError as e:
        logger.error(f"Failed to delete event {event_id}: {e}")
        raise HTTPException(status_code=500, detail=f"Failed to delete event: {e}")

    return {"message": f"Event {event_id} deleted successfully"}


@router.post("/{event_id}/reports", response_model=schemas.EventReport)
async def report_event(
        event_id: str,
        body: schemas.ReportCreate,
        reporter_handle: str = Header(..., alias="X-Creator-Handle"),
        series_store: SeriesStore = Depends(get_series_store),
):
    """Report an event for moderation"""
    try:
        if await series_store.get_occurrence(event_id) is None:
            raise HTTPException(status_code=404, detail="Event not found")
        return await series_store.report_event(event_id, reporter_handle, body.reason)
    except store.StoreError as e:
        logger.error(f"Failed to report event {event_id}: {e}")
        raise HTTPException(status_code=500, detail=f"Failed to report event: {e}")


@router.get("/{event_id}/reports", response_model=List[schemas.EventReport])
async def list_event_reports(
        event_id: str,
        series_store: SeriesStore = Depends(get_series_store),
):
    """List the reports filed against an event"""
    try:
        return await series_store.list_reports(event_id)
    except store.StoreError as e:
        logger.error(f"Failed to list reports for event {event_id}: {e}")
        raise HTTPException(status_code=500, detail=f"Failed to list reports: {e}")
