# Series route of the API: create, preview, inspect, re-materialize and delete recurring event series

import logging
from fastapi import APIRouter, HTTPException, Header, Depends
from typing import List
from pydantic import ValidationError
import schemas
import series_service
import store
from recurrence import InvalidRuleError
from series_store import SeriesStore, SeriesDeletionError

logger = logging.getLogger(__name__)
router = APIRouter()


def get_series_store() -> SeriesStore:
    return SeriesStore(store.get_store())


@router.post("/", response_model=schemas.SeriesCreateResponse)
async def create_series(
        body: schemas.SeriesCreate,
        creator_id: str = Header(..., alias="X-Creator-Id"),
        creator_handle: str = Header(..., alias="X-Creator-Handle"),
        series_store: SeriesStore = Depends(get_series_store),
):
    """Create a recurring event series and all of its occurrences"""
    try:
        base_event_data = schemas.BaseEventData(
            **body.event.model_dump(),
            creator_id=creator_id,
            handle=creator_handle,
        )
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    if creator_id not in base_event_data.participants:
        base_event_data.participants.insert(0, creator_id)

    try:
        result = await series_service.create_event_series(
            series_store,
            body.name,
            body.recurrence,
            base_event_data,
            body.first_start,
            body.first_end,
        )
    except InvalidRuleError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except store.StoreError as e:
        logger.error(f"Failed to create series '{body.name}': {e}")
        raise HTTPException(status_code=500, detail=f"Failed to create series: {e}")

    return result._asdict()


@router.post("/preview", response_model=List[schemas.OccurrenceWindowOut])
async def preview_series(body: schemas.SeriesPreview):
    """Expand a recurrence rule without storing anything"""
    try:
        result = series_service.preview_occurrences(body.recurrence, body.first_start, body.first_end)
    except InvalidRuleError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return [
        {"start": window.start, "end": window.end, "selected_date": window.start.date()}
        for window in result.windows
    ]


@router.get("/{series_id}", response_model=schemas.EventSeries)
async def get_series(
        series_id: str,
        series_store: SeriesStore = Depends(get_series_store),
):
    """Get a single series definition"""
    try:
        series = await series_store.get_series(series_id)
    except store.StoreError as e:
        logger.error(f"Failed to retrieve series {series_id}: {e}")
        raise HTTPException(status_code=500, detail=f"Failed to retrieve series {series_id}: {e}")

    if series is None:
        raise HTTPException(status_code=404, detail="Series not found")
    return series


@router.get("/{series_id}/occurrences", response_model=List[schemas.EventOccurrence])
async def list_series_occurrences(
        series_id: str,
        series_store: SeriesStore = Depends(get_series_store),
):
    """List every occurrence of a series, ordered by start"""
    try:
        return await series_store.list_occurrences_by_series(series_id)
    except store.StoreError as e:
        logger.error(f"Failed to list occurrences of series {series_id}: {e}")
        raise HTTPException(status_code=500, detail=f"Failed to list occurrences: {e}")


@router.post("/{series_id}/materialize", response_model=schemas.SeriesCreateResponse)
async def materialize_series(
        series_id: str,
        series_store: SeriesStore = Depends(get_series_store),
):
    """Rewrite every occurrence of a stored series, e.g. after a partially failed creation"""
    try:
        result = await series_service.materialize_series(series_store, series_id)
    except store.StoreError as e:
        logger.error(f"Failed to materialize series {series_id}: {e}")
        raise HTTPException(status_code=500, detail=f"Failed to materialize series: {e}")

    if result is None:
        raise HTTPException(status_code=404, detail="Series not found")
    return result._asdict()


@router.delete("/{series_id}", response_model=schemas.MessageResponse)
async def delete_series(
        series_id: str,
        series_store: SeriesStore = Depends(get_series_store),
):
    """Delete a series and every occurrence belonging to it"""
    try:
        # Occurrences left behind without a record are still deletable
        if (await series_store.get_series(series_id) is None
                and not await series_store.list_occurrences_by_series(series_id)):
            raise HTTPException(status_code=404, detail="Series not found")
        deleted = await series_service.delete_event_series(series_store, series_id)
    except SeriesDeletionError as e:
        logger.error(str(e))
        raise HTTPException(status_code=500, detail=str(e))
    except store.StoreError as e:
        logger.error(f"Failed to delete series {series_id}: {e}")
        raise HTTPException(status_code=500, detail=f"Failed to delete series: {e}")

    return {"message": f"Series {series_id} deleted successfully with {deleted} occurrences"}
