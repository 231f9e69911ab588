from pydantic import BaseModel, Field, computed_field, field_validator
from typing import Optional, List
from datetime import datetime, date

from recurrence import RecurrenceRule
from store import FORBIDDEN_KEY_CHARS


DESCRIPTION_MAX_LENGTH = 500


class BaseEventData(BaseModel):
    title: str
    description: str = ""
    location: str = ""
    is_public: bool = False
    participants: List[str] = []
    creator_id: str
    handle: str
    category: str = ""
    image_url: Optional[str] = None

    @field_validator("description")
    @classmethod
    def _truncate_description(cls, value: str) -> str:
        return value[:DESCRIPTION_MAX_LENGTH]

    @field_validator("handle")
    @classmethod
    def _handle_is_store_key(cls, value: str) -> str:
        # The handle names the owner index path users/{handle}/events
        if not value or "/" in value or FORBIDDEN_KEY_CHARS & set(value):
            raise ValueError(f"Handle '{value}' must be non-empty and may not contain / . # $ [ ]")
        return value


class EventOccurrence(BaseEventData):
    id: str
    series_id: Optional[str] = None
    start: datetime
    end: datetime
    selected_date: date

    @computed_field
    @property
    def is_series(self) -> bool:
        return self.series_id is not None


class EventSeries(BaseModel):
    id: Optional[str] = None
    name: str
    creator_id: str
    creator_handle: str
    created_at: datetime
    recurrence: RecurrenceRule
    base_event_data: BaseEventData
    first_start: datetime
    first_end: datetime


class EventReport(BaseModel):
    id: str
    event_id: str
    reported_by: str
    reason: str
    created_on: datetime


class EventDetails(BaseModel):
    """Event fields supplied by the caller; identity comes from the request headers."""
    title: str
    description: str = ""
    location: str = ""
    is_public: bool = False
    participants: List[str] = []
    category: str = ""
    image_url: Optional[str] = None


class EventCreate(EventDetails):
    start: datetime
    end: datetime


class SeriesCreate(BaseModel):
    name: str
    recurrence: RecurrenceRule
    event: EventDetails
    first_start: datetime
    first_end: datetime


class SeriesPreview(BaseModel):
    recurrence: RecurrenceRule
    first_start: datetime
    first_end: datetime


class OccurrenceWindowOut(BaseModel):
    start: datetime
    end: datetime
    selected_date: date


class SeriesCreateResponse(BaseModel):
    series_id: str
    occurrence_ids: List[str]
    truncated: bool


class ReportCreate(BaseModel):
    reason: str = Field(min_length=1)


class MessageResponse(BaseModel):
    message: str
