from datetime import datetime
from typing import Annotated

from pydantic import BaseModel, Field, field_validator, model_validator

from mainevents.core.utils import to_naive_utc
from mainevents.models.events import DEFAULT_EVENT_IMAGE, EventStatus, EventType, Visibility

Tag = Annotated[str, Field(min_length=1, max_length=20)]


# ---------- Event ----------
class EventCreate(BaseModel):
    name: str = Field(min_length=3, max_length=100)
    description: str = Field(min_length=10, max_length=1000)
    date: datetime
    end_date: datetime | None = Field(default=None, alias="endDate")
    duration: int | None = Field(default=None, ge=15, le=1440)
    location: str = Field(min_length=5, max_length=200)
    image: str = Field(default=DEFAULT_EVENT_IMAGE, min_length=1)
    organizer: str | None = Field(default=None, min_length=2, max_length=100)
    type: EventType = EventType.PUBLICO
    estado: EventStatus = EventStatus.ACTIVO
    capacidad: int = Field(ge=1, le=10000)
    price: float = Field(ge=0, le=10000)
    tags: list[Tag] = Field(default_factory=list, max_length=10)
    category: str | None = Field(default=None, max_length=50)
    visibility: Visibility = Visibility.PUBLICO
    url_streaming: str | None = Field(default=None, alias="urlStreaming")

    class Config:
        populate_by_name = True
        str_strip_whitespace = True

    @field_validator("date", "end_date")
    @classmethod
    def _naive_utc(cls, value):
        return to_naive_utc(value)

    @model_validator(mode="after")
    def _end_after_start(self):
        if self.end_date is not None and self.end_date <= self.date:
            raise ValueError("endDate must be after the start date")
        return self


class EventUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=3, max_length=100)
    description: str | None = Field(default=None, min_length=10, max_length=1000)
    date: datetime | None = None
    end_date: datetime | None = Field(default=None, alias="endDate")
    duration: int | None = Field(default=None, ge=15, le=1440)
    location: str | None = Field(default=None, min_length=5, max_length=200)
    image: str | None = Field(default=None, min_length=1)
    organizer: str | None = Field(default=None, min_length=2, max_length=100)
    type: EventType | None = None
    estado: EventStatus | None = None
    capacidad: int | None = Field(default=None, ge=1, le=10000)
    price: float | None = Field(default=None, ge=0, le=10000)
    tags: list[Tag] | None = Field(default=None, max_length=10)
    category: str | None = Field(default=None, max_length=50)
    visibility: Visibility | None = None
    url_streaming: str | None = Field(default=None, alias="urlStreaming")

    class Config:
        populate_by_name = True
        str_strip_whitespace = True

    @field_validator("date", "end_date")
    @classmethod
    def _naive_utc(cls, value):
        return to_naive_utc(value)


class AttendRequest(BaseModel):
    quantity: int = Field(ge=1, le=50)


class FavoriteRequest(BaseModel):
    event_id: int = Field(ge=1, alias="eventId")

    class Config:
        populate_by_name = True


class CommentRequest(BaseModel):
    event_id: int = Field(ge=1, alias="eventId")
    text: str = Field(min_length=1, max_length=500)

    class Config:
        populate_by_name = True
        str_strip_whitespace = True


class AttendeeOut(BaseModel):
    user_id: int
    quantity: int

    class Config:
        from_attributes = True


class CommentOut(BaseModel):
    id: int
    user_id: int
    text: str
    created_at: datetime

    class Config:
        from_attributes = True


class RatingOut(BaseModel):
    average: float
    count: int


class EventOut(BaseModel):
    id: int
    name: str
    description: str
    date: datetime
    end_date: datetime | None
    duration: int | None
    location: str
    image: str
    organizer: str
    type: str
    estado: str
    capacidad: int
    concurrentes: int
    available: int
    user_id: int
    price: float
    tags: list[str]
    category: str | None
    visibility: str
    url_streaming: str | None
    visitas: int
    rating: RatingOut
    attendees: list[AttendeeOut]
    favoritos: list[int]
    comments: list[CommentOut]
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class EventEnvelope(BaseModel):
    success: bool = True
    message: str
    event: EventOut


class EventListOut(BaseModel):
    success: bool = True
    count: int
    events: list[EventOut]


class EventPageOut(BaseModel):
    success: bool = True
    events: list[EventOut]
    total_pages: int
    current_page: int
    total: int


class AttendanceOut(BaseModel):
    success: bool = True
    message: str
    concurrentes: int
    available: int


class FavoriteOut(BaseModel):
    success: bool = True
    message: str
    favorited: bool


class MessageOut(BaseModel):
    success: bool = True
    message: str


class EventStatsOut(BaseModel):
    event_id: int
    capacidad: int
    concurrentes: int
    available: int
    attendee_count: int
    favorite_count: int
