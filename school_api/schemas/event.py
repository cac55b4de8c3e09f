from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, model_validator

from school_api.schemas.common import ORMModel, UTCDateTime
from school_api.schemas.enums import EventType, RSVPResponse


class EventCreateRequest(BaseModel):
    title: str = Field(min_length=1, max_length=255)
    description: str = Field(min_length=1)
    location: Optional[str] = Field(default=None, max_length=255)
    start_time: UTCDateTime
    end_time: UTCDateTime
    event_type: EventType = EventType.GENERAL
    class_id: Optional[int] = None
    rsvp_required: bool = False
    school_id: Optional[int] = None

    @model_validator(mode="after")
    def validate_times(self) -> "EventCreateRequest":
        if self.end_time <= self.start_time:
            raise ValueError("end_time must be after start_time")
        return self


class EventUpdateRequest(BaseModel):
    title: Optional[str] = Field(default=None, min_length=1, max_length=255)
    description: Optional[str] = Field(default=None, min_length=1)
    location: Optional[str] = Field(default=None, max_length=255)
    start_time: Optional[UTCDateTime] = None
    end_time: Optional[UTCDateTime] = None
    event_type: Optional[EventType] = None
    rsvp_required: Optional[bool] = None


class EventResponse(ORMModel):
    id: int
    school_id: int
    title: str
    description: str
    location: Optional[str] = None
    start_time: datetime
    end_time: datetime
    event_type: EventType
    class_id: Optional[int] = None
    rsvp_required: bool
    created_by_id: Optional[int] = None
    created_at: Optional[datetime] = None


class RSVPRequest(BaseModel):
    response: RSVPResponse


class RSVPResponseModel(ORMModel):
    id: int
    event_id: int
    user_id: int
    response: RSVPResponse
    responded_at: Optional[datetime] = None
