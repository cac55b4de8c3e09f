import re
from datetime import datetime, timezone
from typing import Annotated, Optional

from pydantic import AfterValidator, BaseModel, ConfigDict


def _to_naive_utc(value: datetime) -> datetime:
    """Stored datetimes are naive UTC; convert aware input before it reaches the database"""
    if value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


UTCDateTime = Annotated[datetime, AfterValidator(_to_naive_utc)]

TIME_PATTERN = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")


def validate_time_string(value: str) -> str:
    if not TIME_PATTERN.match(value):
        raise ValueError("Time must be in HH:MM format")
    return value


TimeString = Annotated[str, AfterValidator(validate_time_string)]


class ORMModel(BaseModel):
    model_config = ConfigDict(from_attributes=True)


class PaginationMeta(BaseModel):
    page: int
    limit: int
    total: int
    pages: int


class MessageResponse(BaseModel):
    message: str


class TimestampedResponse(ORMModel):
    id: int
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
