from datetime import date as dt_date
from datetime import datetime
from datetime import time as dt_time
from decimal import Decimal
from typing import Dict, List, Optional

from pydantic import Field, field_validator

from boxoffice.models.base import ApiModel
from boxoffice.models.seat import Auditorium, SeatTier


class SeatLayoutCreate(ApiModel):
    """Optional seat layout supplied with an admin-created event.

    Either ``seat_prices`` (one seat per entry, tier by price rank) or
    ``tier_prices`` (default tier split over ``capacity`` seats) may be given.
    """

    columns: Optional[int] = Field(default=None, ge=1)
    seat_prices: Optional[List[Decimal]] = None
    tier_prices: Optional[Dict[SeatTier, Decimal]] = None


class EventCreate(ApiModel):
    # Required fields are checked by the registry so that missing input is
    # reported as a validation failure rather than a schema error.
    name: Optional[str] = None
    venue: Optional[str] = None
    date: Optional[dt_date] = None
    time: Optional[dt_time] = None
    capacity: Optional[int] = None
    description: str = ""
    category: str = ""
    auditorium_name: Optional[str] = None
    layout: Optional[SeatLayoutCreate] = None

    @field_validator("name", "venue", "date", "time", "capacity", mode="before")
    @classmethod
    def blank_as_missing(cls, v):
        if isinstance(v, str) and not v.strip():
            return None
        return v


class Event(ApiModel):
    id: str
    name: str
    venue: str
    date: dt_date
    time: dt_time
    capacity: int
    booked_seats: int = 0
    description: str = ""
    category: str = ""
    created_at: datetime


class EventDetail(Event):
    auditoriums: List[Auditorium] = []


class EventDeleteResponse(ApiModel):
    message: str
    event_id: str
