from decimal import Decimal
from enum import Enum
from typing import List

from boxoffice.models.base import ApiModel


class SeatTier(str, Enum):
    PREMIUM = "premium"
    STANDARD = "standard"
    ECONOMY = "economy"


class Seat(ApiModel):
    id: int
    row: int
    column: int
    tier: SeatTier
    price: Decimal
    is_handicap: bool = False
    is_faculty_only: bool = False
    is_booked: bool = False


class Auditorium(ApiModel):
    id: int
    name: str
    seats: List[Seat] = []


class SeatClaim(ApiModel):
    event_id: str
    seat_id: int
    booked_seats: int
