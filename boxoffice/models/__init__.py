from boxoffice.models.event import Event, EventCreate, EventDetail, SeatLayoutCreate
from boxoffice.models.seat import Auditorium, Seat, SeatClaim, SeatTier
from boxoffice.models.ticket import (Ticket, TicketAction, TicketHistoryEntry,
                                     TicketStatus, ValidationResult)
from boxoffice.models.user import Role, SpecialAccommodations, User, UserCreate

__all__ = [
    "Auditorium",
    "Event",
    "EventCreate",
    "EventDetail",
    "Role",
    "Seat",
    "SeatClaim",
    "SeatLayoutCreate",
    "SeatTier",
    "SpecialAccommodations",
    "Ticket",
    "TicketAction",
    "TicketHistoryEntry",
    "TicketStatus",
    "User",
    "UserCreate",
    "ValidationResult",
]
