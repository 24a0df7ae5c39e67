"""Store interfaces (repository pattern).

Stores must be swappable and return domain models. The seat claim and seat
release operations are the atomic units of the inventory: each
implementation guarantees that a seat is claimed at most once, that the
event's booked-seat counter moves together with the seat flag, and that a
ticket passed along is stored (or invalidated) in the same unit.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from boxoffice.models import (Auditorium, Event, EventDetail, Seat, SeatClaim,
                              Ticket, TicketHistoryEntry, TicketStatus, User)


class EventRepository(ABC):
    """Events, their auditoriums and the per-seat inventory."""

    @abstractmethod
    def add_event(self, event: Event, auditoriums: List[Auditorium]) -> EventDetail:
        ...

    @abstractmethod
    def list_events(self) -> List[Event]:
        """Return all events ordered by (date, time) ascending."""
        ...

    @abstractmethod
    def get_event(self, event_id: str) -> Optional[Event]:
        """Return the event without seats, or None."""
        ...

    @abstractmethod
    def get_event_detail(self, event_id: str) -> Optional[EventDetail]:
        """Return the event with nested auditoriums and seats, or None."""
        ...

    @abstractmethod
    def get_seat(self, event_id: str, seat_id: int) -> Optional[Seat]:
        ...

    @abstractmethod
    def delete_event(self, event_id: str) -> Event:
        """Remove the event, its auditoriums and seats.

        Raises:
            NotFoundError: If the event does not exist.
            ConflictError: If a ticket for the event is still valid.
        """
        ...

    @abstractmethod
    def claim_seat(self, event_id: str, seat_id: int, ticket: Optional[Ticket] = None) -> SeatClaim:
        """Atomically mark the seat booked, bump the counter and store the ticket.

        Raises:
            NotFoundError: If the event or seat does not exist.
            SeatUnavailableError: If the seat is already booked.
        """
        ...

    @abstractmethod
    def release_seat(self, event_id: str, seat_id: int, ticket_id: Optional[str] = None,
                     user_id: Optional[str] = None) -> Seat:
        """Atomically mark the seat available, drop the counter and invalidate the ticket.

        Raises:
            NotFoundError: If the event, seat or ticket does not exist.
            NotBookedError: If the seat is not booked.
            ForbiddenError: If ``user_id`` does not own the ticket.
            InvalidStateError: If the ticket is not valid.
        """
        ...


class TicketRepository(ABC):
    """Ticket records, the scan index and the audit trail."""

    @abstractmethod
    def get_ticket(self, ticket_id: str) -> Optional[Ticket]:
        ...

    @abstractmethod
    def find_by_scan_id(self, scan_id: str) -> Optional[Ticket]:
        """Match ``qr_code`` case-insensitively or ``alternate_id`` exactly."""
        ...

    @abstractmethod
    def list_tickets_for_user(self, user_id: str) -> List[Ticket]:
        ...

    @abstractmethod
    def list_tickets_for_event(self, event_id: str) -> List[Ticket]:
        ...

    @abstractmethod
    def code_in_use(self, qr_code: Optional[str] = None, alternate_id: Optional[str] = None) -> bool:
        ...

    @abstractmethod
    def transition_ticket(self, ticket_id: str, expected: TicketStatus, new: TicketStatus,
                          changes: Optional[Dict[str, Any]] = None,
                          user_id: Optional[str] = None) -> Ticket:
        """Compare-and-set the ticket status.

        Raises:
            NotFoundError: If the ticket does not exist.
            ForbiddenError: If ``user_id`` is given and does not own the ticket.
            InvalidStateError: If the current status is not ``expected``.
        """
        ...

    @abstractmethod
    def add_history(self, entry: TicketHistoryEntry) -> None:
        ...

    @abstractmethod
    def list_history(self, ticket_id: str) -> List[TicketHistoryEntry]:
        ...


class UserRepository(ABC):

    @abstractmethod
    def add_user(self, user: User) -> User:
        """Raises ConflictError if the username or email is taken."""
        ...

    @abstractmethod
    def get_user(self, user_id: str) -> Optional[User]:
        ...

    @abstractmethod
    def list_users(self) -> List[User]:
        ...


class BoxOfficeStore(EventRepository, TicketRepository, UserRepository):
    """A single backend implementing every repository.

    Claims and releases touch seats and tickets together, so one store
    owns both.
    """

    name = "abstract"

    def describe(self) -> Dict[str, Any]:
        return {"status": "ok", "storage": self.name}
