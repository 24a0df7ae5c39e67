"""In-memory store.

Lock order is always seat -> ticket -> event, and each lock is held only for
the read-check-write of a single operation. Seats of one event never block
each other except for the short counter update under the event lock.
"""

import threading
from typing import Any, Dict, Hashable, List, Optional

from boxoffice.errors import (ConflictError, ForbiddenError, InvalidStateError,
                              NotBookedError, NotFoundError,
                              SeatUnavailableError)
from boxoffice.models import (Auditorium, Event, EventDetail, Seat, SeatClaim,
                              Ticket, TicketHistoryEntry, TicketStatus, User)
from boxoffice.repositories.interfaces import BoxOfficeStore
from boxoffice.utils import utcnow


class KeyedLocks:
    """One lock per key, created on first use.

    Seat locks are dropped with their event. Ticket and event locks are kept
    for the life of the store.
    """

    def __init__(self):
        self._guard = threading.Lock()
        self._locks: Dict[Hashable, threading.Lock] = {}

    def __call__(self, key: Hashable) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = self._locks[key] = threading.Lock()
            return lock

    def discard(self, keys) -> None:
        with self._guard:
            for key in keys:
                self._locks.pop(key, None)

    def __len__(self) -> int:
        return len(self._locks)


class InMemoryStore(BoxOfficeStore):
    name = "in-memory"

    def __init__(self):
        self._events: Dict[str, Event] = {}
        # event_id -> [(auditorium id, name, seat ids in display order)]
        self._auditoriums: Dict[str, List[tuple]] = {}
        self._seats: Dict[str, Dict[int, Seat]] = {}
        self._tickets: Dict[str, Ticket] = {}
        self._qr_index: Dict[str, str] = {}
        self._alt_index: Dict[str, str] = {}
        self._history: List[TicketHistoryEntry] = []
        self._users: Dict[str, User] = {}

        self._seat_locks = KeyedLocks()
        self._ticket_locks = KeyedLocks()
        self._event_locks = KeyedLocks()
        self._index_lock = threading.Lock()
        self._history_lock = threading.Lock()
        self._users_lock = threading.Lock()

    # Events

    def add_event(self, event: Event, auditoriums: List[Auditorium]) -> EventDetail:
        with self._event_locks(event.id):
            self._seats[event.id] = {
                seat.id: seat.model_copy()
                for auditorium in auditoriums
                for seat in auditorium.seats
            }
            self._auditoriums[event.id] = [
                (auditorium.id, auditorium.name, [seat.id for seat in auditorium.seats])
                for auditorium in auditoriums
            ]
            self._events[event.id] = event.model_copy()
        return self.get_event_detail(event.id)

    def list_events(self) -> List[Event]:
        events = [event.model_copy() for event in list(self._events.values())]
        events.sort(key=lambda e: (e.date, e.time))
        return events

    def get_event(self, event_id: str) -> Optional[Event]:
        event = self._events.get(event_id)
        return event.model_copy() if event else None

    def get_event_detail(self, event_id: str) -> Optional[EventDetail]:
        event = self._events.get(event_id)
        if event is None:
            return None
        seats = self._seats.get(event_id, {})
        auditoriums = [
            Auditorium(id=aud_id, name=name, seats=[seats[seat_id].model_copy() for seat_id in seat_ids])
            for aud_id, name, seat_ids in self._auditoriums.get(event_id, [])
        ]
        return EventDetail(**event.model_dump(), auditoriums=auditoriums)

    def get_seat(self, event_id: str, seat_id: int) -> Optional[Seat]:
        seat = self._seats.get(event_id, {}).get(seat_id)
        return seat.model_copy() if seat else None

    def delete_event(self, event_id: str) -> Event:
        with self._event_locks(event_id):
            event = self._events.get(event_id)
            if event is None:
                raise NotFoundError(f"Event with ID {event_id} not found")

            outstanding = [
                ticket.id for ticket in list(self._tickets.values())
                if ticket.event_id == event_id and ticket.status == TicketStatus.VALID
            ]
            if outstanding:
                raise ConflictError(
                    f"Event {event_id} still has {len(outstanding)} valid ticket(s). "
                    "Return or cancel them before deleting the event."
                )

            del self._events[event_id]
            self._auditoriums.pop(event_id, None)
            seats = self._seats.pop(event_id, {})
            # A claim still waiting on one of these fails on the missing event
            self._seat_locks.discard((event_id, seat_id) for seat_id in seats)
        return event

    # Inventory

    def claim_seat(self, event_id: str, seat_id: int, ticket: Optional[Ticket] = None) -> SeatClaim:
        with self._seat_locks((event_id, seat_id)):
            seat = self._seats.get(event_id, {}).get(seat_id)
            if seat is None:
                raise NotFoundError(f"Seat {seat_id} not found for event {event_id}")
            if seat.is_booked:
                raise SeatUnavailableError(event_id, seat_id)

            with self._event_locks(event_id):
                event = self._events.get(event_id)
                if event is None:
                    raise NotFoundError(f"Event with ID {event_id} not found")

                if ticket is not None:
                    self._insert_ticket(ticket)

                self._seats[event_id][seat_id] = seat.model_copy(update={"is_booked": True})
                booked_seats = event.booked_seats + 1
                self._events[event_id] = event.model_copy(update={"booked_seats": booked_seats})

        return SeatClaim(event_id=event_id, seat_id=seat_id, booked_seats=booked_seats)

    def release_seat(self, event_id: str, seat_id: int, ticket_id: Optional[str] = None,
                     user_id: Optional[str] = None) -> Seat:
        with self._seat_locks((event_id, seat_id)):
            seat = self._seats.get(event_id, {}).get(seat_id)
            if seat is None:
                raise NotFoundError(f"Seat {seat_id} not found for event {event_id}")
            if not seat.is_booked:
                raise NotBookedError(event_id, seat_id)

            if ticket_id is None:
                return self._release(event_id, seat)

            with self._ticket_locks(ticket_id):
                ticket = self._checked_ticket(ticket_id, TicketStatus.VALID, user_id, "returned")
                if ticket.event_id != event_id or ticket.seat_id != seat_id:
                    raise ConflictError(f"Ticket {ticket_id} does not hold seat {seat_id}")
                released = self._release(event_id, seat)
                self._tickets[ticket_id] = ticket.model_copy(
                    update={"status": TicketStatus.INVALID, "returned_at": utcnow()}
                )
                return released

    def _release(self, event_id: str, seat: Seat) -> Seat:
        with self._event_locks(event_id):
            event = self._events.get(event_id)
            if event is None:
                raise NotFoundError(f"Event with ID {event_id} not found")
            if event.booked_seats <= 0:
                raise NotBookedError(event_id, seat.id)

            released = seat.model_copy(update={"is_booked": False})
            self._seats[event_id][seat.id] = released
            self._events[event_id] = event.model_copy(update={"booked_seats": event.booked_seats - 1})
        return released.model_copy()

    # Tickets

    def _insert_ticket(self, ticket: Ticket) -> None:
        with self._index_lock:
            if ticket.id in self._tickets:
                raise ConflictError(f"Ticket {ticket.id} already exists")
            if ticket.qr_code in self._qr_index or ticket.alternate_id in self._alt_index:
                raise ConflictError("Ticket code already issued")
            self._tickets[ticket.id] = ticket.model_copy()
            self._qr_index[ticket.qr_code] = ticket.id
            self._alt_index[ticket.alternate_id] = ticket.id

    def _checked_ticket(self, ticket_id: str, expected: TicketStatus, user_id: Optional[str],
                        action: str) -> Ticket:
        ticket = self._tickets.get(ticket_id)
        if ticket is None:
            raise NotFoundError(f"Ticket {ticket_id} not found")
        if user_id is not None and ticket.user_id != user_id:
            raise ForbiddenError(f"Ticket {ticket_id} does not belong to user {user_id}")
        if ticket.status != expected:
            raise InvalidStateError(ticket_id, ticket.status.value, action)
        return ticket

    def get_ticket(self, ticket_id: str) -> Optional[Ticket]:
        ticket = self._tickets.get(ticket_id)
        return ticket.model_copy() if ticket else None

    def find_by_scan_id(self, scan_id: str) -> Optional[Ticket]:
        ticket_id = self._qr_index.get(scan_id.upper()) or self._alt_index.get(scan_id)
        if ticket_id is None:
            return None
        return self.get_ticket(ticket_id)

    def list_tickets_for_user(self, user_id: str) -> List[Ticket]:
        return [t.model_copy() for t in list(self._tickets.values()) if t.user_id == user_id]

    def list_tickets_for_event(self, event_id: str) -> List[Ticket]:
        return [t.model_copy() for t in list(self._tickets.values()) if t.event_id == event_id]

    def code_in_use(self, qr_code: Optional[str] = None, alternate_id: Optional[str] = None) -> bool:
        if qr_code is not None and qr_code.upper() in self._qr_index:
            return True
        return alternate_id is not None and alternate_id in self._alt_index

    def transition_ticket(self, ticket_id: str, expected: TicketStatus, new: TicketStatus,
                          changes: Optional[Dict[str, Any]] = None,
                          user_id: Optional[str] = None) -> Ticket:
        with self._ticket_locks(ticket_id):
            ticket = self._checked_ticket(ticket_id, expected, user_id, new.value)
            update = dict(changes or {})
            update["status"] = new
            updated = ticket.model_copy(update=update)
            self._tickets[ticket_id] = updated
        return updated.model_copy()

    def add_history(self, entry: TicketHistoryEntry) -> None:
        with self._history_lock:
            self._history.append(entry.model_copy())

    def list_history(self, ticket_id: str) -> List[TicketHistoryEntry]:
        with self._history_lock:
            return [entry.model_copy() for entry in self._history if entry.ticket_id == ticket_id]

    # Users

    def add_user(self, user: User) -> User:
        with self._users_lock:
            for existing in self._users.values():
                if existing.username == user.username or existing.email.lower() == user.email.lower():
                    raise ConflictError("Username or email already exists")
            self._users[user.id] = user.model_copy()
        return user

    def get_user(self, user_id: str) -> Optional[User]:
        user = self._users.get(user_id)
        return user.model_copy() if user else None

    def list_users(self) -> List[User]:
        users = [user.model_copy() for user in list(self._users.values())]
        users.sort(key=lambda u: u.created_at, reverse=True)
        return users

    def describe(self) -> Dict[str, Any]:
        return {
            "status": "ok",
            "storage": self.name,
            "events": len(self._events),
            "seats": sum(len(seats) for seats in self._seats.values()),
            "users": len(self._users),
        }
