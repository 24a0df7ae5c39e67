import logging
from decimal import Decimal

from boxoffice.errors import ForbiddenError, InternalError, NotFoundError
from boxoffice.models import (Event, Role, Seat, Ticket, TicketAction,
                              TicketHistoryEntry, TicketStatus, User)
from boxoffice.repositories.interfaces import BoxOfficeStore, TicketRepository
from boxoffice.services.ledger import InventoryLedger
from boxoffice.utils import (generate_alternate_id, generate_qr_code,
                             generate_ticket_id, to_money, utcnow)

logger = logging.getLogger(__name__)

MAX_CODE_ATTEMPTS = 10


def final_price(price: Decimal, user: User) -> Decimal:
    """Seat price after the buyer discount, rounded to cents"""
    return to_money(Decimal(price) * (Decimal("1") - user.effective_discount))


class TicketIssuer:
    """Prices tickets and hands out unique scan codes."""

    def __init__(self, tickets: TicketRepository):
        self._tickets = tickets

    def _unique_code(self, generate, name: str) -> str:
        for _ in range(MAX_CODE_ATTEMPTS):
            code = generate()
            if not self._tickets.code_in_use(**{name: code}):
                return code
        raise InternalError(f"Could not generate a unique {name}")

    def issue_ticket(self, user: User, event: Event, seat: Seat) -> Ticket:
        """Build a valid ticket for ``seat``; it is stored by the seat claim."""
        return Ticket(
            id=generate_ticket_id(),
            user_id=user.id,
            event_id=event.id,
            seat_id=seat.id,
            original_price=to_money(seat.price),
            final_price=final_price(seat.price, user),
            qr_code=self._unique_code(generate_qr_code, "qr_code"),
            alternate_id=self._unique_code(generate_alternate_id, "alternate_id"),
            status=TicketStatus.VALID,
            is_faculty_only=seat.is_faculty_only,
            created_at=utcnow(),
        )


class BookingService:
    """Claim a seat and issue its ticket as one unit of work."""

    def __init__(self, store: BoxOfficeStore, ledger: InventoryLedger, issuer: TicketIssuer):
        self._store = store
        self._ledger = ledger
        self._issuer = issuer

    def book(self, user_id: str, event_id: str, seat_id: int) -> Ticket:
        """
        Raises:
            NotFoundError: If the user, event or seat does not exist.
            ForbiddenError: If the user is an admin.
            SeatUnavailableError: If the seat is already booked.
        """
        user = self._store.get_user(user_id)
        if user is None:
            raise NotFoundError(f"User with ID {user_id} not found")
        if user.role == Role.ADMIN:
            raise ForbiddenError("Admins cannot purchase tickets")

        event = self._store.get_event(event_id)
        if event is None:
            raise NotFoundError(f"Event with ID {event_id} not found")
        seat = self._store.get_seat(event_id, seat_id)
        if seat is None:
            raise NotFoundError(f"Seat {seat_id} not found for event {event_id}")

        ticket = self._issuer.issue_ticket(user, event, seat)
        self._ledger.claim_seat(event_id, seat_id, ticket)

        self._store.add_history(TicketHistoryEntry(
            ticket_id=ticket.id,
            action=TicketAction.CREATED,
            performed_by=user_id,
            details=f"Seat {seat_id} for event {event_id}",
            created_at=utcnow(),
        ))
        logger.info(f"Ticket {ticket.id} issued to {user_id} for seat {seat_id} of event {event_id}")
        return ticket
