"""Ticket lifecycle: valid -> used | invalid | transferred.

``used``, ``invalid`` and ``transferred`` are terminal. Every status change
is a compare-and-set in the store, so two concurrent scans of the same
ticket grant entry once.
"""

import logging
from typing import List, Optional

from boxoffice.errors import (ForbiddenError, InvalidStateError,
                              NotFoundError, ValidationError)
from boxoffice.models import (Role, Ticket, TicketAction, TicketHistoryEntry,
                              TicketStatus, User, ValidationResult)
from boxoffice.models.ticket import (ReturnResponse, ScannedTicket,
                                     TransferResponse)
from boxoffice.repositories.interfaces import BoxOfficeStore
from boxoffice.services.ledger import InventoryLedger
from boxoffice.utils import utcnow

logger = logging.getLogger(__name__)

MESSAGE_NOT_FOUND = "Ticket ID not found."
MESSAGE_USED = "Ticket already scanned and used for entry."
MESSAGE_INVALID = "Ticket has been returned/cancelled and is no longer valid."
MESSAGE_GRANTED = "SUCCESS! Ticket is VALID. Entry granted."

SCANNER_ROLES = (Role.ENFORCER, Role.ADMIN)


class TicketLifecycle:

    def __init__(self, store: BoxOfficeStore, ledger: InventoryLedger):
        self._store = store
        self._ledger = ledger

    def _record(self, ticket_id: Optional[str], action: TicketAction, performed_by: str, details: str = "") -> None:
        self._store.add_history(TicketHistoryEntry(
            ticket_id=ticket_id,
            action=action,
            performed_by=performed_by,
            details=details,
            created_at=utcnow(),
        ))

    def _owned_valid_ticket(self, ticket_id: str, user_id: str, action: str) -> Ticket:
        ticket = self._store.get_ticket(ticket_id)
        if ticket is None:
            raise NotFoundError(f"Ticket {ticket_id} not found")
        if ticket.user_id != user_id:
            raise ForbiddenError(f"Ticket {ticket_id} does not belong to user {user_id}")
        if ticket.status != TicketStatus.VALID:
            raise InvalidStateError(ticket_id, ticket.status.value, action)
        return ticket

    def _scanned(self, ticket: Ticket) -> ScannedTicket:
        event = self._store.get_event(ticket.event_id)
        seat = self._store.get_seat(ticket.event_id, ticket.seat_id)
        return ScannedTicket(
            id=ticket.id,
            event_name=event.name if event else "Unknown event",
            venue=event.venue if event else "",
            date=event.date.isoformat() if event else "",
            time=event.time.isoformat() if event else "",
            seat_id=ticket.seat_id,
            row=seat.row if seat else None,
            column=seat.column if seat else None,
            is_faculty_only=ticket.is_faculty_only,
        )

    def _scanner(self, enforcer_id: str) -> User:
        enforcer = self._store.get_user(enforcer_id)
        if enforcer is None:
            raise NotFoundError(f"User with ID {enforcer_id} not found")
        if enforcer.role not in SCANNER_ROLES:
            raise ForbiddenError("Only enforcers can validate tickets")
        return enforcer

    def validate(self, scan_id: str, enforcer_id: str) -> ValidationResult:
        """Scan a QR code or alternate id at the door.

        An unknown, used or returned ticket is a normal outcome, not an error.
        """
        self._scanner(enforcer_id)
        scan_id = scan_id.strip()

        ticket = self._store.find_by_scan_id(scan_id)
        if ticket is None:
            self._record(None, TicketAction.SCAN_REJECTED, enforcer_id, f"Unknown scan id {scan_id}")
            logger.warning(f"Scan {scan_id} by {enforcer_id}: ticket not found")
            return ValidationResult(valid=False, status=TicketStatus.INVALID, message=MESSAGE_NOT_FOUND)

        if ticket.status == TicketStatus.VALID:
            try:
                ticket = self._store.transition_ticket(
                    ticket.id, TicketStatus.VALID, TicketStatus.USED, {"used_at": utcnow()}
                )
            except InvalidStateError:
                # Lost the race to another scan; report what it left behind
                ticket = self._store.get_ticket(ticket.id)
            else:
                self._record(ticket.id, TicketAction.USED, enforcer_id)
                logger.info(f"Ticket {ticket.id} admitted by {enforcer_id}")
                return ValidationResult(
                    valid=True, status=TicketStatus.VALID, message=MESSAGE_GRANTED,
                    ticket=self._scanned(ticket),
                )

        if ticket.status == TicketStatus.USED:
            status, message = TicketStatus.USED, MESSAGE_USED
        else:
            status, message = TicketStatus.INVALID, MESSAGE_INVALID
        self._record(ticket.id, TicketAction.SCAN_REJECTED, enforcer_id, f"Ticket status {ticket.status.value}")
        logger.warning(f"Scan of ticket {ticket.id} by {enforcer_id} rejected: {ticket.status.value}")
        return ValidationResult(valid=False, status=status, message=message, ticket=self._scanned(ticket))

    def return_ticket(self, ticket_id: str, user_id: str) -> ReturnResponse:
        """Invalidate the ticket and free its seat; the refund is the price paid."""
        ticket = self._owned_valid_ticket(ticket_id, user_id, "returned")
        self._ledger.release_seat(ticket.event_id, ticket.seat_id, ticket_id=ticket.id, user_id=user_id)

        self._record(ticket.id, TicketAction.RETURNED, user_id, f"Refund {ticket.final_price}")
        logger.info(f"Ticket {ticket.id} returned by {user_id}, refund {ticket.final_price}")
        return ReturnResponse(ticket_id=ticket.id, refund=ticket.final_price)

    def transfer(self, ticket_id: str, user_id: str, target_email: str) -> TransferResponse:
        """Hand the ticket over to ``target_email``.

        The seat stays booked and no new ticket is issued to the recipient.
        """
        target_email = (target_email or "").strip()
        if "@" not in target_email:
            raise ValidationError("Please enter a valid email address")

        self._owned_valid_ticket(ticket_id, user_id, "transferred")
        ticket = self._store.transition_ticket(
            ticket_id, TicketStatus.VALID, TicketStatus.TRANSFERRED,
            {"transferred_to_email": target_email, "transferred_at": utcnow()},
            user_id=user_id,
        )

        self._record(ticket.id, TicketAction.TRANSFERRED, user_id, f"Transferred to {target_email}")
        logger.info(f"Ticket {ticket.id} transferred by {user_id} to {target_email}")
        return TransferResponse(ticket_id=ticket.id, target_email=target_email)

    def list_user_tickets(self, user_id: str) -> List[Ticket]:
        """The user's wallet: every ticket except returned ones, newest first"""
        if self._store.get_user(user_id) is None:
            raise NotFoundError(f"User with ID {user_id} not found")
        tickets = [
            ticket for ticket in self._store.list_tickets_for_user(user_id)
            if ticket.status != TicketStatus.INVALID
        ]
        tickets.sort(key=lambda t: t.created_at, reverse=True)
        return tickets

    def history(self, ticket_id: str) -> List[TicketHistoryEntry]:
        if self._store.get_ticket(ticket_id) is None:
            raise NotFoundError(f"Ticket {ticket_id} not found")
        entries = self._store.list_history(ticket_id)
        entries.sort(key=lambda e: e.created_at)
        return entries
