"""Inventory ledger: the single choke point for seat availability.

Only the ledger flips a seat's ``is_booked`` flag and moves the event's
``booked_seats`` counter. The atomic read-check-write itself is delegated to
the store (per-seat locks in memory, conditional transactions in DynamoDB).
"""

import logging
from typing import Optional

from boxoffice.errors import BoxOfficeError
from boxoffice.models import Seat, SeatClaim, Ticket
from boxoffice.repositories.interfaces import EventRepository

logger = logging.getLogger(__name__)


class InventoryLedger:

    def __init__(self, store: EventRepository):
        self._store = store

    def claim_seat(self, event_id: str, seat_id: int, ticket: Optional[Ticket] = None) -> SeatClaim:
        """Mark the seat booked, optionally storing ``ticket`` in the same unit.

        Raises:
            NotFoundError: If the event or seat does not exist.
            SeatUnavailableError: If the seat is already booked.
        """
        try:
            claim = self._store.claim_seat(event_id, seat_id, ticket)
        except BoxOfficeError as e:
            logger.warning(f"Claim of seat {seat_id} for event {event_id} rejected: {e}")
            raise
        logger.info(f"Seat {seat_id} claimed for event {event_id} ({claim.booked_seats} booked)")
        return claim

    def release_seat(self, event_id: str, seat_id: int, ticket_id: Optional[str] = None,
                     user_id: Optional[str] = None) -> Seat:
        """Mark the seat available again, optionally invalidating ``ticket_id``.

        Releasing a seat that is not booked fails with NotBookedError and
        leaves the counter untouched.
        """
        try:
            seat = self._store.release_seat(event_id, seat_id, ticket_id, user_id)
        except BoxOfficeError as e:
            logger.warning(f"Release of seat {seat_id} for event {event_id} rejected: {e}")
            raise
        logger.info(f"Seat {seat_id} released for event {event_id}")
        return seat
