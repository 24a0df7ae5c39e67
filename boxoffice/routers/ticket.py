import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Path, status

from boxoffice.dependencies import (get_booking_service,
                                    get_current_admin_user, get_lifecycle)
from boxoffice.errors import (GENERIC_FAILURE_MESSAGE, BoxOfficeError,
                              ForbiddenError, NotFoundError, to_http_exception)
from boxoffice.models import Ticket, TicketHistoryEntry, ValidationResult
from boxoffice.models.ticket import (BookRequest, ReturnRequest,
                                     ReturnResponse, TransferRequest,
                                     TransferResponse, ValidateRequest)
from boxoffice.services.issuer import BookingService
from boxoffice.services.lifecycle import TicketLifecycle

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/tickets", tags=["tickets"])


def _not_owned(ticket_id: str) -> HTTPException:
    return HTTPException(
        status_code=404,
        detail=f"Ticket {ticket_id} not found or not owned by user",
    )


@router.post("/book", response_model=Ticket, status_code=status.HTTP_201_CREATED)
def book_ticket(request: BookRequest, booking: BookingService = Depends(get_booking_service)):
    """Claim a seat and issue its ticket"""
    try:
        return booking.book(request.user_id, request.event_id, request.seat_id)
    except BoxOfficeError as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Unexpected error booking seat {request.seat_id} for event {request.event_id}: {e}",
                     exc_info=True)
        raise HTTPException(status_code=500, detail=GENERIC_FAILURE_MESSAGE)


@router.get("/user/{user_id}", response_model=List[Ticket])
def get_user_tickets(
    user_id: str = Path(..., description="The user ID"),
    lifecycle: TicketLifecycle = Depends(get_lifecycle),
):
    """The user's wallet, newest first; returned tickets are left out"""
    try:
        return lifecycle.list_user_tickets(user_id)
    except BoxOfficeError as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Unexpected error listing tickets for user {user_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=GENERIC_FAILURE_MESSAGE)


@router.post("/return", response_model=ReturnResponse)
def return_ticket(request: ReturnRequest, lifecycle: TicketLifecycle = Depends(get_lifecycle)):
    """Return a valid ticket; the seat goes back on sale and the price paid is refunded"""
    try:
        return lifecycle.return_ticket(request.ticket_id, request.user_id)
    except (NotFoundError, ForbiddenError):
        raise _not_owned(request.ticket_id)
    except BoxOfficeError as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Unexpected error returning ticket {request.ticket_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=GENERIC_FAILURE_MESSAGE)


@router.post("/transfer", response_model=TransferResponse)
def transfer_ticket(request: TransferRequest, lifecycle: TicketLifecycle = Depends(get_lifecycle)):
    """Hand a valid ticket over to another email address"""
    try:
        return lifecycle.transfer(request.ticket_id, request.user_id, request.target_email)
    except (NotFoundError, ForbiddenError):
        raise _not_owned(request.ticket_id)
    except BoxOfficeError as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Unexpected error transferring ticket {request.ticket_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=GENERIC_FAILURE_MESSAGE)


@router.post("/validate", response_model=ValidationResult)
def validate_ticket(request: ValidateRequest, lifecycle: TicketLifecycle = Depends(get_lifecycle)):
    """Scan a ticket at the door by QR code or alternate ID.

    Unknown, used and returned tickets still answer 200 with ``valid`` false.
    """
    try:
        return lifecycle.validate(request.scan_id, request.enforcer_id)
    except BoxOfficeError as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Unexpected error validating scan {request.scan_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=GENERIC_FAILURE_MESSAGE)


@router.get(
    "/{ticket_id}/history",
    response_model=List[TicketHistoryEntry],
    dependencies=[Depends(get_current_admin_user)],
)
def get_ticket_history(
    ticket_id: str = Path(..., description="The ticket ID"),
    lifecycle: TicketLifecycle = Depends(get_lifecycle),
):
    """Audit trail of a ticket, oldest first"""
    try:
        return lifecycle.history(ticket_id)
    except BoxOfficeError as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Unexpected error fetching history for ticket {ticket_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=GENERIC_FAILURE_MESSAGE)
