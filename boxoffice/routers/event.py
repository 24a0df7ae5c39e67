import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Path, Query

from boxoffice.dependencies import get_catalog, get_registry, get_user_directory
from boxoffice.errors import (GENERIC_FAILURE_MESSAGE, BoxOfficeError,
                              to_http_exception)
from boxoffice.models import Event, EventDetail, Seat
from boxoffice.services.catalog import SeatCatalog, eligible_seats
from boxoffice.services.registry import EventRegistry
from boxoffice.services.users import UserDirectory

logger = logging.getLogger(__name__)

router = APIRouter(tags=["events"])


@router.get("/events", response_model=List[Event])
def list_events(registry: EventRegistry = Depends(get_registry)):
    """List all events ordered by date and time, without seats"""
    try:
        return registry.list_events()
    except BoxOfficeError as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Unexpected error listing events: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=GENERIC_FAILURE_MESSAGE)


@router.get("/events/{event_id}", response_model=EventDetail)
def get_event(
    event_id: str = Path(..., description="The event ID"),
    registry: EventRegistry = Depends(get_registry),
):
    """Get an event with its auditoriums and seats"""
    try:
        return registry.get_event_with_seats(event_id)
    except BoxOfficeError as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Unexpected error fetching event {event_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=GENERIC_FAILURE_MESSAGE)


@router.get("/events/{event_id}/seats", response_model=List[Seat])
def list_event_seats(
    event_id: str = Path(..., description="The event ID"),
    user_id: Optional[str] = Query(default=None, alias="userId", description="Filter to seats this user may pick"),
    available_only: bool = Query(default=False, alias="availableOnly"),
    catalog: SeatCatalog = Depends(get_catalog),
    users: UserDirectory = Depends(get_user_directory),
):
    """Flat seat list for an event.

    With ``userId`` the list is narrowed to the seats that user is eligible
    for (faculty-only and handicap rules).
    """
    try:
        seats = catalog.list_seats(event_id)
        if user_id:
            seats = eligible_seats(users.get_user(user_id), seats)
        if available_only:
            seats = [seat for seat in seats if not seat.is_booked]
        return seats
    except BoxOfficeError as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Unexpected error listing seats for event {event_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=GENERIC_FAILURE_MESSAGE)
