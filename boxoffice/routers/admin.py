import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Path, status

from boxoffice.dependencies import (get_current_admin_user, get_registry,
                                    get_user_directory)
from boxoffice.errors import (GENERIC_FAILURE_MESSAGE, BoxOfficeError,
                              to_http_exception)
from boxoffice.models import EventCreate, EventDetail, User
from boxoffice.models.event import EventDeleteResponse
from boxoffice.services.registry import EventRegistry
from boxoffice.services.users import UserDirectory

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["admin"])


@router.post("/events", response_model=EventDetail, status_code=status.HTTP_201_CREATED)
def create_event(
    event_data: EventCreate,
    registry: EventRegistry = Depends(get_registry),
    current_admin: User = Depends(get_current_admin_user),
):
    """Create an event with its default auditorium and seats"""
    try:
        event = registry.create_event(event_data)
        logger.info(f"Event {event.id} created by admin ID {current_admin.id}.")
        return event
    except BoxOfficeError as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Unexpected error creating event: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=GENERIC_FAILURE_MESSAGE)


@router.delete("/events/{event_id}", response_model=EventDeleteResponse)
def delete_event(
    event_id: str = Path(..., description="The event ID"),
    registry: EventRegistry = Depends(get_registry),
    current_admin: User = Depends(get_current_admin_user),
):
    """Delete an event with no outstanding valid tickets"""
    try:
        registry.delete_event(event_id)
        logger.info(f"Event {event_id} deleted by admin ID {current_admin.id}.")
        return EventDeleteResponse(message="Event deleted successfully", event_id=event_id)
    except BoxOfficeError as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Unexpected error deleting event {event_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=GENERIC_FAILURE_MESSAGE)


@router.get("/users", response_model=List[User], dependencies=[Depends(get_current_admin_user)])
def list_users(users: UserDirectory = Depends(get_user_directory)):
    """List all registered users, newest first"""
    try:
        return users.list_users()
    except BoxOfficeError as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Unexpected error listing users: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=GENERIC_FAILURE_MESSAGE)
