import logging
from datetime import time
from typing import List, Optional

from boxoffice.errors import NotFoundError, ValidationError
from boxoffice.models import Event, EventCreate, EventDetail
from boxoffice.repositories.interfaces import EventRepository
from boxoffice.services.catalog import SeatTemplate, build_auditorium
from boxoffice.utils import generate_event_id, utcnow

logger = logging.getLogger(__name__)


def template_for(fields: EventCreate) -> SeatTemplate:
    """Pick the seat template for an admin-created event"""
    layout = fields.layout
    if layout is not None and layout.seat_prices:
        template = SeatTemplate.from_prices(layout.seat_prices, layout.columns)
        if template.count != fields.capacity:
            raise ValidationError(
                f"Capacity {fields.capacity} does not match the {template.count} seat prices given"
            )
        return template

    return SeatTemplate.default(
        fields.capacity,
        columns=(layout.columns if layout and layout.columns else 20),
        prices=(layout.tier_prices if layout else None),
    )


def validate_event_fields(fields: EventCreate) -> None:
    missing = []
    for name in ("name", "venue", "date", "capacity"):
        value = getattr(fields, name)
        if value is None or (isinstance(value, str) and not value.strip()):
            missing.append(name)
    if missing:
        raise ValidationError(f"Missing required event fields: {', '.join(missing)}")
    if fields.capacity <= 0:
        raise ValidationError("Capacity must be greater than 0")


class EventRegistry:
    """Events with their auditoriums and seats."""

    def __init__(self, store: EventRepository):
        self._store = store

    def create_event(self, fields: EventCreate, seat_template: Optional[SeatTemplate] = None) -> EventDetail:
        """Validate input, then store the event with one default auditorium.

        Nothing is written when validation fails.
        """
        validate_event_fields(fields)
        template = seat_template or template_for(fields)
        venue = fields.venue.strip()
        auditorium = build_auditorium(1, fields.auditorium_name or f"{venue} Main Area", template)

        event = Event(
            id=generate_event_id(),
            name=fields.name.strip(),
            venue=venue,
            date=fields.date,
            time=fields.time or time(0, 0),
            capacity=len(auditorium.seats),
            booked_seats=0,
            description=fields.description,
            category=fields.category,
            created_at=utcnow(),
        )
        created = self._store.add_event(event, [auditorium])
        logger.info(f"Event {event.id} ({event.name}) created with {event.capacity} seats")
        return created

    def delete_event(self, event_id: str) -> Event:
        """Delete the event, its auditoriums and seats.

        Blocked with ConflictError while any of its tickets is still valid.
        """
        event = self._store.delete_event(event_id)
        logger.info(f"Event {event_id} ({event.name}) deleted")
        return event

    def list_events(self) -> List[Event]:
        return self._store.list_events()

    def get_event(self, event_id: str) -> Event:
        event = self._store.get_event(event_id)
        if event is None:
            raise NotFoundError(f"Event with ID {event_id} not found")
        return event

    def get_event_with_seats(self, event_id: str) -> EventDetail:
        event = self._store.get_event_detail(event_id)
        if event is None:
            raise NotFoundError(f"Event with ID {event_id} not found")
        return event
