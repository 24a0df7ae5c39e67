"""DynamoDB single-table store.

Claims and releases are ``TransactWriteItems`` calls guarded by condition
expressions, so two concurrent claims on one seat cannot both commit.
"""

import logging
import uuid
from datetime import date, datetime, time
from enum import Enum
from typing import Any, Dict, List, Optional

from boto3.dynamodb.types import TypeSerializer

from boxoffice.database import DynamoDBClient
from boxoffice.errors import (ConflictError, ForbiddenError, InternalError,
                              InvalidStateError, NotBookedError,
                              NotFoundError, SeatUnavailableError)
from boxoffice.models import (Auditorium, Event, EventDetail, Seat, SeatClaim,
                              Ticket, TicketHistoryEntry, TicketStatus, User)
from boxoffice.repositories.interfaces import BoxOfficeStore
from boxoffice.utils import (create_claim_transaction_items,
                             create_release_transaction_items,
                             get_current_timestamp, seat_sort_key)

logger = logging.getLogger(__name__)

CONDITION_FAILED = "ConditionalCheckFailed"

_serializer = TypeSerializer()


def to_attribute_map(item: Dict[str, Any]) -> Dict[str, Any]:
    """Convert a plain item into the low-level typed format used by transactions"""
    return {key: _serializer.serialize(value) for key, value in item.items()}


def _plain(value: Any) -> Any:
    """Make model values storable: dates as ISO strings, enums as their values"""
    if isinstance(value, (datetime, date, time)):
        return value.isoformat()
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, dict):
        return {k: _plain(v) for k, v in value.items()}
    return value


def event_to_item(event: Event, auditoriums: List[Auditorium]) -> Dict[str, Any]:
    item = {key: _plain(value) for key, value in event.model_dump().items()}
    item.update({
        "pk": event.id,
        "sk": "EVENT",
        "entity": "EVENT",
        "auditoriums": [
            {"id": auditorium.id, "name": auditorium.name} for auditorium in auditoriums
        ],
    })
    return item


def seat_to_item(event_id: str, auditorium_id: int, seat: Seat) -> Dict[str, Any]:
    item = {key: _plain(value) for key, value in seat.model_dump().items()}
    item.update({
        "pk": event_id,
        "sk": seat_sort_key(seat.id),
        "entity": "SEAT",
        "auditorium_id": auditorium_id,
        "version": 0,
    })
    return item


def ticket_to_item(ticket: Ticket) -> Dict[str, Any]:
    item = {
        key: _plain(value)
        for key, value in ticket.model_dump().items()
        if value is not None
    }
    item.update({"pk": ticket.id, "sk": "TICKET", "entity": "TICKET"})
    return item


def user_to_item(user: User) -> Dict[str, Any]:
    item = {key: _plain(value) for key, value in user.model_dump().items()}
    item.update({"pk": user.id, "sk": "USER", "entity": "USER"})
    return item


def _int(value: Any) -> int:
    return int(value) if value is not None else 0


def item_to_event(item: Dict[str, Any]) -> Event:
    return Event(
        id=item["id"],
        name=item["name"],
        venue=item["venue"],
        date=item["date"],
        time=item["time"],
        capacity=_int(item.get("capacity")),
        booked_seats=_int(item.get("booked_seats")),
        description=item.get("description", ""),
        category=item.get("category", ""),
        created_at=item["created_at"],
    )


def item_to_seat(item: Dict[str, Any]) -> Seat:
    return Seat(
        id=_int(item["id"]),
        row=_int(item["row"]),
        column=_int(item["column"]),
        tier=item["tier"],
        price=item["price"],
        is_handicap=item.get("is_handicap", False),
        is_faculty_only=item.get("is_faculty_only", False),
        is_booked=item.get("is_booked", False),
    )


def item_to_ticket(item: Dict[str, Any]) -> Ticket:
    fields = {key: value for key, value in item.items() if key not in ("pk", "sk", "entity")}
    fields["seat_id"] = _int(fields["seat_id"])
    return Ticket(**fields)


def item_to_user(item: Dict[str, Any]) -> User:
    fields = {key: value for key, value in item.items() if key not in ("pk", "sk", "entity")}
    return User(**fields)


class DynamoDBStore(BoxOfficeStore):
    name = "dynamodb"

    def __init__(self, db_client: Optional[DynamoDBClient] = None):
        self.db = db_client or DynamoDBClient()

    def _check(self, result: Dict[str, Any], action: str) -> Dict[str, Any]:
        if result["status"] == "error":
            logger.error(f"DynamoDB {action} failed: {result['error']}")
            raise InternalError(f"Failed to {action}")
        return result

    # Events

    def add_event(self, event: Event, auditoriums: List[Auditorium]) -> EventDetail:
        # Seats first: the event only becomes visible once its seats exist
        for auditorium in auditoriums:
            for seat in auditorium.seats:
                self._check(self.db.put_item(seat_to_item(event.id, auditorium.id, seat)), "create seat")
        self._check(
            self.db.put_item(event_to_item(event, auditoriums), "attribute_not_exists(pk)"),
            "create event",
        )
        return EventDetail(**event.model_dump(), auditoriums=auditoriums)

    def list_events(self) -> List[Event]:
        result = self._check(self.db.scan_items("sk = :sk", {":sk": "EVENT"}), "list events")
        events = [item_to_event(item) for item in result["items"]]
        events.sort(key=lambda e: (e.date, e.time))
        return events

    def get_event(self, event_id: str) -> Optional[Event]:
        result = self._check(self.db.get_item(event_id, "EVENT"), "fetch event")
        if result["status"] == "not_found":
            return None
        return item_to_event(result["item"])

    def get_event_detail(self, event_id: str) -> Optional[EventDetail]:
        result = self._check(self.db.query_items(event_id), "fetch event seats")

        event_item = None
        seats_by_auditorium: Dict[int, List[Seat]] = {}
        for item in result["items"]:
            if item.get("sk") == "EVENT":
                event_item = item
            elif item.get("entity") == "SEAT":
                seats_by_auditorium.setdefault(_int(item.get("auditorium_id")), []).append(item_to_seat(item))

        if event_item is None:
            return None

        auditoriums = [
            Auditorium(
                id=_int(aud["id"]),
                name=aud["name"],
                seats=sorted(seats_by_auditorium.get(_int(aud["id"]), []), key=lambda s: s.id),
            )
            for aud in event_item.get("auditoriums", [])
        ]
        return EventDetail(**item_to_event(event_item).model_dump(), auditoriums=auditoriums)

    def get_seat(self, event_id: str, seat_id: int) -> Optional[Seat]:
        result = self._check(self.db.get_item(event_id, seat_sort_key(seat_id)), "fetch seat")
        if result["status"] == "not_found":
            return None
        return item_to_seat(result["item"])

    def delete_event(self, event_id: str) -> Event:
        event = self.get_event(event_id)
        if event is None:
            raise NotFoundError(f"Event with ID {event_id} not found")

        outstanding = [
            ticket for ticket in self.list_tickets_for_event(event_id)
            if ticket.status == TicketStatus.VALID
        ]
        if outstanding:
            raise ConflictError(
                f"Event {event_id} still has {len(outstanding)} valid ticket(s). "
                "Return or cancel them before deleting the event."
            )

        # The counter check fails the delete if a claim committed since the read;
        # once set, the deleting flag fails every later claim
        result = self.db.update_item_conditional(
            event_id, "EVENT",
            "SET deleting = :true",
            "attribute_exists(pk) AND booked_seats = :expected",
            {":true": True, ":expected": event.booked_seats},
        )
        if result["status"] == "error":
            if result.get("code") == "ConditionalCheckFailedException":
                raise ConflictError(f"Event {event_id} changed during deletion. Please try again.")
            self._check(result, "delete event")

        seats = self._check(self.db.query_items(event_id), "fetch event seats")
        keys = [{"pk": item["pk"], "sk": item["sk"]} for item in seats["items"]]
        self._check(self.db.delete_items(keys), "delete event")
        return event

    # Inventory

    def claim_seat(self, event_id: str, seat_id: int, ticket: Optional[Ticket] = None) -> SeatClaim:
        if self.get_seat(event_id, seat_id) is None:
            raise NotFoundError(f"Seat {seat_id} not found for event {event_id}")

        ticket_item = to_attribute_map(ticket_to_item(ticket)) if ticket is not None else None
        transact_items = create_claim_transaction_items(self.db.table_name, event_id, seat_id, ticket_item)
        result = self.db.transact_write(transact_items)

        if result["status"] == "error":
            reasons = result.get("reasons", [])
            if not reasons:
                self._check(result, "claim seat")
            if len(reasons) > 1 and reasons[1] == CONDITION_FAILED:
                if self.get_event(event_id) is None:
                    raise NotFoundError(f"Event with ID {event_id} not found")
                raise ConflictError(f"Event {event_id} is being deleted")
            if reasons[0] == CONDITION_FAILED:
                raise SeatUnavailableError(event_id, seat_id)
            if CONDITION_FAILED in reasons[2:]:
                raise ConflictError("Ticket code already issued")
            raise ConflictError("Transaction was cancelled due to concurrent modifications. Please try again.")

        event = self.get_event(event_id)
        return SeatClaim(event_id=event_id, seat_id=seat_id, booked_seats=event.booked_seats if event else 0)

    def release_seat(self, event_id: str, seat_id: int, ticket_id: Optional[str] = None,
                     user_id: Optional[str] = None) -> Seat:
        seat = self.get_seat(event_id, seat_id)
        if seat is None:
            raise NotFoundError(f"Seat {seat_id} not found for event {event_id}")
        if ticket_id is not None:
            ticket = self.get_ticket(ticket_id)
            if ticket is None:
                raise NotFoundError(f"Ticket {ticket_id} not found")
            if ticket.event_id != event_id or ticket.seat_id != seat_id:
                raise ConflictError(f"Ticket {ticket_id} does not hold seat {seat_id}")

        transact_items = create_release_transaction_items(self.db.table_name, event_id, seat_id, ticket_id, user_id)
        result = self.db.transact_write(transact_items)

        if result["status"] == "error":
            reasons = result.get("reasons", [])
            if not reasons:
                self._check(result, "release seat")
            if reasons[0] == CONDITION_FAILED or (len(reasons) > 1 and reasons[1] == CONDITION_FAILED):
                raise NotBookedError(event_id, seat_id)
            if len(reasons) > 2 and reasons[2] == CONDITION_FAILED:
                self._raise_transition_failure(ticket_id, TicketStatus.VALID, user_id, "returned")
            raise ConflictError("Transaction was cancelled due to concurrent modifications. Please try again.")

        return seat.model_copy(update={"is_booked": False})

    # Tickets

    def get_ticket(self, ticket_id: str) -> Optional[Ticket]:
        result = self._check(self.db.get_item(ticket_id, "TICKET"), "fetch ticket")
        if result["status"] == "not_found":
            return None
        return item_to_ticket(result["item"])

    def _guard_ticket_id(self, pk: str) -> Optional[str]:
        result = self._check(self.db.get_item(pk, "TICKET_CODE"), "look up ticket code")
        if result["status"] == "not_found":
            return None
        return result["item"]["ticket_id"]

    def find_by_scan_id(self, scan_id: str) -> Optional[Ticket]:
        ticket_id = self._guard_ticket_id(f"QR#{scan_id.upper()}") or self._guard_ticket_id(f"ALT#{scan_id}")
        if ticket_id is None:
            return None
        return self.get_ticket(ticket_id)

    def _scan_tickets(self, attribute: str, value: str) -> List[Ticket]:
        result = self._check(
            self.db.scan_items(f"sk = :sk AND {attribute} = :value", {":sk": "TICKET", ":value": value}),
            "list tickets",
        )
        return [item_to_ticket(item) for item in result["items"]]

    def list_tickets_for_user(self, user_id: str) -> List[Ticket]:
        return self._scan_tickets("user_id", user_id)

    def list_tickets_for_event(self, event_id: str) -> List[Ticket]:
        return self._scan_tickets("event_id", event_id)

    def code_in_use(self, qr_code: Optional[str] = None, alternate_id: Optional[str] = None) -> bool:
        if qr_code is not None and self._guard_ticket_id(f"QR#{qr_code.upper()}"):
            return True
        return alternate_id is not None and self._guard_ticket_id(f"ALT#{alternate_id}") is not None

    def transition_ticket(self, ticket_id: str, expected: TicketStatus, new: TicketStatus,
                          changes: Optional[Dict[str, Any]] = None,
                          user_id: Optional[str] = None) -> Ticket:
        values = {":new": new.value, ":expected": expected.value}
        assignments = ["#status = :new"]
        for index, (key, value) in enumerate((changes or {}).items()):
            assignments.append(f"{key} = :c{index}")
            values[f":c{index}"] = _plain(value)

        condition = "attribute_exists(pk) AND #status = :expected"
        if user_id is not None:
            condition += " AND user_id = :user_id"
            values[":user_id"] = user_id

        result = self.db.update_item_conditional(
            ticket_id, "TICKET",
            "SET " + ", ".join(assignments),
            condition,
            values,
            expression_names={"#status": "status"},
        )
        if result["status"] == "error":
            if result.get("code") == "ConditionalCheckFailedException":
                self._raise_transition_failure(ticket_id, expected, user_id, new.value)
            self._check(result, "update ticket")
        return item_to_ticket(result["item"])

    def _raise_transition_failure(self, ticket_id: str, expected: TicketStatus,
                                  user_id: Optional[str], action: str) -> None:
        ticket = self.get_ticket(ticket_id)
        if ticket is None:
            raise NotFoundError(f"Ticket {ticket_id} not found")
        if user_id is not None and ticket.user_id != user_id:
            raise ForbiddenError(f"Ticket {ticket_id} does not belong to user {user_id}")
        raise InvalidStateError(ticket_id, ticket.status.value, action)

    def add_history(self, entry: TicketHistoryEntry) -> None:
        item = {key: _plain(value) for key, value in entry.model_dump().items() if value is not None}
        item.update({
            "pk": entry.ticket_id or "SCAN",
            "sk": f"HISTORY#{get_current_timestamp()}#{uuid.uuid4().hex[:8]}",
            "entity": "HISTORY",
        })
        self._check(self.db.put_item(item), "record ticket history")

    def list_history(self, ticket_id: str) -> List[TicketHistoryEntry]:
        result = self._check(self.db.query_items(ticket_id, "HISTORY#"), "fetch ticket history")
        return [
            TicketHistoryEntry(**{k: v for k, v in item.items() if k not in ("pk", "sk", "entity")})
            for item in result["items"]
        ]

    # Users

    def add_user(self, user: User) -> User:
        transact_items = [
            {
                "Put": {
                    "TableName": self.db.table_name,
                    "Item": to_attribute_map(user_to_item(user)),
                    "ConditionExpression": "attribute_not_exists(pk)"
                }
            }
        ]
        for prefix, value in (("USERNAME#", user.username), ("EMAIL#", user.email.lower())):
            transact_items.append({
                "Put": {
                    "TableName": self.db.table_name,
                    "Item": to_attribute_map({"pk": prefix + value, "sk": "USER_KEY", "user_id": user.id}),
                    "ConditionExpression": "attribute_not_exists(pk)"
                }
            })

        result = self.db.transact_write(transact_items)
        if result["status"] == "error":
            if CONDITION_FAILED in result.get("reasons", []):
                raise ConflictError("Username or email already exists")
            self._check(result, "create user")
        return user

    def get_user(self, user_id: str) -> Optional[User]:
        result = self._check(self.db.get_item(user_id, "USER"), "fetch user")
        if result["status"] == "not_found":
            return None
        return item_to_user(result["item"])

    def list_users(self) -> List[User]:
        result = self._check(self.db.scan_items("sk = :sk", {":sk": "USER"}), "list users")
        users = [item_to_user(item) for item in result["items"]]
        users.sort(key=lambda u: u.created_at, reverse=True)
        return users

    def describe(self) -> Dict[str, Any]:
        connection = self.db.test_connection()
        return {"status": "ok" if connection["status"] == "connected" else "degraded",
                "storage": self.name,
                "table": connection}
