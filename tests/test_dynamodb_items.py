from datetime import date, time
from decimal import Decimal

import pytest
from boto3.dynamodb.types import TypeDeserializer

from boxoffice.errors import (ConflictError, ForbiddenError, InternalError,
                              InvalidStateError, NotBookedError,
                              NotFoundError, SeatUnavailableError)
from boxoffice.models import Event, Ticket, TicketStatus
from boxoffice.repositories.dynamodb import (DynamoDBStore, ticket_to_item,
                                             to_attribute_map)
from boxoffice.services.catalog import SeatTemplate, build_auditorium
from boxoffice.utils import (create_claim_transaction_items,
                             create_release_transaction_items, utcnow)

TABLE = "box-office-test"
EVENT_ID = "event-1234abcd"

_deserializer = TypeDeserializer()


def make_ticket(**overrides):
    fields = dict(
        id="tkt_0123456789ab",
        user_id="student001",
        event_id=EVENT_ID,
        seat_id=2,
        original_price=Decimal("20.00"),
        final_price=Decimal("18.00"),
        qr_code="A1B2C3D4E5F6",
        alternate_id="042817",
        status=TicketStatus.VALID,
        created_at=utcnow(),
    )
    fields.update(overrides)
    return Ticket(**fields)


def _plain_values(values):
    return {key: _deserializer.deserialize(value) for key, value in values.items()}


def _holds(condition, item, values, names=None):
    """Evaluate the condition expressions the store and its transactions use"""
    if not condition:
        return True
    for clause in condition.split(" AND "):
        if clause.startswith("attribute_exists("):
            ok = item is not None and clause[17:-1] in item
        elif clause.startswith("attribute_not_exists("):
            ok = item is None or clause[21:-1] not in item
        else:
            attr, op, ref = clause.split(" ")
            attr = (names or {}).get(attr, attr)
            actual = None if item is None else item.get(attr)
            if op == "=":
                ok = actual == values[ref]
            else:
                ok = actual is not None and actual > values[ref]
        if not ok:
            return False
    return True


def _apply(expression, item, values, names=None):
    names = names or {}
    set_part, _, add_part = expression.partition(" ADD ")
    if set_part.startswith("ADD "):
        set_part, add_part = "", set_part[4:]
    for assignment in filter(None, set_part[4:].split(", ")):
        attr, ref = assignment.split(" = ")
        item[names.get(attr, attr)] = values[ref]
    if add_part:
        attr, ref = add_part.split(" ")
        item[attr] = item.get(attr, 0) + values[ref]


def conditional_failure():
    return {
        "status": "error",
        "error": "The conditional request failed",
        "code": "ConditionalCheckFailedException",
    }


def cancelled(*reasons):
    return {"status": "error", "error": "TransactionCanceledException", "reasons": list(reasons)}


class FakeDynamoDBClient:
    """Single table held in a dict, checking conditions like DynamoDB would.

    ``before_update`` / ``after_update`` run once around the next conditional
    update so tests can interleave a claim with an event delete.
    """

    table_name = TABLE

    def __init__(self):
        self.items = {}
        self.transactions = []
        self.transact_result = None
        self.before_update = None
        self.after_update = None

    def put_item(self, item, condition_expression=None):
        key = (item["pk"], item["sk"])
        if not _holds(condition_expression, self.items.get(key), {}):
            return conditional_failure()
        self.items[key] = dict(item)
        return {"status": "success"}

    def get_item(self, pk, sk):
        item = self.items.get((pk, sk))
        if item is None:
            return {"status": "not_found", "item": None}
        return {"status": "success", "item": dict(item)}

    def query_items(self, pk, sk_prefix=None):
        items = [
            dict(item) for (item_pk, sk), item in sorted(self.items.items())
            if item_pk == pk and sk.startswith(sk_prefix or "")
        ]
        return {"status": "success", "items": items, "count": len(items)}

    def scan_items(self, filter_expression=None, expression_values=None, expression_names=None):
        clauses = [clause.split(" = ") for clause in filter_expression.split(" AND ")]
        items = [
            dict(item) for item in self.items.values()
            if all(item.get(attr) == expression_values[ref] for attr, ref in clauses)
        ]
        return {"status": "success", "items": items, "count": len(items)}

    def delete_items(self, keys):
        for key in keys:
            self.items.pop((key["pk"], key["sk"]), None)
        return {"status": "success", "count": len(keys)}

    def update_item_conditional(self, pk, sk, update_expression, condition_expression,
                                expression_values, expression_names=None):
        if self.before_update is not None:
            hook, self.before_update = self.before_update, None
            hook()
        item = self.items.get((pk, sk))
        if not _holds(condition_expression, item, expression_values, expression_names):
            return conditional_failure()
        _apply(update_expression, item, expression_values, expression_names)
        if self.after_update is not None:
            hook, self.after_update = self.after_update, None
            hook()
        return {"status": "success", "item": dict(item)}

    def transact_write(self, transact_items):
        self.transactions.append(transact_items)
        if self.transact_result is not None:
            return self.transact_result

        reasons = []
        for entry in transact_items:
            (kind, op), = entry.items()
            key = _plain_values(op["Item"] if kind == "Put" else op["Key"])
            current = self.items.get((key["pk"], key["sk"]))
            values = _plain_values(op.get("ExpressionAttributeValues", {}))
            holds = _holds(op.get("ConditionExpression"), current, values, op.get("ExpressionAttributeNames"))
            reasons.append("None" if holds else "ConditionalCheckFailed")
        if "ConditionalCheckFailed" in reasons:
            return cancelled(*reasons)

        for entry in transact_items:
            (kind, op), = entry.items()
            if kind == "Put":
                item = _plain_values(op["Item"])
                self.items[(item["pk"], item["sk"])] = item
            else:
                key = _plain_values(op["Key"])
                _apply(
                    op["UpdateExpression"],
                    self.items[(key["pk"], key["sk"])],
                    _plain_values(op.get("ExpressionAttributeValues", {})),
                    op.get("ExpressionAttributeNames"),
                )
        return {"status": "success"}


@pytest.fixture
def fake_db():
    return FakeDynamoDBClient()


@pytest.fixture
def dynamo_store(fake_db):
    """Store holding a three-seat event priced 30/20/12"""
    store = DynamoDBStore(db_client=fake_db)
    event = Event(id=EVENT_ID, name="Jazz Night", venue="Recital Hall", date=date(2025, 12, 12),
                  time=time(20, 0), capacity=3, created_at=utcnow())
    store.add_event(event, [build_auditorium(1, "Concert Hall", SeatTemplate.from_prices([30, 20, 12]))])
    return store


def test_claim_items_without_ticket():
    items = create_claim_transaction_items(TABLE, EVENT_ID, 7)

    assert len(items) == 2
    seat, event = items[0]["Update"], items[1]["Update"]
    assert seat["Key"] == {"pk": {"S": EVENT_ID}, "sk": {"S": "SEAT#000007"}}
    assert seat["ConditionExpression"] == "attribute_exists(pk) AND is_booked = :available"
    assert seat["ExpressionAttributeValues"][":available"] == {"BOOL": False}
    assert event["Key"]["sk"] == {"S": "EVENT"}
    assert event["UpdateExpression"] == "ADD booked_seats :one"
    assert event["ConditionExpression"] == "attribute_exists(pk) AND attribute_not_exists(deleting)"


def test_claim_items_store_ticket_and_code_guards():
    ticket_item = to_attribute_map(ticket_to_item(make_ticket()))

    items = create_claim_transaction_items(TABLE, EVENT_ID, 2, ticket_item)

    assert len(items) == 5
    put = items[2]["Put"]
    assert put["Item"]["pk"] == {"S": "tkt_0123456789ab"}
    assert put["Item"]["final_price"] == {"N": "18.00"}
    assert put["Item"]["status"] == {"S": "valid"}
    assert "transferred_at" not in put["Item"]
    guards = [item["Put"]["Item"]["pk"]["S"] for item in items[3:]]
    assert guards == ["QR#A1B2C3D4E5F6", "ALT#042817"]
    assert all(item["Put"]["ConditionExpression"] == "attribute_not_exists(pk)" for item in items[2:])


def test_release_items_guard_counter_and_ticket():
    items = create_release_transaction_items(TABLE, EVENT_ID, 2, "tkt_0123456789ab", "student001")

    assert len(items) == 3
    assert items[0]["Update"]["ConditionExpression"] == "attribute_exists(pk) AND is_booked = :booked"
    assert "booked_seats > :zero" in items[1]["Update"]["ConditionExpression"]
    ticket = items[2]["Update"]
    assert ticket["ConditionExpression"] == "#status = :valid AND user_id = :user_id"
    assert ticket["ExpressionAttributeValues"][":invalid"] == {"S": "invalid"}


def test_release_items_without_ticket():
    assert len(create_release_transaction_items(TABLE, EVENT_ID, 2)) == 2


def test_add_event_stores_seats(dynamo_store):
    detail = dynamo_store.get_event_detail(EVENT_ID)

    assert [seat.price for seat in detail.auditoriums[0].seats] == [
        Decimal("30.00"), Decimal("20.00"), Decimal("12.00"),
    ]
    assert dynamo_store.list_events()[0].id == EVENT_ID


def test_claim_and_return(dynamo_store, fake_db):
    claim = dynamo_store.claim_seat(EVENT_ID, 2, make_ticket())

    assert claim.booked_seats == 1
    assert len(fake_db.transactions[0]) == 5
    assert dynamo_store.get_seat(EVENT_ID, 2).is_booked
    assert dynamo_store.get_ticket("tkt_0123456789ab").final_price == Decimal("18.00")

    seat = dynamo_store.release_seat(EVENT_ID, 2, "tkt_0123456789ab", "student001")

    assert seat.is_booked is False
    assert dynamo_store.get_event(EVENT_ID).booked_seats == 0
    assert dynamo_store.get_ticket("tkt_0123456789ab").status == TicketStatus.INVALID


def test_claim_booked_seat(dynamo_store):
    dynamo_store.claim_seat(EVENT_ID, 2)

    with pytest.raises(SeatUnavailableError):
        dynamo_store.claim_seat(EVENT_ID, 2, make_ticket())
    assert dynamo_store.get_event(EVENT_ID).booked_seats == 1
    assert dynamo_store.get_ticket("tkt_0123456789ab") is None


def test_claim_on_missing_event(dynamo_store, fake_db):
    del fake_db.items[(EVENT_ID, "EVENT")]

    with pytest.raises(NotFoundError):
        dynamo_store.claim_seat(EVENT_ID, 2, make_ticket())
    assert not dynamo_store.get_seat(EVENT_ID, 2).is_booked


def test_claim_with_issued_code(dynamo_store):
    dynamo_store.claim_seat(EVENT_ID, 1, make_ticket(id="tkt_aaaaaaaaaaaa", seat_id=1, alternate_id="111111"))

    with pytest.raises(ConflictError, match="code already issued"):
        dynamo_store.claim_seat(EVENT_ID, 2, make_ticket())
    assert not dynamo_store.get_seat(EVENT_ID, 2).is_booked


def test_claim_storage_error(dynamo_store, fake_db):
    fake_db.transact_result = {"status": "error", "error": "throttled"}

    with pytest.raises(InternalError):
        dynamo_store.claim_seat(EVENT_ID, 2)


def test_claim_unknown_seat(dynamo_store, fake_db):
    with pytest.raises(NotFoundError):
        dynamo_store.claim_seat(EVENT_ID, 99)
    assert fake_db.transactions == []


def test_release_free_seat(dynamo_store):
    with pytest.raises(NotBookedError):
        dynamo_store.release_seat(EVENT_ID, 2)
    assert dynamo_store.get_event(EVENT_ID).booked_seats == 0


def test_release_used_ticket(dynamo_store):
    dynamo_store.claim_seat(EVENT_ID, 2, make_ticket())
    dynamo_store.transition_ticket("tkt_0123456789ab", TicketStatus.VALID, TicketStatus.USED)

    with pytest.raises(InvalidStateError):
        dynamo_store.release_seat(EVENT_ID, 2, "tkt_0123456789ab", "student001")
    assert dynamo_store.get_event(EVENT_ID).booked_seats == 1


def test_transition_ticket(dynamo_store):
    dynamo_store.claim_seat(EVENT_ID, 2, make_ticket())

    ticket = dynamo_store.transition_ticket(
        "tkt_0123456789ab", TicketStatus.VALID, TicketStatus.USED, {"used_at": utcnow()}
    )

    assert ticket.status == TicketStatus.USED
    assert ticket.used_at is not None
    with pytest.raises(InvalidStateError):
        dynamo_store.transition_ticket("tkt_0123456789ab", TicketStatus.VALID, TicketStatus.USED)


def test_transition_ticket_owner_and_missing(dynamo_store):
    dynamo_store.claim_seat(EVENT_ID, 2, make_ticket())

    with pytest.raises(ForbiddenError):
        dynamo_store.transition_ticket(
            "tkt_0123456789ab", TicketStatus.VALID, TicketStatus.TRANSFERRED, user_id="enforcer001"
        )
    with pytest.raises(NotFoundError):
        dynamo_store.transition_ticket("tkt_000000000000", TicketStatus.VALID, TicketStatus.USED)
    assert dynamo_store.get_ticket("tkt_0123456789ab").status == TicketStatus.VALID


def test_find_by_scan_id(dynamo_store):
    dynamo_store.claim_seat(EVENT_ID, 2, make_ticket())

    assert dynamo_store.find_by_scan_id("a1b2c3d4e5f6").id == "tkt_0123456789ab"
    assert dynamo_store.find_by_scan_id("042817").id == "tkt_0123456789ab"
    assert dynamo_store.find_by_scan_id("FFFFFFFFFFFF") is None
    assert dynamo_store.code_in_use(qr_code="a1b2c3d4e5f6")
    assert not dynamo_store.code_in_use(alternate_id="999999")


def test_delete_event(dynamo_store, fake_db):
    event = dynamo_store.delete_event(EVENT_ID)

    assert event.id == EVENT_ID
    assert dynamo_store.get_event(EVENT_ID) is None
    assert dynamo_store.get_seat(EVENT_ID, 1) is None
    assert dynamo_store.list_events() == []
    assert not any(pk == EVENT_ID for pk, _ in fake_db.items)


def test_delete_missing_event(dynamo_store):
    with pytest.raises(NotFoundError):
        dynamo_store.delete_event("event-missing")


def test_delete_blocked_by_valid_ticket(dynamo_store, fake_db):
    dynamo_store.claim_seat(EVENT_ID, 2, make_ticket())

    with pytest.raises(ConflictError, match="valid ticket"):
        dynamo_store.delete_event(EVENT_ID)
    assert "deleting" not in fake_db.items[(EVENT_ID, "EVENT")]

    dynamo_store.release_seat(EVENT_ID, 2, "tkt_0123456789ab", "student001")
    dynamo_store.delete_event(EVENT_ID)
    assert dynamo_store.get_event(EVENT_ID) is None


def test_delete_fails_when_claim_lands_first(dynamo_store, fake_db):
    fake_db.before_update = lambda: dynamo_store.claim_seat(EVENT_ID, 1)

    with pytest.raises(ConflictError, match="changed during deletion"):
        dynamo_store.delete_event(EVENT_ID)
    assert dynamo_store.get_event(EVENT_ID).booked_seats == 1
    assert "deleting" not in fake_db.items[(EVENT_ID, "EVENT")]


def test_claim_rejected_once_delete_starts(dynamo_store, fake_db):
    outcome = {}

    def claim_during_delete():
        try:
            dynamo_store.claim_seat(EVENT_ID, 2, make_ticket())
            outcome["claim"] = "committed"
        except ConflictError as e:
            outcome["claim"] = str(e)

    fake_db.after_update = claim_during_delete
    dynamo_store.delete_event(EVENT_ID)

    assert outcome["claim"].endswith("is being deleted")
    assert dynamo_store.get_event(EVENT_ID) is None
    assert dynamo_store.list_tickets_for_event(EVENT_ID) == []
    assert dynamo_store.find_by_scan_id("A1B2C3D4E5F6") is None
