import secrets
import uuid
from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Dict, List, Optional

CENT = Decimal("0.01")


def generate_event_id() -> str:
    """Generate a unique event ID"""
    return f"event-{str(uuid.uuid4())[:8]}"


def generate_user_id() -> str:
    """Generate a unique user ID"""
    return f"usr_{secrets.token_hex(6)}"


def generate_ticket_id() -> str:
    """Generate a unique ticket ID"""
    return f"tkt_{secrets.token_hex(6)}"


def generate_qr_code() -> str:
    """12 uppercase hex characters"""
    return secrets.token_hex(6).upper()


def generate_alternate_id() -> str:
    """6-digit zero-padded numeric string"""
    return f"{secrets.randbelow(1_000_000):06d}"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def get_current_timestamp() -> str:
    """Get current timestamp in ISO format"""
    return utcnow().isoformat()


def to_money(value: Any) -> Decimal:
    """Round a price to currency precision (half-up)"""
    return Decimal(str(value)).quantize(CENT, rounding=ROUND_HALF_UP)


# DynamoDB transaction items. Key layout of the single table:
#   event     pk=<event_id>       sk=EVENT
#   seat      pk=<event_id>       sk=SEAT#<seat_id:06d>
#   ticket    pk=<ticket_id>      sk=TICKET
#   qr guard  pk=QR#<qr_code>     sk=TICKET_CODE
#   alt guard pk=ALT#<alt_id>     sk=TICKET_CODE
#   history   pk=<ticket_id|SCAN> sk=HISTORY#<timestamp>#<uuid>
#   user      pk=<user_id>        sk=USER


def seat_sort_key(seat_id: int) -> str:
    return f"SEAT#{seat_id:06d}"


def create_claim_transaction_items(table_name: str, event_id: str, seat_id: int,
                                   ticket_item: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
    """Create transaction items for claiming a seat (and storing its ticket).

    Item order matters: cancellation reasons are reported per index, so the
    seat update is always first and the event counter second.
    """
    current_time = get_current_timestamp()

    transact_items = [
        {
            "Update": {
                "TableName": table_name,
                "Key": {
                    "pk": {"S": event_id},
                    "sk": {"S": seat_sort_key(seat_id)}
                },
                "UpdateExpression": "SET is_booked = :booked, updated_at = :updated_at ADD version :one",
                "ConditionExpression": "attribute_exists(pk) AND is_booked = :available",
                "ExpressionAttributeValues": {
                    ":booked": {"BOOL": True},
                    ":available": {"BOOL": False},
                    ":one": {"N": "1"},
                    ":updated_at": {"S": current_time}
                }
            }
        },
        {
            "Update": {
                "TableName": table_name,
                "Key": {
                    "pk": {"S": event_id},
                    "sk": {"S": "EVENT"}
                },
                "UpdateExpression": "ADD booked_seats :one",
                "ConditionExpression": "attribute_exists(pk) AND attribute_not_exists(deleting)",
                "ExpressionAttributeValues": {
                    ":one": {"N": "1"}
                }
            }
        }
    ]

    if ticket_item is not None:
        transact_items.append({
            "Put": {
                "TableName": table_name,
                "Item": ticket_item,
                "ConditionExpression": "attribute_not_exists(pk)"
            }
        })
        # Guard items make qr_code and alternate_id unique across tickets
        for prefix, attribute in (("QR#", "qr_code"), ("ALT#", "alternate_id")):
            transact_items.append({
                "Put": {
                    "TableName": table_name,
                    "Item": {
                        "pk": {"S": prefix + ticket_item[attribute]["S"]},
                        "sk": {"S": "TICKET_CODE"},
                        "ticket_id": ticket_item["id"]
                    },
                    "ConditionExpression": "attribute_not_exists(pk)"
                }
            })

    return transact_items


def create_release_transaction_items(table_name: str, event_id: str, seat_id: int,
                                     ticket_id: Optional[str] = None,
                                     user_id: Optional[str] = None) -> List[Dict[str, Any]]:
    """Create transaction items for releasing a seat (and invalidating its ticket)"""
    current_time = get_current_timestamp()

    transact_items = [
        {
            "Update": {
                "TableName": table_name,
                "Key": {
                    "pk": {"S": event_id},
                    "sk": {"S": seat_sort_key(seat_id)}
                },
                "UpdateExpression": "SET is_booked = :available, updated_at = :updated_at ADD version :one",
                "ConditionExpression": "attribute_exists(pk) AND is_booked = :booked",
                "ExpressionAttributeValues": {
                    ":booked": {"BOOL": True},
                    ":available": {"BOOL": False},
                    ":one": {"N": "1"},
                    ":updated_at": {"S": current_time}
                }
            }
        },
        {
            "Update": {
                "TableName": table_name,
                "Key": {
                    "pk": {"S": event_id},
                    "sk": {"S": "EVENT"}
                },
                "UpdateExpression": "ADD booked_seats :minus_one",
                "ConditionExpression": "attribute_exists(pk) AND booked_seats > :zero",
                "ExpressionAttributeValues": {
                    ":minus_one": {"N": "-1"},
                    ":zero": {"N": "0"}
                }
            }
        }
    ]

    if ticket_id is not None:
        values = {
            ":invalid": {"S": "invalid"},
            ":valid": {"S": "valid"},
            ":returned_at": {"S": current_time}
        }
        condition = "#status = :valid"
        if user_id is not None:
            condition += " AND user_id = :user_id"
            values[":user_id"] = {"S": user_id}
        transact_items.append({
            "Update": {
                "TableName": table_name,
                "Key": {
                    "pk": {"S": ticket_id},
                    "sk": {"S": "TICKET"}
                },
                "UpdateExpression": "SET #status = :invalid, returned_at = :returned_at",
                "ConditionExpression": condition,
                "ExpressionAttributeNames": {"#status": "status"},
                "ExpressionAttributeValues": values
            }
        })

    return transact_items
