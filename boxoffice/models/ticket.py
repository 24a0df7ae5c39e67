from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import Field

from boxoffice.models.base import ApiModel


class TicketStatus(str, Enum):
    VALID = "valid"
    USED = "used"
    INVALID = "invalid"
    TRANSFERRED = "transferred"


class TicketAction(str, Enum):
    CREATED = "created"
    RETURNED = "returned"
    TRANSFERRED = "transferred"
    USED = "used"
    SCAN_REJECTED = "scan_rejected"


class Ticket(ApiModel):
    id: str
    user_id: str
    event_id: str
    seat_id: int
    original_price: Decimal
    final_price: Decimal
    qr_code: str
    alternate_id: str
    status: TicketStatus = TicketStatus.VALID
    is_faculty_only: bool = False
    created_at: datetime
    transferred_to_email: Optional[str] = None
    transferred_at: Optional[datetime] = None
    used_at: Optional[datetime] = None
    returned_at: Optional[datetime] = None


class TicketHistoryEntry(ApiModel):
    ticket_id: Optional[str] = None
    action: TicketAction
    performed_by: str
    details: str = ""
    created_at: datetime


class BookRequest(ApiModel):
    user_id: str = Field(..., min_length=1)
    event_id: str = Field(..., min_length=1)
    seat_id: int


class ReturnRequest(ApiModel):
    ticket_id: str = Field(..., min_length=1)
    user_id: str = Field(..., min_length=1)


class ReturnResponse(ApiModel):
    message: str = "Ticket returned successfully"
    ticket_id: str
    refund: Decimal


class TransferRequest(ApiModel):
    ticket_id: str = Field(..., min_length=1)
    user_id: str = Field(..., min_length=1)
    target_email: str


class TransferResponse(ApiModel):
    message: str = "Ticket transferred successfully"
    ticket_id: str
    target_email: str


class ValidateRequest(ApiModel):
    scan_id: str = Field(..., min_length=1)
    enforcer_id: str = Field(..., min_length=1)


class ScannedTicket(ApiModel):
    """Ticket details shown to the enforcer after a scan"""

    id: str
    event_name: str
    venue: str
    date: str
    time: str
    seat_id: int
    row: Optional[int] = None
    column: Optional[int] = None
    is_faculty_only: bool = False


class ValidationResult(ApiModel):
    valid: bool
    status: TicketStatus
    message: str
    ticket: Optional[ScannedTicket] = None
