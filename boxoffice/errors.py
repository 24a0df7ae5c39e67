"""Typed errors raised by the ledger, issuer and lifecycle services."""

from enum import Enum

from fastapi import HTTPException


class ErrorCode(Enum):
    VALIDATION = "VALIDATION"
    NOT_FOUND = "NOT_FOUND"
    CONFLICT = "CONFLICT"
    SEAT_UNAVAILABLE = "SEAT_UNAVAILABLE"
    NOT_BOOKED = "NOT_BOOKED"
    INVALID_STATE = "INVALID_STATE"
    FORBIDDEN = "FORBIDDEN"
    INTERNAL = "INTERNAL"


class BoxOfficeError(Exception):
    """Base error with a code and a user-safe message."""

    code = ErrorCode.INTERNAL
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def __str__(self) -> str:
        return f"{self.code.value}: {self.message}"


class ValidationError(BoxOfficeError):
    code = ErrorCode.VALIDATION
    status_code = 400


class NotFoundError(BoxOfficeError):
    code = ErrorCode.NOT_FOUND
    status_code = 404


class ConflictError(BoxOfficeError):
    code = ErrorCode.CONFLICT
    status_code = 409


class SeatUnavailableError(ConflictError):
    """Raised when a claim targets a seat that is already booked."""

    code = ErrorCode.SEAT_UNAVAILABLE

    def __init__(self, event_id: str, seat_id: int):
        super().__init__(f"Seat {seat_id} is no longer available for event {event_id}")
        self.event_id = event_id
        self.seat_id = seat_id


class NotBookedError(ConflictError):
    """Raised when a release targets a seat that is not booked."""

    code = ErrorCode.NOT_BOOKED

    def __init__(self, event_id: str, seat_id: int):
        super().__init__(f"Seat {seat_id} is not booked for event {event_id}")
        self.event_id = event_id
        self.seat_id = seat_id


class InvalidStateError(ConflictError):
    """Raised when a ticket transition is not allowed from its current status."""

    code = ErrorCode.INVALID_STATE
    status_code = 400

    def __init__(self, ticket_id: str, status: str, action: str):
        super().__init__(f"Ticket {ticket_id} cannot be {action} (status: {status})")
        self.ticket_id = ticket_id
        self.status = status


class ForbiddenError(BoxOfficeError):
    code = ErrorCode.FORBIDDEN
    status_code = 403


class InternalError(BoxOfficeError):
    code = ErrorCode.INTERNAL
    status_code = 500


GENERIC_FAILURE_MESSAGE = "Internal server error. Please try again."


def to_http_exception(error: BoxOfficeError) -> HTTPException:
    """Map a domain error onto the HTTP status the API reports for it"""
    if isinstance(error, InternalError):
        return HTTPException(status_code=500, detail=GENERIC_FAILURE_MESSAGE)
    return HTTPException(status_code=error.status_code, detail=error.message)
