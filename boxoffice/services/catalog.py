"""Seat catalog: generates the seat set of an auditorium from a template and
answers seat lookups.

Seats are produced in row-major order. For seat index ``i`` (0-based):

* row ``i // columns + 1``, column ``i % columns + 1``
* tier: premium below ``premium_until``, standard below ``standard_until``,
  economy otherwise
* handicap when ``i % handicap_every == 0``
* faculty-only when ``i % faculty_every == 0 and i < faculty_limit``
"""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Dict, Iterable, List, Optional, Sequence

from boxoffice.errors import NotFoundError, ValidationError
from boxoffice.models import Auditorium, Role, Seat, SeatTier, User
from boxoffice.repositories.interfaces import EventRepository
from boxoffice.utils import to_money

DEFAULT_TIER_PRICES = {
    SeatTier.PREMIUM: Decimal("85"),
    SeatTier.STANDARD: Decimal("45"),
    SeatTier.ECONOMY: Decimal("25"),
}

TIER_ORDER = (SeatTier.PREMIUM, SeatTier.STANDARD, SeatTier.ECONOMY)


@dataclass(frozen=True)
class SeatTemplate:
    count: int
    columns: int = 20
    premium_until: int = 0
    standard_until: int = 0
    prices: Dict[SeatTier, Decimal] = field(default_factory=lambda: dict(DEFAULT_TIER_PRICES))
    handicap_every: int = 25
    faculty_every: int = 30
    faculty_limit: int = 0
    # When set, one seat per price; tiers follow the price rank
    seat_prices: Sequence[Decimal] = ()

    @classmethod
    def default(cls, capacity: int, columns: int = 20,
                prices: Optional[Dict[SeatTier, Decimal]] = None) -> "SeatTemplate":
        """20% premium, 40% standard, 40% economy"""
        premium_until = capacity * 20 // 100
        tier_prices = dict(DEFAULT_TIER_PRICES)
        tier_prices.update(prices or {})
        return cls(
            count=capacity,
            columns=columns,
            premium_until=premium_until,
            standard_until=capacity * 60 // 100,
            prices=tier_prices,
            faculty_limit=premium_until,
        )

    @classmethod
    def from_prices(cls, seat_prices: Sequence, columns: Optional[int] = None) -> "SeatTemplate":
        prices = tuple(to_money(price) for price in seat_prices)
        return cls(count=len(prices), columns=columns or max(len(prices), 1), seat_prices=prices)


def _tier_by_rank(price: Decimal, distinct_prices: List[Decimal]) -> SeatTier:
    rank = distinct_prices.index(price)
    return TIER_ORDER[min(2, rank * 3 // len(distinct_prices))]


def validate_template(template: SeatTemplate) -> None:
    if template.count <= 0:
        raise ValidationError("Capacity must be greater than 0")
    if template.columns <= 0:
        raise ValidationError("Seat layout needs at least one column")
    if template.seat_prices:
        if any(price < 0 for price in template.seat_prices):
            raise ValidationError("Seat prices cannot be negative")
    elif any(template.prices.get(tier) is None or template.prices[tier] < 0 for tier in TIER_ORDER):
        raise ValidationError(f"Prices required for tiers: {[tier.value for tier in TIER_ORDER]}")


def generate_seats(template: SeatTemplate, first_id: int = 1) -> List[Seat]:
    """Produce the full seat set for one auditorium"""
    validate_template(template)
    distinct_prices = sorted(set(template.seat_prices), reverse=True)

    seats = []
    for i in range(template.count):
        if template.seat_prices:
            price = template.seat_prices[i]
            tier = _tier_by_rank(price, distinct_prices)
        else:
            if i < template.premium_until:
                tier = SeatTier.PREMIUM
            elif i < template.standard_until:
                tier = SeatTier.STANDARD
            else:
                tier = SeatTier.ECONOMY
            price = template.prices[tier]

        seats.append(Seat(
            id=first_id + i,
            row=i // template.columns + 1,
            column=i % template.columns + 1,
            tier=tier,
            price=to_money(price),
            is_handicap=template.handicap_every > 0 and i % template.handicap_every == 0,
            is_faculty_only=(
                template.faculty_every > 0
                and i % template.faculty_every == 0
                and i < template.faculty_limit
            ),
        ))
    return seats


def build_auditorium(auditorium_id: int, name: str, template: SeatTemplate, first_seat_id: int = 1) -> Auditorium:
    return Auditorium(id=auditorium_id, name=name, seats=generate_seats(template, first_seat_id))


def eligible_seats(user: User, seats: Iterable[Seat]) -> List[Seat]:
    """Filter seats a buyer may pick given their accommodations.

    Advisory only: the ledger does not enforce it.
    """
    if user.role != Role.BUYER:
        return list(seats)

    accommodations = user.special_accommodations
    selectable = []
    for seat in seats:
        if seat.is_faculty_only and not accommodations.faculty_restricted:
            continue
        if accommodations.handicap_accessible and not seat.is_handicap:
            continue
        selectable.append(seat)
    return selectable


class SeatCatalog:
    """Seat lookups over stored events."""

    def __init__(self, store: EventRepository):
        self._store = store

    def list_seats(self, event_id: str, auditorium_id: Optional[int] = None) -> List[Seat]:
        """Seats in display order, for one auditorium or the whole event.

        Raises:
            NotFoundError: If the event or auditorium does not exist.
        """
        event = self._store.get_event_detail(event_id)
        if event is None:
            raise NotFoundError(f"Event with ID {event_id} not found")

        if auditorium_id is None:
            return [seat for auditorium in event.auditoriums for seat in auditorium.seats]

        for auditorium in event.auditoriums:
            if auditorium.id == auditorium_id:
                return list(auditorium.seats)
        raise NotFoundError(f"Auditorium {auditorium_id} not found for event {event_id}")

    def get_seat(self, event_id: str, seat_id: int) -> Seat:
        seat = self._store.get_seat(event_id, seat_id)
        if seat is None:
            raise NotFoundError(f"Seat {seat_id} not found for event {event_id}")
        return seat
