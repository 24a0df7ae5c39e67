from concurrent.futures import ThreadPoolExecutor

import pytest

from boxoffice.errors import (InvalidStateError, NotBookedError,
                              NotFoundError, SeatUnavailableError)
from boxoffice.models import Role, User
from boxoffice.services.issuer import BookingService, TicketIssuer
from boxoffice.services.ledger import InventoryLedger
from boxoffice.services.lifecycle import TicketLifecycle
from boxoffice.utils import utcnow

WORKERS = 16


@pytest.fixture
def buyers(store):
    users = []
    for i in range(WORKERS):
        user = User(id=f"usr_buyer{i:02d}", name=f"Buyer {i}", username=f"buyer{i}",
                    email=f"buyer{i}@cofc.edu", role=Role.BUYER, created_at=utcnow())
        store.add_user(user)
        users.append(user)
    return users


@pytest.fixture
def booking(store):
    return BookingService(store, InventoryLedger(store), TicketIssuer(store))


@pytest.fixture
def lifecycle(store):
    return TicketLifecycle(store, InventoryLedger(store))


def attempt(fn, *args):
    try:
        return fn(*args)
    except (SeatUnavailableError, InvalidStateError, NotBookedError) as e:
        return e


def test_one_winner_per_seat(store, basketball, buyers, booking):
    with ThreadPoolExecutor(max_workers=WORKERS) as pool:
        results = list(pool.map(lambda u: attempt(booking.book, u.id, basketball.id, 2), buyers))

    winners = [r for r in results if not isinstance(r, Exception)]
    losers = [r for r in results if isinstance(r, Exception)]
    assert len(winners) == 1
    assert len(losers) == WORKERS - 1
    assert all(isinstance(r, SeatUnavailableError) for r in losers)

    assert store.get_event(basketball.id).booked_seats == 1
    assert store.get_seat(basketball.id, 2).is_booked
    tickets = store.list_tickets_for_event(basketball.id)
    assert [t.id for t in tickets] == [winners[0].id]


def test_different_seats_all_succeed(store, basketball, buyers, booking):
    with ThreadPoolExecutor(max_workers=WORKERS) as pool:
        tickets = list(pool.map(
            lambda pair: booking.book(pair[1].id, basketball.id, 100 + pair[0]),
            enumerate(buyers),
        ))

    assert len({t.id for t in tickets}) == WORKERS
    assert len({t.qr_code for t in tickets}) == WORKERS
    assert store.get_event(basketball.id).booked_seats == WORKERS


def test_one_admission_per_ticket(store, basketball, booking, lifecycle):
    ticket = booking.book("student001", basketball.id, 2)

    with ThreadPoolExecutor(max_workers=WORKERS) as pool:
        results = list(pool.map(lambda _: lifecycle.validate(ticket.qr_code, "enforcer001"), range(WORKERS)))

    assert sum(r.valid for r in results) == 1
    assert all(r.status.value == "used" for r in results if not r.valid)


def test_one_refund_per_ticket(store, basketball, booking, lifecycle):
    ticket = booking.book("student001", basketball.id, 2)

    with ThreadPoolExecutor(max_workers=WORKERS) as pool:
        results = list(pool.map(lambda _: attempt(lifecycle.return_ticket, ticket.id, "student001"),
                                range(WORKERS)))

    refunds = [r for r in results if not isinstance(r, Exception)]
    assert len(refunds) == 1
    assert store.get_event(basketball.id).booked_seats == 0
    assert not store.get_seat(basketball.id, 2).is_booked


def test_counter_matches_seats_under_churn(store, basketball, buyers, booking, lifecycle):
    def book_and_maybe_return(index):
        user = buyers[index]
        ticket = booking.book(user.id, basketball.id, 200 + index)
        if index % 2 == 0:
            lifecycle.return_ticket(ticket.id, user.id)

    with ThreadPoolExecutor(max_workers=WORKERS) as pool:
        list(pool.map(book_and_maybe_return, range(WORKERS)))

    seats = store.get_event_detail(basketball.id).auditoriums[0].seats
    assert store.get_event(basketball.id).booked_seats == sum(s.is_booked for s in seats) == WORKERS // 2


def test_release_of_free_seat_leaves_counter(store, basketball):
    ledger = InventoryLedger(store)

    with pytest.raises(NotBookedError):
        ledger.release_seat(basketball.id, 2)

    assert store.get_event(basketball.id).booked_seats == 0


def test_claim_and_release_without_ticket(store, basketball):
    ledger = InventoryLedger(store)

    claim = ledger.claim_seat(basketball.id, 5)
    assert claim.booked_seats == 1
    with pytest.raises(SeatUnavailableError):
        ledger.claim_seat(basketball.id, 5)

    seat = ledger.release_seat(basketball.id, 5)
    assert seat.is_booked is False
    assert store.get_event(basketball.id).booked_seats == 0


def test_delete_event_drops_seat_locks(store, basketball):
    ledger = InventoryLedger(store)
    ledger.claim_seat(basketball.id, 5)
    ledger.release_seat(basketball.id, 5)
    assert len(store._seat_locks) == 1

    store.delete_event(basketball.id)

    assert len(store._seat_locks) == 0
    with pytest.raises(NotFoundError):
        ledger.claim_seat(basketball.id, 5)
