"""Starter catalog: three staff/student accounts and the season's events."""

import logging
from datetime import date, time
from decimal import Decimal

from boxoffice.models import EventCreate, Role, SeatTier, SpecialAccommodations, User
from boxoffice.repositories.interfaces import BoxOfficeStore
from boxoffice.services.catalog import SeatTemplate
from boxoffice.services.registry import EventRegistry
from boxoffice.utils import utcnow

logger = logging.getLogger(__name__)


def _prices(premium, standard, economy):
    return {
        SeatTier.PREMIUM: Decimal(premium),
        SeatTier.STANDARD: Decimal(standard),
        SeatTier.ECONOMY: Decimal(economy),
    }


ARENA = SeatTemplate(
    count=400, columns=20, premium_until=80, standard_until=240,
    prices=_prices("85", "45", "25"), handicap_every=25, faculty_every=30, faculty_limit=60,
)
THEATRE = SeatTemplate(
    count=240, columns=15, premium_until=45, standard_until=150,
    prices=_prices("35", "25", "15"), handicap_every=20, faculty_every=25, faculty_limit=45,
)
RECITAL_HALL = SeatTemplate(
    count=150, columns=12, premium_until=36, standard_until=96,
    prices=_prices("30", "20", "12"), handicap_every=15, faculty_every=20, faculty_limit=40,
)

SEED_USERS = [
    User(id="admin001", name="Sarah Chen", username="admin", email="admin@cofc.edu",
         role=Role.ADMIN, created_at=utcnow()),
    User(id="enforcer001", name="Marcus Williams", username="enforcer", email="enforcer@cofc.edu",
         role=Role.ENFORCER, created_at=utcnow()),
    User(id="student001", name="Emily Rodriguez", username="student", email="student@cofc.edu",
         role=Role.BUYER, discount=Decimal("0.10"),
         special_accommodations=SpecialAccommodations(), created_at=utcnow()),
]

SEED_EVENTS = [
    (EventCreate(name="Cougar Basketball vs Citadel", venue="TD Arena", date=date(2025, 11, 25),
                 time=time(19, 0), capacity=400, category="Sports", auditorium_name="Main Court",
                 description="CofC Cougars take on The Citadel Bulldogs."), ARENA),
    (EventCreate(name="Theatre: The Tempest", venue="Emmett Robinson Theatre", date=date(2025, 12, 5),
                 time=time(19, 30), capacity=240, category="Theatre", auditorium_name="Main Theatre",
                 description="Shakespeare's final play performed by CofC Theatre students"), THEATRE),
    (EventCreate(name="Jazz Ensemble Concert", venue="Recital Hall", date=date(2025, 11, 29),
                 time=time(20, 0), capacity=150, category="Music", auditorium_name="Concert Hall",
                 description="CofC Jazz Ensemble presents an evening of contemporary and classic jazz"),
     RECITAL_HALL),
    (EventCreate(name="Violin Ensemble Concert", venue="Recital Hall", date=date(2025, 11, 30),
                 time=time(20, 0), capacity=150, category="Music", auditorium_name="Concert Hall",
                 description="CofC Violin Ensemble presents an evening of contemporary and classic violin"),
     RECITAL_HALL),
    (EventCreate(name="Cougar Volleyball vs Charleston Southern", venue="TD Arena", date=date(2026, 1, 26),
                 time=time(19, 0), capacity=400, category="Sports", auditorium_name="Main Court",
                 description="CofC Cougars take on Charleston Southern."), ARENA),
    (EventCreate(name="Cougar Basketball vs Charleston Southern", venue="TD Arena", date=date(2026, 1, 28),
                 time=time(19, 0), capacity=400, category="Sports", auditorium_name="Main Court",
                 description="CofC Cougars take on Charleston Southern."), ARENA),
]


def seed_store(store: BoxOfficeStore) -> bool:
    """Load the starter catalog into an empty store.

    Returns False without writing anything when the store already holds the
    seed accounts.
    """
    if store.get_user(SEED_USERS[0].id) is not None:
        logger.info("Seed data already present, skipping")
        return False

    for user in SEED_USERS:
        store.add_user(user)

    registry = EventRegistry(store)
    for fields, template in SEED_EVENTS:
        registry.create_event(fields, seat_template=template)

    logger.info(f"Seeded {len(SEED_USERS)} users and {len(SEED_EVENTS)} events into {store.name} store")
    return True
