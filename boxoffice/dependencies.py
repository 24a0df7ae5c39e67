import logging
import threading
from typing import Optional

from fastapi import Depends, Header, HTTPException, status

from boxoffice.config import settings
from boxoffice.models import Role, User
from boxoffice.repositories.dynamodb import DynamoDBStore
from boxoffice.repositories.interfaces import BoxOfficeStore
from boxoffice.repositories.memory import InMemoryStore
from boxoffice.seed import seed_store
from boxoffice.services.catalog import SeatCatalog
from boxoffice.services.issuer import BookingService, TicketIssuer
from boxoffice.services.ledger import InventoryLedger
from boxoffice.services.lifecycle import TicketLifecycle
from boxoffice.services.registry import EventRegistry
from boxoffice.services.users import UserDirectory

logger = logging.getLogger(__name__)

_store: Optional[BoxOfficeStore] = None
_store_lock = threading.Lock()


def build_store() -> BoxOfficeStore:
    """Create the store selected by STORAGE_BACKEND, seeded when SEED_DATA is on"""
    if settings.STORAGE_BACKEND == "dynamodb":
        store = DynamoDBStore()
    elif settings.STORAGE_BACKEND == "memory":
        store = InMemoryStore()
    else:
        raise ValueError(f"Unknown STORAGE_BACKEND '{settings.STORAGE_BACKEND}'")

    if settings.SEED_DATA:
        seed_store(store)
    logger.info(f"Using {store.name} store")
    return store


def get_store() -> BoxOfficeStore:
    global _store
    with _store_lock:
        if _store is None:
            _store = build_store()
        return _store


def get_registry(store: BoxOfficeStore = Depends(get_store)) -> EventRegistry:
    return EventRegistry(store)


def get_catalog(store: BoxOfficeStore = Depends(get_store)) -> SeatCatalog:
    return SeatCatalog(store)


def get_booking_service(store: BoxOfficeStore = Depends(get_store)) -> BookingService:
    return BookingService(store, InventoryLedger(store), TicketIssuer(store))


def get_lifecycle(store: BoxOfficeStore = Depends(get_store)) -> TicketLifecycle:
    return TicketLifecycle(store, InventoryLedger(store))


def get_user_directory(store: BoxOfficeStore = Depends(get_store)) -> UserDirectory:
    return UserDirectory(store)


def get_current_user(
    x_user_id: Optional[str] = Header(default=None),
    store: BoxOfficeStore = Depends(get_store),
) -> User:
    """Resolve the caller from the X-User-Id header"""
    if not x_user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing X-User-Id header",
        )
    user = store.get_user(x_user_id)
    if user is None:
        logger.warning(f"Unknown user ID {x_user_id} in X-User-Id header")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not identify the calling user",
        )
    return user


def get_current_admin_user(current_user: User = Depends(get_current_user)) -> User:
    if current_user.role != Role.ADMIN:
        logger.warning(f"Non-admin user {current_user.username} (ID: {current_user.id}) attempted admin action.")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Operation not permitted. Administrator privileges required.",
        )
    return current_user
