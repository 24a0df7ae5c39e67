from boxoffice.repositories.interfaces import (BoxOfficeStore, EventRepository,
                                               TicketRepository, UserRepository)
from boxoffice.repositories.memory import InMemoryStore

__all__ = [
    "BoxOfficeStore",
    "EventRepository",
    "InMemoryStore",
    "TicketRepository",
    "UserRepository",
]
