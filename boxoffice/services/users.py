import logging
from decimal import Decimal
from typing import List

from boxoffice.errors import NotFoundError, ValidationError
from boxoffice.models import Role, User, UserCreate
from boxoffice.repositories.interfaces import UserRepository
from boxoffice.utils import generate_user_id, utcnow

logger = logging.getLogger(__name__)

DEFAULT_BUYER_DISCOUNT = Decimal("0.10")


class UserDirectory:
    """Registration and lookup of buyers, enforcers and admins."""

    def __init__(self, store: UserRepository):
        self._store = store

    def register(self, fields: UserCreate) -> User:
        """Store a new user.

        Buyers without an explicit discount get the student discount; other
        roles never carry one. Duplicate usernames or emails raise
        ConflictError.
        """
        email = fields.email.strip()
        if "@" not in email:
            raise ValidationError("Please enter a valid email address")

        if fields.role == Role.BUYER:
            discount = DEFAULT_BUYER_DISCOUNT if fields.discount is None else fields.discount
        else:
            discount = Decimal("0")

        user = User(
            id=generate_user_id(),
            name=fields.name.strip(),
            username=fields.username.strip(),
            email=email,
            role=fields.role,
            discount=discount,
            special_accommodations=fields.special_accommodations,
            created_at=utcnow(),
        )
        self._store.add_user(user)
        logger.info(f"User {user.id} ({user.username}) registered as {user.role.value}")
        return user

    def get_user(self, user_id: str) -> User:
        user = self._store.get_user(user_id)
        if user is None:
            raise NotFoundError(f"User with ID {user_id} not found")
        return user

    def list_users(self) -> List[User]:
        return self._store.list_users()
