from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import Field

from boxoffice.models.base import ApiModel


class Role(str, Enum):
    BUYER = "buyer"
    ADMIN = "admin"
    ENFORCER = "enforcer"


class SpecialAccommodations(ApiModel):
    has_accommodations: bool = False
    handicap_accessible: bool = False
    faculty_restricted: bool = False


class UserCreate(ApiModel):
    name: str = Field(..., min_length=1)
    username: str = Field(..., min_length=1)
    email: str = Field(..., min_length=3)
    role: Role = Role.BUYER
    discount: Optional[Decimal] = Field(default=None, ge=0, le=1)
    special_accommodations: SpecialAccommodations = SpecialAccommodations()


class User(ApiModel):
    id: str
    name: str
    username: str
    email: str
    role: Role
    discount: Decimal = Decimal("0")
    special_accommodations: SpecialAccommodations = SpecialAccommodations()
    created_at: datetime

    @property
    def effective_discount(self) -> Decimal:
        """Only buyers get their discount applied"""
        if self.role != Role.BUYER:
            return Decimal("0")
        return self.discount
