from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from sqlalchemy import JSON, Column
from sqlmodel import Field, SQLModel

from errors import ValidationError


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


USERS = "users"
DONATIONS = "doacoes"
REQUESTS = "solicitacoes"


class Role(str, Enum):
    DONOR = "donor"
    RECIPIENT = "recipient"
    OTHER = "other"


class Category(str, Enum):
    CLOTHING = "clothing"
    FOOD = "food"
    FURNITURE = "furniture"
    ELECTRONICS = "electronics"
    TOYS = "toys"
    BOOKS = "books"
    HYGIENE = "hygiene"
    OTHER = "other"


class RequestStatus(str, Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    DECLINED = "declined"

    @property
    def is_terminal(self) -> bool:
        if self is RequestStatus.PENDING:
            return False
        if self in (RequestStatus.ACCEPTED, RequestStatus.DECLINED):
            return True
        raise AssertionError(f"unhandled status {self!r}")

    def can_transition_to(self, target: "RequestStatus") -> bool:
        if self is RequestStatus.PENDING:
            return target in (RequestStatus.ACCEPTED, RequestStatus.DECLINED)
        return False


def is_blank(value) -> bool:
    if value is None:
        return True
    return isinstance(value, str) and not value.strip()


def parse_choice(enum_cls, value, field_name: str):
    """
    Turn a raw string into a member of `enum_cls`.
    Raises ValidationError instead of letting a bad value reach storage.
    """
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(value)
    except ValueError:
        allowed = ", ".join(member.value for member in enum_cls)
        raise ValidationError(
            f"Invalid {field_name} '{value}'. Expected one of: {allowed}"
        ) from None


class User(SQLModel):
    id: str
    role: Role
    name: str
    email: str
    phone: str
    identity_document: str
    address: str
    city: str
    state: str
    zip_code: str
    password_hash: str
    created_at: datetime


class Donation(SQLModel):
    id: str
    owner_id: str

    title: str
    description: str
    category: Category
    location: str
    city: str
    state: str
    photo_url: Optional[str] = None
    created_at: datetime
    updated_at: Optional[datetime] = None


class DonationRequest(SQLModel):
    id: str
    donation_id: str
    requester_id: str

    reason: str
    status: RequestStatus = RequestStatus.PENDING
    created_at: datetime


class DocumentRow(SQLModel, table=True):
    """One stored document of any collection (SQL document store)."""

    __tablename__ = "documents"

    collection: str = Field(primary_key=True)
    id: str = Field(primary_key=True)
    data: dict = Field(default_factory=dict, sa_column=Column(JSON))
