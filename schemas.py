from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict

from models import Category, RequestStatus, Role


class UserCreate(BaseModel):
    # Presence and email format are checked by ProfileStore.register so
    # every bad field is reported the same way.
    role: Optional[str] = None
    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    identity_document: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip_code: Optional[str] = None
    password: Optional[str] = None


class LoginData(BaseModel):
    email: Optional[str] = None
    password: Optional[str] = None


class TokenRead(BaseModel):
    message: str
    token: str


class UserRead(BaseModel):
    """Public profile. Never carries the password hash."""

    id: str
    role: Role
    name: str
    email: str
    phone: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class ProfileUpdate(BaseModel):
    # Unknown keys, role included, are dropped.
    model_config = ConfigDict(extra="ignore")

    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    identity_document: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip_code: Optional[str] = None
    password: Optional[str] = None


class DonationRead(BaseModel):
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

    model_config = ConfigDict(from_attributes=True)


class DonationFilter(BaseModel):
    category: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    sort: Optional[str] = None


class RequestCreate(BaseModel):
    donation_id: Optional[str] = None
    reason: Optional[str] = None


class RequestRead(BaseModel):
    id: str
    donation_id: str
    requester_id: str
    reason: str
    status: RequestStatus
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class RequestHistoryEntry(RequestRead):
    donation: Optional[DonationRead] = None


class ReceivedRequestEntry(RequestRead):
    donation: Optional[DonationRead] = None
    requester: Optional[UserRead] = None


class RequesterContact(BaseModel):
    name: str
    phone: Optional[str] = None
    email: str


class DecisionRead(BaseModel):
    status: RequestStatus
    changed: bool
    requester: Optional[RequesterContact] = None


class MessageRead(BaseModel):
    message: str
