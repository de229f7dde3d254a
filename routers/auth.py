from typing import Annotated, Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Request

from models import User
from schemas import LoginData, TokenRead, UserCreate, UserRead
from services.catalog import DonationCatalog
from services.ledger import RequestLedger
from services.profiles import ProfileStore

router = APIRouter(tags=["auth"])


def get_profiles(request: Request) -> ProfileStore:
    return request.app.state.profiles


def get_catalog(request: Request) -> DonationCatalog:
    return request.app.state.catalog


def get_ledger(request: Request) -> RequestLedger:
    return request.app.state.ledger


ProfilesDep = Annotated[ProfileStore, Depends(get_profiles)]
CatalogDep = Annotated[DonationCatalog, Depends(get_catalog)]
LedgerDep = Annotated[RequestLedger, Depends(get_ledger)]


def get_current_user(
    profiles: ProfilesDep,
    authorization: Optional[str] = Header(default=None),
) -> User:
    """
    Reads the `Authorization: Bearer <token>` header, verifies the token
    and returns the user it names. Raises 401 if missing or invalid.
    """
    if not authorization:
        raise HTTPException(status_code=401, detail="Token not provided")

    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise HTTPException(status_code=401, detail="Invalid authorization header")

    return profiles.identify(token.strip())


CurrentUserDep = Annotated[User, Depends(get_current_user)]


@router.post("/signup", response_model=UserRead)
def signup(user_in: UserCreate, profiles: ProfilesDep):
    """
    Register a new user with a hashed password.
    """
    return profiles.register(user_in.model_dump())


@router.post("/login", response_model=TokenRead)
def login(payload: LoginData, profiles: ProfilesDep):
    """
    Log in with email + password and receive a bearer token.
    """
    token = profiles.authenticate(payload.email, payload.password)
    return {"message": "Login successful", "token": token}
