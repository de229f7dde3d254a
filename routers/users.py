# routers/users.py
from fastapi import APIRouter

from schemas import ProfileUpdate, UserRead
from .auth import CurrentUserDep, ProfilesDep

router = APIRouter(tags=["users"])


@router.get("/me", response_model=UserRead)
def read_me(current: CurrentUserDep, profiles: ProfilesDep):
    """
    Get the public profile of the logged-in user.
    """
    return profiles.get(current.id)


@router.put("/me", response_model=UserRead)
def update_me(update: ProfileUpdate, current: CurrentUserDep, profiles: ProfilesDep):
    """
    Edit the logged-in user's profile. Sending `password` changes it;
    `role` is ignored.
    """
    return profiles.update(current.id, update.model_dump(exclude_unset=True))
