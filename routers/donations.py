from typing import List, Optional

from fastapi import APIRouter, File, Form, UploadFile

from schemas import DonationFilter, DonationRead, MessageRead
from .auth import CatalogDep, CurrentUserDep

router = APIRouter(tags=["donations"])


def _read_photo(photo: Optional[UploadFile]):
    if photo is None:
        return None, None
    return photo.file.read(), photo.content_type


@router.post("", response_model=DonationRead)
def create_donation(
    catalog: CatalogDep,
    current: CurrentUserDep,
    title: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    category: Optional[str] = Form(None),
    location: Optional[str] = Form(None),
    city: Optional[str] = Form(None),
    state: Optional[str] = Form(None),
    photo: Optional[UploadFile] = File(None),
):
    """
    Post a donation owned by the current user, with an optional photo.
    """
    data, content_type = _read_photo(photo)
    return catalog.create(
        current.id,
        {
            "title": title,
            "description": description,
            "category": category,
            "location": location,
            "city": city,
            "state": state,
        },
        photo=data,
        photo_content_type=content_type,
    )


@router.get("", response_model=List[DonationRead])
def list_available(catalog: CatalogDep, current: CurrentUserDep):
    """
    Every donation except the current user's own, newest first.
    """
    return catalog.list_available_to(current.id)


@router.get("/history", response_model=List[DonationRead])
def donation_history(catalog: CatalogDep, current: CurrentUserDep):
    return catalog.list_owned_by(current.id)


@router.get("/filter", response_model=List[DonationRead])
def filter_donations(
    catalog: CatalogDep,
    current: CurrentUserDep,
    category: Optional[str] = None,
    city: Optional[str] = None,
    state: Optional[str] = None,
    sort: Optional[str] = None,
):
    """
    Filter by category, city and state; `sort` is "recent" or "oldest".
    """
    criteria = DonationFilter(category=category, city=city, state=state, sort=sort)
    return catalog.filter(criteria, exclude_user_id=current.id)


@router.get("/{donation_id}", response_model=DonationRead)
def get_donation(donation_id: str, catalog: CatalogDep, current: CurrentUserDep):
    return catalog.get(donation_id)


@router.put("/{donation_id}", response_model=DonationRead)
def update_donation(
    donation_id: str,
    catalog: CatalogDep,
    current: CurrentUserDep,
    title: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    category: Optional[str] = Form(None),
    location: Optional[str] = Form(None),
    city: Optional[str] = Form(None),
    state: Optional[str] = Form(None),
    photo: Optional[UploadFile] = File(None),
):
    """
    Edit a donation. Fields left out keep their stored values.
    """
    data, content_type = _read_photo(photo)
    return catalog.update(
        donation_id,
        current.id,
        {
            "title": title,
            "description": description,
            "category": category,
            "location": location,
            "city": city,
            "state": state,
        },
        photo=data,
        photo_content_type=content_type,
    )


@router.delete("/{donation_id}", response_model=MessageRead)
def delete_donation(donation_id: str, catalog: CatalogDep, current: CurrentUserDep):
    catalog.delete(donation_id, current.id)
    return {"message": "Donation deleted"}
