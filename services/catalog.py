import logging
from enum import Enum
from typing import Callable, List, Mapping, Optional, Union

from authz import require_owner
from db import DESCENDING, DocumentSnapshot, DocumentStore
from errors import NotFoundError, ValidationError
from models import DONATIONS, Category, Donation, is_blank, parse_choice, utcnow
from schemas import DonationFilter
from storage import ObjectStore

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = ("title", "description", "category", "location", "city", "state")
EDITABLE_FIELDS = ("title", "description", "category", "location")
# Kept from the stored donation when an edit leaves them out.
PRESERVED_FIELDS = ("city", "state")


class DonationSort(str, Enum):
    RECENT = "recent"
    OLDEST = "oldest"


def _to_donation(snapshot: DocumentSnapshot) -> Donation:
    return Donation.model_validate({"id": snapshot.id, **snapshot.to_dict()})


class DonationCatalog:
    """
    Owns donation records. Only the owner of a donation may edit or
    delete it; listings never show a user their own postings as available.
    """

    def __init__(
        self,
        store: DocumentStore,
        objects: ObjectStore,
        clock: Callable = utcnow,
    ):
        self._donations = store.collection(DONATIONS)
        self._objects = objects
        self._clock = clock

    def get(self, donation_id: str) -> Donation:
        if is_blank(donation_id):
            raise NotFoundError("Donation not found")
        snapshot = self._donations.doc(donation_id).get()
        if not snapshot.exists:
            raise NotFoundError("Donation not found")
        return _to_donation(snapshot)

    def create(
        self,
        owner_id: str,
        fields: Mapping,
        photo: Optional[bytes] = None,
        photo_content_type: Optional[str] = None,
    ) -> Donation:
        """
        Post a new donation for `owner_id`.

        The photo, when given, is uploaded before anything is written, so a
        failed upload leaves no record behind. A record write that fails
        after a successful upload does leave the uploaded object in place.
        """
        missing = [name for name in REQUIRED_FIELDS if is_blank(fields.get(name))]
        if missing:
            raise ValidationError(
                "All required fields must be filled in "
                f"({', '.join(REQUIRED_FIELDS)}); missing: {', '.join(missing)}"
            )
        category = parse_choice(Category, fields["category"], "category")

        photo_url = None
        if photo:
            photo_url = self._objects.upload(photo, photo_content_type)

        data = {
            "owner_id": owner_id,
            "title": fields["title"],
            "description": fields["description"],
            "category": category.value,
            "location": fields["location"],
            "city": fields["city"],
            "state": fields["state"],
            "photo_url": photo_url,
            "created_at": self._clock(),
        }
        ref = self._donations.add(data)
        logger.info("Donation %s created by %s", ref.id, owner_id)
        return Donation.model_validate({"id": ref.id, **data})

    def update(
        self,
        donation_id: str,
        caller_id: str,
        fields: Mapping,
        photo: Optional[bytes] = None,
        photo_content_type: Optional[str] = None,
    ) -> Donation:
        donation = self.get(donation_id)
        require_owner(donation.owner_id, caller_id, "edit this donation")

        changes = {}
        for name in EDITABLE_FIELDS:
            value = fields.get(name)
            if value is None:
                continue
            if is_blank(value):
                raise ValidationError(f"{name} cannot be empty")
            changes[name] = value
        if "category" in changes:
            changes["category"] = parse_choice(
                Category, changes["category"], "category"
            ).value

        for name in PRESERVED_FIELDS:
            value = fields.get(name)
            if value is None:
                value = getattr(donation, name)
            elif is_blank(value):
                raise ValidationError(f"{name} cannot be empty")
            changes[name] = value

        photo_url = donation.photo_url
        if photo:
            photo_url = self._objects.upload(photo, photo_content_type)
        changes["photo_url"] = photo_url
        changes["updated_at"] = self._clock()

        self._donations.doc(donation_id).update(changes)
        logger.info("Donation %s updated by %s", donation_id, caller_id)
        return Donation.model_validate({**donation.model_dump(), **changes})

    def delete(self, donation_id: str, caller_id: str) -> None:
        """Remove the donation. Requests that reference it are left as they are."""
        donation = self.get(donation_id)
        require_owner(donation.owner_id, caller_id, "delete this donation")
        self._donations.doc(donation_id).delete()
        logger.info("Donation %s deleted by %s", donation_id, caller_id)

    def list_owned_by(self, user_id: str) -> List[Donation]:
        snapshots = (
            self._donations.where("owner_id", "==", user_id)
            .order_by("created_at", DESCENDING)
            .get()
        )
        return [_to_donation(snapshot) for snapshot in snapshots]

    def list_available_to(self, user_id: str) -> List[Donation]:
        snapshots = self._donations.order_by("created_at", DESCENDING).get()
        donations = [_to_donation(snapshot) for snapshot in snapshots]
        return [donation for donation in donations if donation.owner_id != user_id]

    def filter(
        self,
        criteria: Union[DonationFilter, Mapping],
        exclude_user_id: str,
    ) -> List[Donation]:
        """
        Donations matching every given criterion (category, city, state),
        minus the excluded user's own. `sort` is "recent" or "oldest";
        anything else keeps the store's order.
        """
        criteria = DonationFilter.model_validate(criteria)
        query = self._donations
        for name in ("category", "city", "state"):
            value = getattr(criteria, name)
            if value:
                query = query.where(name, "==", value)

        donations = [_to_donation(snapshot) for snapshot in query.get()]
        donations = [d for d in donations if d.owner_id != exclude_user_id]

        try:
            sort = DonationSort(criteria.sort) if criteria.sort else None
        except ValueError:
            sort = None
        if sort is DonationSort.RECENT:
            donations.sort(key=lambda d: d.created_at, reverse=True)
        elif sort is DonationSort.OLDEST:
            donations.sort(key=lambda d: d.created_at)
        return donations
