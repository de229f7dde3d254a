"""
Donation requests and their accept/decline state machine.

A request starts `pending` and moves once, to `accepted` or `declined`,
by decision of the donor who owns the referenced donation. Listings join
each request with its donation (and, for donors, the requester's profile);
a reference that no longer resolves shows up as None instead of failing
the listing.
"""

import logging
from typing import Callable, List, Optional, Union

from authz import require_owner
from db import DESCENDING, DocumentSnapshot, DocumentStore
from errors import NotFoundError, ValidationError
from models import (
    DONATIONS,
    REQUESTS,
    USERS,
    DonationRequest,
    RequestStatus,
    is_blank,
    parse_choice,
    utcnow,
)
from schemas import (
    DecisionRead,
    ReceivedRequestEntry,
    RequesterContact,
    RequestHistoryEntry,
)

logger = logging.getLogger(__name__)


def _to_request(snapshot: DocumentSnapshot) -> DonationRequest:
    return DonationRequest.model_validate({"id": snapshot.id, **snapshot.to_dict()})


def _with_id(snapshot: DocumentSnapshot) -> Optional[dict]:
    if not snapshot.exists:
        return None
    return {"id": snapshot.id, **snapshot.to_dict()}


class RequestLedger:
    def __init__(self, store: DocumentStore, clock: Callable = utcnow):
        self._requests = store.collection(REQUESTS)
        self._donations = store.collection(DONATIONS)
        self._users = store.collection(USERS)
        self._clock = clock

    def _donation_doc(self, donation_id: str) -> Optional[dict]:
        return _with_id(self._donations.doc(donation_id).get())

    def _user_doc(self, user_id: str) -> Optional[dict]:
        return _with_id(self._users.doc(user_id).get())

    def get(self, request_id: str) -> DonationRequest:
        if is_blank(request_id):
            raise NotFoundError("Request not found")
        snapshot = self._requests.doc(request_id).get()
        if not snapshot.exists:
            raise NotFoundError("Request not found")
        return _to_request(snapshot)

    def submit(self, donation_id: str, requester_id: str, reason: str) -> DonationRequest:
        if is_blank(donation_id) or is_blank(reason):
            raise ValidationError("Donation and reason are required")
        if self._donation_doc(donation_id) is None:
            raise NotFoundError("Donation not found")

        data = {
            "donation_id": donation_id,
            "requester_id": requester_id,
            "reason": reason,
            "status": RequestStatus.PENDING.value,
            "created_at": self._clock(),
        }
        ref = self._requests.add(data)
        logger.info(
            "Request %s submitted by %s for donation %s", ref.id, requester_id, donation_id
        )
        return DonationRequest.model_validate({"id": ref.id, **data})

    def list_by_requester(self, user_id: str) -> List[RequestHistoryEntry]:
        snapshots = (
            self._requests.where("requester_id", "==", user_id)
            .order_by("created_at", DESCENDING)
            .get()
        )
        entries = []
        for snapshot in snapshots:
            request = _to_request(snapshot)
            entries.append(
                RequestHistoryEntry(
                    **request.model_dump(),
                    donation=self._donation_doc(request.donation_id),
                )
            )
        return entries

    def list_received_by_donor(self, donor_id: str) -> List[ReceivedRequestEntry]:
        owned = {
            snapshot.id: _with_id(snapshot)
            for snapshot in self._donations.where("owner_id", "==", donor_id).get()
        }
        if not owned:
            return []

        snapshots = (
            self._requests.where("donation_id", "in", list(owned))
            .order_by("created_at", DESCENDING)
            .get()
        )
        entries = []
        for snapshot in snapshots:
            request = _to_request(snapshot)
            entries.append(
                ReceivedRequestEntry(
                    **request.model_dump(),
                    donation=owned.get(request.donation_id),
                    requester=self._user_doc(request.requester_id),
                )
            )
        return entries

    def decide(
        self,
        request_id: str,
        donor_id: str,
        outcome: Union[RequestStatus, str],
    ) -> DecisionRead:
        """
        Accept or decline a request on behalf of the donation's owner.

        A request that was already decided keeps its first decision; the
        call then changes nothing and reports `changed=False`.
        Returns the requester's contact details for the donor.
        """
        target = parse_choice(RequestStatus, outcome, "outcome")
        if not target.is_terminal:
            raise ValidationError("Outcome must be accepted or declined")

        request = self.get(request_id)
        donation = self._donation_doc(request.donation_id)
        if donation is None:
            raise NotFoundError("Donation not found")
        require_owner(donation["owner_id"], donor_id, "manage requests for this donation")

        changed = request.status.can_transition_to(target)
        if changed:
            self._requests.doc(request_id).update({"status": target.value})
            status = target
            logger.info("Request %s %s by %s", request_id, target.value, donor_id)
        else:
            status = request.status
            logger.warning(
                "Request %s is already %s; ignoring %s",
                request_id,
                request.status.value,
                target.value,
            )

        requester = self._user_doc(request.requester_id)
        contact = None
        if requester is not None:
            contact = RequesterContact(
                name=requester["name"],
                phone=requester.get("phone"),
                email=requester["email"],
            )
        return DecisionRead(status=status, changed=changed, requester=contact)
