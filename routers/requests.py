from typing import List

from fastapi import APIRouter

from models import RequestStatus
from schemas import (
    DecisionRead,
    ReceivedRequestEntry,
    RequestCreate,
    RequestHistoryEntry,
    RequestRead,
)
from .auth import CurrentUserDep, LedgerDep

router = APIRouter(tags=["requests"])


@router.post("", response_model=RequestRead)
def create_request(request_data: RequestCreate, ledger: LedgerDep, current: CurrentUserDep):
    return ledger.submit(request_data.donation_id, current.id, request_data.reason)


@router.get("/history", response_model=List[RequestHistoryEntry])
def request_history(ledger: LedgerDep, current: CurrentUserDep):
    """
    The current user's own requests, newest first, each with its donation
    (null if the donation has since been deleted).
    """
    return ledger.list_by_requester(current.id)


@router.get("/received", response_model=List[ReceivedRequestEntry])
def received_requests(ledger: LedgerDep, current: CurrentUserDep):
    """
    Requests made on the current user's donations, with requester profiles.
    """
    return ledger.list_received_by_donor(current.id)


@router.post("/{request_id}/accept", response_model=DecisionRead)
def accept_request(request_id: str, ledger: LedgerDep, current: CurrentUserDep):
    return ledger.decide(request_id, current.id, RequestStatus.ACCEPTED)


@router.post("/{request_id}/decline", response_model=DecisionRead)
def decline_request(request_id: str, ledger: LedgerDep, current: CurrentUserDep):
    return ledger.decide(request_id, current.id, RequestStatus.DECLINED)
