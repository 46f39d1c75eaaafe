import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException

from safeballot import config
from safeballot.ballot_store import BallotNotFound
from safeballot.dependencies import Services, get_services
from safeballot.models.vote_model import SubmissionResult
from safeballot.schemas import ClearStatusOut, VoteSubmitRequest, VoterStatusOut

logger = logging.getLogger(__name__)

vote_router = APIRouter(prefix="/vote", tags=["Vote"])

FAILURE_STATUS = {
    "validation": 400,
    "ineligible": 403,
    "network": 503,
}


# ------------------------------
# BALLOT FOR THE VOTING SCREEN
# ------------------------------
@vote_router.get("/{ballot_id}/ballot")
def get_ballot(ballot_id: str, slug: Optional[str] = None, services: Services = Depends(get_services)):
    try:
        ballot = services.ballot_store.get_ballot(ballot_id, slug)
    except BallotNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
    return ballot.to_wire()


# ------------------------------
# SUBMIT VOTE
# ------------------------------
@vote_router.post("/{ballot_id}/submit", response_model=SubmissionResult, status_code=201)
def submit_vote(ballot_id: str, body: VoteSubmitRequest, services: Services = Depends(get_services)):
    """
    Submits the voter's responses.
    Failures come back with the full result as the detail, so the client can
    tell a locally saved ballot apart from a rejected one.
    """
    try:
        ballot = services.ballot_store.get_ballot(ballot_id, body.slug)
    except BallotNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))

    result = services.pipeline.submit(
        ballot_id,
        body.responses,
        ballot,
        entered_key=body.digital_key,
    )
    if not result.ok:
        raise HTTPException(status_code=FAILURE_STATUS[result.kind], detail=result.model_dump())
    services.flows.pop(ballot_id, None)
    return result


# ------------------------------
# VOTER STATUS FOR A BALLOT
# ------------------------------
@vote_router.get("/{ballot_id}/status", response_model=VoterStatusOut)
def voter_status(ballot_id: str, services: Services = Depends(get_services)):
    state = services.state
    return VoterStatusOut(
        ballot_id=ballot_id,
        verified=state.is_verified(ballot_id),
        has_voted=state.has_voted(ballot_id),
        has_digital_key=state.get_digital_key(ballot_id) is not None,
        pending_vote=state.get_pending_vote(ballot_id) is not None,
        voter_id=state.get_voter_id(ballot_id),
    )


@vote_router.delete("/{ballot_id}/status", response_model=ClearStatusOut)
def clear_voter_status(ballot_id: str, services: Services = Depends(get_services)):
    """Debug tool: forget verification, key and vote markers for one ballot."""
    if not config.DEBUG_TOOLS:
        raise HTTPException(status_code=404, detail="Not found.")
    removed = services.state.clear_ballot(ballot_id)
    services.flows.pop(ballot_id, None)
    logger.warning(f"Voter status cleared for ballot {ballot_id}")
    return ClearStatusOut(ballot_id=ballot_id, removed=removed)
