from fastapi import APIRouter, Depends, HTTPException

from safeballot.ballot_store import BallotNotFound
from safeballot.dependencies import Services, get_services
from safeballot.flow import FlowError, FlowState, FlowStatus, VerificationFlow
from safeballot.schemas import StartVerificationRequest, StepCompleteRequest

router = APIRouter(prefix="/verify", tags=["Verification"])


def _flow_or_404(services: Services, ballot_id: str) -> VerificationFlow:
    flow = services.flows.get(ballot_id)
    if flow is None:
        raise HTTPException(status_code=404, detail="No verification in progress for this ballot.")
    return flow


@router.post("/{ballot_id}/start", response_model=FlowStatus)
def start_verification(ballot_id: str, body: StartVerificationRequest = StartVerificationRequest(),
                       services: Services = Depends(get_services)):
    """
    Opens the verification flow for a ballot.
    Quick ballots and already verified voters land directly in the ready state.
    """
    try:
        ballot = services.ballot_store.get_ballot(ballot_id, body.slug)
    except BallotNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))

    flow = VerificationFlow(
        ballot_id,
        services.state,
        services.key_service,
        services.ballot_service,
        came_from_login=body.came_from_login,
        id_data=body.id_data,
        ballot=ballot,
        request_path=body.request_path,
        gate=services.gate,
    )
    services.flows[ballot_id] = flow
    return flow.status()


@router.get("/{ballot_id}", response_model=FlowStatus)
def get_verification(ballot_id: str, services: Services = Depends(get_services)):
    return _flow_or_404(services, ballot_id).status()


@router.post("/{ballot_id}/complete", response_model=FlowStatus)
def complete_step(ballot_id: str, body: StepCompleteRequest = StepCompleteRequest(),
                  services: Services = Depends(get_services)):
    flow = _flow_or_404(services, ballot_id)
    # the scan step takes document fields, the identity step takes contact details
    if flow.state is FlowState.SCAN:
        data = body.id_data
    else:
        data = body.model_dump(exclude_none=True, exclude={"id_data"})
    try:
        return flow.on_complete(data)
    except FlowError as e:
        raise HTTPException(status_code=409, detail=str(e))


@router.post("/{ballot_id}/back", response_model=FlowStatus)
def step_back(ballot_id: str, services: Services = Depends(get_services)):
    flow = _flow_or_404(services, ballot_id)
    try:
        return flow.on_back()
    except FlowError as e:
        raise HTTPException(status_code=409, detail=str(e))
