# safeballot/submission.py
"""Vote submission pipeline.

``submit`` validates the voter's digital key, builds the wire payload, and
hands it to an ordered list of transports through :func:`first_success`:

1. the ballot service client,
2. a direct POST to the same endpoint with an explicit bearer credential,
3. when both fail, the vote is kept on this device and the voter is told
   the ballot may not have reached the election administrators.

A 403 from any transport is an eligibility rejection and stops the chain.
Each call gets its own voter-scoped :class:`RequestContext`; the
administrator token in the store is never sent and never touched.
"""
import logging
from typing import Any, Dict, List, Literal, Mapping, Optional, Union

import requests
from pydantic import BaseModel, ConfigDict, Field

from safeballot.config import DEFAULT_VOTER_NAME, REQUEST_TIMEOUT
from safeballot.models.ballot_model import BallotRecord
from safeballot.models.vote_model import (
    WRITE_IN,
    Response,
    SubmissionResult,
    VoteSelection,
    VoterInfo,
    VotePayload,
)
from safeballot.quick_ballot import QuickBallotGate
from safeballot.security import bearer, create_voter_token
from safeballot.services.api import ApiError, BallotService, mask_email, parse_response, voter_id_from
from safeballot.voter_state import VoterState

logger = logging.getLogger(__name__)

NOT_VERIFIED_MESSAGE = "Digital key not found. Please complete verification first."
INVALID_KEY_MESSAGE = "Invalid digital key. Please enter the correct key."
ALREADY_VOTED_MESSAGE = "A vote for this ballot has already been recorded on this device."
LOCAL_ONLY_MESSAGE = (
    "We could not reach the election server. Your ballot was saved on this device only "
    "and may be inaccessible to election administrators. Please try again."
)
SUBMIT_FAILED_MESSAGE = "Failed to submit your vote. Please try again."
SUCCESS_MESSAGE = "Your vote has been recorded."


def _strip_bearer(token: str) -> str:
    return token[len("Bearer "):] if token.startswith("Bearer ") else token


class RequestContext(BaseModel):
    """Credentials for one outgoing vote request, always voter-scoped."""

    model_config = ConfigDict(frozen=True)

    ballot_id: str
    token: str

    def headers(self) -> Dict[str, str]:
        return {"Authorization": bearer(self.token), "Content-Type": "application/json"}

    @classmethod
    def for_voter(cls, state: VoterState, ballot_id: str, voter_id: Optional[str] = None) -> "RequestContext":
        token = state.get_voter_token()
        admin_token = state.get_admin_token()
        if token and admin_token and _strip_bearer(token) == _strip_bearer(admin_token):
            logger.warning("Stored voter token is the administrator credential; issuing a fresh voter token")
            token = None
        if not token:
            token = create_voter_token(ballot_id, voter_id)
        return cls(ballot_id=str(ballot_id), token=_strip_bearer(token))


# ==============================================================================
# Transports
# ==============================================================================

class VoteTransport:
    name = "transport"

    def send(self, ballot_id: str, body: Dict[str, Any], context: RequestContext) -> Dict[str, Any]:
        raise NotImplementedError


class ServiceTransport(VoteTransport):
    name = "service"

    def __init__(self, ballot_service: BallotService):
        self.ballot_service = ballot_service

    def send(self, ballot_id, body, context):
        return self.ballot_service.cast_vote(ballot_id, body, headers=context.headers())


class DirectTransport(VoteTransport):
    """Plain ``requests.post`` to the vote endpoint, outside the service client."""

    name = "direct"

    def __init__(self, ballot_service: BallotService, http_post=requests.post, timeout: float = REQUEST_TIMEOUT):
        self.ballot_service = ballot_service
        self.http_post = http_post
        self.timeout = timeout

    def send(self, ballot_id, body, context):
        url = self.ballot_service.url(self.ballot_service.vote_path(ballot_id))
        try:
            resp = self.http_post(url, json=body, headers=context.headers(), timeout=self.timeout)
        except requests.RequestException as e:
            raise ApiError(f"Direct vote request failed: {e}") from e
        return parse_response(resp, "direct vote")


class TransportOutcome(BaseModel):
    status: Literal["delivered", "ineligible", "exhausted"]
    transport: Optional[str] = None
    response: Dict[str, Any] = Field(default_factory=dict)
    message: str = ""
    attempts: List[str] = Field(default_factory=list)
    errors: List[str] = Field(default_factory=list)


def is_eligibility_rejection(error: Exception) -> bool:
    """403 means the server refused this voter; no other transport can change that."""
    return isinstance(error, ApiError) and error.status_code == 403


def first_success(strategies: List[VoteTransport], ballot_id: str, body: Dict[str, Any],
                  context: RequestContext) -> TransportOutcome:
    attempts, errors = [], []
    for strategy in strategies:
        attempts.append(strategy.name)
        try:
            response = strategy.send(ballot_id, body, context)
        except ApiError as e:
            if is_eligibility_rejection(e):
                logger.warning(f"Vote for ballot {ballot_id} rejected as ineligible by {strategy.name}: {e}")
                return TransportOutcome(status="ineligible", transport=strategy.name,
                                        message=e.message, attempts=attempts, errors=errors)
            logger.warning(f"Vote transport '{strategy.name}' failed for ballot {ballot_id}: {e}")
            errors.append(f"{strategy.name}: {e}")
            continue
        return TransportOutcome(status="delivered", transport=strategy.name,
                                response=response, attempts=attempts, errors=errors)
    return TransportOutcome(status="exhausted", attempts=attempts, errors=errors)


# ==============================================================================
# Pipeline
# ==============================================================================

class VoteSubmissionPipeline:
    def __init__(self, state: VoterState, transports: List[VoteTransport],
                 gate: Optional[QuickBallotGate] = None, registrar: Optional[BallotService] = None):
        self.state = state
        self.transports = list(transports)
        self.gate = gate or QuickBallotGate()
        # registers voters that reach the ballot without a voter id
        self.registrar = registrar

    @classmethod
    def with_default_transports(cls, state: VoterState, ballot_service: BallotService,
                                gate: Optional[QuickBallotGate] = None) -> "VoteSubmissionPipeline":
        return cls(state, [ServiceTransport(ballot_service), DirectTransport(ballot_service)],
                   gate=gate, registrar=ballot_service)

    def submit(
        self,
        ballot_id: str,
        responses: Mapping[Any, Union[Response, Dict[str, Any]]],
        ballot: BallotRecord,
        entered_key: Optional[str] = None,
    ) -> SubmissionResult:
        """Cast the voter's responses.

        Whether the ballot is quick comes from the ballot itself or from the
        decision recorded when the voter landed on it, never from the caller.
        """
        ballot_id = str(ballot_id)
        quick = self.gate.should_bypass_verification(ballot) or self.state.is_quick_bypass(ballot_id)

        if self.state.has_voted(ballot_id):
            return SubmissionResult.failure("validation", ALREADY_VOTED_MESSAGE)

        digital_key = None
        if not quick:
            stored_key = self.state.get_digital_key(ballot_id)
            if not stored_key:
                return SubmissionResult.failure("validation", NOT_VERIFIED_MESSAGE)
            if entered_key is not None and entered_key != stored_key:
                return SubmissionResult.failure("validation", INVALID_KEY_MESSAGE)
            digital_key = stored_key
            self.ensure_registered(ballot_id)

        try:
            payload = self.build_payload(ballot_id, responses, ballot, digital_key, quick)
        except ValueError as e:
            return SubmissionResult.failure("validation", str(e))

        context = RequestContext.for_voter(self.state, ballot_id, payload.voter_id)
        body = payload.to_wire()
        outcome = first_success(self.transports, ballot_id, body, context)

        if outcome.status == "delivered":
            return self._record_success(ballot_id, quick, outcome)
        if outcome.status == "ineligible":
            return SubmissionResult.failure("ineligible", outcome.message, attempts=outcome.attempts)
        return self._save_locally(ballot_id, body, outcome)

    def build_payload(self, ballot_id: str, responses, ballot: BallotRecord,
                      digital_key: Optional[str], quick: bool) -> VotePayload:
        """Resolve each response against the ballot. Raises ValueError on a bad selection."""
        selections = []
        for key, raw in sorted(((int(k), v) for k, v in responses.items()), key=lambda kv: kv[0]):
            response = raw if isinstance(raw, Response) else Response.model_validate(raw)
            if not 0 <= key < len(ballot.questions):
                raise ValueError(f"Answer given for unknown question {key + 1}")
            question = ballot.questions[key]

            if response.index == WRITE_IN:
                text = response.text.strip()
                if not text:
                    raise ValueError(f"Write-in answer for question {key + 1} is empty")
                selections.append(VoteSelection(
                    question_index=key, question_id=question.id, text=text, write_in=text,
                ))
                continue

            if not 0 <= response.index < len(question.options):
                raise ValueError(f"Selection for question {key + 1} is not one of its options")
            option = question.options[response.index]
            selections.append(VoteSelection(
                question_index=key,
                question_id=question.id,
                choice_id=option.id,
                text=response.text or option.text,
                party=response.party or option.party or "",
            ))

        if not selections:
            raise ValueError("Select an answer before submitting your ballot")

        if quick:
            return VotePayload(ballot_id=ballot_id, selections=selections, quick_ballot=True)
        return VotePayload(
            ballot_id=ballot_id,
            selections=selections,
            voter=self.resolve_voter(ballot_id),
            voter_id=self.state.get_voter_id(ballot_id),
            digital_key=digital_key,
        )

    def ensure_registered(self, ballot_id: str) -> Optional[str]:
        """Register the voter for the ballot when no voter id is stored yet. Best effort."""
        voter_id = self.state.get_voter_id(ballot_id)
        if voter_id or self.registrar is None:
            return voter_id
        voter = self.resolve_voter(ballot_id)
        if not voter.email:
            return None
        try:
            resp = self.registrar.public_register_voter(ballot_id, voter.name, voter.email)
        except ApiError as e:
            logger.warning(f"Pre-vote registration for ballot {ballot_id} failed: {e}")
            return None
        voter_id = voter_id_from(resp)
        if voter_id:
            self.state.set_voter_id(ballot_id, voter_id)
            logger.info(f"Registered {mask_email(voter.email)} for ballot {ballot_id} before voting")
        return voter_id

    def resolve_voter(self, ballot_id: str) -> VoterInfo:
        profile = self.state.get_voter_profile() or {}
        if not isinstance(profile, dict):
            profile = {}
        name = self.state.get_verified_name(ballot_id) or profile.get("name")
        email = self.state.get_verified_email(ballot_id) or profile.get("email")
        if not name:
            logger.warning("Using default voter name as none was found")
        return VoterInfo(name=name or DEFAULT_VOTER_NAME, email=email)

    def _record_success(self, ballot_id: str, quick: bool, outcome: TransportOutcome) -> SubmissionResult:
        self.state.mark_voted(ballot_id)
        self.state.clear_pending_vote(ballot_id)

        data = outcome.response.get("data")
        voter_id = data.get("voterId") if isinstance(data, dict) else None
        if voter_id and not quick:
            self.state.set_voter_id(ballot_id, str(voter_id))

        logger.info(f"Vote for ballot {ballot_id} delivered via {outcome.transport}")
        return SubmissionResult(
            ok=True,
            message=SUCCESS_MESSAGE,
            next_view="results" if quick else "confirmation",
            transport=outcome.transport,
            voter_id=str(voter_id) if voter_id and not quick else None,
            attempts=outcome.attempts,
        )

    def _save_locally(self, ballot_id: str, body: Dict[str, Any], outcome: TransportOutcome) -> SubmissionResult:
        logger.error(f"All vote transports failed for ballot {ballot_id}: {'; '.join(outcome.errors)}")
        try:
            self.state.save_pending_vote(ballot_id, body)
        except Exception:
            logger.exception(f"Could not keep a local copy of the vote for ballot {ballot_id}")
            return SubmissionResult.failure("network", SUBMIT_FAILED_MESSAGE, attempts=outcome.attempts)
        return SubmissionResult.failure(
            "network", LOCAL_ONLY_MESSAGE, saved_locally=True, attempts=outcome.attempts
        )
