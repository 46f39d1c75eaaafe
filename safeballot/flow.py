# safeballot/flow.py
"""Voter verification flow.

Two variants share one state enum and one pure transition table:

Registration (new voter)::

    IDENTITY -> SCAN -> CONFIRM -> VERIFIED -> VOTING

Login (returning voter)::

    SCAN -> VERIFIED -> VOTING

CONFIRM has no entry in the Login table, so no event sequence can reach it
there. :class:`VerificationFlow` wraps the table with each state's side
effects (voter registration, id email, digital key issuance).
"""
import logging
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel

from safeballot.capture import IdentityCapture, to_identity_record
from safeballot.config import DEFAULT_VOTER_NAME
from safeballot.digital_key import DigitalKeyService
from safeballot.models.ballot_model import BallotRecord
from safeballot.models.voter_model import IdentityRecord, VoterSession
from safeballot.quick_ballot import QuickBallotGate
from safeballot.services.api import ApiError, BallotService, mask_email, voter_id_from
from safeballot.voter_state import VoterState

logger = logging.getLogger(__name__)

PENDING_START_NOTICE = (
    "You are registered for this election. Your digital key will be available "
    "to vote once the election starts."
)


class FlowVariant(str, Enum):
    REGISTRATION = "registration"
    LOGIN = "login"


class FlowState(str, Enum):
    IDENTITY = "identity"
    SCAN = "scan"
    CONFIRM = "confirm"
    VERIFIED = "verified"
    # terminal / pseudo states
    READY = "ready"
    VOTING = "voting"
    EXITED = "exited"


class FlowEvent(str, Enum):
    COMPLETE = "complete"
    BACK = "back"


class FlowError(Exception):
    pass


S, E = FlowState, FlowEvent

_TRANSITIONS = {
    FlowVariant.REGISTRATION: {
        (S.IDENTITY, E.COMPLETE): S.SCAN,
        (S.IDENTITY, E.BACK): S.EXITED,
        (S.SCAN, E.COMPLETE): S.CONFIRM,
        (S.SCAN, E.BACK): S.IDENTITY,
        (S.CONFIRM, E.COMPLETE): S.VERIFIED,
        (S.CONFIRM, E.BACK): S.SCAN,
        (S.VERIFIED, E.COMPLETE): S.VOTING,
        (S.VERIFIED, E.BACK): S.CONFIRM,
        (S.READY, E.COMPLETE): S.VOTING,
        (S.READY, E.BACK): S.EXITED,
    },
    FlowVariant.LOGIN: {
        (S.SCAN, E.COMPLETE): S.VERIFIED,
        (S.SCAN, E.BACK): S.EXITED,
        (S.VERIFIED, E.COMPLETE): S.VOTING,
        (S.VERIFIED, E.BACK): S.SCAN,
        (S.READY, E.COMPLETE): S.VOTING,
        (S.READY, E.BACK): S.EXITED,
    },
}

INITIAL_STATE = {
    FlowVariant.REGISTRATION: FlowState.IDENTITY,
    FlowVariant.LOGIN: FlowState.SCAN,
}


def transition(variant: FlowVariant, state: FlowState, event: FlowEvent) -> FlowState:
    """Pure reducer: the next state, or FlowError if the event is not accepted."""
    try:
        return _TRANSITIONS[variant][(state, event)]
    except KeyError:
        raise FlowError(f"'{event.value}' is not accepted in state '{state.value}' of the {variant.value} flow") from None


def reachable_states(variant: FlowVariant) -> set:
    table = _TRANSITIONS[variant]
    return {s for s, _ in table} | set(table.values())


def select_variant(state: VoterState, came_from_login: bool = False) -> FlowVariant:
    """Login when the session carries prior-login markers, Registration otherwise."""
    if came_from_login or state.get_voter_token() or state.get_voter_profile():
        return FlowVariant.LOGIN
    return FlowVariant.REGISTRATION


class FlowStatus(BaseModel):
    ballot_id: str
    variant: FlowVariant
    state: FlowState
    history: List[FlowState]
    bypassed: bool = False
    display_key: Optional[str] = None
    notice: Optional[str] = None
    warning: Optional[str] = None
    identity: Optional[IdentityRecord] = None
    voter_email: Optional[str] = None
    voter_name: Optional[str] = None
    voter_id: Optional[str] = None


class VerificationFlow:
    def __init__(
        self,
        ballot_id: str,
        state: VoterState,
        key_service: DigitalKeyService,
        ballot_service: BallotService,
        capture: Optional[IdentityCapture] = None,
        came_from_login: bool = False,
        id_data: Optional[Dict[str, Any]] = None,
        ballot: Optional[BallotRecord] = None,
        request_path: Optional[str] = None,
        gate: Optional[QuickBallotGate] = None,
    ):
        self.ballot_id = str(ballot_id)
        self.voter_state = state
        self.key_service = key_service
        self.ballot_service = ballot_service
        self.capture = capture
        self.gate = gate or QuickBallotGate()

        self.variant = select_variant(state, came_from_login)
        self.session = self._session_from_state()
        self.identity: Optional[IdentityRecord] = None
        self.history: List[FlowState] = []
        self.state: Optional[FlowState] = None
        self.bypassed = False
        self.display_key: Optional[str] = None
        self.notice: Optional[str] = None
        self.warning: Optional[str] = None

        stored_key = state.get_digital_key(self.ballot_id)
        if self.gate.should_bypass_verification(ballot, request_path):
            self.bypassed = True
            state.set_quick_bypass(self.ballot_id)
            self.display_key = self.gate.sentinel_key
            initial = FlowState.READY
        elif state.is_verified(self.ballot_id) and stored_key:
            logger.info(f"Ballot {self.ballot_id} already verified; skipping verification steps")
            self.display_key = stored_key
            initial = FlowState.READY
        elif self.variant is FlowVariant.LOGIN and id_data is not None:
            # arrived from voter login with the document already scanned
            self.identity = to_identity_record(id_data)
            initial = FlowState.VERIFIED
        else:
            initial = INITIAL_STATE[self.variant]
        self._enter(initial)

    # --- callbacks exposed to each step screen ---

    def on_complete(self, data: Optional[Dict[str, Any]] = None) -> FlowStatus:
        current = self.state
        nxt = transition(self.variant, current, FlowEvent.COMPLETE)
        if current is FlowState.IDENTITY:
            self._accept_identity_proof(data or {})
        elif current is FlowState.SCAN:
            self._accept_scan(data)
        elif current is FlowState.CONFIRM:
            self._register_voter()
        self._enter(nxt)
        return self.status()

    def on_back(self) -> FlowStatus:
        self._enter(transition(self.variant, self.state, FlowEvent.BACK))
        return self.status()

    def status(self) -> FlowStatus:
        return FlowStatus(
            ballot_id=self.ballot_id,
            variant=self.variant,
            state=self.state,
            history=list(self.history),
            bypassed=self.bypassed,
            display_key=self.display_key,
            notice=self.notice,
            warning=self.warning,
            identity=self.identity,
            voter_email=self.session.email,
            voter_name=self.session.name,
            voter_id=self.session.voter_id,
        )

    # --- state entry and step side effects ---

    def _enter(self, new_state: FlowState):
        logger.info(
            f"[{self.variant.value.upper()} FLOW] Transition: "
            f"{self.state.value if self.state else 'entry'} -> {new_state.value} (ballot {self.ballot_id})"
        )
        self.state = new_state
        self.history.append(new_state)
        if new_state is FlowState.VERIFIED:
            self._issue_key()

    def _session_from_state(self) -> VoterSession:
        profile = self.voter_state.get_voter_profile() or {}
        if not isinstance(profile, dict):
            profile = {}
        return VoterSession(
            email=self.voter_state.get_verified_email(self.ballot_id) or profile.get("email"),
            name=self.voter_state.get_verified_name(self.ballot_id) or profile.get("name"),
            voter_id=self.voter_state.get_voter_id(self.ballot_id),
        )

    def _accept_identity_proof(self, data: Dict[str, Any]):
        email = data.get("email") or self.session.email
        if not email:
            raise FlowError("An email address is required to continue")
        self.session.email = email
        if data.get("name"):
            self.session.name = data["name"]

    def _accept_scan(self, data: Optional[Dict[str, Any]]):
        if data is not None:
            self.identity = to_identity_record(data)
        elif self.capture is not None:
            self.identity = self.capture.capture()
        else:
            raise FlowError("The scan step needs identity data")
        logger.info(f"ID scan completed for ballot {self.ballot_id}")

    def _register_voter(self):
        self.session.name = self.identity.full_name if self.identity else (self.session.name or DEFAULT_VOTER_NAME)
        email = self.session.email
        self.voter_state.set_verified_identity(self.ballot_id, self.session.name, email)
        if not email:
            logger.warning(f"No voter email for ballot {self.ballot_id}; skipping registration and id email")
            return

        try:
            resp = self.ballot_service.public_register_voter(self.ballot_id, self.session.name, email)
            voter_id = voter_id_from(resp)
            if voter_id:
                self.session.voter_id = voter_id
                self.voter_state.set_voter_id(self.ballot_id, voter_id)
            elif resp.get("error"):
                logger.warning(f"Voter registration for ballot {self.ballot_id} reported: {resp['error']}")
        except ApiError as e:
            logger.warning(f"Voter registration for ballot {self.ballot_id} failed: {e}")

        try:
            resp = self.ballot_service.send_voter_id_email(self.ballot_id, self.session.name, email)
            if resp.get("voterId") and not self.session.voter_id:
                self.session.voter_id = str(resp["voterId"])
                self.voter_state.set_voter_id(self.ballot_id, self.session.voter_id)
            logger.info(f"Voter id email requested for {mask_email(email)}")
        except ApiError as e:
            logger.warning(f"Sending voter id email for ballot {self.ballot_id} failed: {e}")

    def _issue_key(self):
        issue = self.key_service.issue_or_reuse(self.ballot_id, self.session.email, self.session.name)
        self.warning = issue.warning
        if self.variant is FlowVariant.REGISTRATION:
            self.display_key = None
            self.notice = PENDING_START_NOTICE
        else:
            self.display_key = issue.key
            self.notice = None

