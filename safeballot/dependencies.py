# safeballot/dependencies.py
# Wiring of stores, service clients and the voter-side pipeline for the API
import logging
import re
import secrets
from typing import Dict, Optional

from fastapi import Depends, Request, Response

from safeballot.ballot_store import BallotStore
from safeballot.digital_key import DigitalKeyService
from safeballot.flow import VerificationFlow
from safeballot.quick_ballot import QuickBallotGate
from safeballot.services.api import AuthService, BallotService
from safeballot.storage import KeyValueStore, NamespacedStore, build_store
from safeballot.submission import VoteSubmissionPipeline
from safeballot.voter_state import VoterState

logger = logging.getLogger(__name__)

SESSION_COOKIE = "safeballot_session"
SESSION_HEADER = "X-Voter-Session"
_SESSION_ID = re.compile(r"^[A-Za-z0-9_-]{16,128}$")


class Services:
    """Everything one voter session works with: its own state and flows."""

    def __init__(
        self,
        store: KeyValueStore,
        ballot_service: Optional[BallotService] = None,
        auth_service: Optional[AuthService] = None,
        gate: Optional[QuickBallotGate] = None,
        pipeline: Optional[VoteSubmissionPipeline] = None,
    ):
        self.store = store
        self.state = VoterState(store)
        self.ballot_service = ballot_service or BallotService()
        self.auth_service = auth_service or AuthService()
        self.gate = gate or QuickBallotGate()
        self.key_service = DigitalKeyService(self.state, self.auth_service)
        self.ballot_store = BallotStore(self.ballot_service, self.state)
        self.pipeline = pipeline or VoteSubmissionPipeline.with_default_transports(
            self.state, self.ballot_service, gate=self.gate
        )
        # in-progress verification flows, one per ballot
        self.flows: Dict[str, VerificationFlow] = {}


class Backend:
    """Process-wide store and service clients, shared by all voter sessions."""

    def __init__(
        self,
        store: KeyValueStore,
        ballot_service: Optional[BallotService] = None,
        auth_service: Optional[AuthService] = None,
        gate: Optional[QuickBallotGate] = None,
    ):
        self.store = store
        self.ballot_service = ballot_service or BallotService()
        self.auth_service = auth_service or AuthService()
        self.gate = gate or QuickBallotGate()
        self.sessions: Dict[str, Services] = {}

    def session(self, session_id: str) -> Services:
        services = self.sessions.get(session_id)
        if services is None:
            services = Services(
                NamespacedStore(self.store, f"session:{session_id}"),
                ballot_service=self.ballot_service,
                auth_service=self.auth_service,
                gate=self.gate,
            )
            self.sessions[session_id] = services
        return services


_backend: Optional[Backend] = None


def get_backend() -> Backend:
    global _backend
    if _backend is None:
        _backend = Backend(build_store())
        logger.info(f"Voter services ready ({type(_backend.store).__name__})")
    return _backend


def new_session_id() -> str:
    return secrets.token_urlsafe(24)


def get_services(request: Request, response: Response, backend: Backend = Depends(get_backend)) -> Services:
    """Resolve the caller's voter session from its header or cookie.

    Callers without a well-formed session id get a new one, returned in both
    the cookie and the response header.
    """
    session_id = request.headers.get(SESSION_HEADER) or request.cookies.get(SESSION_COOKIE)
    if not session_id or not _SESSION_ID.match(session_id):
        session_id = new_session_id()
        logger.info("Started a new voter session")
    response.set_cookie(SESSION_COOKIE, session_id, httponly=True, samesite="lax")
    response.headers[SESSION_HEADER] = session_id
    return backend.session(session_id)
