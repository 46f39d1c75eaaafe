# safeballot/digital_key.py
import logging
import secrets
import string
from typing import Literal, Optional

from pydantic import BaseModel

from safeballot.config import FALLBACK_KEY_PREFIX, FALLBACK_KEY_SEGMENT_LENGTH
from safeballot.services.api import ApiError, AuthService, mask_email
from safeballot.voter_state import VoterState

logger = logging.getLogger(__name__)

_KEY_ALPHABET = string.ascii_uppercase + string.digits

FALLBACK_WARNING = "Failed to generate digital key from server, using fallback"


class KeyIssue(BaseModel):
    key: str
    source: Literal["stored", "server", "fallback"]
    warning: Optional[str] = None


def generate_fallback_key() -> str:
    segments = [
        "".join(secrets.choice(_KEY_ALPHABET) for _ in range(FALLBACK_KEY_SEGMENT_LENGTH))
        for _ in range(2)
    ]
    return "-".join([FALLBACK_KEY_PREFIX] + segments)


def _extract_key(body: dict) -> Optional[str]:
    data = body.get("data") if isinstance(body.get("data"), dict) else {}
    for candidate in (body.get("digital_key"), body.get("digitalKey"),
                      data.get("digital_key"), data.get("digitalKey")):
        if isinstance(candidate, str) and candidate:
            return candidate
    return None


class DigitalKeyService:
    """Issue the voter's digital key for a ballot, at most once per ballot.

    The server is authoritative; when it cannot be reached, or no email is
    known for the voter, a client-side key is generated so the voter is never
    blocked. Nothing here raises to the caller.
    """

    def __init__(self, state: VoterState, auth_service: AuthService):
        self.state = state
        self.auth_service = auth_service

    def _resolve_email(self, ballot_id: str, voter_email: Optional[str]) -> Optional[str]:
        if voter_email:
            return voter_email
        stored = self.state.get_verified_email(ballot_id)
        if stored:
            return stored
        profile = self.state.get_voter_profile() or {}
        email = profile.get("email") if isinstance(profile, dict) else None
        return email or None

    def issue_or_reuse(self, ballot_id: str, voter_email: Optional[str] = None,
                       voter_name: Optional[str] = None) -> KeyIssue:
        existing = self.state.get_digital_key(ballot_id)
        if existing:
            logger.info(f"Using existing digital key for ballot {ballot_id}")
            return KeyIssue(key=existing, source="stored")

        email = self._resolve_email(ballot_id, voter_email)
        if email:
            try:
                body = self.auth_service.generate_digital_key(email, ballot_id)
                server_key = _extract_key(body)
                if server_key is None:
                    raise ApiError("Invalid response format from server", payload=body)
                self.state.set_digital_key(ballot_id, server_key)
                self.state.set_verified(ballot_id)
                self.state.set_verified_identity(ballot_id, voter_name, email)
                logger.info(f"Server-issued digital key stored for ballot {ballot_id} ({mask_email(email)})")
                return KeyIssue(key=server_key, source="server")
            except ApiError as e:
                logger.error(f"Error generating server-side digital key for ballot {ballot_id}: {e}")
        else:
            logger.warning("No voter email available, using fallback client-side generation")

        fallback_key = generate_fallback_key()
        self.state.set_digital_key(ballot_id, fallback_key)
        self.state.set_verified(ballot_id)
        self.state.set_verified_identity(ballot_id, voter_name, email)
        logger.warning(f"Fallback digital key issued for ballot {ballot_id}; not server-attested")
        return KeyIssue(key=fallback_key, source="fallback", warning=FALLBACK_WARNING)
