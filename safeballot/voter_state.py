"""Typed access to the voter's durable per-ballot state.

Every read and write of a state key goes through :class:`VoterState`, so the
key names below are the only place the storage layout is spelled out.
"""
import json
import logging
from typing import Any, Dict, List, Optional

from safeballot.storage import KeyValueStore

logger = logging.getLogger(__name__)

# Session-wide keys
CACHED_BALLOTS_KEY = "userBallots"
VOTER_TOKEN_KEY = "voterToken"
VOTER_PROFILE_KEY = "voterUser"
ADMIN_TOKEN_KEY = "adminToken"

# Per-ballot key prefixes
_BALLOT_PREFIXES = (
    "digital_key_",
    "verified_",
    "verified_name_",
    "verified_email_",
    "voter_id_",
    "hasVoted_",
    "pending_vote_",
    "quick_bypass_",
)


def _flag(value: Optional[str]) -> bool:
    return value is not None and value.lower() == "true"


class VoterState:
    def __init__(self, store: KeyValueStore):
        self.store = store

    # --- digital key ---
    def get_digital_key(self, ballot_id: str) -> Optional[str]:
        return self.store.get(f"digital_key_{ballot_id}") or None

    def set_digital_key(self, ballot_id: str, key: str) -> None:
        self.store.set(f"digital_key_{ballot_id}", key)

    # --- verification ---
    def is_verified(self, ballot_id: str) -> bool:
        return _flag(self.store.get(f"verified_{ballot_id}"))

    def set_verified(self, ballot_id: str) -> None:
        self.store.set(f"verified_{ballot_id}", "true")

    def get_verified_name(self, ballot_id: str) -> Optional[str]:
        return self.store.get(f"verified_name_{ballot_id}") or None

    def get_verified_email(self, ballot_id: str) -> Optional[str]:
        return self.store.get(f"verified_email_{ballot_id}") or None

    def set_verified_identity(self, ballot_id: str, name: Optional[str], email: Optional[str]) -> None:
        if name:
            self.store.set(f"verified_name_{ballot_id}", name)
        if email:
            self.store.set(f"verified_email_{ballot_id}", email)

    # --- registered voter id ---
    def get_voter_id(self, ballot_id: str) -> Optional[str]:
        return self.store.get(f"voter_id_{ballot_id}") or None

    def set_voter_id(self, ballot_id: str, voter_id: str) -> None:
        self.store.set(f"voter_id_{ballot_id}", str(voter_id))

    # --- voting ---
    def has_voted(self, ballot_id: str) -> bool:
        return _flag(self.store.get(f"hasVoted_{ballot_id}"))

    def mark_voted(self, ballot_id: str) -> None:
        self.store.set(f"hasVoted_{ballot_id}", "true")

    def get_pending_vote(self, ballot_id: str) -> Optional[Dict[str, Any]]:
        return self._get_json(f"pending_vote_{ballot_id}")

    def save_pending_vote(self, ballot_id: str, body: Dict[str, Any]) -> None:
        self.store.set(f"pending_vote_{ballot_id}", json.dumps(body))

    def clear_pending_vote(self, ballot_id: str) -> None:
        self.store.remove(f"pending_vote_{ballot_id}")

    # --- quick-ballot landing decision ---
    def is_quick_bypass(self, ballot_id: str) -> bool:
        return _flag(self.store.get(f"quick_bypass_{ballot_id}"))

    def set_quick_bypass(self, ballot_id: str) -> None:
        self.store.set(f"quick_bypass_{ballot_id}", "true")

    # --- session credentials and profile ---
    def get_voter_token(self) -> Optional[str]:
        return self.store.get(VOTER_TOKEN_KEY) or None

    def set_voter_token(self, token: str) -> None:
        self.store.set(VOTER_TOKEN_KEY, token)

    def get_voter_profile(self) -> Optional[Dict[str, Any]]:
        return self._get_json(VOTER_PROFILE_KEY)

    def set_voter_profile(self, profile: Dict[str, Any]) -> None:
        self.store.set(VOTER_PROFILE_KEY, json.dumps(profile))

    def get_admin_token(self) -> Optional[str]:
        return self.store.get(ADMIN_TOKEN_KEY) or None

    # --- cached ballot collection ---
    def get_cached_ballots(self) -> List[Dict[str, Any]]:
        cached = self._get_json(CACHED_BALLOTS_KEY)
        return cached if isinstance(cached, list) else []

    def set_cached_ballots(self, ballots: List[Dict[str, Any]]) -> None:
        self.store.set(CACHED_BALLOTS_KEY, json.dumps(ballots))

    def clear_ballot(self, ballot_id: str) -> List[str]:
        """Forget everything stored for one ballot. Returns the removed keys."""
        removed = []
        for prefix in _BALLOT_PREFIXES:
            key = f"{prefix}{ballot_id}"
            if self.store.get(key) is not None:
                self.store.remove(key)
                removed.append(key)
        logger.info(f"Cleared {len(removed)} state keys for ballot {ballot_id}")
        return removed

    def _get_json(self, key: str):
        raw = self.store.get(key)
        if not raw:
            return None
        try:
            return json.loads(raw)
        except json.JSONDecodeError:
            logger.warning(f"Ignoring unparseable value stored under {key}")
            return None
