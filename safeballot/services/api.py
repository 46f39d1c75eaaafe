# safeballot/services/api.py
import logging
from typing import Any, Dict, Optional

import requests

from safeballot.config import API_URL, REQUEST_TIMEOUT

logger = logging.getLogger(__name__)


class ApiError(Exception):
    """A backing-service call failed.

    ``status_code`` is None when the request never produced an HTTP response
    (connection refused, timeout, unreadable body).
    """

    def __init__(self, message: str, status_code: Optional[int] = None, payload: Optional[dict] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.payload = payload or {}


def mask_email(email: Optional[str]) -> str:
    return f"{email[:3]}..." if email else "none"


class ApiClient:
    def __init__(self, base_url: str = API_URL, session=None, timeout: float = REQUEST_TIMEOUT):
        self.base_url = base_url.rstrip("/")
        self.session = session or requests.Session()
        self.timeout = timeout

    def url(self, path: str) -> str:
        return f"{self.base_url}/{path.lstrip('/')}"

    def request(self, method: str, path: str, json: Optional[dict] = None,
                headers: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
        url = self.url(path)
        try:
            resp = self.session.request(
                method, url, json=json, headers=headers or {}, timeout=self.timeout
            )
        except requests.RequestException as e:
            raise ApiError(f"{method} {path} failed: {e}") from e
        return parse_response(resp, f"{method} {path}")


def parse_response(resp, label: str) -> Dict[str, Any]:
    """Decode a JSON response, raising ApiError for non-2xx statuses."""
    try:
        body = resp.json()
    except ValueError:
        body = {}
    if not isinstance(body, dict):
        body = {"data": body}
    if resp.status_code >= 400:
        message = body.get("message") or body.get("error") or body.get("detail") or f"HTTP {resp.status_code}"
        raise ApiError(str(message), status_code=resp.status_code, payload=body)
    return body


class BallotService(ApiClient):
    def get_ballot_by_id(self, ballot_id: str) -> Dict[str, Any]:
        logger.info(f"Getting ballot with ID: {ballot_id}")
        return self.request("GET", f"/ballots/{ballot_id}")

    def public_register_voter(self, ballot_id: str, name: str, email: str) -> Dict[str, Any]:
        logger.info(f"Publicly registering voter for ballot {ballot_id}: {mask_email(email)}")
        return self.request(
            "POST", f"/ballots/{ballot_id}/public-register-voter", json={"name": name, "email": email}
        )

    def send_voter_id_email(self, ballot_id: str, name: str, email: str) -> Dict[str, Any]:
        return self.request(
            "POST", f"/ballots/{ballot_id}/send-voter-id", json={"name": name, "email": email}
        )

    def vote_path(self, ballot_id: str) -> str:
        return f"/ballots/{ballot_id}/public-vote"

    def cast_vote(self, ballot_id: str, body: Dict[str, Any],
                  headers: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
        logger.info(f"Submitting vote for ballot {ballot_id}")
        return self.request("POST", self.vote_path(ballot_id), json=body, headers=headers)


class AuthService(ApiClient):
    def generate_digital_key(self, email: str, ballot_id: str) -> Dict[str, Any]:
        return self.request(
            "POST", "/auth/verify/digital-key", json={"email": email, "ballot_id": ballot_id}
        )


def voter_id_from(resp: Dict[str, Any]) -> Optional[str]:
    """Voter id from a registration response, at the top level or under ``data``."""
    data = resp.get("data") if isinstance(resp.get("data"), dict) else {}
    for container in (resp, data):
        voter = container.get("voter")
        if isinstance(voter, dict) and voter.get("id"):
            return str(voter["id"])
    return None
