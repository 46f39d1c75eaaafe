import copy

import pytest

from safeballot.normalizer import normalize
from safeballot.services.api import ApiError
from safeballot.storage import MemoryStore
from safeballot.voter_state import VoterState

BALLOT_ID = "65f0c0ffee"

SAMPLE_BALLOT = {
    "_id": BALLOT_ID,
    "title": "Student Council 2026",
    "status": "active",
    "questions": [
        {
            "id": "q1",
            "title": "President",
            "options": [
                {"id": "c1", "text": "Asha Rao", "party": "Blue"},
                {"id": "c2", "text": "Ben Ortiz", "party": "Green"},
            ],
        },
        {
            "id": "q2",
            "question": "Treasurer",
            "choices": ["Chen Li", {"name": "Dana Fox", "id": "c9"}],
        },
    ],
}


class FakeResponse:
    def __init__(self, status_code=200, body=None):
        self.status_code = status_code
        self._body = body

    def json(self):
        if self._body is None:
            raise ValueError("No JSON object could be decoded")
        return self._body


class FakeSession:
    """Stands in for requests.Session; replays queued responses."""

    def __init__(self, responses=None, error=None):
        self.responses = list(responses or [])
        self.error = error
        self.requests = []

    def request(self, method, url, json=None, headers=None, timeout=None):
        self.requests.append({"method": method, "url": url, "json": json, "headers": headers, "timeout": timeout})
        if self.error is not None:
            raise self.error
        if self.responses:
            return self.responses.pop(0)
        return FakeResponse(200, {"success": True})


class FakeBallotService:
    base_url = "http://ballots.test/api"

    def __init__(self, ballots=None):
        self.ballots = {k: copy.deepcopy(v) for k, v in (ballots or {}).items()}
        self.fetch_error = None
        self.register_error = None
        self.email_error = None
        self.vote_error = None
        self.register_response = {"success": True, "data": {"voter": {"id": "V-42"}}}
        self.vote_response = {"success": True, "data": {"voterId": "V-42"}}
        self.calls = []

    def url(self, path):
        return f"{self.base_url}/{path.lstrip('/')}"

    def vote_path(self, ballot_id):
        return f"/ballots/{ballot_id}/public-vote"

    def get_ballot_by_id(self, ballot_id):
        self.calls.append(("get", ballot_id))
        if self.fetch_error is not None:
            raise self.fetch_error
        if ballot_id not in self.ballots:
            raise ApiError("Ballot not found", status_code=404)
        return {"success": True, "data": copy.deepcopy(self.ballots[ballot_id])}

    def public_register_voter(self, ballot_id, name, email):
        self.calls.append(("register", ballot_id, name, email))
        if self.register_error is not None:
            raise self.register_error
        return self.register_response

    def send_voter_id_email(self, ballot_id, name, email):
        self.calls.append(("send-voter-id", ballot_id, name, email))
        if self.email_error is not None:
            raise self.email_error
        return {"success": True}

    def cast_vote(self, ballot_id, body, headers=None):
        self.calls.append(("cast", ballot_id, body, headers))
        if self.vote_error is not None:
            raise self.vote_error
        return self.vote_response

    def calls_named(self, name):
        return [c for c in self.calls if c[0] == name]


class FakeAuthService:
    def __init__(self, key="SRV-7Q2-KX9", error=None):
        self.key = key
        self.error = error
        self.calls = []

    def generate_digital_key(self, email, ballot_id):
        self.calls.append((email, ballot_id))
        if self.error is not None:
            raise self.error
        return {"success": True, "data": {"digital_key": self.key}}


@pytest.fixture
def store():
    return MemoryStore()


@pytest.fixture
def state(store):
    return VoterState(store)


@pytest.fixture
def ballot_service():
    quick = dict(copy.deepcopy(SAMPLE_BALLOT), _id="quick01", quickBallot=True)
    return FakeBallotService({BALLOT_ID: SAMPLE_BALLOT, "quick01": quick})


@pytest.fixture
def auth_service():
    return FakeAuthService()


@pytest.fixture
def ballot():
    return normalize(SAMPLE_BALLOT)


@pytest.fixture
def quick_ballot():
    return normalize(dict(copy.deepcopy(SAMPLE_BALLOT), _id="quick01", quickBallot=True))


@pytest.fixture
def verified_state(state):
    state.set_digital_key(BALLOT_ID, "KEY-1")
    state.set_verified(BALLOT_ID)
    state.set_verified_identity(BALLOT_ID, "Ada Lovelace", "ada@example.org")
    return state
