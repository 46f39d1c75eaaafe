import pytest
import requests

from safeballot.security import bearer, create_voter_token, decode_voter_token
from safeballot.services.api import ApiError, AuthService, BallotService, mask_email

from conftest import FakeResponse, FakeSession


def test_get_ballot_by_id():
    session = FakeSession([FakeResponse(200, {"success": True, "data": {"id": "b1"}})])
    body = BallotService("http://ballots.test/api/", session=session).get_ballot_by_id("b1")
    assert body["data"]["id"] == "b1"
    sent = session.requests[0]
    assert sent["method"] == "GET"
    assert sent["url"] == "http://ballots.test/api/ballots/b1"


def test_error_message_taken_from_body():
    session = FakeSession([
        FakeResponse(403, {"message": "Voter not eligible"}),
        FakeResponse(422, {"detail": "Bad payload"}),
        FakeResponse(502, None),
    ])
    service = BallotService("http://ballots.test/api", session=session)

    with pytest.raises(ApiError) as exc:
        service.cast_vote("b1", {})
    assert exc.value.status_code == 403
    assert exc.value.message == "Voter not eligible"

    with pytest.raises(ApiError) as exc:
        service.cast_vote("b1", {})
    assert exc.value.message == "Bad payload"

    with pytest.raises(ApiError) as exc:
        service.cast_vote("b1", {})
    assert exc.value.message == "HTTP 502"


def test_connection_failure_has_no_status():
    session = FakeSession(error=requests.Timeout("timed out"))
    with pytest.raises(ApiError) as exc:
        BallotService("http://ballots.test/api", session=session).get_ballot_by_id("b1")
    assert exc.value.status_code is None


def test_list_body_is_wrapped():
    session = FakeSession([FakeResponse(200, [1, 2])])
    assert BallotService("http://x", session=session).get_ballot_by_id("b1") == {"data": [1, 2]}


def test_cast_vote_passes_headers():
    session = FakeSession()
    BallotService("http://x", session=session).cast_vote("b1", {"votes": []}, headers={"Authorization": "Bearer t"})
    sent = session.requests[0]
    assert sent["url"] == "http://x/ballots/b1/public-vote"
    assert sent["headers"] == {"Authorization": "Bearer t"}
    assert sent["json"] == {"votes": []}


def test_registration_and_key_requests():
    session = FakeSession()
    BallotService("http://x", session=session).public_register_voter("b1", "Ada", "ada@example.org")
    BallotService("http://x", session=session).send_voter_id_email("b1", "Ada", "ada@example.org")
    AuthService("http://x", session=session).generate_digital_key("ada@example.org", "b1")
    assert [r["url"] for r in session.requests] == [
        "http://x/ballots/b1/public-register-voter",
        "http://x/ballots/b1/send-voter-id",
        "http://x/auth/verify/digital-key",
    ]
    assert session.requests[2]["json"] == {"email": "ada@example.org", "ballot_id": "b1"}


def test_mask_email():
    assert mask_email("ada@example.org") == "ada..."
    assert mask_email(None) == "none"


def test_voter_token_round_trip():
    claims = decode_voter_token(create_voter_token("b1", "V-42"))
    assert claims["sub"] == "V-42"
    assert claims["role"] == "voter"
    assert decode_voter_token("not-a-token") is None
    assert decode_voter_token(create_voter_token("b1", expires_delta=-1)) is None


def test_bearer_prefix_added_once():
    assert bearer("abc") == "Bearer abc"
    assert bearer("Bearer abc") == "Bearer abc"
