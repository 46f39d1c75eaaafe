import pytest

from safeballot.capture import SubmittedFieldsCapture
from safeballot.digital_key import DigitalKeyService
from safeballot.flow import (
    PENDING_START_NOTICE,
    FlowError,
    FlowEvent,
    FlowState,
    FlowVariant,
    VerificationFlow,
    reachable_states,
    select_variant,
    transition,
)
from safeballot.services.api import ApiError

from conftest import BALLOT_ID

S = FlowState

ID_FIELDS = {"firstName": "Ada", "lastName": "Lovelace", "documentNumber": "X1234567"}


def make_flow(state, ballot_service, auth_service, **kwargs):
    return VerificationFlow(
        BALLOT_ID, state, DigitalKeyService(state, auth_service), ballot_service, **kwargs
    )


def test_registration_walks_every_step(state, ballot_service, auth_service, ballot):
    flow = make_flow(state, ballot_service, auth_service, ballot=ballot)
    assert flow.variant is FlowVariant.REGISTRATION
    assert flow.state is S.IDENTITY

    assert flow.on_complete({"email": "ada@example.org"}).state is S.SCAN
    assert flow.on_complete(ID_FIELDS).state is S.CONFIRM
    status = flow.on_complete()
    assert status.state is S.VERIFIED
    # the key waits for the election to start
    assert status.display_key is None
    assert status.notice == PENDING_START_NOTICE
    assert status.voter_name == "Ada Lovelace"
    assert status.voter_id == "V-42"

    assert flow.on_complete().state is S.VOTING
    assert flow.history == [S.IDENTITY, S.SCAN, S.CONFIRM, S.VERIFIED, S.VOTING]

    assert ballot_service.calls_named("register") == [("register", BALLOT_ID, "Ada Lovelace", "ada@example.org")]
    assert len(ballot_service.calls_named("send-voter-id")) == 1
    assert state.get_digital_key(BALLOT_ID) == auth_service.key
    assert state.get_voter_id(BALLOT_ID) == "V-42"
    assert state.get_verified_name(BALLOT_ID) == "Ada Lovelace"


def test_login_skips_confirmation(state, ballot_service, auth_service, ballot):
    state.set_voter_token("voter-session-token")
    state.set_voter_profile({"email": "ada@example.org", "name": "Ada Lovelace"})
    flow = make_flow(state, ballot_service, auth_service, ballot=ballot)
    assert flow.variant is FlowVariant.LOGIN
    assert flow.state is S.SCAN

    status = flow.on_complete(ID_FIELDS)
    assert status.state is S.VERIFIED
    assert status.display_key == auth_service.key
    assert flow.on_complete().state is S.VOTING
    assert S.CONFIRM not in flow.history
    assert ballot_service.calls_named("register") == []


def test_login_table_cannot_reach_confirmation():
    assert S.CONFIRM not in reachable_states(FlowVariant.LOGIN)
    assert S.IDENTITY not in reachable_states(FlowVariant.LOGIN)
    with pytest.raises(FlowError):
        transition(FlowVariant.LOGIN, S.CONFIRM, FlowEvent.COMPLETE)


def test_back_steps_and_exit(state, ballot_service, auth_service):
    flow = make_flow(state, ballot_service, auth_service)
    flow.on_complete({"email": "ada@example.org"})
    assert flow.on_back().state is S.IDENTITY
    assert flow.on_back().state is S.EXITED
    with pytest.raises(FlowError):
        flow.on_complete()


def test_identity_step_requires_email(state, ballot_service, auth_service):
    flow = make_flow(state, ballot_service, auth_service)
    with pytest.raises(FlowError):
        flow.on_complete({})
    assert flow.state is S.IDENTITY


def test_scan_uses_capture_collaborator(state, ballot_service, auth_service):
    state.set_voter_token("voter-session-token")
    flow = make_flow(state, ballot_service, auth_service, capture=SubmittedFieldsCapture(ID_FIELDS))
    status = flow.on_complete()
    assert status.state is S.VERIFIED
    assert status.identity.document_number == "X1234567"


def test_scan_without_data_or_capture_fails(state, ballot_service, auth_service):
    state.set_voter_token("voter-session-token")
    flow = make_flow(state, ballot_service, auth_service)
    with pytest.raises(FlowError):
        flow.on_complete()
    assert flow.state is S.SCAN


def test_registration_side_effect_failures_do_not_block(state, ballot_service, auth_service):
    ballot_service.register_error = ApiError("Voter already registered", status_code=409)
    ballot_service.email_error = ApiError("Mailer down", status_code=502)
    flow = make_flow(state, ballot_service, auth_service)
    flow.on_complete({"email": "ada@example.org"})
    flow.on_complete(ID_FIELDS)
    assert flow.on_complete().state is S.VERIFIED
    assert state.get_voter_id(BALLOT_ID) is None
    assert state.get_digital_key(BALLOT_ID) is not None


def test_already_verified_voter_is_ready(state, ballot_service, auth_service):
    state.set_verified(BALLOT_ID)
    state.set_digital_key(BALLOT_ID, "KEY-1")
    flow = make_flow(state, ballot_service, auth_service)
    assert flow.state is S.READY
    assert flow.display_key == "KEY-1"
    assert flow.on_complete().state is S.VOTING
    assert auth_service.calls == []


def test_quick_ballot_bypasses_verification(state, ballot_service, auth_service, quick_ballot):
    flow = make_flow(state, ballot_service, auth_service, ballot=quick_ballot)
    status = flow.status()
    assert status.bypassed is True
    assert status.state is S.READY
    assert status.display_key == "quick-auto-key"
    assert state.get_digital_key(BALLOT_ID) is None
    assert auth_service.calls == []
    assert state.is_quick_bypass(BALLOT_ID) is True


def test_quick_route_bypasses_verification(state, ballot_service, auth_service, ballot):
    flow = make_flow(state, ballot_service, auth_service, ballot=ballot, request_path="/quick-vote/65f0c0ffee")
    assert flow.bypassed is True
    assert flow.state is S.READY
    assert state.is_quick_bypass(BALLOT_ID) is True


def test_ordinary_landing_records_no_bypass(state, ballot_service, auth_service, ballot):
    make_flow(state, ballot_service, auth_service, ballot=ballot, request_path="/vote/65f0c0ffee")
    assert state.is_quick_bypass(BALLOT_ID) is False


def test_login_arrival_with_scanned_id(state, ballot_service, auth_service):
    flow = make_flow(state, ballot_service, auth_service, came_from_login=True, id_data=ID_FIELDS)
    assert flow.variant is FlowVariant.LOGIN
    assert flow.state is S.VERIFIED
    assert flow.identity.full_name == "Ada Lovelace"
    assert flow.display_key is not None


def test_select_variant(state):
    assert select_variant(state) is FlowVariant.REGISTRATION
    assert select_variant(state, came_from_login=True) is FlowVariant.LOGIN
    state.set_voter_profile({"email": "ada@example.org"})
    assert select_variant(state) is FlowVariant.LOGIN
