import pytest

from planning_roulette.errors import MalformedPayload
from planning_roulette.sockets_core.schemas import (
    JoinMessage,
    SpinMessage,
    StartTaskMessage,
    SubmitVoteMessage,
    parse_message,
)


def test_join_accepts_camel_case_and_legacy_admin_flag():
    msg = parse_message("join", {"sessionId": " abc123 ", "playerName": " Alice ", "isAdmin": True})
    assert isinstance(msg, JoinMessage)
    assert msg.session_id == "ABC123"
    assert msg.player_name == "Alice"
    assert msg.claims_admin is True


def test_join_admin_flag_defaults_false():
    msg = parse_message("join", {"sessionId": "ABC123", "playerName": "Bob"})
    assert msg.claims_admin is False


def test_legacy_event_names_resolve():
    assert isinstance(parse_message("joinSession", {"sessionId": "A1", "playerName": "Bob"}), JoinMessage)
    assert isinstance(parse_message("spinWheel", {"sessionId": "A1"}), SpinMessage)


@pytest.mark.parametrize(
    "event, data",
    [
        ("join", {"sessionId": "ABC123"}),
        ("join", {"playerName": "Alice"}),
        ("join", {"sessionId": "ABC123", "playerName": "   "}),
        ("startTask", {"sessionId": "ABC123"}),
        ("startTask", {"sessionId": "ABC123", "taskName": ""}),
        ("submitVote", {"sessionId": "ABC123"}),
        ("endTask", {}),
        ("spin", None),
        ("spin", ["ABC123"]),
        ("dance", {"sessionId": "ABC123"}),
    ],
)
def test_malformed_payloads(event, data):
    with pytest.raises(MalformedPayload):
        parse_message(event, data)


def test_submit_vote_keeps_raw_points():
    msg = parse_message("submitVote", {"sessionId": "abc", "playerName": "Al", "points": "4"})
    assert isinstance(msg, SubmitVoteMessage)
    assert msg.points == "4"


def test_start_task_strips_name():
    msg = parse_message("startTask", {"sessionId": "abc", "taskName": "  Login page "})
    assert isinstance(msg, StartTaskMessage)
    assert msg.task_name == "Login page"
