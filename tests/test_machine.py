import pytest

from planning_roulette.errors import (
    InvalidState,
    InvalidVote,
    MalformedPayload,
    NoVotes,
    PermissionDenied,
    SessionNotFound,
)
from planning_roulette.models import HIDDEN_VOTE, SessionPhase
from planning_roulette.service.machine import SessionStateMachine
from planning_roulette.service.registry import SessionRegistry


@pytest.fixture
def machine():
    return SessionStateMachine(SessionRegistry())


@pytest.fixture
def session(machine):
    return machine.create_or_replace_session("Alice").session


def _join_all(machine, session, *names):
    return [machine.join(session.id, f"sid-{name}", name).player for name in names]


def test_join_unknown_session_fails(machine):
    with pytest.raises(SessionNotFound):
        machine.join("ZZZZZZ", "sid-1", "Alice")


def test_join_auto_creates_when_enabled():
    machine = SessionStateMachine(SessionRegistry(), auto_create_on_join=True)
    result = machine.join("abc123", "sid-1", "Alice")
    assert result.session.id == "ABC123"
    assert result.created is not None
    assert result.player.is_admin
    assert result.session.creator_name == "Alice"


def test_ensure_joinable_follows_auto_create_policy(machine, session):
    machine.ensure_joinable(session.id.lower())
    with pytest.raises(SessionNotFound):
        machine.ensure_joinable("ZZZZZZ")
    SessionStateMachine(SessionRegistry(), auto_create_on_join=True).ensure_joinable("ZZZZZZ")


def test_creator_name_match_grants_admin(machine, session):
    bob = machine.join(session.id, "sid-bob", "Bob").player
    alice = machine.join(session.id, "sid-alice", "Alice").player
    carol = machine.join(session.id, "sid-carol", "Carol").player
    # Bob was first into an admin-less room
    assert bob.is_admin
    assert alice.is_admin
    assert not carol.is_admin


def test_claimed_admin_is_honoured(machine, session):
    machine.join(session.id, "sid-alice", "Alice")
    dave = machine.join(session.id, "sid-dave", "Dave", claims_admin=True).player
    assert dave.is_admin


def test_join_requires_a_name(machine, session):
    with pytest.raises(MalformedPayload):
        machine.join(session.id, "sid-1", "   ")


def test_rejoin_by_name_transfers_state(machine, session):
    alice, bob = _join_all(machine, session, "Alice", "Bob")
    machine.start_task(session.id, "Login page")
    machine.submit_vote(session.id, "sid-Alice", 5)

    result = machine.join(session.id, "sid-Alice-2", "Alice")

    assert result.retired_id == "sid-Alice"
    assert "sid-Alice" not in session.players
    assert session.votes == {"sid-Alice-2": 5}
    assert result.player.is_admin
    assert result.player.joined_seq == alice.joined_seq
    assert len(session.players) == 2
    # the retired connection is no longer tracked, so its disconnect is a no-op
    assert machine.leave("sid-Alice") is None
    assert len(session.players) == 2


def test_start_task_resets_votes_and_reveal(machine, session):
    _join_all(machine, session, "Alice", "Bob")
    machine.start_task(session.id, "One")
    machine.submit_vote(session.id, "sid-Alice", 3)
    machine.spin(session.id)
    assert session.phase is SessionPhase.REVEALED

    machine.start_task(session.id, "Two")
    assert session.votes == {}
    assert session.current_task.name == "Two"
    assert session.current_task.revealed is False
    assert all(not p["hasVoted"] for p in session.roster())


def test_start_task_requires_name(machine, session):
    with pytest.raises(MalformedPayload):
        machine.start_task(session.id, "  ")


def test_start_then_end_task_returns_to_idle(machine, session):
    _join_all(machine, session, "Alice")
    before = session.task_update()
    machine.start_task(session.id, "Login page")
    machine.end_task(session.id)
    assert session.phase is SessionPhase.IDLE
    assert session.task_update() == before == {"taskName": "", "isActive": False}
    assert session.votes == {}


def test_vote_outside_allowed_set_is_rejected(machine, session):
    _join_all(machine, session, "Alice")
    machine.start_task(session.id, "T")
    with pytest.raises(InvalidVote):
        machine.submit_vote(session.id, "sid-Alice", 4)
    with pytest.raises(InvalidVote):
        machine.submit_vote(session.id, "sid-Alice", "abc")
    assert session.votes == {}


def test_vote_without_task_fails(machine, session):
    _join_all(machine, session, "Alice")
    with pytest.raises(SessionNotFound):
        machine.submit_vote(session.id, "sid-Alice", 3)


def test_vote_from_stranger_fails(machine, session):
    machine.start_task(session.id, "T")
    with pytest.raises(SessionNotFound):
        machine.submit_vote(session.id, "sid-ghost", 3)


def test_revote_is_idempotent(machine, session):
    _join_all(machine, session, "Alice", "Bob")
    machine.start_task(session.id, "T")
    first = machine.submit_vote(session.id, "sid-Alice", 3)
    second = machine.submit_vote(session.id, "sid-Alice", 3)
    third = machine.submit_vote(session.id, "sid-Alice", "8")
    assert first.changed and not second.changed and third.changed
    assert len(session.votes) == 1
    assert session.votes["sid-Alice"] == 8
    assert session.has_voted("sid-Alice")


def test_votes_are_hidden_until_reveal(machine, session):
    _join_all(machine, session, "Alice", "Bob")
    machine.start_task(session.id, "T")
    machine.submit_vote(session.id, "sid-Alice", 3)
    roster = {p["name"]: p for p in session.roster()}
    assert roster["Alice"]["vote"] == HIDDEN_VOTE
    assert roster["Alice"]["hasVoted"] is True
    assert roster["Bob"]["vote"] is None
    assert session.to_dict()["votes"] == [{"playerId": "sid-Alice", "vote": HIDDEN_VOTE}]


def test_spin_without_votes_keeps_voting(machine, session):
    _join_all(machine, session, "Alice")
    machine.start_task(session.id, "T")
    with pytest.raises(NoVotes):
        machine.spin(session.id)
    assert session.phase is SessionPhase.VOTING
    assert session.is_spinning is False


def test_spin_scenario_reveals_votes(machine, session):
    _join_all(machine, session, "Alice", "Bob", "Carol")
    machine.start_task(session.id, "Login page")
    machine.submit_vote(session.id, "sid-Alice", 3)
    machine.submit_vote(session.id, "sid-Bob", 5)

    result = machine.spin(session.id)
    payload = result.to_payload()

    assert payload["result"] == 3
    assert payload["exactAverage"] == 4
    assert {p["name"]: p["vote"] for p in payload["players"]} == {"Alice": 3, "Bob": 5, "Carol": None}
    assert payload["task"] == {"name": "Login page", "revealed": True}
    assert session.phase is SessionPhase.REVEALED


def test_exact_policy_broadcasts_average():
    machine = SessionStateMachine(SessionRegistry(), result_policy="exact")
    session = machine.create_or_replace_session("Alice").session
    machine.join(session.id, "a", "Alice")
    machine.join(session.id, "b", "Bob")
    machine.start_task(session.id, "T")
    machine.submit_vote(session.id, "a", 1)
    machine.submit_vote(session.id, "b", 2)
    assert machine.spin(session.id).to_payload()["result"] == 1.5


def test_votes_and_task_changes_rejected_while_spinning(machine, session):
    _join_all(machine, session, "Alice", "Bob")
    machine.start_task(session.id, "T")
    machine.submit_vote(session.id, "sid-Alice", 3)
    machine.begin_spin(session.id)

    with pytest.raises(InvalidState):
        machine.submit_vote(session.id, "sid-Bob", 5)
    with pytest.raises(InvalidState):
        machine.begin_spin(session.id)
    with pytest.raises(InvalidState):
        machine.start_task(session.id, "Other")
    with pytest.raises(InvalidState):
        machine.end_task(session.id)

    machine.complete_spin(session.id)
    with pytest.raises(InvalidState):
        machine.submit_vote(session.id, "sid-Bob", 5)
    with pytest.raises(InvalidState):
        machine.begin_spin(session.id)


def test_complete_spin_after_votes_vanish(machine, session):
    _join_all(machine, session, "Alice", "Bob")
    machine.start_task(session.id, "T")
    machine.submit_vote(session.id, "sid-Bob", 3)
    machine.begin_spin(session.id)
    machine.leave("sid-Bob")
    with pytest.raises(NoVotes):
        machine.complete_spin(session.id)
    assert session.is_spinning is False
    assert session.phase is SessionPhase.VOTING


def test_admin_actions_require_admin(machine, session):
    _join_all(machine, session, "Alice", "Bob")
    with pytest.raises(PermissionDenied):
        machine.start_task(session.id, "T", actor_id="sid-Bob")
    machine.start_task(session.id, "T", actor_id="sid-Alice")
    machine.submit_vote(session.id, "sid-Bob", 1)
    with pytest.raises(PermissionDenied):
        machine.begin_spin(session.id, actor_id="sid-Bob")
    with pytest.raises(PermissionDenied):
        machine.end_task(session.id, actor_id="sid-stranger")


def test_sole_admin_leaving_promotes_earliest_joiner(machine, session):
    _join_all(machine, session, "Alice", "Bob", "Carol")
    left = machine.leave("sid-Alice")
    assert left.player.name == "Alice"
    assert left.promoted.name == "Bob"
    admins = session.admins()
    assert [p.name for p in admins] == ["Bob"]


def test_non_admin_leaving_promotes_nobody(machine, session):
    _join_all(machine, session, "Alice", "Bob")
    machine.start_task(session.id, "T")
    machine.submit_vote(session.id, "sid-Bob", 8)
    left = machine.leave("sid-Bob")
    assert left.promoted is None
    assert session.votes == {}


def test_session_persists_when_empty_by_default(machine, session):
    _join_all(machine, session, "Alice")
    left = machine.leave("sid-Alice")
    assert left.session_removed is False
    assert session.id in machine.registry


def test_empty_session_removed_when_configured():
    machine = SessionStateMachine(SessionRegistry(), delete_empty_sessions=True)
    session = machine.create_or_replace_session("Alice").session
    machine.join(session.id, "a", "Alice")
    assert machine.leave("a").session_removed is True
    assert session.id not in machine.registry


def test_replacing_session_evicts_connections(machine, session):
    _join_all(machine, session, "Alice", "Bob")
    created = machine.create_or_replace_session("Zed")
    assert created.replaced == [session]
    assert sorted(created.evicted) == ["sid-Alice", "sid-Bob"]
    assert machine.session_id_for("sid-Alice") is None
    with pytest.raises(SessionNotFound):
        machine.start_task(session.id, "T")


def test_multiple_sessions_when_not_single_active():
    machine = SessionStateMachine(SessionRegistry(), single_active_session=False)
    first = machine.create_or_replace_session("Alice").session
    second = machine.create_or_replace_session("Bob").session
    assert first.id in machine.registry and second.id in machine.registry
