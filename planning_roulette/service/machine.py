# planning_roulette/service/machine.py
"""Session state machine.

Owns every legal transition of a session::

    idle --start_task--> voting --spin--> revealed --end_task--> idle
                           ^                  |
                           +---start_task-----+

Operations mutate the ``SessionRegistry`` and return plain result objects;
they never emit anything. The Socket.IO gateway holds ``lock`` across an
operation and the broadcasts built from its result, which keeps room
broadcasts in the order operations were applied.
"""
from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from planning_roulette.config import ALLOWED_POINTS
from planning_roulette.errors import (
    InvalidState,
    InvalidVote,
    MalformedPayload,
    NoVotes,
    PermissionDenied,
    SessionNotFound,
)
from planning_roulette.models import Player, Session, Task
from planning_roulette.service.registry import SessionRegistry, normalize_session_id
from planning_roulette.service.tally import POLICY_NEAREST, TallyResult, tally
from planning_roulette.utils.value_parsing import coerce_points

logger = logging.getLogger(__name__)


@dataclass
class CreateResult:
    session: Session
    replaced: List[Session] = field(default_factory=list)
    # Connection ids that were members of the replaced sessions
    evicted: List[str] = field(default_factory=list)


@dataclass
class JoinResult:
    session: Session
    player: Player
    retired_id: Optional[str] = None
    created: Optional[CreateResult] = None


@dataclass
class VoteAck:
    session: Session
    player: Player
    points: int
    changed: bool


@dataclass
class WheelResult:
    session: Session
    tally: TallyResult

    def to_payload(self) -> Dict[str, Any]:
        task = self.session.current_task
        return {
            "result": self.tally.result,
            "exactAverage": self.tally.exact_average,
            "policy": self.tally.policy,
            "players": self.session.roster(reveal=True),
            "task": task.to_dict() if task else None,
        }


@dataclass
class LeaveResult:
    session: Session
    player: Player
    promoted: Optional[Player] = None
    session_removed: bool = False


class SessionStateMachine:
    def __init__(
        self,
        registry: SessionRegistry,
        *,
        single_active_session: bool = True,
        auto_create_on_join: bool = False,
        delete_empty_sessions: bool = False,
        result_policy: str = POLICY_NEAREST,
        allowed_points=ALLOWED_POINTS,
    ) -> None:
        self.registry = registry
        self.single_active_session = single_active_session
        self.auto_create_on_join = auto_create_on_join
        self.delete_empty_sessions = delete_empty_sessions
        self.result_policy = result_policy
        self.allowed_points = tuple(allowed_points)
        self.lock = threading.RLock()
        # connection id -> session id
        self._connections: Dict[str, str] = {}

    # ------------------------------------------------------------------ lookup
    def session_id_for(self, player_id: str) -> Optional[str]:
        return self._connections.get(player_id)

    def _require_admin(self, session: Session, actor_id: Optional[str], action: str) -> None:
        if actor_id is None:
            return
        player = session.players.get(actor_id)
        if player is None or not player.is_admin:
            raise PermissionDenied(f"Only an admin can {action}")

    def ensure_joinable(self, session_id: str) -> None:
        """Raise ``SessionNotFound`` unless a join to ``session_id`` can go ahead."""
        if self.registry.find(session_id) is None and not self.auto_create_on_join:
            raise SessionNotFound(f"Session not found: {normalize_session_id(session_id)}")

    # --------------------------------------------------------------- lifecycle
    def create_or_replace_session(self, creator_name: str, *, session_id: Optional[str] = None) -> CreateResult:
        session, replaced = self.registry.create(
            creator_name,
            session_id=session_id,
            replace_existing=self.single_active_session,
        )
        evicted: List[str] = []
        for old in replaced:
            for pid in list(old.players):
                if self._connections.get(pid) == old.id:
                    del self._connections[pid]
                evicted.append(pid)
        return CreateResult(session=session, replaced=replaced, evicted=evicted)

    def join(self, session_id: str, player_id: str, player_name: str, claims_admin: bool = False) -> JoinResult:
        name = (player_name or "").strip()
        if not name:
            raise MalformedPayload("Player name is required")
        created = None
        self.ensure_joinable(session_id)
        session = self.registry.find(session_id)
        if session is None:
            created = self.create_or_replace_session(name, session_id=session_id)
            session = created.session

        is_admin = bool(claims_admin) or name == session.creator_name
        retired_id = None
        player = session.players.get(player_id)
        namesake = session.find_player_by_name(name)
        if namesake is not None and namesake.id != player_id:
            # Same display name on a new connection: carry admin flag, vote and
            # join order over to the new id and retire the old one.
            retired_id = namesake.id
            session.players.pop(retired_id, None)
            if retired_id in session.votes:
                session.votes[player_id] = session.votes.pop(retired_id)
            if self._connections.get(retired_id) == session.id:
                del self._connections[retired_id]
            player = Player(
                id=player_id,
                name=name,
                is_admin=namesake.is_admin or is_admin,
                joined_seq=namesake.joined_seq,
            )
        elif player is not None:
            player.name = name
            player.is_admin = player.is_admin or is_admin
        else:
            player = Player(id=player_id, name=name, is_admin=is_admin, joined_seq=session.next_join_seq())

        session.players[player_id] = player
        if not session.admins():
            # First joiner of an admin-less room takes over
            player.is_admin = True
        self._connections[player_id] = session.id
        logger.info(
            "Player %s (%s) joined session %s (admin=%s, players=%d)",
            name,
            player_id,
            session.id,
            player.is_admin,
            len(session.players),
        )
        return JoinResult(session=session, player=player, retired_id=retired_id, created=created)

    def leave(self, player_id: str) -> Optional[LeaveResult]:
        session_id = self._connections.pop(player_id, None)
        if session_id is None:
            return None
        session = self.registry.find(session_id)
        if session is None:
            return None
        player = session.players.pop(player_id, None)
        if player is None:
            return None
        session.votes.pop(player_id, None)

        promoted = None
        if player.is_admin and session.players and not session.admins():
            promoted = session.ordered_players()[0]
            promoted.is_admin = True
            logger.info("Promoted %s to admin of session %s", promoted.name, session.id)

        removed = False
        if not session.players and self.delete_empty_sessions:
            self.registry.remove(session.id)
            removed = True
            logger.info("Session %s deleted (no players)", session.id)
        logger.info("Player %s left session %s", player.name, session.id)
        return LeaveResult(session=session, player=player, promoted=promoted, session_removed=removed)

    # ------------------------------------------------------------------- tasks
    def start_task(self, session_id: str, task_name: str, *, actor_id: Optional[str] = None) -> Session:
        session = self.registry.get(session_id)
        self._require_admin(session, actor_id, "start a task")
        name = (task_name or "").strip()
        if not name:
            raise MalformedPayload("Task name is required")
        if session.is_spinning:
            raise InvalidState("Cannot start a task while the wheel is spinning")
        session.votes.clear()
        session.current_task = Task(name=name, revealed=False)
        logger.info("Started task %r in session %s", name, session.id)
        return session

    def end_task(self, session_id: str, *, actor_id: Optional[str] = None) -> Session:
        session = self.registry.get(session_id)
        self._require_admin(session, actor_id, "end a task")
        if session.is_spinning:
            raise InvalidState("Cannot end a task while the wheel is spinning")
        session.current_task = None
        session.votes.clear()
        logger.info("Ended current task in session %s", session.id)
        return session

    def submit_vote(self, session_id: str, player_id: str, points: Any) -> VoteAck:
        session = self.registry.get(session_id)
        value = coerce_points(points, self.allowed_points)
        if value is None:
            raise InvalidVote(f"Invalid vote: {points!r}")
        if session.current_task is None:
            raise SessionNotFound(f"No active task in session {session.id}")
        if session.is_spinning or session.current_task.revealed:
            raise InvalidState("Voting is closed for this task")
        player = session.players.get(player_id)
        if player is None:
            raise SessionNotFound(f"Player has not joined session {session.id}")
        changed = session.votes.get(player_id) != value
        session.votes[player_id] = value
        logger.info(
            "Vote registered for %s in session %s (total votes: %d)",
            player.name,
            session.id,
            len(session.votes),
        )
        return VoteAck(session=session, player=player, points=value, changed=changed)

    # -------------------------------------------------------------------- spin
    def begin_spin(self, session_id: str, *, actor_id: Optional[str] = None) -> Session:
        session = self.registry.get(session_id)
        self._require_admin(session, actor_id, "spin the wheel")
        if session.is_spinning:
            raise InvalidState("The wheel is already spinning")
        if session.is_revealed:
            raise InvalidState("Votes for this task are already revealed")
        if session.current_task is None or not session.votes:
            raise NoVotes("No votes submitted")
        session.is_spinning = True
        logger.info("Spinning wheel for session %s with %d votes", session.id, len(session.votes))
        return session

    def complete_spin(self, session_id: str) -> WheelResult:
        session = self.registry.get(session_id)
        if not session.is_spinning:
            raise InvalidState("The wheel is not spinning")
        session.is_spinning = False
        if session.current_task is None or not session.votes:
            raise NoVotes("No votes left to reveal")
        result = tally(session.votes.values(), policy=self.result_policy, allowed=self.allowed_points)
        session.current_task.revealed = True
        logger.info(
            "Session %s revealed: average %.3f -> %s",
            session.id,
            result.exact_average,
            result.result,
        )
        return WheelResult(session=session, tally=result)

    def spin(self, session_id: str, *, actor_id: Optional[str] = None) -> WheelResult:
        self.begin_spin(session_id, actor_id=actor_id)
        return self.complete_spin(session_id)

    def revealed_result(self, session: Session) -> Optional[WheelResult]:
        """Result of an already revealed task, for late joiners."""
        if not session.is_revealed or not session.votes:
            return None
        result = tally(session.votes.values(), policy=self.result_policy, allowed=self.allowed_points)
        return WheelResult(session=session, tally=result)
