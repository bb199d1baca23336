# planning_roulette/models.py
"""In-memory session records.

A ``Session`` is the single source of truth for one voting room. Whether a
player has voted is never stored on the player: it is derived from the
session's ``votes`` mapping so the two can not drift apart.
"""
from __future__ import annotations

import enum
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

# Shown in place of a vote value until the task is revealed
HIDDEN_VOTE = "?"


class SessionPhase(str, enum.Enum):
    IDLE = "idle"
    VOTING = "voting"
    REVEALED = "revealed"


@dataclass
class Player:
    id: str
    name: str
    is_admin: bool = False
    joined_seq: int = 0


@dataclass
class Task:
    name: str
    revealed: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {"name": self.name, "revealed": self.revealed}


@dataclass
class Session:
    id: str
    creator_name: str
    players: Dict[str, Player] = field(default_factory=dict)
    current_task: Optional[Task] = None
    votes: Dict[str, int] = field(default_factory=dict)
    is_spinning: bool = False
    created_at: float = field(default_factory=time.time)
    # Monotonic join counter; lowest value wins admin promotion
    join_counter: int = 0

    @property
    def room(self) -> str:
        return f"session_room_{self.id}"

    @property
    def phase(self) -> SessionPhase:
        if self.current_task is None:
            return SessionPhase.IDLE
        if self.current_task.revealed:
            return SessionPhase.REVEALED
        return SessionPhase.VOTING

    @property
    def is_revealed(self) -> bool:
        return self.current_task is not None and self.current_task.revealed

    def has_voted(self, player_id: str) -> bool:
        return player_id in self.votes

    def admins(self) -> List[Player]:
        return [p for p in self.players.values() if p.is_admin]

    def find_player_by_name(self, name: str) -> Optional[Player]:
        for player in self.players.values():
            if player.name == name:
                return player
        return None

    def ordered_players(self) -> List[Player]:
        return sorted(self.players.values(), key=lambda p: p.joined_seq)

    def next_join_seq(self) -> int:
        self.join_counter += 1
        return self.join_counter

    def player_to_dict(self, player: Player, *, reveal: Optional[bool] = None) -> Dict[str, Any]:
        """Public projection of a player.

        Vote values are only disclosed once the current task is revealed;
        before that voters carry the ``HIDDEN_VOTE`` placeholder.
        """
        if reveal is None:
            reveal = self.is_revealed
        voted = self.has_voted(player.id)
        if not voted:
            vote: Any = None
        elif reveal:
            vote = self.votes[player.id]
        else:
            vote = HIDDEN_VOTE
        return {
            "id": player.id,
            "name": player.name,
            "isAdmin": player.is_admin,
            "hasVoted": voted,
            "vote": vote,
        }

    def roster(self, *, reveal: Optional[bool] = None) -> List[Dict[str, Any]]:
        return [self.player_to_dict(p, reveal=reveal) for p in self.ordered_players()]

    def task_update(self) -> Dict[str, Any]:
        task = self.current_task
        return {"taskName": task.name if task else "", "isActive": task is not None}

    def to_dict(self) -> Dict[str, Any]:
        revealed = self.is_revealed
        return {
            "id": self.id,
            "creatorName": self.creator_name,
            "players": self.roster(),
            "currentTask": self.current_task.to_dict() if self.current_task else None,
            "votes": [
                {"playerId": pid, "vote": vote if revealed else HIDDEN_VOTE}
                for pid, vote in self.votes.items()
            ],
            "isSpinning": self.is_spinning,
            "phase": self.phase.value,
        }
