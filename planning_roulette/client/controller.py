"""Per-client mirror of a Planning Roulette session.

The controller holds what one participant's UI needs to render: the roster,
the current task, spin/result state and the player's own selection. Every
inbound broadcast replaces the matching slice of local state wholesale; the
only optimistic write is the player's own selected points, kept as soon as
they are submitted.

Any transport with ``emit(event, data)`` and ``on(event, handler)`` works.
"""
from __future__ import annotations

import logging
from typing import Any, Callable, Dict, List, Optional

from planning_roulette.config import ALLOWED_POINTS
from planning_roulette.utils.value_parsing import coerce_points, format_result, safe_float

logger = logging.getLogger(__name__)

# Shown instead of a result the server sent in an unusable shape
RESULT_ERROR = "Error"


def _roster(players: Any) -> List[Dict[str, Any]]:
    if not isinstance(players, list):
        return []
    kept = [p for p in players if isinstance(p, dict)]
    if len(kept) != len(players):
        logger.warning("Dropped %d malformed roster entries", len(players) - len(kept))
    return kept


class ClientSessionController:
    EVENTS = (
        "adminStatus",
        "playerList",
        "playerJoined",
        "playerLeft",
        "playerVoted",
        "taskUpdate",
        "wheelSpinning",
        "wheelResult",
        "error",
    )

    def __init__(self, transport: Any = None, *, on_session_lost: Optional[Callable[[Optional[str]], None]] = None):
        self.transport = transport
        self.on_session_lost = on_session_lost
        self.session_id: Optional[str] = None
        self.player_name: str = ""
        self.is_admin: bool = False
        self.players: List[Dict[str, Any]] = []
        self.current_task: str = ""
        self.is_voting_active: bool = False
        self.is_spinning: bool = False
        self.result: Optional[float] = None
        self.exact_average: Optional[float] = None
        self.display_result: Optional[str] = None
        self.selected_points: Optional[int] = None
        self.has_spun: bool = False
        self.last_error: Optional[str] = None
        self.session_lost: bool = False
        self._handlers: Dict[str, Callable[[Any], None]] = {
            "adminStatus": self._on_admin_status,
            "playerList": self._on_player_list,
            "playerJoined": self._on_player_joined,
            "playerLeft": self._on_player_left,
            "playerVoted": self._on_player_voted,
            "taskUpdate": self._on_task_update,
            "wheelSpinning": self._on_wheel_spinning,
            "wheelResult": self._on_wheel_result,
            "error": self._on_error,
        }
        if transport is not None:
            self.bind(transport)

    # ----------------------------------------------------------- wiring
    def bind(self, transport: Any) -> None:
        self.transport = transport
        for event in self.EVENTS:
            transport.on(event, self._listener(event))

    def _listener(self, event: str) -> Callable[..., None]:
        def _listen(*args: Any) -> None:
            self.handle(event, args[0] if args else None)

        return _listen

    def handle(self, event: str, payload: Any = None) -> None:
        handler = self._handlers.get(event)
        if handler is None:
            logger.debug("Ignoring unknown event %s", event)
            return
        handler(payload)

    def _emit(self, event: str, data: Dict[str, Any]) -> None:
        if self.transport is None:
            logger.error("Cannot emit %s: no transport bound", event)
            self.last_error = "Not connected"
            return
        self.transport.emit(event, data)

    # ----------------------------------------------------------- derived view state
    @property
    def player_has_voted(self) -> bool:
        for player in self.players:
            if player.get("name") == self.player_name:
                return bool(player.get("hasVoted"))
        return False

    has_voted = player_has_voted

    @property
    def can_vote(self) -> bool:
        return self.is_voting_active and not self.is_spinning and not self.has_spun

    @property
    def can_spin(self) -> bool:
        return (
            self.is_admin
            and self.is_voting_active
            and not self.is_spinning
            and not self.has_spun
            and any(p.get("hasVoted") for p in self.players)
        )

    # ----------------------------------------------------------- intents
    def join(self, session_id: str, player_name: str, claims_admin: bool = False) -> None:
        self.session_id = (session_id or "").strip().upper()
        self.player_name = (player_name or "").strip()
        self.session_lost = False
        self._emit(
            "join",
            {"sessionId": self.session_id, "playerName": self.player_name, "claimsAdmin": bool(claims_admin)},
        )

    def start_task(self, task_name: str) -> None:
        name = (task_name or "").strip()
        if not name:
            self.last_error = "Task name is required"
            return
        self._emit("startTask", {"sessionId": self.session_id, "taskName": name})

    def end_task(self) -> None:
        self._emit("endTask", {"sessionId": self.session_id})

    new_task = end_task

    def select_points(self, points: Any) -> None:
        value = coerce_points(points, ALLOWED_POINTS)
        if value is None:
            self.last_error = f"Invalid vote: {points!r}"
            return
        if not self.can_vote:
            return
        # Kept locally right away; the roster catches up on the next playerList
        self.selected_points = value
        self._emit(
            "submitVote",
            {"sessionId": self.session_id, "playerName": self.player_name, "points": value},
        )

    def spin(self) -> None:
        if not self.can_spin:
            return
        self._emit("spin", {"sessionId": self.session_id})

    # ----------------------------------------------------------- inbound
    def _on_admin_status(self, payload: Any) -> None:
        self.is_admin = bool((payload or {}).get("isAdmin"))

    def _on_player_list(self, payload: Any) -> None:
        self.players = _roster((payload or {}).get("players"))

    def _on_player_joined(self, payload: Any) -> None:
        player = (payload or {}).get("player") or {}
        logger.debug("Player joined: %s", player.get("name"))

    def _on_player_left(self, payload: Any) -> None:
        logger.debug("Player left: %s", (payload or {}).get("playerName"))

    def _on_player_voted(self, payload: Any) -> None:
        logger.debug("Player voted: %s", (payload or {}).get("playerName"))

    def _on_task_update(self, payload: Any) -> None:
        payload = payload or {}
        self.current_task = str(payload.get("taskName") or "")
        self.is_voting_active = bool(payload.get("isActive"))
        # Any task change starts a fresh round locally
        self.is_spinning = False
        self.has_spun = False
        self.result = None
        self.exact_average = None
        self.display_result = None
        self.selected_points = None

    def _on_wheel_spinning(self, payload: Any = None) -> None:
        self.is_spinning = True

    def _on_wheel_result(self, payload: Any) -> None:
        payload = payload if isinstance(payload, dict) else {}
        self.is_spinning = False
        self.has_spun = True
        if isinstance(payload.get("players"), list):
            self.players = _roster(payload["players"])
        display = format_result(payload.get("result"))
        if display is None:
            logger.warning("Received non-numeric wheel result: %r", payload.get("result"))
            self.result = None
            self.display_result = RESULT_ERROR
        else:
            self.result = safe_float(payload.get("result"))
            self.display_result = display
        self.exact_average = safe_float(payload.get("exactAverage"))
        own = self._own_vote()
        if own is not None:
            self.selected_points = own

    def _own_vote(self) -> Optional[int]:
        for player in self.players:
            if player.get("name") == self.player_name:
                return coerce_points(player.get("vote"), ALLOWED_POINTS)
        return None

    def _on_error(self, payload: Any) -> None:
        payload = payload if isinstance(payload, dict) else {"message": str(payload)}
        self.last_error = str(payload.get("message") or "Unknown error")
        if payload.get("code") == "SessionNotFound":
            # The local session reference is stale; the UI goes back to the landing view
            self.session_lost = True
            self.is_spinning = False
            if self.on_session_lost is not None:
                self.on_session_lost(self.session_id)
        elif self.is_spinning and payload.get("code") == "NoVotes":
            self.is_spinning = False
        elif payload.get("code") in ("InvalidVote", "InvalidState"):
            # The server kept whatever it had; drop the unconfirmed pick
            self.selected_points = None
