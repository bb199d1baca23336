# Core Socket.IO gateway for Planning Roulette sessions.
from __future__ import annotations

from typing import Any, Optional

from flask import current_app, request, has_request_context
from flask_socketio import emit, join_room, leave_room

from planning_roulette.errors import NoVotes, SessionError, SessionNotFound
from planning_roulette.extensions import socketio, sessions
from planning_roulette.models import Session
from planning_roulette.service.machine import CreateResult, LeaveResult
from planning_roulette.sockets_core.schemas import parse_message

INTERNAL_ERROR = {"message": "Internal server error", "code": "InternalError"}


def _current_sid() -> Optional[str]:
    sid = getattr(request, "sid", None) if has_request_context() else None
    return sid if isinstance(sid, str) else None


def _reject(sid: Optional[str], event: str, exc: SessionError) -> None:
    current_app.logger.warning(f"{event} rejected for {sid}: [{exc.code}] {exc.message}")
    if sid:
        emit("error", exc.to_payload(), to=sid)


def _fail(sid: Optional[str], event: str, exc: Exception) -> None:
    current_app.logger.error(f"Error processing {event} from {sid}: {exc}", exc_info=True)
    if sid:
        emit("error", INTERNAL_ERROR, to=sid)


def _broadcast_player_list(session: Session) -> None:
    socketio.emit("playerList", {"players": session.roster()}, to=session.room)
    current_app.logger.debug(f"Emitted playerList to {session.room} ({len(session.players)} players)")


def _broadcast_leave(left: LeaveResult) -> None:
    session = left.session
    socketio.emit(
        "playerLeft",
        {"playerId": left.player.id, "playerName": left.player.name},
        to=session.room,
    )
    if left.promoted is not None:
        socketio.emit("adminStatus", {"isAdmin": True}, to=left.promoted.id)
    if not left.session_removed:
        _broadcast_player_list(session)


def invalidate_replaced_sessions(created: CreateResult) -> None:
    """Tell every member of a replaced session that it no longer exists."""
    notice = SessionNotFound("Session no longer exists").to_payload()
    for old in created.replaced:
        socketio.emit("error", notice, to=old.room)
        socketio.close_room(old.room)
        current_app.logger.info(
            f"Session {old.id} replaced by {created.session.id}; notified {len(old.players)} players"
        )


@socketio.on("connect")
def _on_connect():  # type: ignore
    current_app.logger.debug(f"Client {_current_sid()} connected")


@socketio.on("disconnect")
def _on_disconnect(reason=None):  # type: ignore
    sid = _current_sid()
    if sid is None:
        current_app.logger.warning("Disconnect with invalid SID")
        return
    machine = sessions.machine
    with machine.lock:
        left = machine.leave(sid)
        if left is None:
            # Never joined, or retired by a rejoin under the same name.
            current_app.logger.debug(f"SID {sid} not registered in any session during disconnect")
            return
        _broadcast_leave(left)
    current_app.logger.info(f"Client {sid} disconnected from session {left.session.id}")


def _on_join(data: Any):  # type: ignore
    sid = _current_sid()
    if sid is None:
        current_app.logger.warning("join with invalid SID")
        return
    machine = sessions.machine
    try:
        msg = parse_message("join", data)
        name = msg.player_name[: current_app.config.get("PLAYER_NAME_MAX_LENGTH", 40)]
        with machine.lock:
            previous = machine.session_id_for(sid)
            if previous and previous != msg.session_id:
                # Stay in the current session unless the target can be joined
                machine.ensure_joinable(msg.session_id)
                left = machine.leave(sid)
                if left is not None:
                    leave_room(left.session.room)
                    _broadcast_leave(left)
            result = machine.join(msg.session_id, sid, name, msg.claims_admin)
            if result.created is not None:
                invalidate_replaced_sessions(result.created)
            session, player = result.session, result.player
            if result.retired_id:
                leave_room(session.room, sid=result.retired_id)
                current_app.logger.info(
                    f"{player.name} rejoined {session.id}; retired connection {result.retired_id}"
                )
            join_room(session.room)
            emit("adminStatus", {"isAdmin": player.is_admin}, to=sid)
            socketio.emit("playerJoined", {"player": session.player_to_dict(player)}, to=session.room)
            _broadcast_player_list(session)
            if session.current_task is not None:
                emit("taskUpdate", session.task_update(), to=sid)
            revealed = machine.revealed_result(session)
            if revealed is not None:
                emit("wheelResult", revealed.to_payload(), to=sid)
    except SessionError as exc:
        _reject(sid, "join", exc)
    except Exception as exc:  # noqa
        _fail(sid, "join", exc)


@socketio.on("startTask")
def _on_start_task(data: Any):  # type: ignore
    sid = _current_sid()
    if sid is None:
        current_app.logger.warning("startTask with invalid SID")
        return
    machine = sessions.machine
    try:
        msg = parse_message("startTask", data)
        with machine.lock:
            session = machine.start_task(msg.session_id, msg.task_name, actor_id=sid)
            _broadcast_player_list(session)
            socketio.emit("taskUpdate", session.task_update(), to=session.room)
    except SessionError as exc:
        _reject(sid, "startTask", exc)
    except Exception as exc:  # noqa
        _fail(sid, "startTask", exc)


@socketio.on("endTask")
def _on_end_task(data: Any):  # type: ignore
    sid = _current_sid()
    if sid is None:
        current_app.logger.warning("endTask with invalid SID")
        return
    machine = sessions.machine
    try:
        msg = parse_message("endTask", data)
        with machine.lock:
            session = machine.end_task(msg.session_id, actor_id=sid)
            _broadcast_player_list(session)
            socketio.emit("taskUpdate", session.task_update(), to=session.room)
    except SessionError as exc:
        _reject(sid, "endTask", exc)
    except Exception as exc:  # noqa
        _fail(sid, "endTask", exc)


@socketio.on("submitVote")
def _on_submit_vote(data: Any):  # type: ignore
    """Record a vote. Values stay hidden from the room until the reveal."""
    sid = _current_sid()
    if sid is None:
        current_app.logger.warning("submitVote with invalid SID")
        return
    machine = sessions.machine
    try:
        msg = parse_message("submitVote", data)
        with machine.lock:
            ack = machine.submit_vote(msg.session_id, sid, msg.points)
            _broadcast_player_list(ack.session)
            socketio.emit(
                "playerVoted",
                {"playerId": ack.player.id, "playerName": ack.player.name},
                to=ack.session.room,
            )
    except SessionError as exc:
        _reject(sid, "submitVote", exc)
    except Exception as exc:  # noqa
        _fail(sid, "submitVote", exc)


def _on_spin(data: Any):  # type: ignore
    sid = _current_sid()
    if sid is None:
        current_app.logger.warning("spin with invalid SID")
        return
    machine = sessions.machine
    try:
        msg = parse_message("spin", data)
        with machine.lock:
            session = machine.begin_spin(msg.session_id, actor_id=sid)
            socketio.emit("wheelSpinning", to=session.room)
    except SessionError as exc:
        _reject(sid, "spin", exc)
        return
    except Exception as exc:  # noqa
        _fail(sid, "spin", exc)
        return

    delay = sessions.spin_delay_seconds
    if delay > 0:
        app = current_app._get_current_object()  # type: ignore[attr-defined]
        socketio.start_background_task(_finish_spin_later, app, session.id, sid, delay)
    else:
        _finish_spin(session.id, sid)


def _finish_spin_later(app, session_id: str, origin_sid: Optional[str], delay: float) -> None:
    socketio.sleep(delay)
    with app.app_context():
        _finish_spin(session_id, origin_sid)


def _finish_spin(session_id: str, origin_sid: Optional[str]) -> None:
    machine = sessions.machine
    with machine.lock:
        try:
            result = machine.complete_spin(session_id)
        except SessionNotFound:
            current_app.logger.warning(f"Session {session_id} disappeared while the wheel was spinning")
            return
        except NoVotes as exc:
            current_app.logger.warning(f"Spin in {session_id} lost all votes before the reveal")
            if origin_sid:
                socketio.emit("error", exc.to_payload(), to=origin_sid)
            return
        except Exception as exc:  # noqa
            current_app.logger.error(f"Error revealing votes for {session_id}: {exc}", exc_info=True)
            if origin_sid:
                socketio.emit("error", INTERNAL_ERROR, to=origin_sid)
            return
        socketio.emit("wheelResult", result.to_payload(), to=result.session.room)
    current_app.logger.info(f"Emitted wheelResult to {result.session.room}")


# Both the current and the legacy event names are accepted
for _event in ("join", "joinSession"):
    socketio.on_event(_event, _on_join)
for _event in ("spin", "spinWheel"):
    socketio.on_event(_event, _on_spin)
