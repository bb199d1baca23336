from __future__ import annotations

from flask import Blueprint, current_app, jsonify, request

from planning_roulette.errors import SessionError
from planning_roulette.extensions import sessions
from planning_roulette.sockets_core.core import invalidate_replaced_sessions


sessions_bp = Blueprint("sessions_bp", __name__)


@sessions_bp.post("/api/sessions")
def create_session():
    """Create a session and return its short code.

    With the single-active-session policy every other session is replaced and
    its connected players are told it no longer exists.
    """
    data = request.get_json(silent=True) or {}
    if not isinstance(data, dict):
        return jsonify({"error": "Expected a JSON object"}), 400
    creator_name = str(data.get("creatorName") or "").strip() or "Admin"
    creator_name = creator_name[: current_app.config.get("PLAYER_NAME_MAX_LENGTH", 40)]
    machine = sessions.machine
    with machine.lock:
        created = machine.create_or_replace_session(creator_name)
        invalidate_replaced_sessions(created)
    current_app.logger.info(f"API: created session {created.session.id} for {creator_name}")
    return jsonify({"sessionId": created.session.id})


@sessions_bp.get("/api/sessions/<session_id>")
def get_session(session_id: str):
    machine = sessions.machine
    try:
        with machine.lock:
            payload = machine.registry.get(session_id).to_dict()
    except SessionError as exc:
        current_app.logger.info(f"API: session not found: {session_id}")
        return jsonify({"error": exc.message}), exc.status_code
    return jsonify(payload)
