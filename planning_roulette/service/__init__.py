"""Server-side session service.

``SessionService`` is initialised like the other Flask extensions: a single
module-level instance lives in ``planning_roulette.extensions`` and
``init_app`` builds a fresh registry and state machine from the app config.
"""
from __future__ import annotations

from typing import Optional

from planning_roulette.service.machine import SessionStateMachine
from planning_roulette.service.registry import SessionRegistry


class SessionService:
    def __init__(self, app=None) -> None:
        self.registry: Optional[SessionRegistry] = None
        self.machine: Optional[SessionStateMachine] = None
        self.spin_delay_seconds: float = 0.0
        if app is not None:
            self.init_app(app)

    def init_app(self, app) -> None:
        self.registry = SessionRegistry(id_length=int(app.config.get("SESSION_ID_LENGTH", 6)))
        self.machine = SessionStateMachine(
            self.registry,
            single_active_session=bool(app.config.get("SINGLE_ACTIVE_SESSION", True)),
            auto_create_on_join=bool(app.config.get("AUTO_CREATE_ON_JOIN", False)),
            delete_empty_sessions=bool(app.config.get("DELETE_EMPTY_SESSIONS", False)),
            result_policy=app.config.get("RESULT_POLICY", "nearest"),
        )
        self.spin_delay_seconds = float(app.config.get("SPIN_DELAY_SECONDS", 0.0))
        app.extensions["planning_roulette"] = self
