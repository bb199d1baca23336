# planning_roulette/__init__.py
import os
from typing import Any, Dict, Optional

from flask import Flask
from flask_cors import CORS
from .config import Config
from .extensions import socketio, sessions


"""
Note on import ordering:
Socket.IO handlers and blueprints are imported inside create_app() so the
gateway can import `extensions` without a cycle through this module.
"""


def create_app(config_overrides: Optional[Dict[str, Any]] = None):
    app = Flask(__name__)
    app.config.from_object(Config)
    if config_overrides:
        app.config.update(config_overrides)

    # Under pytest run the threading async mode so the Socket.IO test client
    # does not depend on eventlet monkey patching.
    async_mode: str = app.config.get("SOCKETIO_ASYNC_MODE") or "eventlet"
    if os.environ.get('PYTEST_CURRENT_TEST'):
        app.config['TESTING'] = True
        async_mode = 'threading'

    origins = app.config.get("CORS_ORIGINS", "*")
    CORS(app, resources={r"/api/*": {"origins": origins}})

    # Session registry and state machine
    sessions.init_app(app)

    # Register Socket.IO event handlers before init_app so that every app
    # built by this factory (one per test) gets them bound to its server.
    from . import sockets_core  # noqa: F401  # registers session socket events

    socketio_kwargs: Dict[str, Any] = {"cors_allowed_origins": origins, "async_mode": async_mode}
    if async_mode == "threading":
        socketio_kwargs["async_handlers"] = False
    socketio.init_app(app, **socketio_kwargs)

    from .service.routes.sessions import sessions_bp

    app.register_blueprint(sessions_bp)

    app.logger.info(
        "Planning Roulette ready (async_mode=%s, single_active_session=%s, auto_create_on_join=%s)",
        async_mode,
        app.config.get("SINGLE_ACTIVE_SESSION"),
        app.config.get("AUTO_CREATE_ON_JOIN"),
    )
    return app
