# planning_roulette/extensions.py
from flask_socketio import SocketIO

from planning_roulette.service import SessionService

# SocketIO will be initialized with proper async_mode in create_app()
socketio = SocketIO(cors_allowed_origins="*")
sessions = SessionService()
