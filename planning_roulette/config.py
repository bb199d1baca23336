# planning_roulette/config.py
import os
from dotenv import load_dotenv


# --- ALLOWED POINT VALUES ---
ALLOWED_POINTS = (0, 1, 2, 3, 5, 8, 13, 21, 34, 55, 89)

RESULT_POLICIES = ("nearest", "exact")

load_dotenv()  # Load environment variables from .env file
# -----------------------------


def _env_flag(name: str, default: str) -> bool:
    return os.environ.get(name, default).lower() in ("1", "true", "yes")


class Config:
    # General environmental details
    APP_NAME = os.environ.get("APP_NAME", "Planning Roulette")
    SECRET_KEY = os.environ.get("SECRET_KEY", "change_me_in_env")
    CORS_ORIGINS = os.environ.get("CORS_ORIGINS", "*")

    # Socket.IO async mode. create_app() switches to threading under pytest.
    SOCKETIO_ASYNC_MODE = os.environ.get("SOCKETIO_ASYNC_MODE", "eventlet")

    # Session codes
    try:
        SESSION_ID_LENGTH = min(12, max(4, int(os.environ.get("SESSION_ID_LENGTH", "6"))))
    except ValueError:
        SESSION_ID_LENGTH = 6

    # Delay between wheelSpinning and wheelResult. 0 reveals in the same handler.
    try:
        SPIN_DELAY_SECONDS = min(10.0, max(0.0, float(os.environ.get("SPIN_DELAY_SECONDS", "1.5"))))
    except ValueError:
        SPIN_DELAY_SECONDS = 1.5

    # Which tally value is broadcast as `result`: nearest allowed point or exact average
    RESULT_POLICY = os.environ.get("RESULT_POLICY", "nearest").lower()
    if RESULT_POLICY not in RESULT_POLICIES:
        RESULT_POLICY = "nearest"

    # Session lifecycle policies
    SINGLE_ACTIVE_SESSION = _env_flag("SINGLE_ACTIVE_SESSION", "true")
    AUTO_CREATE_ON_JOIN = _env_flag("AUTO_CREATE_ON_JOIN", "false")
    DELETE_EMPTY_SESSIONS = _env_flag("DELETE_EMPTY_SESSIONS", "false")

    # Display names longer than this are truncated
    try:
        PLAYER_NAME_MAX_LENGTH = max(8, int(os.environ.get("PLAYER_NAME_MAX_LENGTH", "40")))
    except ValueError:
        PLAYER_NAME_MAX_LENGTH = 40
