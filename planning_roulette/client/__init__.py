"""Python client for Planning Roulette sessions."""

from .controller import ClientSessionController  # noqa: F401
from .storage import ClientPreferences  # noqa: F401
