"""Core Socket.IO handlers and helpers.

Import side-effects: importing this package registers all session events.
"""

from .core import *  # noqa: F401,F403
from .core import invalidate_replaced_sessions  # noqa: F401
