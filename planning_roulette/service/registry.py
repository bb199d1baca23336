"""
In-memory session registry.

Maps normalised session codes to ``Session`` records. Nothing here survives a
process restart.
"""

from __future__ import annotations

import logging
import uuid
from typing import Dict, Iterator, List, Optional, Tuple

from planning_roulette.errors import SessionNotFound
from planning_roulette.models import Session

logger = logging.getLogger(__name__)


def normalize_session_id(session_id: object) -> str:
    return str(session_id or "").strip().upper()


class SessionRegistry:
    def __init__(self, id_length: int = 6) -> None:
        self.id_length = id_length
        self._sessions: Dict[str, Session] = {}

    def __contains__(self, session_id: object) -> bool:
        return normalize_session_id(session_id) in self._sessions

    def __len__(self) -> int:
        return len(self._sessions)

    def __iter__(self) -> Iterator[Session]:
        return iter(list(self._sessions.values()))

    def ids(self) -> List[str]:
        return list(self._sessions.keys())

    def generate_id(self) -> str:
        while True:
            sid = uuid.uuid4().hex[: self.id_length].upper()
            if sid not in self._sessions:
                return sid

    def find(self, session_id: object) -> Optional[Session]:
        return self._sessions.get(normalize_session_id(session_id))

    def get(self, session_id: object) -> Session:
        session = self.find(session_id)
        if session is None:
            raise SessionNotFound(f"Session not found: {normalize_session_id(session_id) or '<empty>'}")
        return session

    def create(
        self,
        creator_name: str,
        *,
        session_id: Optional[str] = None,
        replace_existing: bool = False,
    ) -> Tuple[Session, List[Session]]:
        """Create a session and return it with the sessions it replaced."""
        replaced: List[Session] = []
        if replace_existing:
            replaced = list(self._sessions.values())
            self._sessions.clear()
        sid = normalize_session_id(session_id) if session_id else self.generate_id()
        previous = self._sessions.pop(sid, None)
        if previous is not None:
            replaced.append(previous)
        session = Session(id=sid, creator_name=creator_name)
        self._sessions[sid] = session
        logger.info(
            "Created session %s for %s (replaced: %s)",
            sid,
            creator_name,
            [s.id for s in replaced] or "none",
        )
        return session, replaced

    def remove(self, session_id: object) -> Optional[Session]:
        return self._sessions.pop(normalize_session_id(session_id), None)

    def clear(self) -> None:
        self._sessions.clear()
