"""Client-side preferences that survive a restart.

The browser client kept the display name and "I created session X" flags in
local storage; this is the same idea backed by a small JSON file. Nothing here
is authoritative: the server decides admin status on every join.
"""
from __future__ import annotations

import json
import logging
import os
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)


class ClientPreferences:
    def __init__(self, path: str) -> None:
        self.path = path
        self._data: Dict[str, Any] = self._load()

    def _load(self) -> Dict[str, Any]:
        if not os.path.exists(self.path):
            return {}
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as exc:
            logger.warning("Ignoring unreadable preferences file %s: %s", self.path, exc)
            return {}
        return data if isinstance(data, dict) else {}

    def _save(self) -> None:
        directory = os.path.dirname(self.path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        with open(self.path, "w", encoding="utf-8") as f:
            json.dump(self._data, f, ensure_ascii=False, indent=2)

    @property
    def player_name(self) -> Optional[str]:
        name = self._data.get("playerName")
        return name if isinstance(name, str) and name.strip() else None

    @player_name.setter
    def player_name(self, value: str) -> None:
        self._data["playerName"] = (value or "").strip()
        self._save()

    def mark_creator(self, session_id: str) -> None:
        created = self._data.setdefault("createdSessions", [])
        sid = (session_id or "").strip().upper()
        if sid and sid not in created:
            created.append(sid)
            self._save()

    def is_creator(self, session_id: str) -> bool:
        sid = (session_id or "").strip().upper()
        return sid in (self._data.get("createdSessions") or [])

    def forget_session(self, session_id: str) -> None:
        sid = (session_id or "").strip().upper()
        created = self._data.get("createdSessions") or []
        if sid in created:
            created.remove(sid)
            self._save()
