"""Error taxonomy shared by the state machine, the Socket.IO gateway and the
HTTP routes.

Every error carries a stable ``code`` (sent to clients in ``error`` events) and
an HTTP ``status_code`` used by the blueprint.
"""

from __future__ import annotations


class SessionError(RuntimeError):
    """Base class for intents the session rejects."""

    code = "SessionError"
    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_payload(self) -> dict:
        return {"message": self.message, "code": self.code}


class SessionNotFound(SessionError):
    """The referenced session (or the task it must have) does not exist."""

    code = "SessionNotFound"
    status_code = 404


class InvalidVote(SessionError):
    code = "InvalidVote"
    status_code = 400


class NoVotes(SessionError):
    code = "NoVotes"
    status_code = 409


class MalformedPayload(SessionError):
    code = "MalformedPayload"
    status_code = 400


class InvalidState(SessionError):
    """The intent is legal in general but not in the current phase."""

    code = "InvalidState"
    status_code = 409


class PermissionDenied(SessionError):
    code = "PermissionDenied"
    status_code = 403
