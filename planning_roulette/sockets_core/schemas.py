"""
Schemas for client -> server Socket.IO events

One Pydantic model per event name. Payloads are validated here, at the
boundary, so the state machine only ever sees typed values.
"""

from __future__ import annotations

from typing import Any, ClassVar, Dict, Type

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError, field_validator

from planning_roulette.errors import MalformedPayload


class ClientMessage(BaseModel):
    """Base for every client intent; all of them are scoped to a session."""

    model_config = ConfigDict(extra="ignore", str_strip_whitespace=True)

    event: ClassVar[str] = ""

    session_id: str = Field(
        ...,
        min_length=1,
        max_length=32,
        validation_alias=AliasChoices("sessionId", "session_id"),
    )

    @field_validator("session_id")
    @classmethod
    def _normalize_session_id(cls, v: str) -> str:
        return v.upper()


class JoinMessage(ClientMessage):
    event: ClassVar[str] = "join"

    player_name: str = Field(
        ...,
        min_length=1,
        validation_alias=AliasChoices("playerName", "player_name"),
    )
    claims_admin: bool = Field(
        False,
        validation_alias=AliasChoices("claimsAdmin", "isAdmin", "claims_admin"),
    )

    @field_validator("claims_admin", mode="before")
    @classmethod
    def _coerce_flag(cls, value: Any) -> bool:
        if value is None:
            return False
        if isinstance(value, str):
            return value.strip().lower() in ("1", "true", "yes")
        return bool(value)


class StartTaskMessage(ClientMessage):
    event: ClassVar[str] = "startTask"

    task_name: str = Field(
        ...,
        min_length=1,
        max_length=200,
        validation_alias=AliasChoices("taskName", "task_name"),
    )


class EndTaskMessage(ClientMessage):
    event: ClassVar[str] = "endTask"


class SubmitVoteMessage(ClientMessage):
    event: ClassVar[str] = "submitVote"

    # Range checks happen in the state machine so they surface as InvalidVote
    points: Any = Field(...)
    player_name: str = Field(
        "",
        validation_alias=AliasChoices("playerName", "player_name"),
    )


class SpinMessage(ClientMessage):
    event: ClassVar[str] = "spin"


MESSAGE_TYPES: Dict[str, Type[ClientMessage]] = {
    cls.event: cls
    for cls in (JoinMessage, StartTaskMessage, EndTaskMessage, SubmitVoteMessage, SpinMessage)
}

# Legacy event names still sent by older clients
EVENT_ALIASES: Dict[str, str] = {
    "joinSession": "join",
    "spinWheel": "spin",
}


def parse_message(event: str, data: Any) -> ClientMessage:
    """Validate ``data`` for ``event`` or raise ``MalformedPayload``."""
    name = EVENT_ALIASES.get(event, event)
    model = MESSAGE_TYPES.get(name)
    if model is None:
        raise MalformedPayload(f"Unknown event: {event}")
    if not isinstance(data, dict):
        raise MalformedPayload(f"{name} payload must be an object")
    try:
        return model.model_validate(data)
    except ValidationError as exc:
        fields = sorted({".".join(str(p) for p in err.get("loc", ())) or "payload" for err in exc.errors()})
        raise MalformedPayload(f"Malformed {name} payload: {', '.join(fields)}") from exc
