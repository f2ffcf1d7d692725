"""Pydantic models for gateway events.

The gateway client delivers raw JSON payloads; these models give the
dispatcher a typed view of the three event kinds it acts on. Any other
event kind is still parsed into a GatewayEvent and handed to the raw
event handler.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field


class EventKind(str, Enum):
    """Event kinds the dispatcher understands."""
    MESSAGE_CREATE = "message_create"
    MESSAGE_UPDATE = "message_update"
    INTERACTION_CREATE = "interaction_create"


class User(BaseModel):
    """Author of a message or interaction."""

    id: int
    name: str = ""
    bot: bool = False

    def __str__(self) -> str:
        return self.name or str(self.id)


class Message(BaseModel):
    """A chat message as seen by the gateway."""

    id: int
    channel_id: int
    author: User
    content: str = ""
    guild_id: Optional[int] = None
    created_at: datetime = Field(default_factory=datetime.now)
    edited_at: Optional[datetime] = None


class Interaction(BaseModel):
    """A structured (slash) command call with pre-typed options."""

    id: int
    token: str = ""
    channel_id: int
    user: User
    command_name: str
    options: Dict[str, Any] = Field(default_factory=dict)
    guild_id: Optional[int] = None


class GatewayEvent(BaseModel):
    """One inbound gateway event.

    ``kind`` is a snake_case event name. ``message`` is set for
    message_create/message_update, ``interaction`` for
    interaction_create. ``data`` keeps the raw payload for the event
    handler side-channel.
    """

    kind: str
    message: Optional[Message] = None
    interaction: Optional[Interaction] = None
    data: Dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def message_create(cls, message: Message) -> "GatewayEvent":
        return cls(kind=EventKind.MESSAGE_CREATE.value, message=message)

    @classmethod
    def message_update(cls, message: Message) -> "GatewayEvent":
        return cls(kind=EventKind.MESSAGE_UPDATE.value, message=message)

    @classmethod
    def interaction_create(cls, interaction: Interaction) -> "GatewayEvent":
        return cls(kind=EventKind.INTERACTION_CREATE.value, interaction=interaction)

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "GatewayEvent":
        """Parse a ``{"type": ..., "data": {...}}`` envelope."""
        kind = str(payload.get("type", "")).lower()
        data = payload.get("data") or {}
        if kind in (EventKind.MESSAGE_CREATE.value, EventKind.MESSAGE_UPDATE.value):
            return cls(kind=kind, message=Message.model_validate(data), data=data)
        if kind == EventKind.INTERACTION_CREATE.value:
            return cls(kind=kind, interaction=Interaction.model_validate(data), data=data)
        return cls(kind=kind, data=data)
