"""Shared fixtures: an in-memory gateway and event builders."""

import itertools
from typing import Any, Dict, List, Optional

import pytest

from commandwire.gateway import Gateway
from commandwire.models import GatewayEvent, Interaction, Message, User

_ids = itertools.count(1000)


class FakeGateway(Gateway):
    """Records outbound calls; replays a fixed list of inbound events."""

    def __init__(self, events: Optional[List[GatewayEvent]] = None):
        self._events = list(events or [])
        self.sent: List[Dict[str, Any]] = []
        self.edited: List[Dict[str, Any]] = []
        self.interaction_replies: List[Dict[str, Any]] = []
        self.published: List[List[Dict[str, Any]]] = []
        self.closed = False

    async def events(self):
        for event in self._events:
            yield event

    async def send_message(self, channel_id, content, *, reply_to=None):
        message_id = next(_ids)
        self.sent.append({
            "id": message_id,
            "channel_id": channel_id,
            "content": content,
            "reply_to": reply_to,
        })
        return message_id

    async def edit_message(self, channel_id, message_id, content):
        self.edited.append({
            "channel_id": channel_id,
            "message_id": message_id,
            "content": content,
        })

    async def respond_to_interaction(self, interaction, content):
        self.interaction_replies.append({"interaction_id": interaction.id, "content": content})
        return None

    async def publish_commands(self, payload):
        self.published.append(payload)

    async def close(self):
        self.closed = True

    @property
    def contents(self) -> List[str]:
        return [m["content"] for m in self.sent]


def make_message(content, *, message_id=1, author_id=42, bot=False, guild_id=7, channel_id=10):
    return Message(
        id=message_id,
        channel_id=channel_id,
        author=User(id=author_id, name=f"user{author_id}", bot=bot),
        content=content,
        guild_id=guild_id,
    )


def message_event(content, **kwargs) -> GatewayEvent:
    return GatewayEvent.message_create(make_message(content, **kwargs))


def edit_event(content, **kwargs) -> GatewayEvent:
    return GatewayEvent.message_update(make_message(content, **kwargs))


def interaction_event(name, options=None, *, user_id=42, guild_id=7) -> GatewayEvent:
    return GatewayEvent.interaction_create(
        Interaction(
            id=next(_ids),
            token="tok",
            channel_id=10,
            user=User(id=user_id, name=f"user{user_id}"),
            command_name=name,
            options=options or {},
            guild_id=guild_id,
        )
    )


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 0.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def clock():
    return FakeClock(start=1000.0)
