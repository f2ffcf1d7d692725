"""Per-invocation context handed to checks, hooks and command bodies."""

from typing import TYPE_CHECKING, Any, List, Optional

import structlog

from .commands.base import InvocationKind
from .models import GatewayEvent, Interaction, Message, User

if TYPE_CHECKING:
    from .commands.base import Command, CommandRegistry
    from .edit_tracker import InvocationState
    from .gateway import Gateway

logger = structlog.get_logger("commandwire.dispatch")


class InvocationContext:
    """Everything one command invocation needs.

    Created by the dispatcher once a command is matched and dropped when
    the invocation completes. ``args`` is filled in after resolution.

    Args:
        event: The triggering gateway event.
        command: The matched Command.
        invoked_name: Name or alias the user typed.
        kind: PREFIX or SLASH.
        gateway: Outbound gateway client.
        data: User data returned by the framework setup callback.
        prefix: Prefix that matched (prefix invocations only).
        is_owner: Whether the caller is a configured owner.
        state: Edit-tracking state when the invocation is tracked.
        from_edit: Whether a message edit triggered this run.
        registry: The command registry (used by the help command).
    """

    def __init__(
        self,
        *,
        event: GatewayEvent,
        command: "Command",
        invoked_name: str,
        kind: InvocationKind,
        gateway: "Gateway",
        data: Any = None,
        prefix: str = "",
        is_owner: bool = False,
        state: Optional["InvocationState"] = None,
        from_edit: bool = False,
        registry: Optional["CommandRegistry"] = None,
    ):
        self.event = event
        self.command = command
        self.invoked_name = invoked_name
        self.kind = kind
        self.gateway = gateway
        self.data = data
        self.prefix = prefix
        self.is_owner = is_owner
        self.state = state
        self.invoked_from_edit = from_edit
        self.registry = registry
        self.args: List[Any] = []
        self._replied = False

    @property
    def message(self) -> Optional[Message]:
        return self.event.message

    @property
    def interaction(self) -> Optional[Interaction]:
        return self.event.interaction

    @property
    def author(self) -> User:
        if self.interaction is not None:
            return self.interaction.user
        return self.message.author

    @property
    def channel_id(self) -> int:
        if self.interaction is not None:
            return self.interaction.channel_id
        return self.message.channel_id

    @property
    def guild_id(self) -> Optional[int]:
        if self.interaction is not None:
            return self.interaction.guild_id
        return self.message.guild_id

    async def say(self, content: str) -> Optional[int]:
        """Reply in the invoking channel.

        For a re-run triggered by an edit, the first reply edits the
        bot's earlier response in place. Returns the reply's message id
        when the gateway reports one.
        """
        if self.kind == InvocationKind.SLASH:
            self._replied = True
            return await self.gateway.respond_to_interaction(self.interaction, content)

        state = self.state
        if state is not None and state.response_id is not None and not self._replied:
            self._replied = True
            await self.gateway.edit_message(self.channel_id, state.response_id, content)
            logger.debug("response_edited", command=self.command.name, message_id=state.response_id)
            return state.response_id

        message_id = await self.gateway.send_message(
            self.channel_id, content, reply_to=self.message.id
        )
        if state is not None and not self._replied:
            state.response_id = message_id
        self._replied = True
        return message_id

    reply = say

    def __repr__(self) -> str:
        return (
            f"InvocationContext(command={self.command.name!r}, "
            f"kind={self.kind.name}, author={self.author.id})"
        )
