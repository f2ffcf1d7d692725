"""Command dispatcher.

Turns one inbound gateway event into zero or one command executions.
Each dispatch walks an explicit state machine:

    IDLE -> MATCHING -> RESOLVING -> CHECKING -> EXECUTING -> COMPLETED
                 |            |           |            |
                 v            v           v            v
              IGNORED      FAILED      FAILED       FAILED

MATCHING decides whether the event is a fresh prefix invocation, a
structured (slash) call, or an edit of a tracked message. Failures in
the later states are handed to the ErrorRouter and never escape
``dispatch``; the dispatcher keeps serving the next event.

Invocations tied to the same message (the original and its edits) run
under the edit tracker's per-message lock, so they never overlap.
"""

import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Mapping, Optional, Tuple, Union

import structlog

from .arguments import resolve
from .checks import CheckPipeline
from .commands.base import Command, CommandRegistry, InvocationKind
from .context import InvocationContext
from .edit_tracker import InvocationState
from .errors import ErrorRouter
from .exceptions import (
    ArgumentError,
    CheckFailed,
    CommandError,
    FrameworkError,
    HookError,
    UnknownInteraction,
)
from .gateway import Gateway
from .models import EventKind, GatewayEvent, Message, User
from .options import FrameworkOptions

logger = structlog.get_logger("commandwire.dispatch")


class DispatchState(str, Enum):
    """States of a single dispatch attempt."""
    IDLE = "idle"
    MATCHING = "matching"
    RESOLVING = "resolving"
    CHECKING = "checking"
    EXECUTING = "executing"
    COMPLETED = "completed"
    FAILED = "failed"
    IGNORED = "ignored"


@dataclass
class InvocationOutcome:
    """Terminal result of one dispatch attempt."""
    state: DispatchState
    command: Optional[Command] = None
    error: Optional[FrameworkError] = None
    ctx: Optional[InvocationContext] = None


IGNORED = InvocationOutcome(DispatchState.IGNORED)


@dataclass
class _Match:
    command: Command
    invoked_name: str
    kind: InvocationKind
    payload: Union[str, Mapping[str, Any]]
    prefix: str = ""
    state: Optional[InvocationState] = None
    from_edit: bool = False


class Dispatcher:
    """Process-wide dispatcher; one instance serves every event.

    Args:
        registry: Immutable command registry.
        options: Framework options (prefixes, hooks, checks, flags).
        gateway: Outbound gateway used by contexts for replies.
        router: Error router receiving every per-invocation failure.
        data: User data exposed as ``ctx.data``.
    """

    def __init__(
        self,
        registry: CommandRegistry,
        options: FrameworkOptions,
        gateway: Gateway,
        router: ErrorRouter,
        data: Any = None,
    ):
        self.registry = registry
        self.options = options
        self.gateway = gateway
        self.router = router
        self.data = data
        self.prefix_options = options.prefix_options
        self.tracker = options.prefix_options.edit_tracker
        global_checks = [options.command_check] if options.command_check else []
        self.checks = CheckPipeline(
            global_checks, skip_checks_for_owners=options.skip_checks_for_owners
        )

    # --- MATCHING ---

    def parse_invocation(self, content: str) -> Optional[Tuple[str, str, str]]:
        """Split ``content`` into (prefix, name, remainder).

        Returns None when the text does not start with a known prefix or
        has no command name after it.
        """
        for prefix in self.prefix_options.prefixes:
            if content.startswith(prefix):
                parts = content[len(prefix):].lstrip().split(None, 1)
                if not parts:
                    return None
                return prefix, parts[0], parts[1] if len(parts) > 1 else ""
        return None

    def _ignored_author(self, author: User) -> bool:
        return self.prefix_options.ignore_bots and author.bot

    def _match_prefix(
        self, message: Message, *, from_edit: bool = False
    ) -> Optional[_Match]:
        parsed = self.parse_invocation(message.content)
        if parsed is None:
            return None
        prefix, name, remainder = parsed
        command = self.registry.lookup(name)
        if command is None or not command.supports_prefix:
            logger.debug("unknown_command", name=name)
            return None
        return _Match(
            command=command,
            invoked_name=name,
            kind=InvocationKind.PREFIX,
            payload=remainder,
            prefix=prefix,
            from_edit=from_edit,
        )

    def _names_match(self, command: Command, name: str) -> bool:
        if self.registry.case_insensitive:
            return name.lower() in (n.lower() for n in command.all_names)
        return name in command.all_names

    async def dispatch(self, event: GatewayEvent) -> InvocationOutcome:
        """Run the state machine for ``event``. Never raises FrameworkError."""
        if event.kind == EventKind.MESSAGE_CREATE.value and event.message is not None:
            return await self._on_message(event)
        if event.kind == EventKind.MESSAGE_UPDATE.value and event.message is not None:
            return await self._on_message_update(event)
        if event.kind == EventKind.INTERACTION_CREATE.value and event.interaction is not None:
            return await self._on_interaction(event)
        return IGNORED

    async def _on_message(self, event: GatewayEvent) -> InvocationOutcome:
        message = event.message
        if self._ignored_author(message.author):
            return IGNORED
        match = self._match_prefix(message)
        if match is None:
            return IGNORED

        if self.tracker is None or not match.command.track_edits:
            return await self._run(event, match)

        async with self.tracker.lock(message.id):
            match.state = InvocationState(
                command=match.command,
                invoked_name=match.invoked_name,
                prefix=match.prefix,
                content=message.content,
            )
            self.tracker.record(message.id, match.state)
            return await self._run(event, match)

    async def _on_message_update(self, event: GatewayEvent) -> InvocationOutcome:
        if self.tracker is None:
            return IGNORED
        message = event.message
        if self._ignored_author(message.author):
            return IGNORED

        async with self.tracker.lock(message.id):
            was_tracked = self.tracker.contains(message.id)
            state = self.tracker.on_edit(message.id)

            if state is None:
                if was_tracked:
                    logger.debug("edit_outside_window", message_id=message.id)
                    return IGNORED
                if not self.prefix_options.execute_untracked_edits:
                    return IGNORED
                match = self._match_prefix(message, from_edit=True)
                if match is None:
                    return IGNORED
                if match.command.track_edits:
                    match.state = InvocationState(
                        command=match.command,
                        invoked_name=match.invoked_name,
                        prefix=match.prefix,
                        content=message.content,
                    )
                    self.tracker.record(message.id, match.state)
                return await self._run(event, match)

            if message.content == state.content:
                logger.debug("edit_content_unchanged", message_id=message.id)
                return IGNORED
            state.content = message.content

            parsed = self.parse_invocation(message.content)
            if parsed is None:
                logger.debug("edit_no_longer_invokes", message_id=message.id)
                return IGNORED
            prefix, name, remainder = parsed

            if self._names_match(state.command, name):
                # Same command: skip lookup, reuse stored state
                command = state.command
            else:
                command = self.registry.lookup(name)
                if command is None or not command.supports_prefix:
                    return IGNORED
                state.command = command
            state.invoked_name = name
            state.prefix = prefix

            match = _Match(
                command=command,
                invoked_name=name,
                kind=InvocationKind.PREFIX,
                payload=remainder,
                prefix=prefix,
                state=state,
                from_edit=True,
            )
            logger.debug("edit_reinvocation", message_id=message.id, command=command.name)
            return await self._run(event, match)

    async def _on_interaction(self, event: GatewayEvent) -> InvocationOutcome:
        interaction = event.interaction
        command = self.registry.lookup(interaction.command_name)
        if command is None or not command.supports_slash:
            await self.router.route(UnknownInteraction(interaction.command_name))
            return IGNORED
        match = _Match(
            command=command,
            invoked_name=interaction.command_name,
            kind=InvocationKind.SLASH,
            payload=interaction.options,
        )
        return await self._run(event, match)

    # --- RESOLVING / CHECKING / EXECUTING ---

    async def _fail(
        self, error: FrameworkError, ctx: InvocationContext
    ) -> InvocationOutcome:
        error.ctx = ctx
        await self.router.route(error)
        return InvocationOutcome(DispatchState.FAILED, ctx.command, error, ctx)

    async def _run_hook(self, name: str, ctx: InvocationContext) -> None:
        hook = getattr(self.options, name)
        if hook is None:
            return
        try:
            await hook(ctx)
        except Exception as e:
            await self.router.route(HookError(name, e, ctx=ctx))

    async def _run(self, event: GatewayEvent, match: _Match) -> InvocationOutcome:
        command = match.command
        author = event.interaction.user if event.interaction else event.message.author
        ctx = InvocationContext(
            event=event,
            command=command,
            invoked_name=match.invoked_name,
            kind=match.kind,
            gateway=self.gateway,
            data=self.data,
            prefix=match.prefix,
            is_owner=author.id in self.options.owners,
            state=match.state,
            from_edit=match.from_edit,
            registry=self.registry,
        )
        log = logger.bind(command=command.name, kind=match.kind.name, author=author.id)

        log.debug("dispatch_state", state=DispatchState.RESOLVING.value)
        try:
            ctx.args = resolve(command.parameters, match.payload)
        except ArgumentError as e:
            return await self._fail(e, ctx)

        log.debug("dispatch_state", state=DispatchState.CHECKING.value)
        result = await self.checks.evaluate(ctx)
        if result.denied:
            return await self._fail(
                CheckFailed(result.check or "check", result.reason), ctx
            )

        log.debug("dispatch_state", state=DispatchState.EXECUTING.value)
        await self._run_hook("pre_command", ctx)
        started = time.monotonic()
        try:
            await command.body(ctx, *ctx.args)
        except Exception as e:
            return await self._fail(CommandError(command, e), ctx)

        await self._run_hook("post_command", ctx)
        log.info(
            "command_completed",
            duration_ms=int((time.monotonic() - started) * 1000),
            from_edit=match.from_edit,
        )
        return InvocationOutcome(DispatchState.COMPLETED, command, None, ctx)
