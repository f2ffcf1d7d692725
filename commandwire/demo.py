"""Demo command set and wiring.

Two command groups (a greeting and wrap-around arithmetic on unsigned
32-bit numbers) plus the built-in help command, a custom error handler
that forwards everything it does not care about to the default
handler, logging hooks, a global check that bans one user id, and a
raw event logger.
"""

from dataclasses import dataclass

import structlog

from .builtins import help_command
from .commands.base import CommandGroup, command
from .exceptions import CommandError, FrameworkError, SetupError
from .options import FrameworkOptions

logger = structlog.get_logger("commandwire.commands")

U32_MAX = 2**32 - 1
BANNED_USER_ID = 123456789


@dataclass
class Data:
    """User data shared by every command invocation."""
    greeting: str = "Hello"


class Greetings(CommandGroup):
    """A group with one command."""

    category = "One"

    @command(name="hello")
    async def say_hello(self, ctx):
        """Say hello"""
        greeting = ctx.data.greeting if ctx.data is not None else "Hello"
        await ctx.say(f"{greeting}, {ctx.author}")


class Arithmetic(CommandGroup):
    """A group with multiple commands."""

    category = "Multiple"

    @command(name="plus", bounds={"number": (0, U32_MAX)})
    async def add_one(self, ctx, number: int):
        """Add one to a number"""
        result = (number + 1) & U32_MAX
        await ctx.say(f"{number} + 1 = {result}")

    @command(name="minus", bounds={"number": (0, U32_MAX)})
    async def subtract_one(self, ctx, number: int):
        """Take one from a number"""
        result = (number - 1) & U32_MAX
        await ctx.say(f"{number} - 1 = {result}")


def all_commands():
    return Greetings.commands() + Arithmetic.commands() + [help_command]


async def on_error(error: FrameworkError, router) -> None:
    """Customize the errors we care about, forward the rest."""
    if isinstance(error, SetupError):
        logger.critical("bot_start_failed", error=str(error))
        return
    if isinstance(error, CommandError):
        logger.error("command_failed", command=error.command.name, error=str(error.cause))
    await router.default(error)


async def pre_command(ctx) -> None:
    logger.info("executing_command", command=ctx.command.qualified_name)


async def post_command(ctx) -> None:
    logger.info("executed_command", command=ctx.command.qualified_name)


async def command_check(ctx) -> bool:
    """Every invocation must pass this check."""
    return ctx.author.id != BANNED_USER_ID


async def event_handler(event, framework) -> None:
    logger.debug("gateway_event", event=event.kind)


async def setup(framework) -> Data:
    """Publish slash commands, then hand out the shared data."""
    await framework.register_globally()
    return Data()


def build_options(config) -> FrameworkOptions:
    """Demo options on top of ``config``."""
    return FrameworkOptions.from_config(
        config,
        all_commands(),
        on_error=on_error,
        pre_command=pre_command,
        post_command=post_command,
        command_check=command_check,
        event_handler=event_handler,
    )
