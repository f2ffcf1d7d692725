"""Framework options: one dataclass of named slots.

Every slot can be omitted; the defaults below are the documented
behavior. ``FrameworkOptions.from_config`` fills the non-callable slots
from a Config so deployments can change them in settings.yaml.

Hook signatures:
    pre_command / post_command: async (ctx) -> None
    command_check: (ctx) -> bool | CheckResult, sync or async
    on_error: async (error, router) -> None. Call ``router.default(error)``
        for any error you do not handle yourself.
    event_handler: async (event, framework) -> None. Sees every event,
        independent of command dispatch.
"""

from dataclasses import dataclass, field
from typing import (
    TYPE_CHECKING,
    Any,
    Awaitable,
    Callable,
    FrozenSet,
    List,
    Optional,
    Sequence,
)

from .commands.base import Command
from .edit_tracker import EditTracker

if TYPE_CHECKING:
    from .checks import Check
    from .config import Config
    from .context import InvocationContext
    from .errors import ErrorRouter
    from .exceptions import FrameworkError
    from .framework import Framework
    from .models import GatewayEvent

Hook = Callable[["InvocationContext"], Awaitable[None]]
ErrorHandler = Callable[["FrameworkError", "ErrorRouter"], Awaitable[None]]
EventHandler = Callable[["GatewayEvent", "Framework"], Awaitable[None]]


@dataclass
class PrefixOptions:
    """Options for text (prefix) invocations.

    Attributes:
        prefix: Main prefix. None disables prefix commands.
        additional_prefixes: Extra prefixes, tried after ``prefix``.
        edit_tracker: Enables re-running commands on message edits.
        execute_untracked_edits: Treat edits of never-tracked messages
            as fresh invocations.
        ignore_bots: Ignore messages authored by bots.
        case_insensitive_commands: Match names case-insensitively.
    """
    prefix: Optional[str] = None
    additional_prefixes: Sequence[str] = ()
    edit_tracker: Optional[EditTracker] = None
    execute_untracked_edits: bool = False
    ignore_bots: bool = True
    case_insensitive_commands: bool = False

    @property
    def prefixes(self) -> List[str]:
        result = [self.prefix] if self.prefix else []
        result.extend(p for p in self.additional_prefixes if p)
        return result


@dataclass
class FrameworkOptions:
    """All framework configuration in one place."""
    commands: List[Command] = field(default_factory=list)
    prefix_options: PrefixOptions = field(default_factory=PrefixOptions)
    on_error: Optional[ErrorHandler] = None
    pre_command: Optional[Hook] = None
    post_command: Optional[Hook] = None
    command_check: Optional["Check"] = None
    # Enforced for owners too unless set
    skip_checks_for_owners: bool = False
    owners: FrozenSet[int] = frozenset()
    event_handler: Optional[EventHandler] = None
    report_argument_errors: bool = True
    report_check_failures: bool = False

    @classmethod
    def from_config(
        cls, config: "Config", commands: Sequence[Command], **slots: Any
    ) -> "FrameworkOptions":
        """Build options from ``config``; ``slots`` set the callable slots."""
        edit_tracker = None
        if config.edit_tracking_enabled:
            edit_tracker = EditTracker.for_timespan(config.edit_tracker_timespan)
        prefix_options = PrefixOptions(
            prefix=config.prefix,
            additional_prefixes=tuple(config.additional_prefixes),
            edit_tracker=edit_tracker,
            execute_untracked_edits=config.execute_untracked_edits,
            ignore_bots=config.ignore_bots,
            case_insensitive_commands=config.case_insensitive_commands,
        )
        return cls(
            commands=list(commands),
            prefix_options=prefix_options,
            skip_checks_for_owners=config.skip_checks_for_owners,
            owners=frozenset(config.owners),
            report_argument_errors=config.report_argument_errors,
            report_check_failures=config.report_check_failures,
            **slots,
        )
