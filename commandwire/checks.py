"""Invocation checks.

A check is a callable taking the InvocationContext and returning a
bool or a CheckResult, either directly or as an awaitable. The
pipeline runs checks in a fixed order and stops at the first deny:

    1. flag checks derived from the command (owners_only, guild_only,
       dm_only)
    2. the framework-level global check(s)
    3. the command's own check

Checks only read the context; they must not touch registry state.
"""

import inspect
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Callable, List, Optional, Sequence

import structlog

if TYPE_CHECKING:
    from .commands.base import Command
    from .context import InvocationContext

logger = structlog.get_logger("commandwire.dispatch")

Check = Callable[["InvocationContext"], Any]


@dataclass(frozen=True)
class CheckResult:
    """Outcome of a check: allow, deny, or deny with a reason."""
    allowed: bool
    reason: Optional[str] = None
    check: Optional[str] = None

    @classmethod
    def allow(cls) -> "CheckResult":
        return cls(True)

    @classmethod
    def deny(cls, reason: Optional[str] = None, check: Optional[str] = None) -> "CheckResult":
        return cls(False, reason, check)

    @property
    def denied(self) -> bool:
        return not self.allowed


ALLOW = CheckResult.allow()


def check_name(check: Check) -> str:
    """Readable name of a check for logs and CheckFailed."""
    return getattr(check, "__qualname__", None) or getattr(
        check, "__name__", type(check).__name__
    )


async def run_check(check: Check, ctx: "InvocationContext") -> CheckResult:
    """Run one check and normalize its outcome.

    A check that raises denies, with the exception text as reason.
    """
    name = check_name(check)
    try:
        outcome = check(ctx)
        if inspect.isawaitable(outcome):
            outcome = await outcome
    except Exception as e:
        logger.warning("check_raised", check=name, error=str(e), exc_type=type(e).__name__)
        return CheckResult.deny(str(e) or type(e).__name__, name)

    if isinstance(outcome, CheckResult):
        if outcome.denied and outcome.check is None:
            return CheckResult.deny(outcome.reason, name)
        return outcome
    if outcome:
        return ALLOW
    return CheckResult.deny(None, name)


async def evaluate(checks: Sequence[Check], ctx: "InvocationContext") -> CheckResult:
    """Run ``checks`` in order; return the first deny or ALLOW."""
    for index, check in enumerate(checks):
        result = await run_check(check, ctx)
        if result.denied:
            logger.debug(
                "check_denied",
                check=result.check,
                position=index,
                reason=result.reason,
            )
            return result
    return ALLOW


# ---------------------------------------------------------------------------
# Flag checks
# ---------------------------------------------------------------------------

def owners_only(ctx: "InvocationContext") -> CheckResult:
    if ctx.is_owner:
        return ALLOW
    return CheckResult.deny("Only bot owners can use this command", "owners_only")


def guild_only(ctx: "InvocationContext") -> CheckResult:
    if ctx.guild_id is not None:
        return ALLOW
    return CheckResult.deny("This command cannot be used in direct messages", "guild_only")


def dm_only(ctx: "InvocationContext") -> CheckResult:
    if ctx.guild_id is None:
        return ALLOW
    return CheckResult.deny("This command can only be used in direct messages", "dm_only")


class CheckPipeline:
    """Builds and evaluates the ordered check list for a command.

    Args:
        global_checks: Framework-level checks applied to every command.
        skip_checks_for_owners: Owners bypass every check when True.
    """

    def __init__(
        self,
        global_checks: Sequence[Check] = (),
        *,
        skip_checks_for_owners: bool = False,
    ):
        self.global_checks = tuple(global_checks)
        self.skip_checks_for_owners = skip_checks_for_owners

    def checks_for(self, command: "Command") -> List[Check]:
        """Ordered checks for ``command``."""
        checks: List[Check] = []
        if command.owners_only:
            checks.append(owners_only)
        if command.guild_only:
            checks.append(guild_only)
        if command.dm_only:
            checks.append(dm_only)
        checks.extend(self.global_checks)
        if command.check is not None:
            checks.append(command.check)
        return checks

    async def evaluate(self, ctx: "InvocationContext") -> CheckResult:
        """Evaluate every check that applies to ``ctx.command``."""
        if self.skip_checks_for_owners and ctx.is_owner:
            logger.debug("checks_skipped_for_owner", command=ctx.command.name)
            return ALLOW
        return await evaluate(self.checks_for(ctx.command), ctx)
