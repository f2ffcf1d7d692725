"""Exception hierarchy for commandwire.

Every failure the framework can observe is a FrameworkError subclass.
Each class carries an ErrorKind so the error router can decide how to
report it without isinstance chains at every call site.

Kinds:
    SETUP: fatal, aborts startup before the dispatcher serves events.
    CHECK_OR_ARGUMENT: invocation rejected before the body ran.
    COMMAND_BODY: the command body raised.
    OTHER: everything else (hooks, event handler, unknown interactions).
"""

from enum import Enum
from typing import TYPE_CHECKING, Any, Optional

if TYPE_CHECKING:
    from .commands.base import Command
    from .context import InvocationContext


class ErrorKind(str, Enum):
    """Routing class of a framework error."""
    SETUP = "setup"
    CHECK_OR_ARGUMENT = "check_or_argument"
    COMMAND_BODY = "command_body"
    OTHER = "other"


class ArgumentErrorReason(str, Enum):
    """Why an argument could not be resolved."""
    MISSING = "missing"
    TYPE_MISMATCH = "type_mismatch"
    OUT_OF_RANGE = "out_of_range"
    TRAILING_INPUT = "trailing_input"
    UNKNOWN_PARAMETER = "unknown_parameter"


class FrameworkError(Exception):
    """Base exception for all commandwire errors.

    Attributes:
        message: Human-readable error description.
        module: Originating module name (e.g. "dispatcher").
        ctx: Invocation context the error belongs to, if any.
        context: Arbitrary key-value pairs for structured logging.
    """

    kind: ErrorKind = ErrorKind.OTHER

    def __init__(
        self,
        message: str = "",
        *,
        module: Optional[str] = None,
        ctx: Optional["InvocationContext"] = None,
        **context: Any,
    ) -> None:
        self.message = message
        self.module = module
        self.ctx = ctx
        self.context = context
        super().__init__(message)

    @property
    def is_fatal(self) -> bool:
        """Whether this error must stop the process."""
        return self.kind == ErrorKind.SETUP

    def __str__(self) -> str:
        parts = [self.message or self.__class__.__name__]
        if self.module:
            parts.append(f"[module={self.module}]")
        if self.context:
            ctx = ", ".join(f"{k}={v}" for k, v in self.context.items())
            parts.append(f"({ctx})")
        return " ".join(parts)

    def __repr__(self) -> str:
        cls = self.__class__.__name__
        return f"{cls}({self.message!r}, kind={self.kind.value!r}, module={self.module!r})"


# ---------------------------------------------------------------------------
# Setup errors
# ---------------------------------------------------------------------------

class SetupError(FrameworkError):
    """Startup failed. Never recoverable."""

    kind = ErrorKind.SETUP

    def __init__(
        self,
        message: str = "",
        *,
        module: Optional[str] = None,
        **context: Any,
    ) -> None:
        super().__init__(message, module=module or "framework", **context)


class DuplicateName(SetupError):
    """Two commands share a name or alias.

    Attributes:
        name: The colliding name.
        existing: Canonical name of the command registered first.
        duplicate: Canonical name of the command that collided.
    """

    def __init__(self, name: str, existing: str, duplicate: str) -> None:
        self.name = name
        self.existing = existing
        self.duplicate = duplicate
        super().__init__(
            f"Command name {name!r} is already registered",
            module="commands",
            existing=existing,
            duplicate=duplicate,
        )


class MissingCredential(SetupError):
    """The gateway credential is not present in the environment."""

    def __init__(self, env_var: str) -> None:
        self.env_var = env_var
        super().__init__(
            f"Missing `{env_var}` env var", module="config", env_var=env_var
        )


# ---------------------------------------------------------------------------
# Per-invocation errors
# ---------------------------------------------------------------------------

class ArgumentError(FrameworkError):
    """An argument could not be resolved from the invocation payload.

    Attributes:
        parameter: Name of the offending parameter (None for trailing input).
        reason: ArgumentErrorReason value.
        value: The raw input that failed, if any.
    """

    kind = ErrorKind.CHECK_OR_ARGUMENT

    def __init__(
        self,
        parameter: Optional[str],
        reason: ArgumentErrorReason,
        *,
        value: Any = None,
        detail: str = "",
        ctx: Optional["InvocationContext"] = None,
    ) -> None:
        self.parameter = parameter
        self.reason = reason
        self.value = value
        self.detail = detail
        super().__init__(
            _describe_argument_error(parameter, reason, value, detail),
            module="arguments",
            ctx=ctx,
        )


def _describe_argument_error(parameter, reason, value, detail) -> str:
    if reason == ArgumentErrorReason.MISSING:
        return f"Missing required argument `{parameter}`"
    if reason == ArgumentErrorReason.TRAILING_INPUT:
        return f"Too many arguments: {value!r}"
    if reason == ArgumentErrorReason.UNKNOWN_PARAMETER:
        return f"Unknown argument `{parameter}`"
    if reason == ArgumentErrorReason.OUT_OF_RANGE:
        return f"Argument `{parameter}` out of range: {value!r} {detail}".rstrip()
    return f"Invalid value for `{parameter}`: {value!r} {detail}".rstrip()


class CheckFailed(FrameworkError):
    """A check denied the invocation.

    Attributes:
        check: Name of the check that denied.
        reason: Optional human-readable reason supplied by the check.
    """

    kind = ErrorKind.CHECK_OR_ARGUMENT

    def __init__(
        self,
        check: str,
        reason: Optional[str] = None,
        *,
        ctx: Optional["InvocationContext"] = None,
    ) -> None:
        self.check = check
        self.reason = reason
        super().__init__(
            reason or "You are not allowed to use this command",
            module="checks",
            ctx=ctx,
            check=check,
        )


class CommandError(FrameworkError):
    """The command body raised.

    Attributes:
        command: The failing Command.
        cause: The original exception.
    """

    kind = ErrorKind.COMMAND_BODY

    def __init__(
        self,
        command: "Command",
        cause: BaseException,
        *,
        ctx: Optional["InvocationContext"] = None,
    ) -> None:
        self.command = command
        self.cause = cause
        super().__init__(
            str(cause) or type(cause).__name__,
            module="dispatcher",
            ctx=ctx,
            command=command.name,
        )


# ---------------------------------------------------------------------------
# Other runtime errors
# ---------------------------------------------------------------------------

class HookError(FrameworkError):
    """A pre- or post-command hook raised."""

    def __init__(
        self,
        hook: str,
        cause: BaseException,
        *,
        ctx: Optional["InvocationContext"] = None,
    ) -> None:
        self.hook = hook
        self.cause = cause
        super().__init__(str(cause), module="dispatcher", ctx=ctx, hook=hook)


class EventHandlerError(FrameworkError):
    """The raw event handler raised."""

    def __init__(self, event_kind: str, cause: BaseException) -> None:
        self.event_kind = event_kind
        self.cause = cause
        super().__init__(str(cause), module="dispatcher", event=event_kind)


class UnknownInteraction(FrameworkError):
    """A structured call named a command that is not registered."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(
            f"Unknown interaction `{name}`", module="dispatcher", command=name
        )


class HandlerError(FrameworkError):
    """An error handler itself raised while handling another error.

    Logged only, never re-raised.

    Attributes:
        original: The error that was being handled.
        cause: The exception raised by the handler.
    """

    def __init__(self, original: FrameworkError, cause: BaseException) -> None:
        self.original = original
        self.cause = cause
        super().__init__(
            str(cause),
            module="errors",
            while_handling=type(original).__name__,
        )


class GatewayError(FrameworkError):
    """An outbound gateway call failed.

    Attributes:
        status: HTTP status code (if the request got a response).
    """

    def __init__(
        self,
        message: str = "",
        *,
        status: Optional[int] = None,
        **context: Any,
    ) -> None:
        self.status = status
        super().__init__(message, module="gateway", status=status, **context)
