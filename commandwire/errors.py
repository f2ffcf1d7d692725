"""Error routing.

Every failure observed by the framework passes through
``ErrorRouter.route``. A configured ``on_error`` handler sees each error
first and is expected to forward whatever it does not handle to
``router.default``. The router itself never raises: anything thrown by
a handler, including a failing reply, is logged as a HandlerError and
dropped so the next invocation is unaffected.
"""

from typing import TYPE_CHECKING, Optional

import structlog

from .exceptions import (
    ArgumentError,
    CheckFailed,
    CommandError,
    ErrorKind,
    FrameworkError,
    HandlerError,
    UnknownInteraction,
)

if TYPE_CHECKING:
    from .context import InvocationContext
    from .options import FrameworkOptions

logger = structlog.get_logger("commandwire.errors")


def classify(error: BaseException) -> ErrorKind:
    """Routing class of ``error``; non-framework exceptions are OTHER."""
    if isinstance(error, FrameworkError):
        return error.kind
    return ErrorKind.OTHER


class ErrorRouter:
    """Dispatches framework errors to the configured and default handlers.

    Args:
        options: FrameworkOptions providing ``on_error`` and the
            reporting flags used by the default handler.
    """

    def __init__(self, options: "FrameworkOptions"):
        self.options = options

    async def route(self, error: BaseException) -> None:
        """Send ``error`` to ``on_error`` (or the default handler)."""
        if not isinstance(error, FrameworkError):
            error = FrameworkError(str(error) or type(error).__name__, module="unknown")
        handler = self.options.on_error
        try:
            if handler is None:
                await self.default(error)
            else:
                await handler(error, self)
        except Exception as e:
            self._handler_failed(error, e)

    async def default(self, error: FrameworkError) -> None:
        """Baseline behavior for every error class.

        SETUP errors are logged at critical level; the framework aborts
        startup itself. Argument errors get a short reply (configurable),
        check failures are silent unless ``report_check_failures`` is set,
        command errors are logged and reported to the user, anything
        else is logged.
        """
        kind = classify(error)

        if kind == ErrorKind.SETUP:
            logger.critical("setup_failed", error=str(error), error_type=type(error).__name__)
            return

        if isinstance(error, ArgumentError):
            ctx = error.ctx
            logger.info(
                "argument_error",
                command=ctx.command.name if ctx else None,
                parameter=error.parameter,
                reason=error.reason.value,
            )
            if self.options.report_argument_errors and ctx is not None:
                usage = ctx.command.usage(ctx.prefix)
                await self._reply(ctx, f"{error.message}\nUsage: `{usage}`", error)
            return

        if isinstance(error, CheckFailed):
            ctx = error.ctx
            logger.info(
                "check_failed",
                command=ctx.command.name if ctx else None,
                check=error.check,
                reason=error.reason,
                author=ctx.author.id if ctx else None,
            )
            if self.options.report_check_failures and ctx is not None:
                await self._reply(ctx, error.message, error)
            return

        if isinstance(error, CommandError):
            logger.error(
                "command_error",
                command=error.command.name,
                error=str(error.cause),
                exc_type=type(error.cause).__name__,
            )
            if error.ctx is not None:
                await self._reply(
                    error.ctx,
                    f"Error in command `{error.command.name}`: {error.message}",
                    error,
                )
            return

        if isinstance(error, UnknownInteraction):
            logger.warning("unknown_interaction", command=error.name)
            return

        if isinstance(error, HandlerError):
            logger.error(
                "error_handler_failed",
                error=str(error.cause),
                while_handling=type(error.original).__name__,
            )
            return

        logger.error("framework_error", error=str(error), error_type=type(error).__name__)

    async def _reply(
        self, ctx: "InvocationContext", content: str, error: FrameworkError
    ) -> Optional[int]:
        try:
            return await ctx.say(content)
        except Exception as e:
            self._handler_failed(error, e)
            return None

    def _handler_failed(self, error: FrameworkError, cause: Exception) -> HandlerError:
        handler_error = HandlerError(error, cause)
        logger.error(
            "error_handler_failed",
            error=str(cause),
            exc_type=type(cause).__name__,
            while_handling=type(error).__name__,
        )
        return handler_error
