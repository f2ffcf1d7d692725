"""Framework lifecycle.

The Framework owns the process-scoped state: the command registry
(built once in ``start``), the error router and the dispatcher. It
reads the gateway's event stream and spawns one task per event, so a
slow or hanging command only stalls its own task.

Startup order in ``start``:
    1. credential check (MissingCredential)
    2. registry build (DuplicateName)
    3. user setup callback (any failure becomes SetupError)

A SetupError is routed to the error handler and then re-raised; the
serving loop refuses to run until ``start`` has succeeded.
"""

import asyncio
from typing import Any, AsyncIterable, Awaitable, Callable, Optional, Set

import structlog

from .builtins import register_globally
from .commands.base import CommandRegistry, register
from .dispatcher import Dispatcher, InvocationOutcome
from .errors import ErrorRouter
from .exceptions import EventHandlerError, SetupError
from .gateway import Gateway
from .models import GatewayEvent
from .options import FrameworkOptions

logger = structlog.get_logger("commandwire.dispatch")

# Sweep interval used when no Config supplies one
DEFAULT_SWEEP_INTERVAL = 300

SetupCallback = Callable[["Framework"], Awaitable[Any]]


def log_task_exception(task: asyncio.Task):
    """Log exceptions from fire-and-forget tasks instead of silently swallowing them."""
    if task.cancelled():
        return
    exc = task.exception()
    if exc:
        logger.error("background_task_failed", error=str(exc), exc_type=type(exc).__name__)


class Framework:
    """Command framework bound to one gateway.

    Args:
        options: FrameworkOptions with commands, prefixes and hooks.
        gateway: Gateway client delivering events and carrying replies.
        setup: Optional async callback run once during ``start``. Its
            return value becomes ``ctx.data`` for every invocation.
        config: Optional Config; when given, the credential is required
            and the edit tracker sweep interval is taken from it.
            Without it the tracker is swept every
            ``min(timespan, DEFAULT_SWEEP_INTERVAL)`` seconds.
    """

    def __init__(
        self,
        options: FrameworkOptions,
        gateway: Gateway,
        *,
        setup: Optional[SetupCallback] = None,
        config=None,
    ):
        self.options = options
        self.gateway = gateway
        self.config = config
        self._setup = setup
        self.router = ErrorRouter(options)
        self.registry: Optional[CommandRegistry] = None
        self.dispatcher: Optional[Dispatcher] = None
        self.data: Any = None
        self.serving = False
        self._tasks: Set[asyncio.Task] = set()
        self._published: Optional[str] = None

    @property
    def started(self) -> bool:
        return self.dispatcher is not None

    async def start(self) -> None:
        """Run the setup phase.

        Raises:
            SetupError: On a missing credential, duplicate command names,
                or a failing setup callback. The error is routed first.
        """
        try:
            if self.config is not None:
                self.config.require_token()
            registry = register(
                self.options.commands,
                case_insensitive=self.options.prefix_options.case_insensitive_commands,
            )
            self.registry = registry
            if self._setup is not None:
                try:
                    self.data = await self._setup(self)
                except SetupError:
                    raise
                except Exception as e:
                    raise SetupError(f"Setup callback failed: {e}") from e
        except SetupError as e:
            await self.router.route(e)
            raise

        self.dispatcher = Dispatcher(
            registry, self.options, self.gateway, self.router, data=self.data
        )

        tracker = self.options.prefix_options.edit_tracker
        if tracker is not None:
            if self.config is not None:
                interval = self.config.edit_sweep_interval
            else:
                interval = min(tracker.timespan, DEFAULT_SWEEP_INTERVAL)
            tracker.start_sweeper(interval)

        logger.info(
            "framework_started",
            commands=len(registry),
            prefixes=self.options.prefix_options.prefixes,
            edit_tracking=tracker is not None,
        )

    async def register_globally(self) -> None:
        """Publish the registered slash commands (no-op if unchanged)."""
        if self.registry is None:
            raise SetupError("register_globally called before start()")
        self._published = await register_globally(
            self.gateway, self.registry.commands, last_fingerprint=self._published
        )

    async def handle_event(self, event: GatewayEvent) -> InvocationOutcome:
        """Run the event handler side-channel, then dispatch."""
        handler = self.options.event_handler
        if handler is not None:
            try:
                await handler(event, self)
            except Exception as e:
                await self.router.route(EventHandlerError(event.kind, e))
        return await self.dispatcher.dispatch(event)

    def spawn(self, event: GatewayEvent) -> asyncio.Task:
        """Dispatch ``event`` in its own task."""
        task = asyncio.create_task(self.handle_event(event))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        task.add_done_callback(log_task_exception)
        return task

    @property
    def in_flight(self) -> int:
        return len(self._tasks)

    async def serve(self, events: AsyncIterable[GatewayEvent]) -> None:
        """Spawn a dispatch task for every event until the stream ends."""
        if not self.started:
            raise SetupError("serve() called before a successful start()")
        self.serving = True
        logger.info("serving_started")
        try:
            async for event in events:
                self.spawn(event)
        finally:
            self.serving = False
            logger.info("serving_stopped", in_flight=self.in_flight)

    async def stop(self, grace_period: float = 10) -> None:
        """Wait for in-flight invocations, then close the gateway.

        Tasks still running after ``grace_period`` seconds are cancelled.
        """
        tracker = self.options.prefix_options.edit_tracker
        if tracker is not None:
            tracker.stop_sweeper()
        if self._tasks:
            _, pending = await asyncio.wait(set(self._tasks), timeout=grace_period)
            for task in pending:
                task.cancel()
            if pending:
                await asyncio.gather(*pending, return_exceptions=True)
                logger.warning("invocations_cancelled", count=len(pending))
        await self.gateway.close()
        logger.info("framework_stopped")

    async def run(self) -> None:
        """Start, serve the gateway's event stream, stop on exit.

        The gateway is closed when ``start`` fails.
        """
        try:
            await self.start()
        except SetupError:
            await self.gateway.close()
            raise
        grace = self.config.shutdown_grace_period if self.config is not None else 10
        try:
            await self.serve(self.gateway.events())
        finally:
            await self.stop(grace)
