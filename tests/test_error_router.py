"""Tests for ErrorRouter and the default error handler."""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from commandwire.commands import InvocationKind, command
from commandwire.context import InvocationContext
from commandwire.demo import on_error as demo_on_error
from commandwire.errors import ErrorRouter, classify
from commandwire.exceptions import (
    ArgumentError,
    ArgumentErrorReason,
    CheckFailed,
    CommandError,
    DuplicateName,
    ErrorKind,
    FrameworkError,
    HandlerError,
    MissingCredential,
    UnknownInteraction,
)
from commandwire.options import FrameworkOptions

from conftest import message_event


@command(name="plus")
async def _plus(ctx, number: int):
    pass


class TestClassify:

    def test_kinds(self):
        assert classify(MissingCredential("BOT_TOKEN")) == ErrorKind.SETUP
        assert classify(DuplicateName("a", "x", "y")) == ErrorKind.SETUP
        assert classify(ArgumentError("n", ArgumentErrorReason.MISSING)) \
            == ErrorKind.CHECK_OR_ARGUMENT
        assert classify(CheckFailed("c")) == ErrorKind.CHECK_OR_ARGUMENT
        assert classify(CommandError(_plus, ValueError("x"))) == ErrorKind.COMMAND_BODY
        assert classify(UnknownInteraction("x")) == ErrorKind.OTHER
        assert classify(ValueError("plain")) == ErrorKind.OTHER

    def test_setup_errors_are_fatal(self):
        assert MissingCredential("BOT_TOKEN").is_fatal
        assert not CheckFailed("c").is_fatal

    def test_missing_credential_message(self):
        assert MissingCredential("BOT_TOKEN").message == "Missing `BOT_TOKEN` env var"


class TestErrorRouter:

    def _make_ctx(self, gateway):
        return InvocationContext(
            event=message_event("--plus x"),
            command=_plus,
            invoked_name="plus",
            kind=InvocationKind.PREFIX,
            gateway=gateway,
            prefix="--",
        )

    @pytest.mark.asyncio
    async def test_custom_handler_sees_error_first(self, gateway):
        handler = AsyncMock()
        router = ErrorRouter(FrameworkOptions(on_error=handler))
        error = CheckFailed("c", ctx=self._make_ctx(gateway))
        await router.route(error)
        handler.assert_awaited_once_with(error, router)

    @pytest.mark.asyncio
    async def test_forwarding_to_default(self, gateway):
        async def handler(error, router):
            await router.default(error)

        router = ErrorRouter(FrameworkOptions(on_error=handler))
        ctx = self._make_ctx(gateway)
        await router.route(ArgumentError("number", ArgumentErrorReason.MISSING, ctx=ctx))
        assert gateway.contents == [
            "Missing required argument `number`\nUsage: `--plus <number>`"
        ]

    @pytest.mark.asyncio
    async def test_raising_handler_never_propagates(self):
        async def handler(error, router):
            raise RuntimeError("handler bug")

        router = ErrorRouter(FrameworkOptions(on_error=handler))
        with patch("commandwire.errors.logger") as mock_logger:
            await router.route(CheckFailed("c"))
        mock_logger.error.assert_called_once()
        assert mock_logger.error.call_args[0][0] == "error_handler_failed"

    @pytest.mark.asyncio
    async def test_failing_reply_is_swallowed(self):
        broken = MagicMock()
        broken.send_message = AsyncMock(side_effect=ConnectionError("gone"))
        router = ErrorRouter(FrameworkOptions())
        ctx = self._make_ctx(broken)
        await router.route(CommandError(_plus, ValueError("x"), ctx=ctx))
        broken.send_message.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_non_framework_exception_wrapped(self):
        handler = AsyncMock()
        router = ErrorRouter(FrameworkOptions(on_error=handler))
        await router.route(KeyError("k"))
        routed = handler.call_args[0][0]
        assert isinstance(routed, FrameworkError)
        assert routed.kind == ErrorKind.OTHER

    def test_handler_failed_returns_handler_error(self):
        router = ErrorRouter(FrameworkOptions())
        original = CheckFailed("c")
        result = router._handler_failed(original, RuntimeError("x"))
        assert isinstance(result, HandlerError)
        assert result.original is original


class TestDefaultHandler:

    def _make_ctx(self, gateway):
        return InvocationContext(
            event=message_event("--plus x"),
            command=_plus,
            invoked_name="plus",
            kind=InvocationKind.PREFIX,
            gateway=gateway,
            prefix="--",
        )

    @pytest.mark.asyncio
    async def test_setup_error_logged_critical(self):
        router = ErrorRouter(FrameworkOptions())
        with patch("commandwire.errors.logger") as mock_logger:
            await router.default(MissingCredential("BOT_TOKEN"))
        mock_logger.critical.assert_called_once()

    @pytest.mark.asyncio
    async def test_check_failure_silent_by_default(self, gateway):
        router = ErrorRouter(FrameworkOptions())
        await router.default(CheckFailed("c", ctx=self._make_ctx(gateway)))
        assert gateway.sent == []

    @pytest.mark.asyncio
    async def test_check_failure_reason_reported_when_enabled(self, gateway):
        router = ErrorRouter(FrameworkOptions(report_check_failures=True))
        await router.default(CheckFailed("c", "Not today", ctx=self._make_ctx(gateway)))
        assert gateway.contents == ["Not today"]

    @pytest.mark.asyncio
    async def test_command_error_reply(self, gateway):
        router = ErrorRouter(FrameworkOptions())
        ctx = self._make_ctx(gateway)
        await router.default(CommandError(_plus, ValueError("bad"), ctx=ctx))
        assert gateway.contents == ["Error in command `plus`: bad"]

    @pytest.mark.asyncio
    async def test_unknown_interaction_warns(self, gateway):
        router = ErrorRouter(FrameworkOptions())
        with patch("commandwire.errors.logger") as mock_logger:
            await router.default(UnknownInteraction("nope"))
        mock_logger.warning.assert_called_once()
        assert gateway.sent == []


class TestDemoHandler:

    @pytest.mark.asyncio
    async def test_setup_error_not_forwarded(self):
        router = MagicMock()
        router.default = AsyncMock()
        await demo_on_error(MissingCredential("BOT_TOKEN"), router)
        router.default.assert_not_called()

    @pytest.mark.asyncio
    async def test_command_error_forwarded(self):
        router = MagicMock()
        router.default = AsyncMock()
        error = CommandError(_plus, ValueError("x"))
        await demo_on_error(error, router)
        router.default.assert_awaited_once_with(error)
