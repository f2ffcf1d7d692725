"""Tests for logging setup and secret sanitization."""

import logging
from unittest.mock import MagicMock

import structlog

from commandwire.logging_config import LOGGER_PREFIX, SUBSYSTEMS, sanitize_secrets, setup_logging

FAKE_TOKEN = "MTA5ODc2NTQzMjEwOTg3NjU0.GaBcDe.abcdefghijklmnopqrstuvwxyz0123"


class TestSanitizeSecrets:

    def test_scrubs_bot_token_in_event(self):
        event = {"event": f"connecting with {FAKE_TOKEN}"}
        result = sanitize_secrets(None, "info", event)
        assert FAKE_TOKEN not in result["event"]
        assert "***REDACTED***" in result["event"]

    def test_scrubs_authorization_header(self):
        event = {"headers": {"Authorization": "Bot abcdefghijklmnopqrstuvwxyz"}}
        result = sanitize_secrets(None, "info", event)
        assert result["headers"]["Authorization"] == "***REDACTED***"

    def test_scrubs_lists_and_tuples(self):
        event = {"args": ["Bearer abcdefghijklmnopqrstuvwxyz", 3], "pair": ("x", FAKE_TOKEN)}
        result = sanitize_secrets(None, "info", event)
        assert result["args"] == ["***REDACTED***", 3]
        assert isinstance(result["pair"], tuple)
        assert result["pair"][1] == "***REDACTED***"

    def test_leaves_ordinary_values(self):
        event = {"event": "command_completed", "command": "plus", "duration_ms": 4}
        assert sanitize_secrets(None, "info", dict(event)) == event


class TestSetupLogging:

    def setup_method(self):
        self._root_handlers = list(logging.getLogger().handlers)
        self._root_level = logging.getLogger().level

    def teardown_method(self):
        names = (LOGGER_PREFIX,) + tuple(f"{LOGGER_PREFIX}.{s}" for s in SUBSYSTEMS)
        for name in names:
            sub_logger = logging.getLogger(name)
            for handler in sub_logger.handlers:
                handler.close()
            sub_logger.handlers.clear()
            sub_logger.setLevel(logging.NOTSET)
        root = logging.getLogger()
        root.handlers[:] = self._root_handlers
        root.setLevel(self._root_level)
        structlog.reset_defaults()

    def test_console_only_by_default(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        setup_logging()
        assert not (tmp_path / "logs").exists()
        assert logging.getLogger(LOGGER_PREFIX).handlers == []

    def test_subsystem_files_with_config(self, tmp_path):
        config = MagicMock()
        config.log_dir = tmp_path / "logs"
        config.logging_level = "info"
        config.logging_subsystem_levels = {"edits": "debug"}
        config.logging_max_file_size_mb = 1
        config.logging_backup_count = 1
        config.logging_to_files = True

        setup_logging(config)
        for subsystem in SUBSYSTEMS:
            assert (tmp_path / "logs" / f"{subsystem}.log").exists()
        assert (tmp_path / "logs" / "commandwire.log").exists()
        assert logging.getLogger("commandwire.edits").level == logging.DEBUG
        assert logging.getLogger("commandwire.dispatch").level == logging.INFO

    def test_unwritable_log_dir_falls_back_to_console(self, tmp_path):
        blocker = tmp_path / "file"
        blocker.write_text("not a directory")
        config = MagicMock()
        config.log_dir = blocker / "logs"
        config.logging_level = "INFO"
        config.logging_subsystem_levels = {}
        config.logging_max_file_size_mb = 1
        config.logging_backup_count = 1
        config.logging_to_files = True

        setup_logging(config)
        assert logging.getLogger(LOGGER_PREFIX).handlers == []
