"""Tests for Config loading and property defaults."""

from unittest.mock import patch

import pytest

from commandwire.config import Config
from commandwire.exceptions import MissingCredential
from commandwire.options import FrameworkOptions


def _make_config(settings):
    with patch.object(Config, "__init__", lambda self, config_dir=None: None):
        config = Config()
    config.settings = settings
    return config


class TestDefaults:

    def test_empty_settings(self):
        config = _make_config({})
        assert config.prefix == "--"
        assert config.additional_prefixes == []
        assert config.ignore_bots is True
        assert config.case_insensitive_commands is False
        assert config.edit_tracking_enabled is True
        assert config.edit_tracker_timespan == 3600
        assert config.execute_untracked_edits is False
        assert config.owners == set()
        assert config.skip_checks_for_owners is False
        assert config.report_argument_errors is True
        assert config.report_check_failures is False
        assert config.token_env == "BOT_TOKEN"
        assert config.shutdown_grace_period == 10

    def test_invalid_values_fall_back(self):
        config = _make_config({
            "prefix": "   ",
            "edit_tracker": {"timespan": -5},
            "owners": "not-a-list",
            "additional_prefixes": ["!", "", 3],
        })
        assert config.prefix == "--"
        assert config.edit_tracker_timespan == 3600
        assert config.owners == set()
        assert config.additional_prefixes == ["!"]

    def test_owners_coerced_to_int(self):
        config = _make_config({"owners": ["42", 7, "bogus"]})
        assert config.owners == {42, 7}


class TestLoading:

    def test_reads_yaml_and_env(self, tmp_path, monkeypatch):
        monkeypatch.delenv("MY_TOKEN", raising=False)
        (tmp_path / "settings.yaml").write_text(
            "prefix: '!'\n"
            "token_env: MY_TOKEN\n"
            "edit_tracker:\n"
            "  timespan: 120\n"
            "  execute_untracked_edits: true\n"
            "errors:\n"
            "  report_check_failures: true\n"
        )
        (tmp_path / ".env").write_text("MY_TOKEN=abc123\n")

        config = Config(config_dir=tmp_path)
        try:
            assert config.prefix == "!"
            assert config.edit_tracker_timespan == 120
            assert config.execute_untracked_edits is True
            assert config.report_check_failures is True
            assert config.require_token() == "abc123"
        finally:
            monkeypatch.delenv("MY_TOKEN", raising=False)

    def test_missing_files_use_defaults(self, tmp_path):
        config = Config(config_dir=tmp_path)
        assert config.settings == {}
        assert config.prefix == "--"


class TestCredential:

    def test_require_token_raises_when_unset(self, monkeypatch):
        monkeypatch.delenv("BOT_TOKEN", raising=False)
        config = _make_config({})
        with pytest.raises(MissingCredential) as exc_info:
            config.require_token()
        assert str(exc_info.value).startswith("Missing `BOT_TOKEN` env var")

    def test_require_token_returns_value(self, monkeypatch):
        monkeypatch.setenv("BOT_TOKEN", "secret")
        assert _make_config({}).require_token() == "secret"

    def test_validate_does_not_raise(self, monkeypatch):
        monkeypatch.delenv("BOT_TOKEN", raising=False)
        config = _make_config({"prefix": 5, "edit_tracker": {"timespan": "x"}})
        with patch("commandwire.config.logger") as mock_logger:
            config.validate()
        assert mock_logger.error.call_count == 2
        mock_logger.warning.assert_called_once()


class TestFrameworkOptionsFromConfig:

    def test_slots_filled_from_config(self):
        config = _make_config({
            "prefix": "?",
            "additional_prefixes": ["!"],
            "owners": [1],
            "edit_tracker": {"timespan": 60},
            "errors": {"report_argument_errors": False},
        })
        options = FrameworkOptions.from_config(config, [])
        assert options.prefix_options.prefixes == ["?", "!"]
        assert options.prefix_options.edit_tracker.timespan == 60
        assert options.owners == frozenset({1})
        assert options.report_argument_errors is False

    def test_edit_tracking_disabled(self):
        config = _make_config({"edit_tracker": {"enabled": False}})
        options = FrameworkOptions.from_config(config, [])
        assert options.prefix_options.edit_tracker is None
