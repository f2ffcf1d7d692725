"""Configuration management for commandwire.

Loads YAML settings (settings.yaml) and environment variables (.env)
into a typed Config object. Property getters provide safe access with
defaults for the prefix parser, edit tracker, checks, gateway and
logging.

Key classes:
    Config: Central configuration manager.

Key functions:
    get_config: Singleton accessor for the global Config instance.
"""

import os
from pathlib import Path
from typing import List, Optional, Set

import structlog
import yaml
from dotenv import load_dotenv

from .exceptions import MissingCredential

logger = structlog.get_logger("commandwire.dispatch")

DEFAULT_PREFIX = "--"
DEFAULT_EDIT_TRACKER_TIMESPAN = 3600  # seconds
DEFAULT_EDIT_SWEEP_INTERVAL = 300  # seconds
DEFAULT_TOKEN_ENV = "BOT_TOKEN"


class Config:
    """Central configuration manager for commandwire.

    Loads settings.yaml and .env from the config directory. Missing
    files are fine: every property has a default.

    Args:
        config_dir: Path to the config directory. Defaults to
            ``./config`` relative to the working directory.
    """

    def __init__(self, config_dir: Optional[Path] = None):
        if config_dir is None:
            config_dir = Path.cwd() / "config"
        self.config_dir = config_dir

        env_file = config_dir / ".env"
        if env_file.exists():
            load_dotenv(env_file)

        self.settings = self._load_yaml("settings.yaml")

    def _load_yaml(self, filename: str) -> dict:
        """Load a YAML configuration file."""
        filepath = self.config_dir / filename
        if filepath.exists():
            with open(filepath, "r") as f:
                return yaml.safe_load(f) or {}
        return {}

    def validate(self):
        """Validate settings at startup.

        Logs errors for malformed values but does not raise; the
        offending property falls back to its default. The missing
        credential is the only fatal problem and is raised by
        ``require_token``.
        """
        prefix = self.settings.get("prefix")
        if prefix is not None and (not isinstance(prefix, str) or not prefix.strip()):
            logger.error("config_invalid_value", key="prefix", value=prefix)

        timespan = self.settings.get("edit_tracker", {}).get("timespan")
        if timespan is not None and (
            not isinstance(timespan, (int, float)) or timespan <= 0
        ):
            logger.error(
                "config_invalid_value",
                key="edit_tracker.timespan",
                value=timespan,
                valid="> 0",
            )

        owners = self.settings.get("owners", [])
        if not isinstance(owners, list):
            logger.error("config_invalid_value", key="owners", type=type(owners).__name__)

        if not self.token:
            logger.warning("credential_not_set", env_var=self.token_env)

    # --- Prefix parsing ---

    @property
    def prefix(self) -> str:
        """Command prefix for text invocations (default ``--``)."""
        prefix = self.settings.get("prefix", DEFAULT_PREFIX)
        if not isinstance(prefix, str) or not prefix.strip():
            return DEFAULT_PREFIX
        return prefix

    @property
    def additional_prefixes(self) -> List[str]:
        """Extra prefixes accepted besides ``prefix``."""
        extra = self.settings.get("additional_prefixes", [])
        if not isinstance(extra, list):
            return []
        return [p for p in extra if isinstance(p, str) and p]

    @property
    def case_insensitive_commands(self) -> bool:
        """Match command names case-insensitively (default False)."""
        return bool(self.settings.get("case_insensitive_commands", False))

    @property
    def ignore_bots(self) -> bool:
        """Ignore messages authored by bots (default True)."""
        return bool(self.settings.get("ignore_bots", True))

    # --- Edit tracking ---

    @property
    def edit_tracking_enabled(self) -> bool:
        """Whether edited messages re-run their command (default True)."""
        return bool(self.settings.get("edit_tracker", {}).get("enabled", True))

    @property
    def edit_tracker_timespan(self) -> float:
        """Seconds an invocation stays re-runnable by edits (default 3600)."""
        timespan = self.settings.get("edit_tracker", {}).get(
            "timespan", DEFAULT_EDIT_TRACKER_TIMESPAN
        )
        if not isinstance(timespan, (int, float)) or timespan <= 0:
            return DEFAULT_EDIT_TRACKER_TIMESPAN
        return timespan

    @property
    def edit_sweep_interval(self) -> float:
        """Seconds between expired-entry sweeps (default 300)."""
        return self.settings.get("edit_tracker", {}).get(
            "sweep_interval", DEFAULT_EDIT_SWEEP_INTERVAL
        )

    @property
    def execute_untracked_edits(self) -> bool:
        """Run commands from edits of messages never tracked (default False)."""
        return bool(
            self.settings.get("edit_tracker", {}).get("execute_untracked_edits", False)
        )

    # --- Checks and error reporting ---

    @property
    def owners(self) -> Set[int]:
        """User ids treated as bot owners."""
        owners = self.settings.get("owners", [])
        if not isinstance(owners, list):
            return set()
        result = set()
        for owner in owners:
            try:
                result.add(int(owner))
            except (TypeError, ValueError):
                logger.error("invalid_owner_entry", entry=str(owner))
        return result

    @property
    def skip_checks_for_owners(self) -> bool:
        """Owners bypass every check (default False)."""
        return bool(self.settings.get("skip_checks_for_owners", False))

    @property
    def report_argument_errors(self) -> bool:
        """Reply to the user on argument errors (default True)."""
        return bool(self.settings.get("errors", {}).get("report_argument_errors", True))

    @property
    def report_check_failures(self) -> bool:
        """Reply to the user on check failures (default False)."""
        return bool(self.settings.get("errors", {}).get("report_check_failures", False))

    # --- Gateway ---

    @property
    def api_url(self) -> str:
        """REST base URL. Env var COMMANDWIRE_API_URL takes precedence."""
        return os.environ.get("COMMANDWIRE_API_URL") or self.settings.get(
            "api_url", "https://discord.com/api/v10"
        )

    @property
    def gateway_url(self) -> str:
        """Websocket URL for inbound events."""
        return os.environ.get("COMMANDWIRE_GATEWAY_URL") or self.settings.get(
            "gateway_url", "ws://127.0.0.1:8080/v1/events"
        )

    @property
    def application_id(self) -> Optional[str]:
        """Application id used when publishing slash commands."""
        value = self.settings.get("application_id")
        return str(value) if value is not None else None

    @property
    def token_env(self) -> str:
        """Name of the env var holding the gateway credential."""
        return self.settings.get("token_env", DEFAULT_TOKEN_ENV)

    @property
    def token(self) -> str:
        """Gateway credential from the environment ("" when unset)."""
        return os.environ.get(self.token_env, "")

    def require_token(self) -> str:
        """Return the credential or raise MissingCredential."""
        token = self.token
        if not token:
            raise MissingCredential(self.token_env)
        return token

    @property
    def shutdown_grace_period(self) -> float:
        """Seconds to wait for in-flight invocations on shutdown (default 10)."""
        return self.settings.get("shutdown_grace_period", 10)

    # --- Logging ---

    @property
    def log_dir(self) -> Path:
        """Log directory path."""
        configured = self.settings.get("log_dir")
        if configured:
            return Path(configured).expanduser()
        return Path.cwd() / "logs"

    @property
    def logging_to_files(self) -> bool:
        """Write rotating log files in addition to the console (default True)."""
        return bool(self.settings.get("logging", {}).get("files", True))

    @property
    def logging_level(self) -> str:
        """Global log level (default INFO)."""
        return self.settings.get("logging", {}).get("level", "INFO")

    @property
    def logging_subsystem_levels(self) -> dict:
        """Per-subsystem log level overrides. E.g. {"dispatch": "DEBUG"}."""
        return self.settings.get("logging", {}).get("subsystem_levels", {})

    @property
    def logging_max_file_size_mb(self) -> int:
        """Max size per log file in MB before rotation (default 10)."""
        return self.settings.get("logging", {}).get("max_file_size_mb", 10)

    @property
    def logging_backup_count(self) -> int:
        """Number of rotated log files to keep (default 5)."""
        return self.settings.get("logging", {}).get("backup_count", 5)


# Global config instance
_config: Optional[Config] = None


def get_config() -> Config:
    """Get or create the global config instance."""
    global _config
    if _config is None:
        _config = Config()
    return _config
