"""Logging configuration for commandwire.

Everything logs through structlog with one named logger per subsystem,
rendered by stdlib handlers:

    root                       console
      commandwire              logs/commandwire.log (all subsystems)
        commandwire.dispatch   logs/dispatch.log
        commandwire.commands   logs/commands.log
        commandwire.edits      logs/edits.log
        commandwire.errors     logs/errors.log
        commandwire.gateway    logs/gateway.log

Bot credentials are scrubbed from every event before rendering.
"""

import logging
import logging.handlers
import re
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

import structlog

# Subsystem names; each gets its own RotatingFileHandler
SUBSYSTEMS = ("dispatch", "commands", "edits", "errors", "gateway")

# stdlib logger name prefix for hierarchy-based propagation
LOGGER_PREFIX = "commandwire"

# ---------------------------------------------------------------------------
# Secret sanitization
# ---------------------------------------------------------------------------

_SECRET_PATTERNS = [
    # Discord-style bot tokens: three dot-separated base64url segments
    re.compile(r"[A-Za-z0-9_-]{23,28}\.[A-Za-z0-9_-]{6,7}\.[A-Za-z0-9_-]{27,}"),
    # Authorization header values
    re.compile(r"Bot\s+[a-zA-Z0-9_.-]{20,}"),
    re.compile(r"Bearer\s+[a-zA-Z0-9_./-]{20,}"),
]

_REDACTED = "***REDACTED***"


def _scrub_value(value: str) -> str:
    """Scrub secrets from a single string value."""
    for pattern in _SECRET_PATTERNS:
        value = pattern.sub(_REDACTED, value)
    return value


def sanitize_secrets(
    logger: Any, method_name: str, event_dict: Dict[str, Any]
) -> Dict[str, Any]:
    """structlog processor that scrubs bot tokens from log events.

    Walks string values (including inside lists, tuples and dicts one
    level deep) and replaces token-shaped substrings with a placeholder.
    """
    for key, value in event_dict.items():
        if isinstance(value, str):
            event_dict[key] = _scrub_value(value)
        elif isinstance(value, (list, tuple)):
            event_dict[key] = type(value)(
                _scrub_value(v) if isinstance(v, str) else v
                for v in value
            )
        elif isinstance(value, dict):
            event_dict[key] = {
                k: _scrub_value(v) if isinstance(v, str) else v
                for k, v in value.items()
            }
    return event_dict


# ---------------------------------------------------------------------------
# Logging setup
# ---------------------------------------------------------------------------

@dataclass
class _LogSettings:
    log_dir: Path
    level: int
    subsystem_levels: Dict[str, str]
    max_bytes: int
    backup_count: int
    to_files: bool
    cache_loggers: bool


def _level(name: Optional[str], default: int) -> int:
    if not name:
        return default
    value = logging.getLevelName(str(name).upper())
    return value if isinstance(value, int) else default


def _resolve_settings(config) -> _LogSettings:
    """Read logging settings from ``config``, or bootstrap defaults."""
    if config is None:
        return _LogSettings(
            log_dir=Path.cwd() / "logs",
            level=logging.INFO,
            subsystem_levels={},
            max_bytes=10 * 1024 * 1024,
            backup_count=5,
            to_files=False,
            cache_loggers=False,
        )
    return _LogSettings(
        log_dir=config.log_dir,
        level=_level(config.logging_level, logging.INFO),
        subsystem_levels=dict(config.logging_subsystem_levels or {}),
        max_bytes=config.logging_max_file_size_mb * 1024 * 1024,
        backup_count=config.logging_backup_count,
        to_files=config.logging_to_files,
        cache_loggers=True,
    )


def _prepare_log_dir(log_dir: Path) -> bool:
    try:
        log_dir.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        print(
            f"WARNING: Cannot create log directory {log_dir}: {exc}. "
            "Logging to console only.",
            file=sys.stderr,
        )
        return False
    return True


def _rotating_handler(
    path: Path, level: int, settings: _LogSettings, formatter: logging.Formatter
) -> logging.Handler:
    handler = logging.handlers.RotatingFileHandler(
        path,
        maxBytes=settings.max_bytes,
        backupCount=settings.backup_count,
        encoding="utf-8",
    )
    handler.setLevel(level)
    handler.setFormatter(formatter)
    return handler


def _reset_logger(name: str, level: int) -> logging.Logger:
    stdlib_logger = logging.getLogger(name)
    stdlib_logger.setLevel(level)
    stdlib_logger.handlers.clear()
    stdlib_logger.propagate = True
    return stdlib_logger


def setup_logging(config=None) -> None:
    """Configure structlog on top of stdlib logging.

    Called twice by ``main``: first without a config so early startup
    events are visible on the console, then with the loaded Config to
    apply levels and attach the per-subsystem rotating files.

    Args:
        config: Optional Config instance. Without it nothing is written
                to disk and loggers are not cached, so the second call
                can still reconfigure them.
    """
    settings = _resolve_settings(config)
    write_files = settings.to_files and _prepare_log_dir(settings.log_dir)

    file_formatter = structlog.stdlib.ProcessorFormatter(
        processors=[
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.format_exc_info,
            structlog.dev.ConsoleRenderer(colors=False),
        ],
    )

    root_logger = _reset_logger("", logging.DEBUG)
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(settings.level)
    console_handler.setFormatter(
        logging.Formatter("%(asctime)s [%(levelname)s] %(message)s")
    )
    root_logger.addHandler(console_handler)

    combined = _reset_logger(LOGGER_PREFIX, logging.DEBUG)
    if write_files:
        combined.addHandler(
            _rotating_handler(
                settings.log_dir / f"{LOGGER_PREFIX}.log",
                settings.level,
                settings,
                file_formatter,
            )
        )

    for subsystem in SUBSYSTEMS:
        level = _level(settings.subsystem_levels.get(subsystem), settings.level)
        sub_logger = _reset_logger(f"{LOGGER_PREFIX}.{subsystem}", level)
        if write_files:
            sub_logger.addHandler(
                _rotating_handler(
                    settings.log_dir / f"{subsystem}.log", level, settings, file_formatter
                )
            )

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            sanitize_secrets,
            structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=settings.cache_loggers,
    )
