"""Ready-made pieces most bots want.

Key functions:
    build_command_payload: Slash-command definitions for the platform.
    register_globally: Publish slash commands, skipping identical sets.
    help_command: A ``help`` command listing commands by category.
"""

import hashlib
import json
from typing import Any, Dict, Iterable, List, Optional

import structlog

from .commands.base import ArgType, Command, InvocationKind, command
from .gateway import Gateway

logger = structlog.get_logger("commandwire.commands")

# Platform option type codes
_OPTION_TYPES = {
    ArgType.STRING: 3,
    ArgType.INTEGER: 4,
    ArgType.BOOLEAN: 5,
    ArgType.NUMBER: 10,
}

_MAX_DESCRIPTION = 100


def _truncate(text: str) -> str:
    text = text or "No description"
    if len(text) > _MAX_DESCRIPTION:
        return text[:_MAX_DESCRIPTION - 3] + "..."
    return text


def build_command_payload(commands: Iterable[Command]) -> List[Dict[str, Any]]:
    """Slash-command definitions for every command supporting SLASH."""
    payload = []
    for cmd in commands:
        if not cmd.supports_slash:
            continue
        options = []
        for param in cmd.parameters:
            option: Dict[str, Any] = {
                "name": param.name,
                "description": _truncate(param.description or param.name),
                "type": _OPTION_TYPES[param.type],
                "required": param.required,
            }
            if param.min_value is not None:
                option["min_value"] = param.min_value
            if param.max_value is not None:
                option["max_value"] = param.max_value
            options.append(option)
        payload.append({
            "name": cmd.name,
            "description": _truncate(cmd.description),
            "type": 1,
            "options": options,
        })
    return payload


def payload_fingerprint(payload: List[Dict[str, Any]]) -> str:
    """Stable hash of a command payload."""
    encoded = json.dumps(payload, sort_keys=True, separators=(",", ":"))
    return hashlib.sha256(encoded.encode()).hexdigest()


async def register_globally(
    gateway: Gateway,
    commands: Iterable[Command],
    *,
    last_fingerprint: Optional[str] = None,
) -> str:
    """Publish ``commands`` as the platform's global slash commands.

    Publishing is skipped when the payload hashes to
    ``last_fingerprint``. Returns the fingerprint of what is now
    published, to be passed back on the next call.
    """
    payload = build_command_payload(commands)
    fingerprint = payload_fingerprint(payload)
    if fingerprint == last_fingerprint:
        logger.debug("register_globally_unchanged", count=len(payload))
        return fingerprint
    logger.info("register_globally", count=len(payload))
    await gateway.publish_commands(payload)
    return fingerprint


def format_help(commands: Iterable[Command], prefix: str = "") -> str:
    """Commands grouped by category, one usage line each."""
    sections: Dict[str, List[str]] = {}
    for cmd in commands:
        if cmd.hidden:
            continue
        line = f"  {cmd.usage(prefix)}"
        if cmd.description:
            line += f"  {cmd.description}"
        sections.setdefault(cmd.category, []).append(line)
    lines = []
    for category, entries in sections.items():
        lines.append(f"{category}:")
        lines.extend(entries)
    return "\n".join(lines) if lines else "No commands available."


@command(name="help", category="Help", kinds=InvocationKind.BOTH, track_edits=True)
async def help_command(ctx, command: Optional[str] = None):
    """Show available commands"""
    registry = ctx.registry
    if command:
        found = registry.lookup(command) if registry else None
        if found is None:
            await ctx.say(f"No command called `{command}`.")
            return
        text = f"`{found.usage(ctx.prefix)}`"
        if found.description:
            text += f"\n{found.description}"
        if found.aliases:
            text += "\nAliases: " + ", ".join(found.aliases)
        await ctx.say(text)
        return
    await ctx.say(format_help(registry.commands if registry else (), ctx.prefix))
