"""Command declaration and registration for commandwire.

Provides the Command/Parameter types, the ``@command`` decorator,
CommandGroup for category-sharing groups, and the read-only
CommandRegistry.
"""

from .base import (
    ArgType,
    Command,
    CommandGroup,
    CommandRegistry,
    InvocationKind,
    Parameter,
    command,
    register,
)

__all__ = [
    "ArgType",
    "Command",
    "CommandGroup",
    "CommandRegistry",
    "InvocationKind",
    "Parameter",
    "command",
    "register",
]
