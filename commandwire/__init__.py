"""commandwire: an asyncio command-dispatch engine for chat bots.

Registers groups of commands, matches prefix and slash invocations,
runs checks, re-runs commands when their triggering message is edited,
and routes every failure through a customizable error handler.
"""

__version__ = "1.0.0"
