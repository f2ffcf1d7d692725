"""Base classes for the command framework.

Defines the abstractions for declaring, grouping and registering bot
commands. Command bodies are plain async functions decorated with
``@command``; the decorator captures the function signature into an
ordered parameter list so every body can be stored and
invoked uniformly as ``body(ctx, *args)``.

Key classes:
    Parameter: One entry in a command's parameter list.
    Command: Immutable command metadata plus its body.
    CommandGroup: Base class collecting decorated methods under a
        shared category. Flattened into plain Commands at registration.
    CommandRegistry: Read-only name/alias -> Command mapping.

Key functions:
    command: Decorator turning an async function into a Command.
    register: Build a CommandRegistry, raising DuplicateName on clashes.
"""

from __future__ import annotations

import dataclasses
import inspect
import typing
from dataclasses import dataclass
from enum import Enum, Flag
from types import MappingProxyType
from typing import (
    Any,
    Awaitable,
    Callable,
    Dict,
    Iterable,
    Iterator,
    List,
    Mapping,
    Optional,
    Sequence,
    Tuple,
    Union,
)

import structlog

from ..exceptions import DuplicateName, SetupError

logger = structlog.get_logger("commandwire.commands")

# async (ctx, *args) -> None
CommandBody = Callable[..., Awaitable[Any]]
# (ctx) -> bool | CheckResult, sync or async
CheckFunc = Callable[..., Any]

DEFAULT_CATEGORY = "General"


class InvocationKind(Flag):
    """How a command may be invoked."""
    PREFIX = 1
    SLASH = 2
    BOTH = PREFIX | SLASH


class ArgType(str, Enum):
    """Type tag of a command parameter."""
    STRING = "string"
    INTEGER = "integer"
    NUMBER = "number"
    BOOLEAN = "boolean"


_ANNOTATION_TYPES = {
    str: ArgType.STRING,
    int: ArgType.INTEGER,
    float: ArgType.NUMBER,
    bool: ArgType.BOOLEAN,
}


@dataclass(frozen=True)
class Parameter:
    """One parameter of a command signature.

    Attributes:
        name: Parameter name (also the structured option name).
        type: ArgType tag used by the argument resolver.
        required: Whether the caller must supply a value.
        default: Value used when an optional parameter is omitted.
        min_value: Inclusive lower bound for numeric types.
        max_value: Inclusive upper bound for numeric types.
        rest: Consume the whole remaining text (STRING only, text mode).
        description: Shown in help and published with slash commands.
    """
    name: str
    type: ArgType = ArgType.STRING
    required: bool = True
    default: Any = None
    min_value: Optional[float] = None
    max_value: Optional[float] = None
    rest: bool = False
    description: str = ""

    @property
    def usage(self) -> str:
        label = f"{self.name}..." if self.rest else self.name
        return f"<{label}>" if self.required else f"[{label}]"


@dataclass(frozen=True)
class Command:
    """A registered command. Immutable after registration.

    ``body`` is awaited as ``body(ctx, *args)`` where ``args`` follow the
    order of ``parameters``.
    """
    name: str
    body: CommandBody
    aliases: Tuple[str, ...] = ()
    category: str = DEFAULT_CATEGORY
    kinds: InvocationKind = InvocationKind.BOTH
    parameters: Tuple[Parameter, ...] = ()
    check: Optional[CheckFunc] = None
    description: str = ""
    owners_only: bool = False
    guild_only: bool = False
    dm_only: bool = False
    track_edits: bool = True
    hidden: bool = False

    @property
    def qualified_name(self) -> str:
        return f"{self.category}.{self.name}"

    @property
    def all_names(self) -> Tuple[str, ...]:
        return (self.name,) + tuple(self.aliases)

    @property
    def supports_prefix(self) -> bool:
        return bool(self.kinds & InvocationKind.PREFIX)

    @property
    def supports_slash(self) -> bool:
        return bool(self.kinds & InvocationKind.SLASH)

    def usage(self, prefix: str = "") -> str:
        parts = [f"{prefix}{self.name}"] + [p.usage for p in self.parameters]
        return " ".join(parts)


# ---------------------------------------------------------------------------
# Signature capture
# ---------------------------------------------------------------------------

def _unwrap_optional(annotation: Any) -> Tuple[Any, bool]:
    """Return (inner_type, was_optional) for Optional[X] annotations."""
    if typing.get_origin(annotation) is Union:
        args = [a for a in typing.get_args(annotation) if a is not type(None)]
        if len(args) == 1:
            return args[0], True
    return annotation, False


def _infer_parameters(
    func: CommandBody,
    bounds: Mapping[str, Tuple[Optional[float], Optional[float]]],
    rest: Sequence[str],
    descriptions: Mapping[str, str],
) -> Tuple[Parameter, ...]:
    """Build a parameter list from ``func``'s signature.

    The first parameter is the invocation context (after ``self`` for
    group methods) and is not part of the list.
    """
    try:
        hints = typing.get_type_hints(func)
    except (NameError, TypeError):
        hints = {}

    params = list(inspect.signature(func).parameters.values())
    if params and params[0].name == "self":
        params = params[1:]
    if not params:
        raise SetupError(
            f"Command body {func.__name__!r} must accept a context argument",
            module="commands",
        )

    parsed = []
    for param in params[1:]:
        if param.kind in (param.VAR_POSITIONAL, param.VAR_KEYWORD):
            raise SetupError(
                f"Command body {func.__name__!r} cannot take *args/**kwargs",
                module="commands",
            )
        annotation, optional = _unwrap_optional(hints.get(param.name, str))
        arg_type = _ANNOTATION_TYPES.get(annotation)
        if arg_type is None:
            raise SetupError(
                f"Unsupported annotation for parameter {param.name!r}: {annotation!r}",
                module="commands",
            )
        has_default = param.default is not inspect.Parameter.empty
        low, high = bounds.get(param.name, (None, None))
        parsed.append(
            Parameter(
                name=param.name,
                type=arg_type,
                required=not (optional or has_default),
                default=param.default if has_default else None,
                min_value=low,
                max_value=high,
                rest=param.name in rest,
                description=descriptions.get(param.name, ""),
            )
        )
    return tuple(parsed)


def command(
    name: Optional[str] = None,
    *,
    aliases: Iterable[str] = (),
    kinds: InvocationKind = InvocationKind.BOTH,
    category: Optional[str] = None,
    description: Optional[str] = None,
    check: Optional[CheckFunc] = None,
    params: Optional[Sequence[Parameter]] = None,
    bounds: Optional[Mapping[str, Tuple[Optional[float], Optional[float]]]] = None,
    rest: Sequence[str] = (),
    param_descriptions: Optional[Mapping[str, str]] = None,
    owners_only: bool = False,
    guild_only: bool = False,
    dm_only: bool = False,
    track_edits: bool = True,
    hidden: bool = False,
) -> Callable[[CommandBody], Command]:
    """Decorator turning an async function into a Command.

    The parameter list is inferred from annotations (``str``, ``int``,
    ``float``, ``bool``, optionally wrapped in ``Optional``) unless
    ``params`` is given explicitly. ``bounds`` adds inclusive numeric
    limits per parameter name; ``rest`` names STRING parameters that
    swallow the remaining text.

    Example::

        @command(name="plus", bounds={"number": (0, U32_MAX)})
        async def add_one(ctx, number: int):
            ...
    """

    def decorator(func: CommandBody) -> Command:
        if not inspect.iscoroutinefunction(func):
            raise SetupError(
                f"Command body {func.__name__!r} must be an async function",
                module="commands",
            )
        if params is not None:
            parsed = tuple(params)
        else:
            parsed = _infer_parameters(
                func, bounds or {}, rest, param_descriptions or {}
            )
        doc = description
        if doc is None:
            doc = (inspect.getdoc(func) or "").split("\n", 1)[0]
        return Command(
            name=name or func.__name__,
            body=func,
            aliases=tuple(aliases),
            category=category or DEFAULT_CATEGORY,
            kinds=kinds,
            parameters=parsed,
            check=check,
            description=doc,
            owners_only=owners_only,
            guild_only=guild_only,
            dm_only=dm_only,
            track_edits=track_edits,
            hidden=hidden,
        )

    return decorator


# ---------------------------------------------------------------------------
# Groups
# ---------------------------------------------------------------------------

class CommandGroup:
    """Base class for a group of commands sharing a category.

    Subclasses set ``category`` and decorate async methods with
    ``@command``. ``commands()`` instantiates the group and returns its
    Commands with bodies bound to that instance, in definition order.

    Example::

        class Arithmetic(CommandGroup):
            category = "Multiple"

            @command(name="plus")
            async def add_one(self, ctx, number: int):
                ...
    """

    category: str = DEFAULT_CATEGORY

    @classmethod
    def commands(cls, *args: Any, **kwargs: Any) -> List[Command]:
        """Flatten this group into Commands.

        Positional and keyword arguments are passed to the constructor.
        """
        instance = cls(*args, **kwargs)
        # Definition order of first appearance; subclass overrides win
        attrs = []
        for klass in reversed(cls.__mro__):
            for attr, value in vars(klass).items():
                if isinstance(value, Command) and attr not in attrs:
                    attrs.append(attr)
        flattened = []
        for attr in attrs:
            cmd = getattr(cls, attr)
            category = cmd.category if cmd.category != DEFAULT_CATEGORY else cls.category
            flattened.append(
                dataclasses.replace(
                    cmd, body=cmd.body.__get__(instance, cls), category=category
                )
            )
        return flattened


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------

class CommandRegistry:
    """Read-only mapping from command name and alias to Command.

    Built once; there is no way to add or remove commands afterwards.
    Lookups are a single dict access.

    Args:
        commands: Commands in registration order.
        case_insensitive: Fold names to lower case at build and lookup.

    Raises:
        DuplicateName: If any name or alias appears on two commands.
    """

    def __init__(self, commands: Iterable[Command], *, case_insensitive: bool = False):
        self.case_insensitive = case_insensitive
        by_name: Dict[str, Command] = {}
        ordered: List[Command] = []
        for cmd in commands:
            for raw in dict.fromkeys(cmd.all_names):
                key = self._key(raw)
                existing = by_name.get(key)
                if existing is not None and existing is not cmd:
                    logger.error(
                        "duplicate_command_name",
                        name=raw,
                        existing=existing.name,
                        duplicate=cmd.name,
                    )
                    raise DuplicateName(raw, existing.name, cmd.name)
                by_name[key] = cmd
            ordered.append(cmd)
        self._by_name: Mapping[str, Command] = MappingProxyType(by_name)
        self._commands: Tuple[Command, ...] = tuple(ordered)
        logger.info(
            "registry_built",
            commands=len(self._commands),
            names=len(by_name),
        )

    def _key(self, name: str) -> str:
        return name.lower() if self.case_insensitive else name

    def lookup(self, name: str) -> Optional[Command]:
        """Look up a command by canonical name or alias."""
        return self._by_name.get(self._key(name))

    @property
    def commands(self) -> Tuple[Command, ...]:
        """All commands in registration order."""
        return self._commands

    def categories(self) -> Dict[str, List[Command]]:
        """Commands grouped by category, in first-seen order."""
        grouped: Dict[str, List[Command]] = {}
        for cmd in self._commands:
            grouped.setdefault(cmd.category, []).append(cmd)
        return grouped

    def __contains__(self, name: str) -> bool:
        return self._key(name) in self._by_name

    def __iter__(self) -> Iterator[Command]:
        return iter(self._commands)

    def __len__(self) -> int:
        return len(self._commands)


def register(
    commands: Iterable[Command], *, case_insensitive: bool = False
) -> CommandRegistry:
    """Build the registry for ``commands``.

    Raises:
        DuplicateName: If two commands collide on a name or alias.
    """
    return CommandRegistry(commands, case_insensitive=case_insensitive)
