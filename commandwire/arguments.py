"""Argument resolution for command invocations.

Turns the text after a prefix command's name, or the option mapping of
a structured call, into the ordered list of typed values a command
body receives. Everything here is pure and synchronous: no I/O, no
shared state.

Key functions:
    pop_token: Split one (optionally quoted) token off a string.
    resolve_text: Resolve a text remainder against a parameter list.
    resolve_structured: Resolve a structured option mapping.
    resolve: Pick one of the above based on the payload type.
"""

import math
import re
from typing import Any, List, Mapping, Optional, Sequence, Tuple, Union

from .commands.base import ArgType, Parameter
from .exceptions import ArgumentError, ArgumentErrorReason

_INT_RE = re.compile(r"[+-]?\d+\Z")
_FLOAT_RE = re.compile(r"[+-]?(\d+(\.\d*)?|\.\d+)([eE][+-]?\d+)?\Z")

_TRUE_WORDS = frozenset({"yes", "y", "true", "t", "1", "on", "enable", "enabled"})
_FALSE_WORDS = frozenset({"no", "n", "false", "f", "0", "off", "disable", "disabled"})

_QUOTES = {'"': '"', "“": "”"}


def pop_token(text: str) -> Tuple[Optional[str], str]:
    """Split the first token off ``text``.

    A token starting with a double quote extends to the matching
    closing quote; an unterminated quote is treated as a plain word.

    Returns:
        (token, remainder). token is None when ``text`` is blank.
    """
    text = text.lstrip()
    if not text:
        return None, ""
    closing = _QUOTES.get(text[0])
    if closing is not None:
        end = text.find(closing, 1)
        if end != -1:
            return text[1:end], text[end + 1:]
    parts = text.split(None, 1)
    return parts[0], parts[1] if len(parts) > 1 else ""


def _mismatch(param: Parameter, value: Any, detail: str = "") -> ArgumentError:
    return ArgumentError(
        param.name,
        ArgumentErrorReason.TYPE_MISMATCH,
        value=value,
        detail=detail or f"(expected {param.type.value})",
    )


def _check_bounds(param: Parameter, value: Union[int, float]) -> None:
    if param.min_value is not None and value < param.min_value:
        raise ArgumentError(
            param.name,
            ArgumentErrorReason.OUT_OF_RANGE,
            value=value,
            detail=f"(minimum {param.min_value})",
        )
    if param.max_value is not None and value > param.max_value:
        raise ArgumentError(
            param.name,
            ArgumentErrorReason.OUT_OF_RANGE,
            value=value,
            detail=f"(maximum {param.max_value})",
        )


def convert_text(param: Parameter, token: str) -> Any:
    """Convert one text token to ``param``'s type.

    Raises:
        ArgumentError: TYPE_MISMATCH or OUT_OF_RANGE.
    """
    if param.type == ArgType.STRING:
        return token
    if param.type == ArgType.INTEGER:
        if not _INT_RE.match(token):
            raise _mismatch(param, token)
        try:
            value = int(token)
        except ValueError:
            # digit strings past the interpreter's conversion limit
            raise _mismatch(param, token) from None
        _check_bounds(param, value)
        return value
    if param.type == ArgType.NUMBER:
        if not _FLOAT_RE.match(token):
            raise _mismatch(param, token)
        try:
            value = float(token)
        except ValueError:
            raise _mismatch(param, token) from None
        if not math.isfinite(value):
            raise _mismatch(param, token)
        _check_bounds(param, value)
        return value
    if param.type == ArgType.BOOLEAN:
        lowered = token.lower()
        if lowered in _TRUE_WORDS:
            return True
        if lowered in _FALSE_WORDS:
            return False
        raise _mismatch(param, token)
    raise _mismatch(param, token, f"(unsupported type {param.type!r})")


def convert_value(param: Parameter, value: Any) -> Any:
    """Validate a pre-typed structured value against ``param``.

    Strings are run through ``convert_text`` so platforms that send
    every option as a string still resolve.
    """
    if isinstance(value, str):
        return convert_text(param, value)
    if param.type == ArgType.INTEGER:
        if isinstance(value, bool) or not isinstance(value, int):
            raise _mismatch(param, value)
        _check_bounds(param, value)
        return value
    if param.type == ArgType.NUMBER:
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise _mismatch(param, value)
        value = float(value)
        if not math.isfinite(value):
            raise _mismatch(param, value)
        _check_bounds(param, value)
        return value
    if param.type == ArgType.BOOLEAN:
        if not isinstance(value, bool):
            raise _mismatch(param, value)
        return value
    raise _mismatch(param, value)


def resolve_text(parameters: Sequence[Parameter], text: str) -> List[Any]:
    """Resolve the text following a command name.

    Parameters consume one token each, in order. A ``rest`` parameter
    consumes everything left. Omitted optional parameters get their
    default.

    Raises:
        ArgumentError: MISSING, TYPE_MISMATCH, OUT_OF_RANGE or
            TRAILING_INPUT.
    """
    values: List[Any] = []
    remaining = text
    for param in parameters:
        if param.rest:
            raw = remaining.strip()
            remaining = ""
            token = raw or None
        else:
            token, remaining = pop_token(remaining)
        if token is None:
            if param.required:
                raise ArgumentError(param.name, ArgumentErrorReason.MISSING)
            values.append(param.default)
            continue
        values.append(convert_text(param, token))

    leftover = remaining.strip()
    if leftover:
        raise ArgumentError(
            None, ArgumentErrorReason.TRAILING_INPUT, value=leftover
        )
    return values


def resolve_structured(
    parameters: Sequence[Parameter], options: Mapping[str, Any]
) -> List[Any]:
    """Resolve a structured option mapping from a slash call.

    Raises:
        ArgumentError: UNKNOWN_PARAMETER, MISSING, TYPE_MISMATCH or
            OUT_OF_RANGE.
    """
    known = {p.name for p in parameters}
    for key in options:
        if key not in known:
            raise ArgumentError(key, ArgumentErrorReason.UNKNOWN_PARAMETER)

    values: List[Any] = []
    for param in parameters:
        if param.name not in options or options[param.name] is None:
            if param.required:
                raise ArgumentError(param.name, ArgumentErrorReason.MISSING)
            values.append(param.default)
            continue
        values.append(convert_value(param, options[param.name]))
    return values


def resolve(
    parameters: Sequence[Parameter], payload: Union[str, Mapping[str, Any]]
) -> List[Any]:
    """Resolve ``payload`` (text remainder or option mapping)."""
    if isinstance(payload, str):
        return resolve_text(parameters, payload)
    return resolve_structured(parameters, payload)
