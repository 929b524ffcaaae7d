"""Variable expansion for configuration strings.

Supports the template functions a build template may use inside string
values::

    {{ user `name` }}     value of a user variable
    {{ env `NAME` }}      value of an environment variable
    {{ timestamp }}       unix timestamp of the build
    {{ uuid }}            random UUID

Anything else inside ``{{ }}`` is an error.
"""

from __future__ import annotations

import re
import uuid
from collections.abc import Mapping
from dataclasses import dataclass, field

_ACTION = re.compile(r"\{\{(.*?)\}\}", re.DOTALL)
_CALL = re.compile(r"^\s*(?P<fn>[a-z_]+)\s*(?:`(?P<arg>[^`]*)`)?\s*$")


class InterpolationError(ValueError):
    """Raised when a template string cannot be expanded."""


@dataclass(frozen=True, slots=True)
class Context:
    """Values available to template functions."""

    user_vars: Mapping[str, str] = field(default_factory=dict)
    env: Mapping[str, str] = field(default_factory=dict)
    timestamp: int = 0


def render(text: str, ctx: Context) -> str:
    """Expand every ``{{ ... }}`` action in *text*.

    Raises:
        InterpolationError: On unknown functions, undefined user variables
            or unbalanced braces.
    """
    if "{{" not in text:
        return text
    if "{{" in _ACTION.sub("", text):
        raise InterpolationError(f"unclosed action in {text!r}")

    def _replace(match: re.Match[str]) -> str:
        return _evaluate(match.group(1), ctx)

    return _ACTION.sub(_replace, text)


def _evaluate(action: str, ctx: Context) -> str:
    m = _CALL.match(action)
    if m is None:
        raise InterpolationError(f"cannot parse action {{{{{action}}}}}")

    fn, arg = m.group("fn"), m.group("arg")
    match fn:
        case "user":
            if arg is None:
                raise InterpolationError("user requires a variable name")
            if arg not in ctx.user_vars:
                raise InterpolationError(f"user variable {arg!r} not defined")
            return str(ctx.user_vars[arg])
        case "env":
            if arg is None:
                raise InterpolationError("env requires a variable name")
            return ctx.env.get(arg, "")
        case "timestamp":
            return str(ctx.timestamp)
        case "uuid":
            return uuid.uuid4().hex
        case _:
            raise InterpolationError(f'function "{fn}" not defined')
