"""Command text construction for remote execution."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any


class Command:
    """A command to be executed on a remote host.

    The template is formatted with ``%`` style arguments. Line continuations,
    newlines and tabs are stripped afterwards so templates can be written over
    several lines while the remote shell still sees a single logical line.
    """

    __slots__ = ("_text",)

    def __init__(self, template: str, *args: Any):
        text = template % args if args else template
        text = text.replace("\\\n", "").replace("\n", "").replace("\t", "")
        object.__setattr__(self, "_text", text)

    def __setattr__(self, name: str, value: Any) -> None:
        raise AttributeError("Command is immutable")

    @property
    def text(self) -> str:
        return self._text

    def to_string(self, environment: Mapping[str, str] | None = None) -> str:
        """Return the command with ``export KEY=VALUE;`` prefixes for the overlay."""
        if not environment:
            return self._text
        return prefix_environment(self._text, environment)

    def append(self, suffix: str) -> Command:
        """Return a new command with ``suffix`` appended."""
        return Command(self._text + suffix)

    def __str__(self) -> str:
        return self._text

    def __repr__(self) -> str:
        return f"Command({self._text!r})"

    def __eq__(self, other: object) -> bool:
        if isinstance(other, Command):
            return self._text == other._text
        return NotImplemented

    def __hash__(self) -> int:
        return hash(self._text)


def prefix_environment(command: str, environment: Mapping[str, str]) -> str:
    """Prefix ``command`` with an ``export`` assignment per environment entry."""
    exports = "".join(f"export {key}={value}; " for key, value in environment.items())
    return exports + command
