"""User-facing build output."""

from __future__ import annotations

from typing import Protocol

from rich.console import Console
from rich.markup import escape


class Ui(Protocol):
    """Where steps report progress to the user."""

    def say(self, message: str) -> None: ...

    def message(self, message: str) -> None: ...

    def error(self, message: str) -> None: ...


class ConsoleUi:
    """Ui printing to a rich console, one line per call.

    ``say`` announces a step, ``message`` carries detail under it and
    ``error`` reports failures.
    """

    def __init__(self, console: Console | None = None, prefix: str = "softlayer") -> None:
        self.console = console or Console(highlight=False)
        self.prefix = prefix

    def say(self, message: str) -> None:
        self.console.print(f"[bold green]==> {self.prefix}:[/] {escape(message)}")

    def message(self, message: str) -> None:
        self.console.print(f"    {self.prefix}: {escape(message)}")

    def error(self, message: str) -> None:
        self.console.print(f"[bold red]==> {self.prefix}: {escape(message)}[/]")


class NullUi:
    """Ui that discards everything."""

    def say(self, message: str) -> None:
        pass

    def message(self, message: str) -> None:
        pass

    def error(self, message: str) -> None:
        pass
