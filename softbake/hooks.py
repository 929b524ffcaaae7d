"""Provisioning hooks run against the connected instance."""

from __future__ import annotations

import shlex
import threading
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Protocol

from loguru import logger

from softbake.core.exceptions import CancelledError, ProvisioningError

if TYPE_CHECKING:
    from softbake.ssh import SSHConnection
    from softbake.ui import Ui

HOOK_PROVISION = "provision"


class Hook(Protocol):
    """Called by the pipeline at named points of the build."""

    def run(self, name: str, ui: Ui, communicator: SSHConnection | None) -> None: ...


class NoopHook:
    """Hook that does nothing."""

    def run(self, name: str, ui: Ui, communicator: SSHConnection | None) -> None:
        logger.debug(f"Hook {name}: nothing to run")


@dataclass(frozen=True, slots=True)
class ShellProvisioner:
    """Inline shell commands executed on the instance, in order."""

    inline: tuple[str, ...]
    environment: Mapping[str, str] = field(default_factory=dict)

    def commands(self) -> list[str]:
        if not self.environment:
            return list(self.inline)
        exports = " ".join(f"{k}={shlex.quote(v)}" for k, v in self.environment.items())
        return [f"export {exports}; {cmd}" for cmd in self.inline]


class ShellHook:
    """Runs shell provisioners over SSH when the provision hook fires."""

    def __init__(self, provisioners: Sequence[ShellProvisioner], command_timeout: int = 1800) -> None:
        self.provisioners = tuple(provisioners)
        self.command_timeout = command_timeout
        self._cancelled = threading.Event()

    def run(self, name: str, ui: Ui, communicator: SSHConnection | None) -> None:
        if name != HOOK_PROVISION or not self.provisioners:
            return
        if communicator is None:
            raise ProvisioningError("No SSH connection available for provisioning")

        for prov in self.provisioners:
            for cmd in prov.commands():
                if self._cancelled.is_set():
                    raise CancelledError("running provisioners")
                ui.say(f"Provisioning with shell: {cmd}")
                output = communicator.exec(cmd, timeout=self.command_timeout)
                for line in output.splitlines():
                    ui.message(line)

    def cancel(self) -> None:
        self._cancelled.set()
