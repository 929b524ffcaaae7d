"""Step 4: connect to the instance over SSH."""

from __future__ import annotations

import threading
from collections.abc import Callable
from datetime import timedelta
from typing import TYPE_CHECKING

import paramiko
from loguru import logger

from softbake.core.exceptions import CancelledError, SSHConnectionError, WaitTimeoutError
from softbake.ssh import SSHConfig, SSHConnection, load_private_key
from softbake.state import StepAction
from softbake.steps.wait import wait_until

if TYPE_CHECKING:
    from softbake.state import BuildState


def ssh_config(state: BuildState) -> SSHConfig:
    """Connection settings for the build instance, from the state bag."""
    config = state.config
    return SSHConfig(
        host=state.instance_ip,
        port=config.ssh_port,
        username=config.ssh_username,
        private_key=state.ssh_private_key,
    )


class StepConnectSSH:
    """Retry an SSH connection until it succeeds or *timeout* elapses.

    Authentication failures are retried too: a freshly booted instance may
    accept connections before its authorized keys are in place.
    """

    name = "connect_ssh"

    def __init__(
        self,
        config: Callable[[BuildState], SSHConfig] = ssh_config,
        timeout: timedelta = timedelta(minutes=5),
        interval: float = 5.0,
        connect: Callable[[SSHConfig], SSHConnection] = SSHConnection,
    ) -> None:
        self.config = config
        self.timeout = timeout
        self.interval = interval
        self.connect = connect
        self._cancelled: threading.Event | None = None

    def run(self, state: BuildState) -> StepAction:
        ui = state.ui
        self._cancelled = state.cancelled
        cfg = self.config(state)
        if cfg.private_key:
            try:
                load_private_key(cfg.private_key)
            except paramiko.SSHException as e:
                err = SSHConnectionError(f"Error parsing private key: {e}")
                ui.error(str(err))
                return state.fail(err)

        ui.say(f"Waiting for SSH to become available on {cfg.host}:{cfg.port}...")

        def _attempt() -> SSHConnection | None:
            try:
                return self.connect(cfg)
            except (paramiko.SSHException, OSError, EOFError) as e:
                logger.debug(f"SSH handshake err: {e}")
                return None

        try:
            comm = wait_until(
                _attempt,
                timeout=self.timeout.total_seconds(),
                cancelled=state.cancelled,
                interval=self.interval,
                description="SSH",
            )
        except CancelledError:
            logger.info("Interrupt detected, quitting waiting for SSH")
            return StepAction.HALT
        except WaitTimeoutError as e:
            err = SSHConnectionError(str(e))
            ui.error(f"Timeout waiting for SSH: {e}")
            return state.fail(err)

        state.communicator = comm
        ui.say("Connected to SSH!")
        return StepAction.CONTINUE

    def cancel(self) -> None:
        if self._cancelled is not None:
            self._cancelled.set()

    def cleanup(self, state: BuildState) -> None:
        if state.communicator is not None:
            state.communicator.close()
