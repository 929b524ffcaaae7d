"""Step 3: wait until the instance has booted."""

from __future__ import annotations

import threading
from typing import TYPE_CHECKING

from loguru import logger

from softbake.core.exceptions import (
    CancelledError,
    ProvisioningError,
    SoftLayerError,
    WaitTimeoutError,
)
from softbake.state import StepAction
from softbake.steps.wait import wait_until

if TYPE_CHECKING:
    from softbake.state import BuildState


class StepWaitForInstance:
    name = "wait_for_instance"

    def __init__(self, interval: float = 10.0) -> None:
        self.interval = interval
        self._cancelled: threading.Event | None = None

    def run(self, state: BuildState) -> StepAction:
        ui = state.ui
        client = state.client
        instance_id = state.instance_id
        if instance_id is None:
            return state.fail(ProvisioningError("No instance to wait for"))
        self._cancelled = state.cancelled

        ui.say("Waiting for the instance to become ACTIVE...")

        def _ready_ip() -> str | None:
            if not client.is_instance_ready(instance_id):
                return None
            return client.get_instance_ip(instance_id)

        try:
            ip = wait_until(
                _ready_ip,
                timeout=state.config.state_timeout.total_seconds(),
                cancelled=state.cancelled,
                interval=self.interval,
                description=f"instance {instance_id}",
            )
        except CancelledError:
            logger.info("Interrupt detected, quitting waiting for instance")
            return StepAction.HALT
        except (WaitTimeoutError, SoftLayerError) as e:
            ui.error(f"Error waiting for instance to become ACTIVE: {e}")
            return state.fail(e)

        state.instance_ip = ip
        ui.message(f"Instance is ACTIVE at {ip}")
        return StepAction.CONTINUE

    def cancel(self) -> None:
        if self._cancelled is not None:
            self._cancelled.set()
