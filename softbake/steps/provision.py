"""Step 5: run provisioning hooks on the instance."""

from __future__ import annotations

from typing import TYPE_CHECKING

from loguru import logger

from softbake.core.exceptions import CancelledError
from softbake.hooks import HOOK_PROVISION
from softbake.pipeline import Cancellable
from softbake.state import StepAction

if TYPE_CHECKING:
    from softbake.hooks import Hook
    from softbake.state import BuildState


class StepProvision:
    name = "provision"

    def __init__(self) -> None:
        self._hook: Hook | None = None

    def run(self, state: BuildState) -> StepAction:
        self._hook = state.hook
        state.ui.say("Provisioning...")

        try:
            state.hook.run(HOOK_PROVISION, state.ui, state.communicator)
        except CancelledError:
            logger.info("Interrupt detected, provisioning stopped")
            return StepAction.HALT
        except Exception as e:
            state.ui.error(f"Error provisioning: {e}")
            return state.fail(e)

        return StepAction.CONTINUE

    def cancel(self) -> None:
        if isinstance(self._hook, Cancellable):
            self._hook.cancel()
