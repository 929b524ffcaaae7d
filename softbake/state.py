"""Shared build state passed through the provisioning steps.

BuildState is the only channel steps communicate through. The builder
seeds it with the configuration, the API client and the UI/hook handles;
steps then fill in the remaining fields in pipeline order.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING

from softbake.hooks import NoopHook
from softbake.ui import NullUi

if TYPE_CHECKING:
    from softbake.config import BuilderConfig
    from softbake.hooks import Hook
    from softbake.softlayer.client import SoftLayerClient
    from softbake.ssh import SSHConnection
    from softbake.ui import Ui


class StepAction(Enum):
    """What the runner should do after a step returns."""

    CONTINUE = "continue"
    HALT = "halt"
    HALT_WITH_ERROR = "halt_with_error"


@dataclass
class BuildState:
    """Mutable state for a single build.

    Fields below the handles start empty and are written exactly once by
    the step that produces them. Nothing is cleared during a run.
    """

    config: BuilderConfig
    client: SoftLayerClient
    ui: Ui = field(default_factory=NullUi)
    hook: Hook = field(default_factory=NoopHook)

    # Written by steps, in pipeline order
    ssh_key_id: int | None = None
    ssh_private_key: str = ""
    instance_id: int | None = None
    instance_ip: str = ""
    communicator: SSHConnection | None = None
    image_id: str = ""

    error: BaseException | None = None
    cancelled: threading.Event = field(default_factory=threading.Event)

    def fail(self, err: BaseException) -> StepAction:
        """Record *err* and return the action that halts the pipeline."""
        self.error = err
        return StepAction.HALT_WITH_ERROR

    @property
    def is_cancelled(self) -> bool:
        return self.cancelled.is_set()

