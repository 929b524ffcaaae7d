"""SoftLayer image builder: configuration in, Artifact out.

Example:
    builder = Builder()
    builder.prepare({"image_name": "web", "base_os_code": "UBUNTU_LATEST"})
    artifact = builder.run(ConsoleUi(), ShellHook([...]))
"""

from __future__ import annotations

import threading
from collections.abc import Callable, Mapping
from typing import TYPE_CHECKING, Any

from loguru import logger

from softbake.artifact import Artifact
from softbake.config import BuilderConfig, resolve_config
from softbake.pipeline import Runner, Step
from softbake.softlayer.client import SoftLayerClient
from softbake.state import BuildState
from softbake.steps import (
    StepCaptureImage,
    StepConnectSSH,
    StepCreateInstance,
    StepCreateSSHKey,
    StepProvision,
    StepWaitForInstance,
    ssh_config,
)

if TYPE_CHECKING:
    from softbake.hooks import Hook
    from softbake.ui import Ui

type ClientFactory = Callable[[str, str], SoftLayerClient]


def build_steps(config: BuilderConfig) -> list[Step]:
    """The provisioning pipeline, in execution order."""
    return [
        StepCreateSSHKey(private_key_file=config.ssh_private_key_file),
        StepCreateInstance(),
        StepWaitForInstance(),
        StepConnectSSH(config=ssh_config, timeout=config.ssh_timeout),
        StepProvision(),
        StepCaptureImage(),
    ]


class Builder:
    """Drives one image build.

    prepare() must succeed before run(). cancel() may be called from any
    thread, also before run() has started its first step. A Builder
    drives a single build: once cancelled it stays cancelled.
    """

    def __init__(
        self,
        *,
        client_factory: ClientFactory = SoftLayerClient,
        steps_factory: Callable[[BuilderConfig], list[Step]] = build_steps,
    ) -> None:
        self.client_factory = client_factory
        self.steps_factory = steps_factory
        self.config: BuilderConfig | None = None
        self._runner: Runner | None = None
        self._lock = threading.Lock()
        self._cancelled = threading.Event()

    def prepare(
        self,
        *raws: Mapping[str, Any],
        env: Mapping[str, str] | None = None,
        user_vars: Mapping[str, str] | None = None,
        timestamp: int | None = None,
    ) -> BuilderConfig:
        """Resolve and store the build configuration.

        Raises:
            ConfigurationError: With every problem found in the input.
        """
        self.config = resolve_config(*raws, env=env, user_vars=user_vars, timestamp=timestamp)
        return self.config

    def run(self, ui: Ui, hook: Hook) -> Artifact | None:
        """Run the pipeline.

        Returns:
            The Artifact on success, or None if the pipeline stopped
            without an error and without producing an image.

        Raises:
            BaseException: The error recorded by the failing step, unchanged.
        """
        if self.config is None:
            raise RuntimeError("Builder.prepare() must be called before run()")
        config = self.config

        client = self.client_factory(config.username, config.api_key)
        state = BuildState(config=config, client=client, ui=ui, hook=hook, cancelled=self._cancelled)

        runner = Runner(self.steps_factory(config))
        with self._lock:
            self._runner = runner
        try:
            runner.run(state)
        finally:
            with self._lock:
                self._runner = None

        if state.error is not None:
            client.close()
            raise state.error

        if not state.image_id:
            client.close()
            if state.is_cancelled:
                logger.info("Build cancelled before an image was captured")
            else:
                # TODO: decide whether a clean run without an image should raise
                logger.warning("Failed to find image_id in state. Bug?")
            return None

        return Artifact(
            image_name=config.image_name,
            image_id=state.image_id,
            datacenter_name=config.datacenter_name,
            client=client,
        )

    def cancel(self, timeout: float | None = None) -> None:
        with self._lock:
            self._cancelled.set()
            runner = self._runner
        if runner is not None:
            logger.info("Cancelling the step runner...")
            runner.cancel(timeout)
        logger.info("Cancelling the builder")
