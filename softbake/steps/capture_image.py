"""Step 6: capture the provisioned instance as an image."""

from __future__ import annotations

import threading
from typing import TYPE_CHECKING

from loguru import logger

from softbake.core.exceptions import (
    CancelledError,
    ImageCaptureError,
    SoftLayerError,
    WaitTimeoutError,
)
from softbake.state import StepAction
from softbake.steps.wait import wait_until

if TYPE_CHECKING:
    from softbake.state import BuildState


class StepCaptureImage:
    """Start the capture transaction and wait for the image template.

    The image is ready once the instance has no pending transactions and
    the template shows up on the account under the configured name.
    """

    name = "capture_image"

    def __init__(self, interval: float = 15.0) -> None:
        self.interval = interval
        self._cancelled: threading.Event | None = None

    def run(self, state: BuildState) -> StepAction:
        ui = state.ui
        client = state.client
        config = state.config
        instance_id = state.instance_id
        if instance_id is None:
            return state.fail(ImageCaptureError("No instance to capture"))
        self._cancelled = state.cancelled

        try:
            if client.find_image(name=config.image_name) is not None:
                err = ImageCaptureError(f"An image named '{config.image_name}' already exists")
                ui.error(str(err))
                return state.fail(err)

            ui.say(f"Capturing {config.image_type} image '{config.image_name}'...")
            client.capture_image(
                instance_id,
                config.image_name,
                config.image_description,
                config.image_type,
            )
        except SoftLayerError as e:
            ui.error(f"Error capturing image: {e}")
            return state.fail(e)

        def _captured() -> str | None:
            if client.has_active_transactions(instance_id):
                return None
            image = client.find_image(name=config.image_name)
            if image is None or not image.get("globalIdentifier"):
                return None
            return str(image["globalIdentifier"])

        try:
            image_id = wait_until(
                _captured,
                timeout=config.state_timeout.total_seconds(),
                cancelled=state.cancelled,
                interval=self.interval,
                description=f"image '{config.image_name}'",
            )
        except CancelledError:
            logger.info("Interrupt detected, quitting waiting for image capture")
            return StepAction.HALT
        except (WaitTimeoutError, SoftLayerError) as e:
            err = ImageCaptureError(f"Error waiting for image capture: {e}")
            ui.error(str(err))
            return state.fail(err)

        state.image_id = image_id
        ui.message(f"Image captured: {image_id}")
        return StepAction.CONTINUE

    def cancel(self) -> None:
        if self._cancelled is not None:
            self._cancelled.set()
