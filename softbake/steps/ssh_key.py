"""Step 1: make an SSH key available to the build."""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

from loguru import logger

from softbake.core.exceptions import ProvisioningError, SoftLayerError
from softbake.ssh_keys import compute_fingerprint, generate_key_label, generate_key_pair
from softbake.state import StepAction

if TYPE_CHECKING:
    from softbake.state import BuildState


class StepCreateSSHKey:
    """Load the configured private key, or register a temporary one.

    With a private key file the key is only read from disk; the image is
    expected to already trust it. Otherwise an RSA pair is generated and
    its public half registered on SoftLayer for the instance to boot with.
    """

    name = "create_ssh_key"

    def __init__(self, private_key_file: str = "") -> None:
        self.private_key_file = private_key_file

    def run(self, state: BuildState) -> StepAction:
        ui = state.ui

        if self.private_key_file:
            ui.say(f"Using configured SSH private key {self.private_key_file}")
            try:
                state.ssh_private_key = Path(self.private_key_file).expanduser().read_text()
            except OSError as e:
                err = ProvisioningError(f"Error loading configured private key file: {e}")
                ui.error(str(err))
                return state.fail(err)
            return StepAction.CONTINUE

        label = generate_key_label(state.config.instance_name)
        ui.say("Creating temporary SSH key for instance...")
        private_key, public_key = generate_key_pair(comment=label)

        try:
            key = state.client.create_ssh_key(label, public_key)
        except SoftLayerError as e:
            ui.error(f"Error creating temporary SSH key: {e}")
            return state.fail(e)

        state.ssh_key_id = int(key["id"])
        state.ssh_private_key = private_key
        logger.info(f"Registered SSH key {state.ssh_key_id} ({compute_fingerprint(public_key)})")
        return StepAction.CONTINUE

    def cleanup(self, state: BuildState) -> None:
        if state.ssh_key_id is None:
            return

        state.ui.say("Deleting temporary SSH key...")
        try:
            state.client.delete_ssh_key(state.ssh_key_id)
        except SoftLayerError as e:
            state.ui.error(
                f"Error cleaning up SSH key: {e}. "
                f"Please delete the key manually: {state.ssh_key_id}"
            )
