"""Step 2: order the build instance."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from loguru import logger

from softbake.core.exceptions import SoftLayerError
from softbake.state import StepAction

if TYPE_CHECKING:
    from softbake.config import BuilderConfig
    from softbake.state import BuildState


def instance_template(config: BuilderConfig, ssh_key_id: int | None) -> dict[str, Any]:
    """SoftLayer_Virtual_Guest template for the build instance.

    A base image template carries its own disks, so block devices are only
    requested when booting from an OS reference code.
    """
    template: dict[str, Any] = {
        "hostname": config.instance_name,
        "domain": config.instance_domain,
        "startCpus": config.instance_cpu,
        "maxMemory": config.instance_memory,
        "datacenter": {"name": config.datacenter_name},
        "hourlyBillingFlag": True,
        "localDiskFlag": False,
        "networkComponents": [{"maxSpeed": config.instance_network_speed}],
    }

    if config.base_image_id:
        template["blockDeviceTemplateGroup"] = {"globalIdentifier": config.base_image_id}
    else:
        template["operatingSystemReferenceCode"] = config.base_os_code
        template["blockDevices"] = [
            {"device": "0", "diskImage": {"capacity": config.instance_disk_capacity}},
        ]

    if ssh_key_id is not None:
        template["sshKeys"] = [{"id": ssh_key_id}]
    return template


class StepCreateInstance:
    name = "create_instance"

    def run(self, state: BuildState) -> StepAction:
        ui = state.ui
        ui.say("Creating instance...")

        template = instance_template(state.config, state.ssh_key_id)
        try:
            instance = state.client.create_instance(template)
        except SoftLayerError as e:
            ui.error(f"Error creating instance: {e}")
            return state.fail(e)

        state.instance_id = int(instance["id"])
        ui.message(f"Created instance '{state.instance_id}'")
        logger.info(f"Instance {state.instance_id} ordered in {state.config.datacenter_name}")
        return StepAction.CONTINUE

    def cleanup(self, state: BuildState) -> None:
        if state.instance_id is None:
            return

        state.ui.say("Destroying instance...")
        try:
            state.client.delete_instance(state.instance_id)
        except SoftLayerError as e:
            state.ui.error(
                f"Error destroying instance: {e}. "
                f"Please destroy it manually: {state.instance_id}"
            )
