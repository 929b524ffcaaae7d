"""Concrete provisioning steps, in pipeline order."""

from softbake.steps.capture_image import StepCaptureImage
from softbake.steps.connect_ssh import StepConnectSSH, ssh_config
from softbake.steps.create_instance import StepCreateInstance, instance_template
from softbake.steps.provision import StepProvision
from softbake.steps.ssh_key import StepCreateSSHKey
from softbake.steps.wait_for_instance import StepWaitForInstance

__all__ = [
    "StepCaptureImage",
    "StepConnectSSH",
    "StepCreateInstance",
    "StepCreateSSHKey",
    "StepProvision",
    "StepWaitForInstance",
    "instance_template",
    "ssh_config",
]
