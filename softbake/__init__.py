"""softbake - bake virtual machine images on SoftLayer.

Example:

    from softbake import Builder, ConsoleUi, ShellHook, ShellProvisioner

    builder = Builder()
    builder.prepare({
        "image_name": "web",
        "base_os_code": "UBUNTU_LATEST",
        "datacenter_name": "dal05",
    })
    artifact = builder.run(
        ConsoleUi(),
        ShellHook([ShellProvisioner(inline=("apt-get update",))]),
    )
"""

from softbake.artifact import BUILDER_ID, Artifact
from softbake.builder import Builder, build_steps
from softbake.config import BuilderConfig, parse_duration, resolve_config
from softbake.core.exceptions import (
    CancelledError,
    ConfigurationError,
    ImageCaptureError,
    ProvisioningError,
    SoftbakeError,
    SoftLayerError,
    SSHConnectionError,
    StepError,
    WaitTimeoutError,
)
from softbake.hooks import Hook, NoopHook, ShellHook, ShellProvisioner
from softbake.logging import LogConfig
from softbake.pipeline import Runner, Step
from softbake.softlayer import SoftLayerClient
from softbake.state import BuildState, StepAction
from softbake.template import Template, load_template
from softbake.ui import ConsoleUi, NullUi, Ui

__all__ = [
    "BUILDER_ID",
    "Artifact",
    "BuildState",
    "Builder",
    "BuilderConfig",
    "CancelledError",
    "ConfigurationError",
    "ConsoleUi",
    "Hook",
    "ImageCaptureError",
    "LogConfig",
    "NoopHook",
    "NullUi",
    "ProvisioningError",
    "Runner",
    "SSHConnectionError",
    "ShellHook",
    "ShellProvisioner",
    "SoftLayerClient",
    "SoftLayerError",
    "SoftbakeError",
    "Step",
    "StepAction",
    "StepError",
    "Template",
    "Ui",
    "WaitTimeoutError",
    "build_steps",
    "load_template",
    "parse_duration",
    "resolve_config",
]
