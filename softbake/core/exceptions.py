"""Custom exception hierarchy for softbake.

All softbake-specific exceptions inherit from SoftbakeError, enabling
callers to catch every build failure with a single except clause.
"""

from __future__ import annotations

from collections.abc import Sequence


class SoftbakeError(Exception):
    """Base exception for all softbake errors."""


class ConfigurationError(SoftbakeError):
    """Raised when builder configuration fails to resolve.

    Carries every problem found during resolution, not just the first.
    """

    def __init__(self, errors: Sequence[str]) -> None:
        self.errors = list(errors)
        lines = "\n".join(f"* {e}" for e in self.errors)
        super().__init__(f"{len(self.errors)} error(s) occurred:\n\n{lines}")


class ProvisioningError(SoftbakeError):
    """Raised when a provisioning step fails."""


class StepError(ProvisioningError):
    """Raised when a step halts with an error but did not record one."""

    def __init__(self, step: str) -> None:
        self.step = step
        super().__init__(f"Step {step} halted with an error")


class WaitTimeoutError(ProvisioningError):
    """Raised when a resource does not reach the wanted state in time."""

    def __init__(self, description: str, timeout: float) -> None:
        self.description = description
        self.timeout = timeout
        super().__init__(f"Timeout waiting for {description} after {timeout:.0f}s")


class ImageCaptureError(ProvisioningError):
    """Raised when an image capture does not complete."""


class SSHConnectionError(SoftbakeError):
    """Raised when an SSH connection to the instance cannot be established."""


class CancelledError(SoftbakeError):
    """Raised by a blocking step when the build was cancelled mid-wait."""

    def __init__(self, what: str) -> None:
        super().__init__(f"Cancelled while {what}")


class SoftLayerError(SoftbakeError):
    """Error returned by the SoftLayer API."""

    def __init__(self, message: str, status: int | None = None) -> None:
        self.status = status
        super().__init__(f"API error {status}: {message}" if status else message)
