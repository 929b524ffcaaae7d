"""SSH communicator for the build instance."""

from __future__ import annotations

import io
from dataclasses import dataclass, field

import paramiko
from loguru import logger

from softbake.core.exceptions import ProvisioningError

_KEY_TYPES: tuple[type[paramiko.PKey], ...] = (
    paramiko.RSAKey,
    paramiko.ECDSAKey,
    paramiko.Ed25519Key,
)


@dataclass(frozen=True, slots=True)
class SSHConfig:
    """Where and as whom to connect."""

    host: str
    username: str
    port: int = 22
    private_key: str = field(default="", repr=False)
    connect_timeout: float = 30.0


def load_private_key(text: str) -> paramiko.PKey:
    """Parse a PEM/OpenSSH private key of any supported type."""
    for key_type in _KEY_TYPES:
        try:
            return key_type.from_private_key(io.StringIO(text))
        except paramiko.SSHException:
            continue
    raise paramiko.SSHException("Unsupported or invalid private key")


class SSHConnection:
    """An open session to the instance.

    Opening is the handshake: the constructor raises paramiko/socket errors
    while the instance is still booting, which StepConnectSSH retries.
    """

    __slots__ = ("_client", "config")

    def __init__(self, config: SSHConfig) -> None:
        self.config = config
        self._client = paramiko.SSHClient()
        # Build instances are brand new, there is no known host key to check.
        self._client.set_missing_host_key_policy(paramiko.AutoAddPolicy())

        pkey = load_private_key(config.private_key) if config.private_key else None
        logger.debug(f"Dialing {config.username}@{config.host}:{config.port}")
        try:
            self._client.connect(
                hostname=config.host,
                port=config.port,
                username=config.username,
                pkey=pkey,
                timeout=config.connect_timeout,
                banner_timeout=config.connect_timeout,
                auth_timeout=config.connect_timeout,
                allow_agent=False,
                look_for_keys=False,
            )
        except Exception:
            self._client.close()
            raise

    def exec(self, command: str, timeout: int = 600) -> str:
        """Run *command* and return its combined stdout/stderr.

        Raises:
            ProvisioningError: If the command exits non-zero.
        """
        transport = self._client.get_transport()
        if transport is None or not transport.is_active():
            raise ProvisioningError("SSH connection is closed")

        channel = transport.open_session()
        try:
            channel.settimeout(timeout)
            channel.set_combine_stderr(True)
            channel.exec_command(command)
            output = channel.makefile("rb").read().decode(errors="replace")
            status = channel.recv_exit_status()
        finally:
            channel.close()

        logger.debug(f"{command!r} exited with {status}")
        if status != 0:
            raise ProvisioningError(f"Command {command!r} exited with status {status}: {output.strip()}")
        return output

    def close(self) -> None:
        self._client.close()
