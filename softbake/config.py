"""Builder configuration: decoding, defaults, expansion and validation.

resolve_config() turns loosely-typed user input into an immutable
BuilderConfig. Every problem it can find is collected and raised together
as a single ConfigurationError, so a user fixes a template in one pass.
"""

from __future__ import annotations

import os
import re
import time
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import timedelta
from typing import Any

from loguru import logger

from softbake.core.exceptions import ConfigurationError
from softbake.interpolate import Context, InterpolationError, render

type RawConfig = Mapping[str, Any]

IMAGE_TYPE_FLEX = "flex"
IMAGE_TYPE_STANDARD = "standard"
IMAGE_TYPES = (IMAGE_TYPE_FLEX, IMAGE_TYPE_STANDARD)

API_KEY_ENV = "SOFTLAYER_API_KEY"
USERNAME_ENV = "SOFTLAYER_USER_NAME"

# Recognized input keys and their decoded type. The two timeout keys are
# stored on BuilderConfig as raw_ssh_timeout / raw_state_timeout.
_KEYS: dict[str, type] = {
    "username": str,
    "api_key": str,
    "datacenter_name": str,
    "image_name": str,
    "image_description": str,
    "image_type": str,
    "base_image_id": str,
    "base_os_code": str,
    "instance_name": str,
    "instance_domain": str,
    "instance_cpu": int,
    "instance_memory": int,
    "instance_network_speed": int,
    "instance_disk_capacity": int,
    "ssh_port": int,
    "ssh_username": str,
    "ssh_private_key_file": str,
    "ssh_timeout": str,
    "instance_state_timeout": str,
}

_DEFAULTS: dict[str, Any] = {
    "datacenter_name": "ams01",
    "instance_domain": "defaultdomain.com",
    "image_description": "Instance snapshot. Generated by softbake.",
    "image_type": IMAGE_TYPE_FLEX,
    "instance_cpu": 1,
    "instance_memory": 1024,
    "instance_network_speed": 10,
    "instance_disk_capacity": 25,
    "ssh_port": 22,
    "ssh_username": "root",
    "ssh_timeout": "5m",
    "instance_state_timeout": "10m",
}

_TEMPLATED = tuple(key for key, kind in _KEYS.items() if kind is str)


@dataclass(frozen=True, slots=True)
class BuilderConfig:
    """Resolved, validated configuration for one build."""

    username: str = ""
    api_key: str = ""
    datacenter_name: str = ""
    image_name: str = ""
    image_description: str = ""
    image_type: str = IMAGE_TYPE_FLEX
    base_image_id: str = ""
    base_os_code: str = ""

    instance_name: str = ""
    instance_domain: str = ""
    instance_cpu: int = 0
    instance_memory: int = 0
    instance_network_speed: int = 0
    instance_disk_capacity: int = 0
    ssh_port: int = 0
    ssh_username: str = ""
    ssh_private_key_file: str = ""

    raw_ssh_timeout: str = ""
    raw_state_timeout: str = ""
    ssh_timeout: timedelta = timedelta(0)
    state_timeout: timedelta = timedelta(0)


# =============================================================================
# Durations
# =============================================================================

# Microseconds per unit. "ms" must be tried before "m" and "s".
_UNITS = {
    "ns": 0.001,
    "us": 1,
    "µs": 1,
    "μs": 1,
    "ms": 1_000,
    "s": 1_000_000,
    "m": 60_000_000,
    "h": 3_600_000_000,
}
# Largest duration representable as int64 nanoseconds, in microseconds.
_MAX_MICROS = (2**63 - 1) / 1_000

_DURATION_PART = re.compile(r"(\d+(?:\.\d*)?|\.\d+)(ns|us|µs|μs|ms|s|m|h)")


def parse_duration(text: str) -> timedelta:
    """Parse a duration string such as ``"300ms"``, ``"1.5h"`` or ``"2h45m"``.

    Raises:
        ValueError: If *text* is not a valid duration.
    """
    s = text
    sign = 1
    if s[:1] in ("-", "+"):
        sign = -1 if s[0] == "-" else 1
        s = s[1:]
    if s == "0":
        return timedelta(0)
    if not s:
        raise ValueError(f"invalid duration {text!r}")

    micros = 0.0
    pos = 0
    for m in _DURATION_PART.finditer(s):
        if m.start() != pos:
            break
        micros += float(m.group(1)) * _UNITS[m.group(2)]
        pos = m.end()

    if pos != len(s):
        if s.rstrip("0123456789.") == "":
            raise ValueError(f"missing unit in duration {text!r}")
        raise ValueError(f"invalid duration {text!r}")
    if micros > _MAX_MICROS:
        raise ValueError(f"invalid duration {text!r}")
    try:
        return timedelta(microseconds=sign * micros)
    except OverflowError:
        raise ValueError(f"invalid duration {text!r}") from None


# =============================================================================
# Resolution
# =============================================================================


def scrub_config(config: BuilderConfig, *secrets: str) -> str:
    """Render *config* for logging with every secret replaced."""
    text = repr(config)
    for secret in secrets:
        if secret:
            text = text.replace(secret, "<Filtered>")
    return text


def _decode(key: str, value: Any, kind: type, errors: list[str]) -> Any:
    if value is None:
        return kind()
    if kind is int:
        if isinstance(value, bool):
            errors.append(f"{key}: expected an integer, got {value!r}")
            return 0
        if isinstance(value, int):
            return value
        if isinstance(value, str):
            try:
                return int(value)
            except ValueError:
                pass
        errors.append(f"{key}: expected an integer, got {value!r}")
        return 0
    if isinstance(value, (str, int, float)) and not isinstance(value, bool):
        return str(value)
    errors.append(f"{key}: expected a string, got {value!r}")
    return ""


def _parse_timeout(key: str, raw: str, errors: list[str]) -> timedelta:
    try:
        return parse_duration(raw)
    except ValueError as e:
        errors.append(f"Failed parsing {key}: {e}")
        return timedelta(0)


def resolve_config(
    *raws: RawConfig,
    env: Mapping[str, str] | None = None,
    user_vars: Mapping[str, str] | None = None,
    timestamp: int | None = None,
) -> BuilderConfig:
    """Resolve raw input into a validated BuilderConfig.

    Args:
        *raws: Flat key/value mappings, merged left to right.
        env: Environment snapshot used for credential fallbacks and
            ``{{ env }}`` expansion. Defaults to ``os.environ``.
        user_vars: Values for ``{{ user `name` }}`` references.
        timestamp: Build timestamp for the default instance name and
            ``{{ timestamp }}``. Defaults to the current time.

    Returns:
        The resolved configuration.

    Raises:
        ConfigurationError: Carrying every error found.
    """
    env = os.environ if env is None else env
    timestamp = int(time.time()) if timestamp is None else timestamp
    errors: list[str] = []

    merged: dict[str, Any] = {}
    for raw in raws:
        for key, value in raw.items():
            if key not in _KEYS:
                errors.append(f"unknown configuration key: {key!r}")
                continue
            merged[key] = value

    values = {key: _decode(key, merged.get(key), kind, errors) for key, kind in _KEYS.items()}

    if not values["api_key"]:
        values["api_key"] = env.get(API_KEY_ENV, "")
    if not values["username"]:
        values["username"] = env.get(USERNAME_ENV, "")
    if not values["instance_name"]:
        values["instance_name"] = f"softbake-softlayer-{timestamp}"
    for key, default in _DEFAULTS.items():
        if not values[key]:
            values[key] = default

    ctx = Context(user_vars=dict(user_vars or {}), env=env, timestamp=timestamp)
    for key in _TEMPLATED:
        try:
            values[key] = render(values[key], ctx)
        except InterpolationError as e:
            errors.append(f"Error processing {key}: {e}")

    if not values["api_key"]:
        errors.append(f"api_key or the {API_KEY_ENV} environment variable must be specified")
    if not values["username"]:
        errors.append(f"username or the {USERNAME_ENV} environment variable must be specified")
    if not values["image_name"]:
        errors.append("image_name must be specified")
    if values["image_type"] not in IMAGE_TYPES:
        errors.append(
            f"Unknown image_type '{values['image_type']}'. "
            "Must be one of 'flex' (the default) or 'standard'."
        )

    base_image_id, base_os_code = values["base_image_id"], values["base_os_code"]
    if not base_image_id and not base_os_code:
        errors.append("please specify base_image_id or base_os_code")
    if base_image_id and base_os_code:
        errors.append("please specify only one of base_image_id or base_os_code")
    if base_image_id and not values["ssh_private_key_file"]:
        errors.append(
            "when using base_image_id, you must specify ssh_private_key_file "
            "since automatic ssh key config for custom images isn't supported by SoftLayer API"
        )

    raw_ssh_timeout = values.pop("ssh_timeout")
    raw_state_timeout = values.pop("instance_state_timeout")
    config = BuilderConfig(
        **values,
        raw_ssh_timeout=raw_ssh_timeout,
        raw_state_timeout=raw_state_timeout,
        ssh_timeout=_parse_timeout("ssh_timeout", raw_ssh_timeout, errors),
        state_timeout=_parse_timeout("instance_state_timeout", raw_state_timeout, errors),
    )

    logger.debug(scrub_config(config, config.api_key, config.username))

    if errors:
        raise ConfigurationError(errors)
    return config


__all__ = [
    "IMAGE_TYPES",
    "BuilderConfig",
    "parse_duration",
    "resolve_config",
    "scrub_config",
]
