"""TOML build templates.

A template holds user variables, the builder configuration and the shell
provisioners to run::

    [variables]
    api_key = "{{ env `SL_KEY` }}"

    [builder]
    api_key = "{{ user `api_key` }}"
    image_name = "web-{{ timestamp }}"
    base_os_code = "UBUNTU_LATEST"

    [[provisioners]]
    type = "shell"
    inline = ["apt-get update", "apt-get install -y nginx"]
"""

from __future__ import annotations

import tomllib
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from softbake.core.exceptions import ConfigurationError
from softbake.hooks import ShellProvisioner
from softbake.interpolate import Context, InterpolationError, render

type RawConfig = dict[str, Any]

_SECTIONS = frozenset({"variables", "builder", "provisioners"})


@dataclass(frozen=True, slots=True)
class Template:
    """Parsed build template."""

    builder: RawConfig = field(default_factory=dict)
    variables: dict[str, str] = field(default_factory=dict)
    provisioners: tuple[ShellProvisioner, ...] = ()

    def user_vars(
        self,
        overrides: Mapping[str, str] | None = None,
        env: Mapping[str, str] | None = None,
    ) -> dict[str, str]:
        """Resolve user variables: template defaults, then overrides.

        Template defaults may reference ``{{ env `NAME` }}``.

        Raises:
            ConfigurationError: On undeclared overrides or bad defaults.
        """
        overrides = dict(overrides or {})
        errors = [
            f"variable {name!r} is not declared in the template"
            for name in overrides
            if name not in self.variables
        ]

        ctx = Context(env=env or {})
        resolved: dict[str, str] = {}
        for name, default in self.variables.items():
            if name in overrides:
                resolved[name] = overrides[name]
                continue
            try:
                resolved[name] = render(default, ctx)
            except InterpolationError as e:
                errors.append(f"Error processing variable {name}: {e}")

        if errors:
            raise ConfigurationError(errors)
        return resolved


def _read_toml(path: Path) -> RawConfig:
    with path.open("rb") as f:
        return tomllib.load(f)


def parse_template(raw: RawConfig) -> Template:
    """Build a Template from decoded TOML.

    Raises:
        ConfigurationError: On unknown sections or malformed provisioners.
    """
    errors = [f"unknown template section: {key!r}" for key in raw if key not in _SECTIONS]

    variables = {str(k): str(v) for k, v in raw.get("variables", {}).items()}
    builder = dict(raw.get("builder", {}))

    provisioners: list[ShellProvisioner] = []
    for i, prov in enumerate(raw.get("provisioners", [])):
        kind = prov.get("type", "shell")
        if kind != "shell":
            errors.append(f"provisioners[{i}]: unknown provisioner type {kind!r}")
            continue
        inline = prov.get("inline")
        if not isinstance(inline, list) or not all(isinstance(c, str) for c in inline):
            errors.append(f"provisioners[{i}]: 'inline' must be a list of commands")
            continue
        environment = {str(k): str(v) for k, v in prov.get("environment", {}).items()}
        provisioners.append(ShellProvisioner(inline=tuple(inline), environment=environment))

    if errors:
        raise ConfigurationError(errors)
    return Template(builder=builder, variables=variables, provisioners=tuple(provisioners))


def load_template(path: Path) -> Template:
    """Read and parse a TOML template file.

    Raises:
        ConfigurationError: If the file is unreadable or invalid.
    """
    try:
        raw = _read_toml(path)
    except OSError as e:
        raise ConfigurationError([f"cannot read template {path}: {e}"]) from e
    except tomllib.TOMLDecodeError as e:
        raise ConfigurationError([f"invalid TOML in {path}: {e}"]) from e
    return parse_template(raw)
