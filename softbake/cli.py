"""Command-line entry point.

    softbake build template.toml --var api_key=... [--debug] [--log-file build.log]
    softbake validate template.toml
"""

from __future__ import annotations

import argparse
import os
import sys
import threading
from pathlib import Path
from typing import Any

from loguru import logger

from softbake.builder import Builder
from softbake.core.exceptions import ConfigurationError
from softbake.hooks import ShellHook
from softbake.logging import LogConfig, setup_logging, teardown_logging
from softbake.template import Template, load_template
from softbake.ui import ConsoleUi, Ui

EXIT_OK = 0
EXIT_BUILD_FAILED = 1
EXIT_CONFIG_ERROR = 2


def _parse_vars(pairs: list[str]) -> dict[str, str]:
    result: dict[str, str] = {}
    for pair in pairs:
        key, sep, value = pair.partition("=")
        if not sep or not key:
            raise ConfigurationError([f"invalid --var {pair!r}, expected key=value"])
        result[key] = value
    return result


def _prepare(args: argparse.Namespace) -> tuple[Builder, Template]:
    template = load_template(Path(args.template))
    env = dict(os.environ)
    user_vars = template.user_vars(_parse_vars(args.var), env=env)
    builder = Builder()
    builder.prepare(template.builder, env=env, user_vars=user_vars)
    return builder, template


def _run_build(builder: Builder, ui: Ui, template: Template) -> int:
    """Run the build on a worker thread so Ctrl-C can cancel it."""
    result: dict[str, Any] = {}

    def _target() -> None:
        try:
            result["artifact"] = builder.run(ui, ShellHook(template.provisioners))
        except Exception as e:
            result["error"] = e

    worker = threading.Thread(target=_target, name="softbake-build")
    worker.start()
    try:
        while worker.is_alive():
            worker.join(0.5)
    except KeyboardInterrupt:
        ui.error("Interrupt received. Cancelling build...")
        builder.cancel()
        worker.join()

    if "error" in result:
        ui.error(f"Build errored: {result['error']}")
        return EXIT_BUILD_FAILED

    artifact = result.get("artifact")
    if artifact is None:
        ui.error("Build finished but no image was produced")
        return EXIT_BUILD_FAILED

    ui.say(f"Build finished. {artifact}")
    return EXIT_OK


def cmd_build(args: argparse.Namespace) -> int:
    ui = ConsoleUi()
    try:
        builder, template = _prepare(args)
    except ConfigurationError as e:
        ui.error(str(e))
        return EXIT_CONFIG_ERROR
    return _run_build(builder, ui, template)


def cmd_validate(args: argparse.Namespace) -> int:
    ui = ConsoleUi()
    try:
        _prepare(args)
    except ConfigurationError as e:
        ui.error(str(e))
        return EXIT_CONFIG_ERROR
    ui.say("Template validated successfully.")
    return EXIT_OK


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="softbake", description="Bake SoftLayer images")
    sub = parser.add_subparsers(dest="command", required=True)

    for name, fn, help_text in (
        ("build", cmd_build, "Build an image from a template"),
        ("validate", cmd_validate, "Check a template without building"),
    ):
        p = sub.add_parser(name, help=help_text)
        p.add_argument("template", help="Path to a TOML build template")
        p.add_argument(
            "--var", action="append", default=[], metavar="KEY=VALUE",
            help="Set a user variable (repeatable)",
        )
        p.add_argument("--debug", action="store_true", help="Verbose logging to stderr")
        p.add_argument("--log-file", default=None, help="Also write logs to this file")
        p.set_defaults(func=fn)

    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    handler_ids = setup_logging(
        LogConfig(
            level="DEBUG" if args.debug else "WARNING",
            file=args.log_file,
        )
    )
    try:
        return args.func(args)
    except Exception:
        logger.exception("Unexpected failure")
        raise
    finally:
        teardown_logging(handler_ids)


if __name__ == "__main__":
    sys.exit(main())
