from __future__ import annotations

import argparse
import asyncio
from collections.abc import Sequence
import logging
import os
from pathlib import Path
import sys

from hookpilot.ci_output import StepOutputs, emit_error
from hookpilot.config import load_gateway_config, load_run_config
from hookpilot.errors import HookpilotError
from hookpilot.observability import VERBOSE_MODES, configure_logging
from hookpilot.prepare import run_prepare
from hookpilot.server import run_server


LOGGER = logging.getLogger("hookpilot.cli")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="hookpilot")
    subparsers = parser.add_subparsers(dest="command", required=True)

    prepare_parser = subparsers.add_parser(
        "prepare",
        help="Normalize the webhook event, gate on permissions and trigger, and set up the branch",
    )
    prepare_parser.add_argument(
        "-v",
        "--verbose",
        nargs="?",
        const="high",
        default="low",
        choices=VERBOSE_MODES,
        help="Logging verbosity on stderr: off, low (default) or high",
    )

    gateway_parser = subparsers.add_parser(
        "gateway", help="Serve the git tool gateway to the agent over MCP stdio"
    )
    gateway_parser.add_argument(
        "-v",
        "--verbose",
        nargs="?",
        const="high",
        default="low",
        choices=VERBOSE_MODES,
        help="Logging verbosity on stderr: off, low (default) or high",
    )
    return parser


def main(argv: Sequence[str] | None = None) -> None:
    args = build_parser().parse_args(argv)
    configure_logging(args.verbose)

    if args.command == "prepare":
        sys.exit(_cmd_prepare())
    if args.command == "gateway":
        sys.exit(_cmd_gateway())

    raise RuntimeError(f"Unknown command: {args.command}")


def _cmd_prepare() -> int:
    output_path = os.environ.get("GITHUB_OUTPUT", "").strip()
    outputs = StepOutputs(Path(output_path) if output_path else None)
    try:
        config = load_run_config()
        run_prepare(config, outputs=outputs)
    except HookpilotError as exc:
        return _fail(outputs, str(exc))
    except Exception as exc:  # noqa: BLE001
        LOGGER.exception("event=prepare_crashed")
        return _fail(outputs, f"{type(exc).__name__}: {exc}")
    return 0


def _cmd_gateway() -> int:
    try:
        config = load_gateway_config()
    except HookpilotError as exc:
        print(f"Gateway startup failed: {exc}", file=sys.stderr)
        return 1
    try:
        asyncio.run(run_server(config))
    except KeyboardInterrupt:
        print("Gateway stopped", file=sys.stderr)
    return 0


def _fail(outputs: StepOutputs, message: str) -> int:
    emit_error(f"Prepare step failed with error: {message}")
    outputs.set("prepare_error", " ".join(message.split()))
    return 1
