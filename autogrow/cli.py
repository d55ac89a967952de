"""Command-line entry point.

Reads a step's JSON input (stdin by default), runs the step and prints the
JSON output. Exits 0 when the step's outcome flag is true, 1 otherwise.

    echo '{"VolumeId": "vol-0abc", ...}' | autogrow check-volume
"""

from __future__ import annotations

import argparse
import json
import sys
from dataclasses import replace
from pathlib import Path
from typing import Any, TextIO

from loguru import logger

from autogrow.aws.transport import HttpxTransport
from autogrow.config import load_settings
from autogrow.logging import LOG_LEVELS, setup_logging, step_scope, teardown_logging
from autogrow.steps import ERROR_KEY, STEPS, StepContext

_FLAGS = ("OKToProceed", "OKToModify", "Matched")


def _parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="autogrow", description="Online EBS volume expansion steps")
    parser.add_argument("step", choices=sorted(STEPS), help="Step to run")
    parser.add_argument("--input", "-i", type=Path, default=None, help="JSON input file (default: stdin)")
    parser.add_argument("--config", "-c", type=Path, default=None, help="Extra TOML config file")
    parser.add_argument(
        "--log-level",
        choices=sorted(LOG_LEVELS),
        default=None,
        help="Override the configured log level",
    )
    return parser


def _read_input(path: Path | None, stdin: TextIO) -> dict[str, Any]:
    raw = path.read_text() if path else stdin.read()
    data = json.loads(raw or "{}")
    if not isinstance(data, dict):
        raise ValueError("Step input must be a JSON object")
    return data


def _fail(stdout: TextIO, message: str) -> int:
    json.dump({ERROR_KEY: message}, stdout)
    stdout.write("\n")
    return 1


def main(argv: list[str] | None = None, *, stdin: TextIO | None = None, stdout: TextIO | None = None) -> int:
    args = _parser().parse_args(argv)
    stdin = stdin or sys.stdin
    stdout = stdout or sys.stdout

    try:
        settings = load_settings(path=args.config)
        log_config = settings.logging
        if args.log_level:
            log_config = replace(log_config, level=args.log_level)
        data = _read_input(args.input, stdin)
    except (OSError, ValueError) as e:
        return _fail(stdout, str(e))

    logger.remove()
    try:
        handlers = setup_logging(log_config)
    except (OSError, ValueError) as e:
        return _fail(stdout, f"Cannot set up logging: {e}")

    try:
        with step_scope(args.step), HttpxTransport(timeout=settings.aws.request_timeout) as transport:
            out = STEPS[args.step](data, StepContext(transport=transport, settings=settings))
    finally:
        teardown_logging(handlers)

    json.dump(out, stdout)
    stdout.write("\n")
    return 0 if any(out.get(flag) for flag in _FLAGS) else 1


if __name__ == "__main__":
    sys.exit(main())
