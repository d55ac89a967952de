"""TOML-based configuration.

Loads ~/.autogrow/defaults.toml (global) and autogrow.toml (project),
merges them, and builds an immutable ``Settings``.

Example autogrow.toml:

    [polling.modification]
    max_attempts = 120
    interval = 10

    [errors]
    modification_rate_exceeded = "VolumeModificationRateExceeded"

    [aws]
    endpoint_template = "{service}.{region}.amazonaws.com"
"""

from __future__ import annotations

import tomllib
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any

from autogrow.constants import (
    COMMAND_POLL_ATTEMPTS,
    COMMAND_POLL_INTERVAL,
    DEFAULT_ENDPOINT_TEMPLATE,
    EC2_API_VERSION,
    INSTALL_NVME_CLI,
    INVOCATION_DOES_NOT_EXIST,
    MODIFICATION_NOT_FOUND,
    MODIFICATION_RATE_EXCEEDED,
    NVME_LIST_COMMAND,
    REQUEST_TIMEOUT,
)
from autogrow.logging import LogConfig
from autogrow.polling import PollPolicy

type RawConfig = dict[str, Any]

GLOBAL_CONFIG_PATH = Path.home() / ".autogrow" / "defaults.toml"
PROJECT_CONFIG_NAME = "autogrow.toml"


@dataclass(frozen=True, slots=True)
class ErrorCodes:
    """Provider error codes that select a classification policy."""

    modification_not_found: str = MODIFICATION_NOT_FOUND
    modification_rate_exceeded: str = MODIFICATION_RATE_EXCEEDED
    invocation_does_not_exist: str = INVOCATION_DOES_NOT_EXIST


@dataclass(frozen=True, slots=True)
class AwsSettings:
    endpoint_template: str = DEFAULT_ENDPOINT_TEMPLATE
    ec2_api_version: str = EC2_API_VERSION
    request_timeout: float = REQUEST_TIMEOUT


@dataclass(frozen=True, slots=True)
class GuestCommands:
    """Shell commands run inside the guest for NVMe resolution.

    ``list_command`` is formatted with ``device`` (e.g. ``nvme1n1``) and must
    print the device's serial number.
    """

    install_command: str = INSTALL_NVME_CLI
    list_command: str = NVME_LIST_COMMAND


@dataclass(frozen=True, slots=True)
class Settings:
    modification_polling: PollPolicy = field(default_factory=PollPolicy)
    command_polling: PollPolicy = field(
        default_factory=lambda: PollPolicy(max_attempts=COMMAND_POLL_ATTEMPTS, interval=COMMAND_POLL_INTERVAL)
    )
    errors: ErrorCodes = field(default_factory=ErrorCodes)
    aws: AwsSettings = field(default_factory=AwsSettings)
    guest: GuestCommands = field(default_factory=GuestCommands)
    logging: LogConfig = field(default_factory=LogConfig)


def _deep_merge(base: RawConfig, override: RawConfig) -> RawConfig:
    result = dict(base)
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def _read_toml(path: Path) -> RawConfig:
    if not path.is_file():
        return {}
    with path.open("rb") as f:
        return tomllib.load(f)


def load_config(
    *,
    project_dir: Path | None = None,
    global_path: Path | None = None,
    path: Path | None = None,
) -> RawConfig:
    """Merge global and project TOML. An explicit ``path`` wins over both."""
    global_cfg = _read_toml(global_path or GLOBAL_CONFIG_PATH)
    project_path = (project_dir or Path.cwd()) / PROJECT_CONFIG_NAME
    merged = _deep_merge(global_cfg, _read_toml(project_path))
    if path is not None:
        if not path.is_file():
            raise FileNotFoundError(f"Config file '{path}' not found")
        merged = _deep_merge(merged, _read_toml(path))
    return merged


def _accepted(default: Any) -> tuple[type, ...]:
    """TOML types a key may take, judged by its default value."""
    match default:
        case bool():
            return (bool,)
        case int():
            return (int,)
        case float():
            return (int, float)
        case _:
            return (str,)


def _check_types(section: str, raw: RawConfig, default: Any) -> None:
    for key, value in raw.items():
        accepted = _accepted(getattr(default, key))
        if (isinstance(value, bool) and bool not in accepted) or not isinstance(value, accepted):
            names = " or ".join(t.__name__ for t in accepted)
            raise ValueError(f"'{section}.{key}' must be {names}, got {value!r}")


def _build[T](default: T, section: str, raw: Any) -> T:
    """Overlay a TOML table on a default instance."""
    if raw is None:
        return default
    if not isinstance(raw, dict):
        raise ValueError(f"Config section '{section}' must be a table")
    known = {f.name for f in fields(default)}  # type: ignore[arg-type]
    unknown = set(raw) - known
    if unknown:
        raise ValueError(
            f"Unknown key(s) in '{section}': {', '.join(sorted(unknown))}. "
            f"Valid: {', '.join(sorted(known))}"
        )
    _check_types(section, raw, default)
    return replace(default, **raw)  # type: ignore[type-var]


def build_settings(raw: RawConfig) -> Settings:
    polling = raw.get("polling") or {}
    if not isinstance(polling, dict):
        raise ValueError("Config section 'polling' must be a table")
    defaults = Settings()
    return Settings(
        modification_polling=_build(
            defaults.modification_polling, "polling.modification", polling.get("modification")
        ),
        command_polling=_build(defaults.command_polling, "polling.command", polling.get("command")),
        errors=_build(defaults.errors, "errors", raw.get("errors")),
        aws=_build(defaults.aws, "aws", raw.get("aws")),
        guest=_build(defaults.guest, "guest", raw.get("guest")),
        logging=_build(defaults.logging, "logging", raw.get("logging")),
    )


def load_settings(
    *,
    project_dir: Path | None = None,
    global_path: Path | None = None,
    path: Path | None = None,
) -> Settings:
    return build_settings(load_config(project_dir=project_dir, global_path=global_path, path=path))
