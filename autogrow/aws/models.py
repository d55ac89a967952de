"""Immutable records parsed from EC2 and SSM responses."""

from __future__ import annotations

from dataclasses import dataclass

from autogrow.constants import CommandStatus, ModificationState


@dataclass(frozen=True, slots=True)
class VolumeModification:
    """One entry of a volume's modification history.

    ``state`` keeps the provider's raw value so an unknown state can be
    reported verbatim.
    """

    volume_id: str
    state: str
    target_size: int
    original_size: int | None = None
    start_time: str | None = None
    status_message: str | None = None

    @property
    def modifying(self) -> bool:
        return self.state == ModificationState.MODIFYING

    @property
    def completed(self) -> bool:
        return self.state == ModificationState.COMPLETED

    @property
    def failed(self) -> bool:
        return self.state == ModificationState.FAILED


@dataclass(frozen=True, slots=True)
class BlockDevice:
    device_name: str
    volume_id: str


@dataclass(frozen=True, slots=True)
class CommandSubmission:
    command_id: str
    status: str


@dataclass(frozen=True, slots=True)
class CommandInvocation:
    status: str
    stdout: str = ""
    stderr: str = ""


@dataclass(frozen=True, slots=True)
class CommandResult:
    """Final outcome of a remote command."""

    status: str
    output: str
    command_id: str | None = None

    @property
    def success(self) -> bool:
        return self.status == CommandStatus.SUCCESS
