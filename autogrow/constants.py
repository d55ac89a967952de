"""Centralized constants and enums for autogrow.

All provider strings (states, targets, wire tags) are defined here so the
signer, the classifier and the state machines agree on the same values.
"""

from __future__ import annotations

from enum import StrEnum
from typing import Final

# =============================================================================
# Request Signing
# =============================================================================

SIGNING_ALGORITHM: Final = "AWS4-HMAC-SHA256"
SIGNING_TERMINATOR: Final = "aws4_request"
SECRET_PREFIX: Final = "AWS4"
AMZ_DATE_FORMAT: Final = "%Y%m%dT%H%M%SZ"
DATE_STAMP_FORMAT: Final = "%Y%m%d"


# =============================================================================
# Service Endpoints
# =============================================================================

EC2_SERVICE: Final = "ec2"
SSM_SERVICE: Final = "ssm"
DEFAULT_ENDPOINT_TEMPLATE: Final = "{service}.{region}.amazonaws.com"
EC2_API_VERSION: Final = "2016-11-15"
SSM_CONTENT_TYPE: Final = "application/x-amz-json-1.1"
SSM_DOCUMENT: Final = "AWS-RunShellScript"


class SsmTarget(StrEnum):
    """X-Amz-Target values for the SSM JSON API."""

    SEND_COMMAND = "AmazonSSM.SendCommand"
    GET_COMMAND_INVOCATION = "AmazonSSM.GetCommandInvocation"


# =============================================================================
# Provider States
# =============================================================================


class ModificationState(StrEnum):
    """EBS volume modification states."""

    MODIFYING = "modifying"
    OPTIMIZING = "optimizing"
    COMPLETED = "completed"
    FAILED = "failed"


class CommandStatus(StrEnum):
    """SSM command invocation states."""

    PENDING = "Pending"
    IN_PROGRESS = "InProgress"
    DELAYED = "Delayed"
    SUCCESS = "Success"
    FAILED = "Failed"
    CANCELLED = "Cancelled"
    TIMED_OUT = "TimedOut"
    CANCELLING = "Cancelling"

    @property
    def terminal(self) -> bool:
        return self in _TERMINAL_COMMAND_STATES


_TERMINAL_COMMAND_STATES: Final = frozenset(
    {CommandStatus.SUCCESS, CommandStatus.FAILED, CommandStatus.CANCELLED, CommandStatus.TIMED_OUT}
)


# =============================================================================
# Provider Error Codes (defaults, overridable through [errors])
# =============================================================================

MODIFICATION_NOT_FOUND: Final = "InvalidVolumeModification.NotFound"
MODIFICATION_RATE_EXCEEDED: Final = "VolumeModificationRateExceeded"
INVOCATION_DOES_NOT_EXIST: Final = "InvocationDoesNotExist"


# =============================================================================
# Guest Commands
# =============================================================================

INSTALL_NVME_CLI: Final = "command -v nvme >/dev/null 2>&1 || sudo apt-get install -y nvme-cli"
NVME_LIST_COMMAND: Final = "sudo nvme list | grep -w /dev/{device} | awk '{{print $2}}'"
VOLUME_ID_PREFIX: Final = "vol"


# =============================================================================
# Polling (in seconds)
# =============================================================================

MODIFICATION_POLL_ATTEMPTS: Final = 360
MODIFICATION_POLL_INTERVAL: Final = 5.0
COMMAND_POLL_ATTEMPTS: Final = 150
COMMAND_POLL_INTERVAL: Final = 2.0
REQUEST_TIMEOUT: Final = 30.0
