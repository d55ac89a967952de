"""AWS Systems Manager (SSM) command execution."""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass, field

from loguru import logger

from autogrow.aws.client import JsonClient
from autogrow.aws.models import CommandInvocation, CommandResult
from autogrow.aws.responses import (
    Failure,
    RecoverableEmpty,
    Success,
    classify_command_invocation,
    classify_command_submission,
)
from autogrow.config import ErrorCodes
from autogrow.constants import (
    COMMAND_POLL_ATTEMPTS,
    COMMAND_POLL_INTERVAL,
    SSM_DOCUMENT,
    CommandStatus,
    SsmTarget,
)
from autogrow.exceptions import CommandFailed, RequestFailed
from autogrow.polling import Pending, PollPolicy, poll

log = logger.bind(component="ssm")


@dataclass(frozen=True, slots=True)
class RemoteCommandRunner:
    """Runs a shell command on one instance and waits for it to finish."""

    client: JsonClient
    codes: ErrorCodes = field(default_factory=ErrorCodes)
    policy: PollPolicy = field(
        default_factory=lambda: PollPolicy(max_attempts=COMMAND_POLL_ATTEMPTS, interval=COMMAND_POLL_INTERVAL)
    )
    sleep: Callable[[float], None] = time.sleep

    def run(self, instance_id: str, command: str) -> CommandResult:
        """Submit ``command`` and poll until it succeeds or fails.

        A submission error ends the command as Failed with the raw error body
        as output. Polling past the policy's attempt cap raises ``PollTimeout``.
        """
        response = self.client.call(
            SsmTarget.SEND_COMMAND,
            {
                "DocumentName": SSM_DOCUMENT,
                "InstanceIds": [instance_id],
                "Parameters": {"commands": [command]},
            },
        )
        match classify_command_submission(response):
            case Success(value=submission):
                pass
            case Failure(error=RequestFailed(body=body)):
                log.warning("SendCommand to {instance} rejected", instance=instance_id)
                return CommandResult(status=CommandStatus.FAILED, output=body)
            case Failure(error=error):
                return CommandResult(status=CommandStatus.FAILED, output=str(error))
            case RecoverableEmpty():
                return CommandResult(status=CommandStatus.FAILED, output=response.body)

        command_id = submission.command_id
        log.info("Command {id} submitted to {instance}", id=command_id, instance=instance_id)

        def _check() -> CommandInvocation:
            invocation = self._invocation(command_id, instance_id)
            if not _terminal(invocation.status):
                raise Pending(invocation.status)
            return invocation

        invocation = poll(_check, self.policy, what=f"Command {command_id}", sleep=self.sleep)
        succeeded = invocation.status == CommandStatus.SUCCESS
        log.info("Command {id} finished: {status}", id=command_id, status=invocation.status)
        return CommandResult(
            status=invocation.status,
            output=invocation.stdout if succeeded else invocation.stderr,
            command_id=command_id,
        )

    def run_checked(self, instance_id: str, command: str) -> str:
        """Run ``command`` and return its stdout, raising ``CommandFailed`` otherwise."""
        result = self.run(instance_id, command)
        if not result.success:
            raise CommandFailed(result.output or f"Command {result.status}")
        return result.output

    def _invocation(self, command_id: str, instance_id: str) -> CommandInvocation:
        response = self.client.call(
            SsmTarget.GET_COMMAND_INVOCATION,
            {"CommandId": command_id, "InstanceId": instance_id},
        )
        match classify_command_invocation(response, self.codes):
            case Success(value=invocation):
                return invocation
            case RecoverableEmpty():
                # Invocation not registered yet right after SendCommand
                return CommandInvocation(status=CommandStatus.PENDING)
            case Failure(error=RequestFailed(body=body)):
                return CommandInvocation(status=CommandStatus.FAILED, stderr=body)
            case Failure(error=error):
                return CommandInvocation(status=CommandStatus.FAILED, stderr=str(error))


def _terminal(status: str) -> bool:
    try:
        return CommandStatus(status).terminal
    except ValueError:
        log.warning("Unknown command status {status}, still polling", status=status)
        return False
