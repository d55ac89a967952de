from __future__ import annotations

import pytest

from autogrow.aws.client import ssm_client
from autogrow.aws.signer import Credentials
from autogrow.aws.ssm import RemoteCommandRunner
from autogrow.exceptions import CommandFailed, PollTimeout
from autogrow.polling import PollPolicy
from tests.conftest import FakeTransport, invocation, sent, ssm_error

pytestmark = [pytest.mark.unit]

SEND = "AmazonSSM.SendCommand"
GET = "AmazonSSM.GetCommandInvocation"


@pytest.fixture
def runner(credentials: Credentials, transport: FakeTransport, fast_policy: PollPolicy) -> RemoteCommandRunner:
    return RemoteCommandRunner(
        client=ssm_client(credentials, "us-east-1", transport),
        policy=fast_policy,
        sleep=lambda _: None,
    )


class TestRun:
    def test_success_returns_stdout(self, runner: RemoteCommandRunner, transport: FakeTransport):
        transport.add(SEND, sent("cmd-1"))
        transport.add(GET, invocation("InProgress"), invocation("Success", stdout="vol0123abc\n", stderr="warn"))

        result = runner.run("i-0abc", "echo hi")

        assert result.success
        assert result.output == "vol0123abc\n"
        assert result.command_id == "cmd-1"
        assert transport.operations() == [SEND, GET, GET]

    def test_send_command_payload(self, runner: RemoteCommandRunner, transport: FakeTransport):
        transport.add(SEND, sent("cmd-1"))
        transport.add(GET, invocation("Success"))

        runner.run("i-0abc", "df -h")

        send, get = transport.calls
        assert send.method == "POST"
        assert send.endpoint == "ssm.us-east-1.amazonaws.com"
        assert send.headers["Content-Type"] == "application/x-amz-json-1.1"
        assert send.payload == {
            "DocumentName": "AWS-RunShellScript",
            "InstanceIds": ["i-0abc"],
            "Parameters": {"commands": ["df -h"]},
        }
        assert get.payload == {"CommandId": "cmd-1", "InstanceId": "i-0abc"}

    def test_invocation_not_registered_yet_keeps_polling(
        self, runner: RemoteCommandRunner, transport: FakeTransport
    ):
        transport.add(SEND, sent("cmd-1"))
        transport.add(
            GET,
            ssm_error("InvocationDoesNotExist"),
            ssm_error("com.amazonaws.ssm#InvocationDoesNotExist"),
            invocation("Success", stdout="ok"),
        )

        result = runner.run("i-0abc", "true")

        assert result.success
        assert transport.count(GET) == 3

    def test_failure_returns_stderr(self, runner: RemoteCommandRunner, transport: FakeTransport):
        transport.add(SEND, sent("cmd-1"))
        transport.add(GET, invocation("Failed", stdout="partial", stderr="nvme: command not found"))

        result = runner.run("i-0abc", "nvme list")

        assert not result.success
        assert result.status == "Failed"
        assert result.output == "nvme: command not found"

    @pytest.mark.parametrize("status", ["Cancelled", "TimedOut"])
    def test_other_terminal_states(self, runner: RemoteCommandRunner, transport: FakeTransport, status: str):
        transport.add(SEND, sent("cmd-1"))
        transport.add(GET, invocation(status, stderr="stopped"))

        result = runner.run("i-0abc", "sleep 1000")

        assert result.status == status
        assert not result.success

    def test_unknown_status_keeps_polling(self, runner: RemoteCommandRunner, transport: FakeTransport):
        transport.add(SEND, sent("cmd-1"))
        transport.add(GET, invocation("Delivered"), invocation("Success", stdout="ok"))

        assert runner.run("i-0abc", "true").success

    def test_submission_rejected_returns_raw_body(self, runner: RemoteCommandRunner, transport: FakeTransport):
        rejected = ssm_error("InvalidInstanceId", "Instances not in a valid state")
        transport.add(SEND, rejected)

        result = runner.run("i-0abc", "true")

        assert result.status == "Failed"
        assert result.output == rejected.body
        assert result.command_id is None
        assert transport.count(GET) == 0

    def test_invocation_error_ends_as_failed(self, runner: RemoteCommandRunner, transport: FakeTransport):
        denied = ssm_error("AccessDeniedException", "denied")
        transport.add(SEND, sent("cmd-1"))
        transport.add(GET, denied)

        result = runner.run("i-0abc", "true")

        assert result.status == "Failed"
        assert result.output == denied.body

    def test_timeout(self, runner: RemoteCommandRunner, transport: FakeTransport):
        transport.add(SEND, sent("cmd-1"))
        transport.add(GET, *[invocation("InProgress")] * 5)

        with pytest.raises(PollTimeout):
            runner.run("i-0abc", "sleep 1000")
        assert transport.count(GET) == 5


class TestRunChecked:
    def test_returns_stdout(self, runner: RemoteCommandRunner, transport: FakeTransport):
        transport.add(SEND, sent("cmd-1"))
        transport.add(GET, invocation("Success", stdout="out"))

        assert runner.run_checked("i-0abc", "true") == "out"

    def test_raises_with_stderr(self, runner: RemoteCommandRunner, transport: FakeTransport):
        transport.add(SEND, sent("cmd-1"))
        transport.add(GET, invocation("Failed", stderr="boom"))

        with pytest.raises(CommandFailed, match="boom"):
            runner.run_checked("i-0abc", "false")
