from __future__ import annotations

import json
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any
from urllib.parse import parse_qs, urlsplit

import pytest

from autogrow.aws.signer import Credentials
from autogrow.aws.transport import Response
from autogrow.config import Settings
from autogrow.polling import PollPolicy

EC2_NS = "http://ec2.amazonaws.com/doc/2016-11-15/"


# ─── Scripted transport ──────────────────────────────────────────────


@dataclass(frozen=True, slots=True)
class Call:
    endpoint: str
    path: str
    method: str
    headers: dict[str, str]
    body: bytes | None

    @property
    def params(self) -> dict[str, str]:
        return {k: v[0] for k, v in parse_qs(urlsplit(self.path).query).items()}

    @property
    def operation(self) -> str:
        return self.headers.get("X-Amz-Target") or self.params.get("Action", "")

    @property
    def payload(self) -> dict[str, Any]:
        return json.loads(self.body or b"{}")


class FakeTransport:
    """Replays canned responses per operation (EC2 Action or SSM target)."""

    def __init__(self, script: dict[str, Iterable[Response]] | None = None) -> None:
        self._queues = {op: list(responses) for op, responses in (script or {}).items()}
        self.calls: list[Call] = []

    def add(self, operation: str, *responses: Response) -> FakeTransport:
        self._queues.setdefault(operation, []).extend(responses)
        return self

    def request(
        self,
        endpoint: str,
        path: str,
        method: str,
        headers: dict[str, str],
        body: bytes | None = None,
    ) -> Response:
        call = Call(endpoint=endpoint, path=path, method=method, headers=dict(headers), body=body)
        self.calls.append(call)
        queue = self._queues.get(call.operation)
        if not queue:
            raise AssertionError(f"Unexpected call to {call.operation}")
        return queue.pop(0)

    def count(self, operation: str) -> int:
        return sum(1 for c in self.calls if c.operation == operation)

    def operations(self) -> list[str]:
        return [c.operation for c in self.calls]


# ─── EC2 response builders ───────────────────────────────────────────


def ec2_error(code: str, message: str = "error", status: int = 400) -> Response:
    return Response(
        status_code=status,
        body=(
            '<?xml version="1.0" encoding="UTF-8"?>'
            f"<Response><Errors><Error><Code>{code}</Code><Message>{message}</Message></Error></Errors>"
            "<RequestID>req-1</RequestID></Response>"
        ),
    )


def _modification_item(
    state: str, target: int, volume_id: str, original: int | None, start_time: str | None
) -> str:
    parts = [
        f"<volumeId>{volume_id}</volumeId>",
        f"<modificationState>{state}</modificationState>",
        f"<targetSize>{target}</targetSize>",
    ]
    if original is not None:
        parts.append(f"<originalSize>{original}</originalSize>")
    if start_time is not None:
        parts.append(f"<startTime>{start_time}</startTime>")
    return "".join(parts)


def modifications(
    *records: tuple[str, int] | tuple[str, int, str],
    volume_id: str = "vol-0123abc",
) -> Response:
    items = "".join(
        "<item>"
        + _modification_item(r[0], r[1], volume_id, None, r[2] if len(r) > 2 else None)  # type: ignore[misc]
        + "</item>"
        for r in records
    )
    return Response(
        status_code=200,
        body=(
            f'<DescribeVolumesModificationsResponse xmlns="{EC2_NS}"><requestId>r</requestId>'
            f"<volumeModificationSet>{items}</volumeModificationSet></DescribeVolumesModificationsResponse>"
        ),
    )


def modify_result(state: str, target: int, volume_id: str = "vol-0123abc", original: int = 100) -> Response:
    return Response(
        status_code=200,
        body=(
            f'<ModifyVolumeResponse xmlns="{EC2_NS}"><requestId>r</requestId><volumeModification>'
            + _modification_item(state, target, volume_id, original, "2026-10-19T10:00:00.000Z")
            + "</volumeModification></ModifyVolumeResponse>"
        ),
    )


def volume(size: int, volume_id: str = "vol-0123abc") -> Response:
    return Response(
        status_code=200,
        body=(
            f'<DescribeVolumesResponse xmlns="{EC2_NS}"><requestId>r</requestId><volumeSet><item>'
            f"<volumeId>{volume_id}</volumeId><size>{size}</size><status>in-use</status>"
            "</item></volumeSet></DescribeVolumesResponse>"
        ),
    )


def instance(devices: dict[str, str], instance_id: str = "i-0abc") -> Response:
    mappings = "".join(
        f"<item><deviceName>{name}</deviceName><ebs><volumeId>{vol}</volumeId>"
        "<status>attached</status></ebs></item>"
        for name, vol in devices.items()
    )
    return Response(
        status_code=200,
        body=(
            f'<DescribeInstancesResponse xmlns="{EC2_NS}"><requestId>r</requestId><reservationSet><item>'
            f"<instancesSet><item><instanceId>{instance_id}</instanceId>"
            f"<blockDeviceMapping>{mappings}</blockDeviceMapping>"
            "</item></instancesSet></item></reservationSet></DescribeInstancesResponse>"
        ),
    )


# ─── SSM response builders ───────────────────────────────────────────


def ssm_ok(payload: dict[str, Any]) -> Response:
    return Response(status_code=200, body=json.dumps(payload))


def ssm_error(error_type: str, message: str = "error", status: int = 400) -> Response:
    return Response(status_code=status, body=json.dumps({"__type": error_type, "message": message}))


def sent(command_id: str = "cmd-1", status: str = "Pending") -> Response:
    return ssm_ok({"Command": {"CommandId": command_id, "Status": status}})


def invocation(status: str, stdout: str = "", stderr: str = "") -> Response:
    return ssm_ok({"Status": status, "StandardOutputContent": stdout, "StandardErrorContent": stderr})


# ─── Fixtures ────────────────────────────────────────────────────────


@pytest.fixture
def credentials() -> Credentials:
    return Credentials(access_key="AKIDEXAMPLE", secret_key="wJalrXUtnFEMI/K7MDENG+bPxRfiCYEXAMPLEKEY")


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def fast_policy() -> PollPolicy:
    return PollPolicy(max_attempts=5, interval=0)


@pytest.fixture
def settings() -> Settings:
    return Settings(
        modification_polling=PollPolicy(max_attempts=5, interval=0),
        command_polling=PollPolicy(max_attempts=5, interval=0),
    )


@pytest.fixture
def aws_input() -> dict[str, str]:
    return {
        "AWSRegion": "us-east-1",
        "AWSAccessKey": "AKIDEXAMPLE",
        "AWSSecretKey": "wJalrXUtnFEMI/K7MDENG+bPxRfiCYEXAMPLEKEY",
    }
