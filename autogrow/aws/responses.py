"""Response classification.

Maps a raw ``(status, body)`` pair into one of three outcomes:

- ``Success(value)``: a 200 carrying the record the call asked for.
- ``RecoverableEmpty``: the provider says the record does not exist yet and
  the caller has an alternate path (volume never modified, command not yet
  registered).
- ``Failure(error)``: anything else, carrying the ``ExpansionError`` to raise.

EC2 answers in XML (query protocol), SSM in JSON. Error codes that select a
policy come from ``ErrorCodes`` so they can follow provider changes without a
release.
"""

from __future__ import annotations

import json
import xml.etree.ElementTree as ET
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from autogrow.aws.models import (
    BlockDevice,
    CommandInvocation,
    CommandSubmission,
    VolumeModification,
)
from autogrow.aws.transport import Response
from autogrow.config import ErrorCodes
from autogrow.exceptions import (
    AuthenticationFailure,
    ExpansionError,
    RateLimited,
    RequestFailed,
    ResourceNotFound,
    UnexpectedResponse,
)

# ─── Outcomes ────────────────────────────────────────────────────────


@dataclass(frozen=True, slots=True)
class Success[T]:
    value: T


@dataclass(frozen=True, slots=True)
class RecoverableEmpty:
    code: str

    @property
    def error(self) -> ResourceNotFound:
        """For callers that have no alternate path."""
        return ResourceNotFound(self.code)


@dataclass(frozen=True, slots=True)
class Failure:
    error: ExpansionError


type Outcome[T] = Success[T] | RecoverableEmpty | Failure


# ─── Error bodies ────────────────────────────────────────────────────


def _parse_xml(body: str) -> ET.Element | None:
    try:
        return ET.fromstring(body)
    except ET.ParseError:
        return None


def _text(elem: ET.Element, path: str) -> str | None:
    found = elem.find(path)
    if found is None or found.text is None:
        return None
    return found.text.strip()


def ec2_error(body: str) -> tuple[str | None, str | None]:
    """Extract ``(code, message)`` from an EC2 XML error body."""
    root = _parse_xml(body)
    if root is None:
        return None, None
    return (
        _text(root, ".//{*}Errors/{*}Error/{*}Code"),
        _text(root, ".//{*}Errors/{*}Error/{*}Message"),
    )


def json_error(body: str) -> tuple[str | None, str | None]:
    """Extract ``(code, message)`` from a JSON 1.1 error body.

    ``__type`` may be namespaced (``com.amazonaws.ssm#InvocationDoesNotExist``).
    """
    try:
        data = json.loads(body)
    except ValueError:
        return None, None
    if not isinstance(data, dict):
        return None, None
    code = data.get("__type")
    if isinstance(code, str):
        code = code.rpartition("#")[2]
    return code, data.get("message") or data.get("Message")


def _generic_failure(response: Response) -> Failure:
    if response.status_code in (401, 403):
        return Failure(AuthenticationFailure(response.status_code, response.body))
    return Failure(RequestFailed(response.status_code, response.body))


def _parsed[T](response: Response, parse: Callable[[str], T], what: str) -> Outcome[T]:
    try:
        return Success(parse(response.body))
    except (ValueError, KeyError, TypeError, AttributeError) as e:
        return Failure(UnexpectedResponse(f"Could not read {what} from response ({e}): {response.body[:500]}"))


# ─── EC2 records ─────────────────────────────────────────────────────


def _root(body: str) -> ET.Element:
    root = _parse_xml(body)
    if root is None:
        raise ValueError("body is not XML")
    return root


def _required(elem: ET.Element, path: str) -> str:
    value = _text(elem, path)
    if value is None:
        raise ValueError(f"missing {path.replace('{*}', '')}")
    return value


def _optional_int(elem: ET.Element, path: str) -> int | None:
    value = _text(elem, path)
    return int(value) if value else None


def _modification(item: ET.Element) -> VolumeModification:
    return VolumeModification(
        volume_id=_required(item, "{*}volumeId"),
        state=_required(item, "{*}modificationState"),
        target_size=int(_required(item, "{*}targetSize")),
        original_size=_optional_int(item, "{*}originalSize"),
        start_time=_text(item, "{*}startTime"),
        status_message=_text(item, "{*}statusMessage"),
    )


def parse_modifications(body: str) -> list[VolumeModification]:
    root = _root(body)
    return [_modification(item) for item in root.iterfind(".//{*}volumeModificationSet/{*}item")]


def latest_modification(records: list[VolumeModification]) -> VolumeModification:
    """Most recent record by start time, document order breaking ties."""
    indexed = list(enumerate(records))
    return max(indexed, key=lambda pair: (pair[1].start_time or "", pair[0]))[1]


def parse_modify_result(body: str) -> VolumeModification:
    root = _root(body)
    item = root.find(".//{*}volumeModification")
    if item is None:
        raise ValueError("missing volumeModification")
    return _modification(item)


def parse_volume_size(body: str) -> int:
    root = _root(body)
    return int(_required(root, ".//{*}volumeSet/{*}item/{*}size"))


def parse_block_devices(body: str) -> list[BlockDevice]:
    root = _root(body)
    devices: list[BlockDevice] = []
    for item in root.iterfind(".//{*}blockDeviceMapping/{*}item"):
        name = _text(item, "{*}deviceName")
        volume_id = _text(item, "{*}ebs/{*}volumeId")
        if name and volume_id:
            devices.append(BlockDevice(device_name=name, volume_id=volume_id))
    return devices


# ─── SSM records ─────────────────────────────────────────────────────


def _json(body: str) -> dict[str, Any]:
    data = json.loads(body)
    if not isinstance(data, dict):
        raise ValueError("body is not a JSON object")
    return data


def parse_command_submission(body: str) -> CommandSubmission:
    command = _json(body)["Command"]
    return CommandSubmission(command_id=command["CommandId"], status=command["Status"])


def parse_command_invocation(body: str) -> CommandInvocation:
    data = _json(body)
    return CommandInvocation(
        status=data["Status"],
        stdout=data.get("StandardOutputContent") or "",
        stderr=data.get("StandardErrorContent") or "",
    )


# ─── Per-endpoint policies ───────────────────────────────────────────


def classify_modification_history(response: Response, codes: ErrorCodes) -> Outcome[VolumeModification]:
    """DescribeVolumesModifications.

    "Modification not found" means the volume was never resized; the caller
    falls back to DescribeVolumes for the current size.
    """
    if response.status_code == 400:
        code, _ = ec2_error(response.body)
        if code == codes.modification_not_found:
            return RecoverableEmpty(code)
    if not response.ok:
        return _generic_failure(response)

    outcome = _parsed(response, parse_modifications, "volume modifications")
    match outcome:
        case Success(value=[]):
            return RecoverableEmpty(codes.modification_not_found)
        case Success(value=records):
            return Success(latest_modification(records))
        case _:
            return outcome


def classify_modify(response: Response, codes: ErrorCodes) -> Outcome[VolumeModification]:
    """ModifyVolume. A rate-limit refusal carries the provider's message."""
    if response.status_code == 400:
        code, message = ec2_error(response.body)
        if code == codes.modification_rate_exceeded:
            return Failure(RateLimited(message or response.body))
    if not response.ok:
        return _generic_failure(response)
    return _parsed(response, parse_modify_result, "volume modification")


def classify_volume_size(response: Response) -> Outcome[int]:
    if not response.ok:
        return _generic_failure(response)
    return _parsed(response, parse_volume_size, "volume size")


def classify_block_devices(response: Response) -> Outcome[list[BlockDevice]]:
    if not response.ok:
        return _generic_failure(response)
    return _parsed(response, parse_block_devices, "block device mappings")


def classify_command_submission(response: Response) -> Outcome[CommandSubmission]:
    if not response.ok:
        return _generic_failure(response)
    return _parsed(response, parse_command_submission, "command submission")


def classify_command_invocation(response: Response, codes: ErrorCodes) -> Outcome[CommandInvocation]:
    """GetCommandInvocation. A not-yet-registered invocation is recoverable."""
    if response.status_code == 400:
        code, _ = json_error(response.body)
        if code == codes.invocation_does_not_exist:
            return RecoverableEmpty(code)
    if not response.ok:
        return _generic_failure(response)
    return _parsed(response, parse_command_invocation, "command invocation")
