"""Extract the expansion target from a low-disk-space CloudWatch alarm."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Any

from autogrow.devices import DeviceScheme, detect_scheme
from autogrow.exceptions import InvalidRequest


@dataclass(frozen=True, slots=True)
class AlarmTarget:
    instance_id: str
    region: str
    device: str

    @property
    def nvme(self) -> bool:
        return detect_scheme(self.device) is DeviceScheme.NVME


def region_from_arn(arn: str) -> str:
    """``arn:aws:sns:us-east-1:123456789012:topic`` -> ``us-east-1``."""
    parts = arn.split(":")
    if len(parts) < 6 or parts[0] != "arn" or not parts[3]:
        raise InvalidRequest(f"'{arn}' is not a regional ARN")
    return parts[3]


def extract_target(dimensions: Iterable[Mapping[str, Any]], topic_arn: str) -> AlarmTarget:
    values = {str(d.get("name")): d.get("value") for d in dimensions}
    instance_id = values.get("InstanceId")
    device = values.get("device")
    if not instance_id:
        raise InvalidRequest("Alarm dimensions carry no InstanceId")
    if not device:
        raise InvalidRequest("Alarm dimensions carry no device")
    return AlarmTarget(instance_id=str(instance_id), region=region_from_arn(topic_arn), device=str(device))
