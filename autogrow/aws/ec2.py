"""EC2 control-plane calls used during expansion.

Each method issues one freshly signed request and returns a classified
outcome; none of them raise on a provider error.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from autogrow.aws.client import QueryClient
from autogrow.aws.models import BlockDevice, VolumeModification
from autogrow.aws.responses import (
    Outcome,
    classify_block_devices,
    classify_modification_history,
    classify_modify,
    classify_volume_size,
)
from autogrow.config import ErrorCodes


@dataclass(frozen=True, slots=True)
class Ec2Api:
    client: QueryClient
    codes: ErrorCodes = field(default_factory=ErrorCodes)

    def describe_block_devices(self, instance_id: str) -> Outcome[list[BlockDevice]]:
        response = self.client.call("DescribeInstances", {"InstanceId.1": instance_id})
        return classify_block_devices(response)

    def describe_volume_modification(self, volume_id: str) -> Outcome[VolumeModification]:
        response = self.client.call("DescribeVolumesModifications", {"VolumeId.1": volume_id})
        return classify_modification_history(response, self.codes)

    def describe_volume_size(self, volume_id: str) -> Outcome[int]:
        response = self.client.call("DescribeVolumes", {"VolumeId.1": volume_id})
        return classify_volume_size(response)

    def modify_volume(self, volume_id: str, size: int) -> Outcome[VolumeModification]:
        response = self.client.call("ModifyVolume", {"VolumeId": volume_id, "Size": size})
        return classify_modify(response, self.codes)
