"""Resolve the EBS volume behind a guest device name.

Two strategies share one protocol:

- ``DirectResolver`` reads the instance's block-device mappings from the EC2
  control plane. Works when the guest sees Xen-style names.
- ``InGuestResolver`` asks the guest itself through SSM. Needed for NVMe
  devices, whose names are assigned by the kernel in attach order.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Protocol

from loguru import logger

from autogrow.aws.ec2 import Ec2Api
from autogrow.aws.responses import Failure, RecoverableEmpty, Success
from autogrow.aws.ssm import RemoteCommandRunner
from autogrow.config import GuestCommands
from autogrow.devices import DeviceScheme, map_device, trim_partition, volume_id_from_serial
from autogrow.exceptions import DeviceNotFound, UnexpectedResponse

log = logger.bind(component="resolver")


class VolumeResolver(Protocol):
    def resolve(self, instance_id: str, device: str) -> str: ...


@dataclass(frozen=True, slots=True)
class DirectResolver:
    ec2: Ec2Api

    def resolve(self, instance_id: str, device: str) -> str:
        mapping = map_device(device)
        if not mapping.candidates:
            raise DeviceNotFound(
                f"Device {device} cannot be matched against the control plane; resolve it in the guest"
            )

        match self.ec2.describe_block_devices(instance_id):
            case Success(value=devices):
                pass
            case Failure(error=error):
                raise error
            case RecoverableEmpty() as empty:
                raise empty.error

        attached = {d.device_name: d.volume_id for d in devices}
        for candidate in mapping.candidates:
            if candidate in attached:
                log.info("{device} is {volume} ({name})", device=device, volume=attached[candidate], name=candidate)
                return attached[candidate]

        raise DeviceNotFound(
            f"Unable to find device {device} (a.k.a. {', '.join(mapping.candidates)}) attached to instance {instance_id}"
        )


@dataclass(frozen=True, slots=True)
class InGuestResolver:
    runner: RemoteCommandRunner
    commands: GuestCommands = field(default_factory=GuestCommands)

    def resolve(self, instance_id: str, device: str) -> str:
        guest_device = trim_partition(device)

        self.runner.run_checked(instance_id, self.commands.install_command)
        output = self.runner.run_checked(instance_id, self.commands.list_command.format(device=guest_device))

        try:
            volume_id = volume_id_from_serial(output)
        except ValueError as e:
            raise UnexpectedResponse(f"Device listing for {guest_device}: {e}") from e
        if volume_id is None:
            raise DeviceNotFound(f"Unable to find device {device} ({guest_device}) on instance {instance_id}")

        log.info("{device} is {volume}", device=device, volume=volume_id)
        return volume_id


def resolver_for(
    scheme: DeviceScheme,
    *,
    ec2: Ec2Api,
    runner: RemoteCommandRunner,
    commands: GuestCommands | None = None,
) -> VolumeResolver:
    match scheme:
        case DeviceScheme.NVME:
            return InGuestResolver(runner=runner, commands=commands or GuestCommands())
        case DeviceScheme.XEN:
            return DirectResolver(ec2=ec2)
