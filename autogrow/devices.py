"""Device naming between the guest OS and the EC2 control plane.

The guest and the control plane rarely agree on a device's name. This module
keeps the translation in one table per naming scheme:

========  ==============  ================================================
Scheme    Guest name      Control-plane candidates (in match order)
========  ==============  ================================================
xen       ``xvdf``        ``/dev/sdf``, ``/dev/xvdf``
xen       ``xvdba``       ``/dev/sdba``, ``/dev/xvdba``
xen       ``xvda1``       ``/dev/sda1``, ``/dev/sda``, ``/dev/xvda1``, ``/dev/xvda``
xen       ``sdf``         ``/dev/sdf``, ``/dev/xvdf``
nvme      ``nvme1n1p2``   none; resolved in the guest from the disk serial
========  ==============  ================================================

A leading ``/dev/`` is accepted everywhere. NVMe devices are re-enumerated by
the kernel in attach order, so their names carry no information about the
control-plane mapping; the volume id is read from the NVMe serial number
(``vol0123abc``) and re-prefixed (``vol-0123abc``).
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import StrEnum
from typing import Final

from autogrow.constants import VOLUME_ID_PREFIX
from autogrow.exceptions import InvalidRequest

_XEN_RE: Final = re.compile(r"^(?:xvd|sd)(?P<letters>[a-z]{1,2})(?P<partition>\d*)$")
_NVME_RE: Final = re.compile(r"^(?P<disk>nvme\d+n\d+)(?:p(?P<partition>\d+))?$")


class DeviceScheme(StrEnum):
    """Guest device naming schemes."""

    XEN = "xen"
    NVME = "nvme"


@dataclass(frozen=True, slots=True)
class DeviceMapping:
    """Translation of one requested device name."""

    requested_device: str
    scheme: DeviceScheme
    guest_device: str
    candidates: tuple[str, ...] = ()


def _bare(device: str) -> str:
    return device.strip().removeprefix("/dev/")


def detect_scheme(device: str) -> DeviceScheme:
    return DeviceScheme.NVME if _bare(device).startswith("nvme") else DeviceScheme.XEN


def map_device(device: str) -> DeviceMapping:
    """Build the mapping for ``device`` under its detected scheme.

    Raises:
        InvalidRequest: The name fits neither scheme.
    """
    bare = _bare(device)
    match detect_scheme(device):
        case DeviceScheme.NVME:
            m = _NVME_RE.match(bare)
            if not m:
                raise InvalidRequest(f"Unrecognised NVMe device name '{device}'")
            return DeviceMapping(
                requested_device=device,
                scheme=DeviceScheme.NVME,
                guest_device=m["disk"],
            )
        case DeviceScheme.XEN:
            m = _XEN_RE.match(bare)
            if not m:
                raise InvalidRequest(f"Unrecognised device name '{device}'")
            letters, partition = m["letters"], m["partition"]
            names = [f"sd{letters}{partition}", f"sd{letters}", f"xvd{letters}{partition}", f"xvd{letters}"]
            candidates = tuple(dict.fromkeys(f"/dev/{name}" for name in names))
            return DeviceMapping(
                requested_device=device,
                scheme=DeviceScheme.XEN,
                guest_device=f"xvd{letters}",
                candidates=candidates,
            )


def trim_partition(device: str) -> str:
    """``nvme1n1p1`` -> ``nvme1n1``, ``/dev/xvdf1`` -> ``xvdf``."""
    return map_device(device).guest_device


def volume_id_from_serial(output: str) -> str | None:
    """Turn the serial printed by ``nvme list`` into a volume id.

    The serial lacks the dash (``vol0123abc``) and arrives with a trailing
    newline. Returns None when the output has no serial at all.
    """
    lines = [line.strip() for line in output.splitlines() if line.strip()]
    if not lines:
        return None
    serial = lines[0]
    if not serial.startswith(VOLUME_ID_PREFIX):
        raise ValueError(f"'{serial}' is not an EBS volume serial")
    rest = serial.removeprefix(VOLUME_ID_PREFIX).removeprefix("-")
    return f"{VOLUME_ID_PREFIX}-{rest}"
