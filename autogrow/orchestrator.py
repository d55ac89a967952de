"""Volume expansion state machine.

    Idle
     └─ CheckingModificationHistory
         ├─ FetchingBaselineSize       (never modified)
         └─ ReadingLastModification    (must be completed)
             └─ SubmittingModification (must answer "modifying")
                 └─ Polling            (bounded)
                     ├─ Completed      (optimizing / completed)
                     └─ Failed

Success is only reported after the provider has been seen to leave
``modifying``.
"""

from __future__ import annotations

import math
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from decimal import Decimal

from loguru import logger

from autogrow.aws.ec2 import Ec2Api
from autogrow.aws.models import VolumeModification
from autogrow.aws.responses import Failure, RecoverableEmpty, Success
from autogrow.exceptions import ExpansionFailed, InvalidRequest, UnexpectedState
from autogrow.polling import Pending, PollPolicy, poll

log = logger.bind(component="orchestrator")


@dataclass(frozen=True, slots=True)
class VolumeStatus:
    volume_id: str
    current_size: int
    last_modification: VolumeModification | None = None


@dataclass(frozen=True, slots=True)
class ExpansionResult:
    volume_id: str
    original_size: int
    new_size: int


def target_size(current_size: int, scale_factor: float) -> int:
    """Size to request, rounded up to a whole GiB.

    Raises:
        InvalidRequest: The factor would not grow the volume.
    """
    if current_size <= 0:
        raise InvalidRequest(f"Current size must be positive, got {current_size}")
    if not math.isfinite(scale_factor) or scale_factor <= 0:
        raise InvalidRequest(f"Scale factor must be positive, got {scale_factor}")
    # Decimal keeps 100 x 1.1 at 110 instead of 110.00000000000001
    size = math.ceil(Decimal(str(scale_factor)) * current_size)
    if size <= current_size:
        raise InvalidRequest(
            f"Scale factor {scale_factor} does not grow a {current_size} GiB volume"
        )
    return size


@dataclass(frozen=True, slots=True)
class ExpansionOrchestrator:
    ec2: Ec2Api
    policy: PollPolicy = field(default_factory=PollPolicy)
    sleep: Callable[[float], None] = time.sleep

    def check_volume(self, volume_id: str) -> VolumeStatus:
        """Read the baseline size and make sure the volume can be resized now.

        Raises:
            UnexpectedState: The last modification has not completed.
        """
        match self.ec2.describe_volume_modification(volume_id):
            case RecoverableEmpty():
                log.info("{volume} has never been modified, reading its size", volume=volume_id)
                return VolumeStatus(volume_id=volume_id, current_size=self._volume_size(volume_id))
            case Failure(error=error):
                raise error
            case Success(value=last):
                pass

        if not last.completed:
            raise UnexpectedState(
                f"The volume is not in a state where it can be expanded at this time ({last.state})"
            )
        return VolumeStatus(volume_id=volume_id, current_size=last.target_size, last_modification=last)

    def modify_volume(self, volume_id: str, current_size: int, scale_factor: float) -> int:
        """Request the new size and wait for the provider to leave ``modifying``.

        Returns the new size in GiB.

        Raises:
            UnexpectedState: ModifyVolume answered with a state other than modifying.
            ExpansionFailed: The modification ended in ``failed``.
            PollTimeout: The modification was still running after the last attempt.
        """
        size = target_size(current_size, scale_factor)
        log.info("Expanding {volume} from {old} to {new} GiB", volume=volume_id, old=current_size, new=size)

        match self.ec2.modify_volume(volume_id, size):
            case Success(value=submitted):
                pass
            case Failure(error=error):
                raise error
            case RecoverableEmpty() as empty:
                raise empty.error

        if not submitted.modifying:
            raise UnexpectedState(
                f"Got unexpected modification state of '{submitted.state}' after expanding volume"
            )

        final = poll(
            lambda: self._poll_once(volume_id),
            self.policy,
            what=f"Modification of {volume_id}",
            sleep=self.sleep,
        )
        if final.failed:
            raise ExpansionFailed(
                f"Expansion of volume {volume_id} has failed"
                + (f": {final.status_message}" if final.status_message else "")
            )

        log.info("{volume} is now {state} at {size} GiB", volume=volume_id, state=final.state, size=size)
        return size

    def expand(self, volume_id: str, scale_factor: float) -> ExpansionResult:
        status = self.check_volume(volume_id)
        new_size = self.modify_volume(volume_id, status.current_size, scale_factor)
        return ExpansionResult(volume_id=volume_id, original_size=status.current_size, new_size=new_size)

    def _volume_size(self, volume_id: str) -> int:
        match self.ec2.describe_volume_size(volume_id):
            case Success(value=size):
                return size
            case Failure(error=error):
                raise error
            case RecoverableEmpty() as empty:
                raise empty.error

    def _poll_once(self, volume_id: str) -> VolumeModification:
        match self.ec2.describe_volume_modification(volume_id):
            case Success(value=current):
                if current.modifying:
                    raise Pending(current.state)
                return current
            case Failure(error=error):
                raise error
            case RecoverableEmpty(code=code):
                raise UnexpectedState(f"Modification of {volume_id} disappeared while polling ({code})")
