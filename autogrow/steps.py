"""Step functions invoked by the orchestration engine.

Each step takes the engine's input mapping and returns the output mapping.
Steps never raise: every failure becomes ``ErrorMessage`` plus a false
outcome flag, whose key depends on the step (``OKToProceed``, ``OKToModify``
or ``Matched``).

Example:
    from autogrow.steps import StepContext, check_volume

    with HttpxTransport() as transport:
        out = check_volume(
            {"VolumeId": "vol-0abc", "AWSRegion": "us-east-1", "AWSAccessKey": "...", "AWSSecretKey": "..."},
            StepContext(transport=transport),
        )
    # {"OKToModify": True, "CurrentSize": 100}
"""

from __future__ import annotations

import functools
import math
import time
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import Any, Final

from loguru import logger

from autogrow.alarm import extract_target
from autogrow.aws.client import ec2_client, ssm_client
from autogrow.aws.ec2 import Ec2Api
from autogrow.aws.signer import Credentials
from autogrow.aws.ssm import RemoteCommandRunner
from autogrow.aws.transport import Transport
from autogrow.config import Settings
from autogrow.devices import DeviceScheme, detect_scheme
from autogrow.exceptions import ExpansionError, InvalidRequest
from autogrow.orchestrator import ExpansionOrchestrator
from autogrow.resolver import DirectResolver, InGuestResolver, resolver_for

type StepInput = Mapping[str, Any]
type StepOutput = dict[str, Any]
type Step = Callable[[StepInput, StepContext], StepOutput]

log = logger.bind(component="steps")

ERROR_KEY: Final = "ErrorMessage"


@dataclass(frozen=True, slots=True)
class StepContext:
    """What a step needs besides its input: transport and settings."""

    transport: Transport
    settings: Settings = field(default_factory=Settings)
    sleep: Callable[[float], None] = time.sleep


# =============================================================================
# Invocation boundary
# =============================================================================


def _step(flag: str) -> Callable[[Callable[[StepInput, StepContext], StepOutput]], Step]:
    """Run a step body, converting every failure into output.

    The body returns its output values; the flag is set here.
    """

    def decorator(body: Callable[[StepInput, StepContext], StepOutput]) -> Step:
        @functools.wraps(body)
        def wrapper(data: StepInput, ctx: StepContext) -> StepOutput:
            try:
                out = body(data, ctx)
            except ExpansionError as e:
                log.error("{step} failed: {err}", step=body.__name__, err=e)
                return {flag: False, ERROR_KEY: str(e)}
            except Exception as e:
                log.opt(exception=True).error("{step} crashed: {err}", step=body.__name__, err=e)
                return {flag: False, ERROR_KEY: f"Internal error: {type(e).__name__}: {e}"}
            return {**out, flag: True}

        return wrapper

    return decorator


# =============================================================================
# Input helpers
# =============================================================================


def _required(data: StepInput, key: str) -> Any:
    value = data.get(key)
    if value is None or value == "":
        raise InvalidRequest(f"Missing required input '{key}'")
    return value


def _number(data: StepInput, key: str) -> float:
    value = _required(data, key)
    if isinstance(value, bool):
        raise InvalidRequest(f"Input '{key}' must be a number, got {value!r}")
    try:
        number = float(value)
    except (TypeError, ValueError) as e:
        raise InvalidRequest(f"Input '{key}' must be a number, got {value!r}") from e
    if not math.isfinite(number):
        raise InvalidRequest(f"Input '{key}' must be a finite number, got {value!r}")
    return number


def _whole_number(data: StepInput, key: str) -> int:
    number = _number(data, key)
    if not number.is_integer():
        raise InvalidRequest(f"Input '{key}' must be a whole number, got {data[key]!r}")
    return int(number)


def _flag(data: StepInput, key: str) -> bool | None:
    """Optional boolean; templating engines often pass "true"/"false" strings."""
    match data.get(key):
        case None | "":
            return None
        case bool() as value:
            return value
        case str() as value if value.strip().lower() in ("true", "false"):
            return value.strip().lower() == "true"
        case value:
            raise InvalidRequest(f"Input '{key}' must be true or false, got {value!r}")


def _credentials(data: StepInput) -> Credentials:
    return Credentials(
        access_key=str(_required(data, "AWSAccessKey")),
        secret_key=str(_required(data, "AWSSecretKey")),
        session_token=data.get("AWSSessionToken") or None,
    )


def _ec2(data: StepInput, ctx: StepContext) -> Ec2Api:
    aws = ctx.settings.aws
    client = ec2_client(
        _credentials(data),
        str(_required(data, "AWSRegion")),
        ctx.transport,
        endpoint_template=aws.endpoint_template,
        api_version=aws.ec2_api_version,
    )
    return Ec2Api(client=client, codes=ctx.settings.errors)


def _runner(data: StepInput, ctx: StepContext) -> RemoteCommandRunner:
    client = ssm_client(
        _credentials(data),
        str(_required(data, "AWSRegion")),
        ctx.transport,
        endpoint_template=ctx.settings.aws.endpoint_template,
    )
    return RemoteCommandRunner(
        client=client,
        codes=ctx.settings.errors,
        policy=ctx.settings.command_polling,
        sleep=ctx.sleep,
    )


def _orchestrator(data: StepInput, ctx: StepContext) -> ExpansionOrchestrator:
    return ExpansionOrchestrator(ec2=_ec2(data, ctx), policy=ctx.settings.modification_polling, sleep=ctx.sleep)


# =============================================================================
# Steps
# =============================================================================


@_step("OKToProceed")
def extract_alarm(data: StepInput, ctx: StepContext) -> StepOutput:
    dimensions = _required(data, "SNS Dimensions")
    if not isinstance(dimensions, list):
        raise InvalidRequest("Input 'SNS Dimensions' must be a list")
    target = extract_target(dimensions, str(_required(data, "TopicArn")))
    return {
        "EC2InstanceId": target.instance_id,
        "AWSRegion": target.region,
        "EBSDevice": target.device,
        "NVMEDevice": target.nvme,
    }


@_step("Matched")
def get_volume_id(data: StepInput, ctx: StepContext) -> StepOutput:
    resolver = DirectResolver(ec2=_ec2(data, ctx))
    volume_id = resolver.resolve(str(_required(data, "AWSInstanceId")), str(_required(data, "DeviceName")))
    return {"VolumeId": volume_id}


@_step("Matched")
def get_volume_id_in_guest(data: StepInput, ctx: StepContext) -> StepOutput:
    resolver = InGuestResolver(runner=_runner(data, ctx), commands=ctx.settings.guest)
    volume_id = resolver.resolve(str(_required(data, "AWSInstanceId")), str(_required(data, "EBSDeviceName")))
    return {"VolumeId": volume_id}


@_step("OKToModify")
def check_volume(data: StepInput, ctx: StepContext) -> StepOutput:
    status = _orchestrator(data, ctx).check_volume(str(_required(data, "VolumeId")))
    return {"CurrentSize": status.current_size}


@_step("OKToProceed")
def modify_volume(data: StepInput, ctx: StepContext) -> StepOutput:
    new_size = _orchestrator(data, ctx).modify_volume(
        str(_required(data, "VolumeId")),
        _whole_number(data, "CurrentSize"),
        _number(data, "ScaleFactor"),
    )
    return {"NewSize": new_size}


@_step("OKToProceed")
def expand_volume(data: StepInput, ctx: StepContext) -> StepOutput:
    """Resolve, check and modify in one invocation."""
    instance_id = str(_required(data, "AWSInstanceId"))
    device = str(_required(data, "DeviceName"))
    scale_factor = _number(data, "ScaleFactor")

    match _flag(data, "NVMEDevice"):
        case None:
            scheme = detect_scheme(device)
        case nvme:
            scheme = DeviceScheme.NVME if nvme else DeviceScheme.XEN

    ec2 = _ec2(data, ctx)
    resolver = resolver_for(scheme, ec2=ec2, runner=_runner(data, ctx), commands=ctx.settings.guest)
    volume_id = resolver.resolve(instance_id, device)

    result = ExpansionOrchestrator(ec2=ec2, policy=ctx.settings.modification_polling, sleep=ctx.sleep).expand(
        volume_id, scale_factor
    )
    return {"VolumeId": result.volume_id, "OriginalSize": result.original_size, "NewSize": result.new_size}


STEPS: Final[dict[str, Step]] = {
    "extract-alarm": extract_alarm,
    "get-volume-id": get_volume_id,
    "get-volume-id-in-guest": get_volume_id_in_guest,
    "check-volume": check_volume,
    "modify-volume": modify_volume,
    "expand-volume": expand_volume,
}
