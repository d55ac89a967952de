"""autogrow - online expansion of EBS volumes attached to EC2 instances.

Example:

    from autogrow import ExpansionOrchestrator, HttpxTransport, Credentials
    from autogrow.aws import Ec2Api, ec2_client

    creds = Credentials(access_key="AKIA...", secret_key="...")
    with HttpxTransport() as transport:
        ec2 = Ec2Api(client=ec2_client(creds, "us-east-1", transport))
        result = ExpansionOrchestrator(ec2=ec2).expand("vol-0123abc", 1.5)
"""

from autogrow.alarm import AlarmTarget, extract_target
from autogrow.aws.signer import Credentials, SignedRequest, Signer, sign
from autogrow.aws.transport import HttpxTransport, Response, Transport
from autogrow.config import ErrorCodes, Settings, load_settings
from autogrow.devices import DeviceMapping, DeviceScheme, map_device
from autogrow.exceptions import (
    AuthenticationFailure,
    CommandFailed,
    DeviceNotFound,
    ExpansionError,
    ExpansionFailed,
    InvalidRequest,
    PollTimeout,
    RateLimited,
    RequestFailed,
    ResourceNotFound,
    TransportError,
    UnexpectedResponse,
    UnexpectedState,
)
from autogrow.logging import LogConfig
from autogrow.orchestrator import ExpansionOrchestrator, ExpansionResult, VolumeStatus
from autogrow.polling import PollPolicy
from autogrow.resolver import DirectResolver, InGuestResolver, VolumeResolver, resolver_for
from autogrow.steps import STEPS, StepContext

__all__ = [
    "AlarmTarget",
    "AuthenticationFailure",
    "CommandFailed",
    "Credentials",
    "DeviceMapping",
    "DeviceNotFound",
    "DeviceScheme",
    "DirectResolver",
    "ErrorCodes",
    "ExpansionError",
    "ExpansionFailed",
    "ExpansionOrchestrator",
    "ExpansionResult",
    "HttpxTransport",
    "InGuestResolver",
    "InvalidRequest",
    "LogConfig",
    "PollPolicy",
    "PollTimeout",
    "RateLimited",
    "RequestFailed",
    "ResourceNotFound",
    "Response",
    "STEPS",
    "Settings",
    "SignedRequest",
    "Signer",
    "StepContext",
    "Transport",
    "TransportError",
    "UnexpectedResponse",
    "UnexpectedState",
    "VolumeResolver",
    "VolumeStatus",
    "extract_target",
    "load_settings",
    "map_device",
    "resolver_for",
    "sign",
]
