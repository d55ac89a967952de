"""AWS wire layer: signing, transport, EC2 and SSM calls."""

from autogrow.aws.client import JsonClient, QueryClient, ec2_client, ssm_client
from autogrow.aws.ec2 import Ec2Api
from autogrow.aws.models import (
    BlockDevice,
    CommandInvocation,
    CommandResult,
    CommandSubmission,
    VolumeModification,
)
from autogrow.aws.responses import Failure, Outcome, RecoverableEmpty, Success
from autogrow.aws.signer import Credentials, SignedRequest, Signer, sign
from autogrow.aws.ssm import RemoteCommandRunner
from autogrow.aws.transport import HttpxTransport, Response, Transport

__all__ = [
    "BlockDevice",
    "CommandInvocation",
    "CommandResult",
    "CommandSubmission",
    "Credentials",
    "Ec2Api",
    "Failure",
    "HttpxTransport",
    "JsonClient",
    "Outcome",
    "QueryClient",
    "RecoverableEmpty",
    "RemoteCommandRunner",
    "Response",
    "SignedRequest",
    "Signer",
    "Success",
    "Transport",
    "VolumeModification",
    "ec2_client",
    "sign",
    "ssm_client",
]
