"""Signed request assembly for the two AWS wire protocols in use.

EC2 speaks the query protocol (GET, parameters in the query string); SSM
speaks JSON 1.1 (POST, ``X-Amz-Target`` routing header, JSON body). Both
sign every call from scratch.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any

from loguru import logger

from autogrow.aws.signer import Credentials, Signer, canonical_query
from autogrow.aws.transport import Response, Transport
from autogrow.constants import (
    DEFAULT_ENDPOINT_TEMPLATE,
    EC2_API_VERSION,
    EC2_SERVICE,
    SSM_CONTENT_TYPE,
    SSM_SERVICE,
)

log = logger.bind(component="aws")


@dataclass(frozen=True, slots=True)
class ServiceClient:
    service: str
    region: str
    credentials: Credentials
    transport: Transport
    endpoint_template: str = DEFAULT_ENDPOINT_TEMPLATE

    @property
    def host(self) -> str:
        return self.endpoint_template.format(service=self.service, region=self.region)

    @property
    def signer(self) -> Signer:
        return Signer(service=self.service, region=self.region)


@dataclass(frozen=True, slots=True)
class QueryClient(ServiceClient):
    """Query-protocol client (EC2)."""

    api_version: str = EC2_API_VERSION

    def call(self, action: str, params: dict[str, str | int] | None = None) -> Response:
        query = canonical_query({"Action": action, "Version": self.api_version, **(params or {})})
        request = self.signer.sign(self.credentials, method="GET", host=self.host, query=query)
        log.debug("{service} {action}", service=self.service, action=action)
        return self.transport.request(request.host, request.url_path, request.method, request.headers)


@dataclass(frozen=True, slots=True)
class JsonClient(ServiceClient):
    """JSON 1.1 protocol client (SSM)."""

    def call(self, target: str, payload: dict[str, Any]) -> Response:
        body = json.dumps(payload).encode("utf-8")
        request = self.signer.sign(
            self.credentials,
            method="POST",
            host=self.host,
            headers={"content-type": SSM_CONTENT_TYPE, "x-amz-target": target},
            payload=body,
        )
        log.debug("{service} {target}", service=self.service, target=target)
        return self.transport.request(
            request.host, request.url_path, request.method, request.headers, request.body
        )


def ec2_client(
    credentials: Credentials,
    region: str,
    transport: Transport,
    *,
    endpoint_template: str = DEFAULT_ENDPOINT_TEMPLATE,
    api_version: str = EC2_API_VERSION,
) -> QueryClient:
    return QueryClient(
        service=EC2_SERVICE,
        region=region,
        credentials=credentials,
        transport=transport,
        endpoint_template=endpoint_template,
        api_version=api_version,
    )


def ssm_client(
    credentials: Credentials,
    region: str,
    transport: Transport,
    *,
    endpoint_template: str = DEFAULT_ENDPOINT_TEMPLATE,
) -> JsonClient:
    return JsonClient(
        service=SSM_SERVICE,
        region=region,
        credentials=credentials,
        transport=transport,
        endpoint_template=endpoint_template,
    )
