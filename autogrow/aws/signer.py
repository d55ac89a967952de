"""AWS Signature Version 4 request signing.

One stateless signer shared by every call site. A ``Signer`` is bound to a
service and a region; each call to ``sign`` captures its own timestamp and
produces a fresh ``SignedRequest``. Nothing is cached between calls.

Example:
    signer = Signer(service="ec2", region="us-east-1")
    request = signer.sign(
        credentials,
        method="GET",
        host="ec2.us-east-1.amazonaws.com",
        query=canonical_query({"Action": "DescribeVolumes", "Version": "2016-11-15"}),
    )
    transport.request(request.host, request.url_path, request.method, request.headers)
"""

from __future__ import annotations

import hashlib
import hmac
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Final
from urllib.parse import quote

from autogrow.constants import (
    AMZ_DATE_FORMAT,
    DATE_STAMP_FORMAT,
    SECRET_PREFIX,
    SIGNING_ALGORITHM,
    SIGNING_TERMINATOR,
)

EMPTY_PAYLOAD_HASH: Final = hashlib.sha256(b"").hexdigest()

_UNRESERVED: Final = "-_.~"


@dataclass(frozen=True, slots=True)
class Credentials:
    """Temporary or long-lived AWS credentials, supplied per call."""

    access_key: str
    secret_key: str = field(repr=False)
    session_token: str | None = field(default=None, repr=False)


@dataclass(frozen=True, slots=True)
class SignedRequest:
    """A request ready for the transport.

    ``headers`` holds exactly what goes on the wire. Changing any of it
    invalidates ``authorization``; sign again instead.
    """

    method: str
    host: str
    path: str
    query: str
    body: bytes
    headers: dict[str, str]
    timestamp: datetime
    authorization: str
    canonical_request: str = field(repr=False)

    @property
    def url_path(self) -> str:
        return f"{self.path}?{self.query}" if self.query else self.path


# =============================================================================
# Canonicalization
# =============================================================================


def uri_encode(value: str, *, encode_slash: bool = True) -> str:
    """Percent-encode everything except RFC 3986 unreserved characters."""
    return quote(value, safe=_UNRESERVED if encode_slash else _UNRESERVED + "/")


def canonical_query(params: Mapping[str, str | int] | str) -> str:
    """Encode and sort query parameters.

    Accepts a mapping or a raw ``a=b&c=d`` string. The result is what gets
    signed and what goes on the wire.
    """
    if isinstance(params, str):
        pairs = [p.partition("=")[::2] for p in params.split("&") if p]
    else:
        pairs = [(k, str(v)) for k, v in params.items()]
    encoded = sorted((uri_encode(k), uri_encode(v)) for k, v in pairs)
    return "&".join(f"{k}={v}" for k, v in encoded)


def canonical_headers(headers: Mapping[str, str]) -> tuple[str, str]:
    """Return ``(canonical header block, signed header list)``."""
    lowered = {name.lower(): " ".join(value.split()) for name, value in headers.items()}
    names = sorted(lowered)
    block = "".join(f"{name}:{lowered[name]}\n" for name in names)
    return block, ";".join(names)


def canonical_request(
    method: str,
    uri: str,
    query: str,
    headers: Mapping[str, str],
    payload_hash: str,
) -> str:
    block, signed = canonical_headers(headers)
    return "\n".join([method, uri or "/", query, block, signed, payload_hash])


def hash_payload(payload: bytes | str) -> str:
    if isinstance(payload, str):
        payload = payload.encode("utf-8")
    return hashlib.sha256(payload).hexdigest()


# =============================================================================
# Key Derivation
# =============================================================================


def _hmac(key: bytes, msg: str) -> bytes:
    return hmac.new(key, msg.encode("utf-8"), hashlib.sha256).digest()


def derive_signing_key(secret_key: str, date_stamp: str, region: str, service: str) -> bytes:
    """Narrow the secret to date, region, service and terminator."""
    k_date = _hmac(f"{SECRET_PREFIX}{secret_key}".encode(), date_stamp)
    k_region = _hmac(k_date, region)
    k_service = _hmac(k_region, service)
    return _hmac(k_service, SIGNING_TERMINATOR)


def credential_scope(date_stamp: str, region: str, service: str) -> str:
    return f"{date_stamp}/{region}/{service}/{SIGNING_TERMINATOR}"


def string_to_sign(amz_date: str, scope: str, canonical: str) -> str:
    digest = hashlib.sha256(canonical.encode("utf-8")).hexdigest()
    return "\n".join([SIGNING_ALGORITHM, amz_date, scope, digest])


# =============================================================================
# Signer
# =============================================================================


@dataclass(frozen=True, slots=True)
class Signer:
    """SigV4 signer bound to one service and region."""

    service: str
    region: str

    def sign(
        self,
        credentials: Credentials,
        *,
        method: str,
        host: str,
        uri: str = "/",
        query: str = "",
        headers: Mapping[str, str] | None = None,
        payload: bytes | str = b"",
        timestamp: datetime | None = None,
    ) -> SignedRequest:
        """Sign one request.

        ``headers`` are the extra headers to sign on top of ``host`` and
        ``x-amz-date`` (``content-type`` and ``x-amz-target`` for the JSON
        APIs). The session token header is attached unsigned.
        """
        now = (timestamp or datetime.now(UTC)).astimezone(UTC).replace(microsecond=0)
        amz_date = now.strftime(AMZ_DATE_FORMAT)
        date_stamp = now.strftime(DATE_STAMP_FORMAT)
        body = payload.encode("utf-8") if isinstance(payload, str) else payload

        signed_headers = {"host": host, "x-amz-date": amz_date}
        signed_headers.update({k.lower(): v for k, v in (headers or {}).items()})

        canonical = canonical_request(method, uri, query, signed_headers, hash_payload(body))
        scope = credential_scope(date_stamp, self.region, self.service)
        key = derive_signing_key(credentials.secret_key, date_stamp, self.region, self.service)
        signature = hmac.new(
            key, string_to_sign(amz_date, scope, canonical).encode("utf-8"), hashlib.sha256
        ).hexdigest()

        _, signed_list = canonical_headers(signed_headers)
        authorization = (
            f"{SIGNING_ALGORITHM} Credential={credentials.access_key}/{scope}, "
            f"SignedHeaders={signed_list}, Signature={signature}"
        )

        wire = {
            ("Host" if name == "host" else _wire_name(name)): value
            for name, value in signed_headers.items()
        }
        wire["Authorization"] = authorization
        if credentials.session_token:
            wire["X-Amz-Security-Token"] = credentials.session_token

        return SignedRequest(
            method=method,
            host=host,
            path=uri or "/",
            query=query,
            body=body,
            headers=wire,
            timestamp=now,
            authorization=authorization,
            canonical_request=canonical,
        )


_WIRE_NAMES: Final = {
    "x-amz-date": "X-Amz-Date",
    "x-amz-target": "X-Amz-Target",
    "content-type": "Content-Type",
}


def _wire_name(name: str) -> str:
    return _WIRE_NAMES.get(name, name)


def sign(
    credentials: Credentials,
    *,
    service: str,
    region: str,
    method: str,
    host: str,
    uri: str = "/",
    query: str = "",
    headers: Mapping[str, str] | None = None,
    payload: bytes | str = b"",
    timestamp: datetime | None = None,
) -> SignedRequest:
    """One-shot form of ``Signer(service, region).sign(...)``."""
    return Signer(service=service, region=region).sign(
        credentials,
        method=method,
        host=host,
        uri=uri,
        query=query,
        headers=headers,
        payload=payload,
        timestamp=timestamp,
    )
