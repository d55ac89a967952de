from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Protocol, runtime_checkable

import httpx
from loguru import logger

from autogrow.constants import REQUEST_TIMEOUT
from autogrow.exceptions import TransportError

# ─── Response ────────────────────────────────────────────────────────


@dataclass(frozen=True, slots=True)
class Response:
    status_code: int
    body: str

    @property
    def ok(self) -> bool:
        return self.status_code == 200


# ─── Protocol ────────────────────────────────────────────────────────


@runtime_checkable
class Transport(Protocol):
    """Executes one HTTP request. No retries, no redirects."""

    def request(
        self,
        endpoint: str,
        path: str,
        method: str,
        headers: dict[str, str],
        body: bytes | None = None,
    ) -> Response: ...


# ─── httpx adapter ───────────────────────────────────────────────────


class HttpxTransport:
    """Transport backed by a synchronous ``httpx.Client``.

    ``endpoint`` is a host name; requests go to ``https://<endpoint><path>``.
    The path already carries the signed query string and is sent verbatim.
    """

    def __init__(
        self,
        *,
        timeout: float = REQUEST_TIMEOUT,
        scheme: str = "https",
        client: httpx.Client | None = None,
    ) -> None:
        self._scheme = scheme
        self._client = client or httpx.Client(timeout=timeout, follow_redirects=False)
        self._log = logger.bind(component="transport")

    def request(
        self,
        endpoint: str,
        path: str,
        method: str,
        headers: dict[str, str],
        body: bytes | None = None,
    ) -> Response:
        url = f"{self._scheme}://{endpoint}{path}"
        self._log.debug("{method} {endpoint}", method=method, endpoint=endpoint)
        try:
            resp = self._client.request(method, url, headers=headers, content=body)
        except httpx.HTTPError as e:
            raise TransportError(f"{method} {endpoint} failed: {e}") from e

        if resp.status_code != 200:
            self._log.warning(
                "HTTP {status} from {endpoint}: {body}",
                status=resp.status_code, endpoint=endpoint, body=resp.text[:500],
            )
        return Response(status_code=resp.status_code, body=resp.text)

    # ─── Lifecycle ───────────────────────────────────────────────────

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> HttpxTransport:
        return self

    def __exit__(self, *_: Any) -> None:
        self.close()
