"""Error taxonomy for volume expansion.

Every failure a step can report is an ``ExpansionError``. Components raise
them; the step boundary in ``autogrow.steps`` turns them into output.
"""

from __future__ import annotations


class ExpansionError(Exception):
    """Base class for all reportable failures."""


class InvalidRequest(ExpansionError):
    """Step input is missing or malformed."""


class TransportError(ExpansionError):
    """The request never produced an HTTP response."""


class RequestFailed(ExpansionError):
    """Non-success response, carrying the raw body."""

    def __init__(self, status: int, body: str) -> None:
        super().__init__(body)
        self.status = status
        self.body = body


class AuthenticationFailure(RequestFailed):
    """The endpoint rejected the credentials or the signature."""


class RateLimited(ExpansionError):
    """The provider refused another modification of this volume for now."""


class ResourceNotFound(ExpansionError):
    """The requested record does not exist yet. Recoverable."""


class UnexpectedState(ExpansionError):
    """The provider reported a state outside the expected set."""


class UnexpectedResponse(ExpansionError):
    """A 200 response did not contain the expected record."""


class DeviceNotFound(ExpansionError):
    """No volume is attached under the requested device name."""


class CommandFailed(ExpansionError):
    """A remote command ended in a failed state."""


class ExpansionFailed(ExpansionError):
    """The provider reported the modification as failed."""


class PollTimeout(ExpansionError):
    """A bounded poll ran out of attempts before reaching a terminal state."""
