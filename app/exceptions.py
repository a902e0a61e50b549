"""Typed errors for the Canvas relay.

Errors raised before the Canvas response is sent are caught by the
dispatcher and rendered as a Canvas view. Errors raised inside the
recommendation job never leave it: they end up as Failed cache entries.
"""

from typing import List, Optional


class RelayError(Exception):
    """Base exception for all relay errors."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class SignatureInvalid(RelayError):
    """Inbound body does not match x-body-signature. Maps to HTTP 401."""

    def __init__(self) -> None:
        super().__init__("Invalid body signature")


class MissingContext(RelayError):
    """No conversation id could be resolved from the Canvas payload."""

    def __init__(self) -> None:
        super().__init__("No conversation context in request")


class MissingConfiguration(RelayError):
    """Required environment variables are absent."""

    def __init__(self, missing: List[str]) -> None:
        super().__init__(f"Missing configuration: {', '.join(missing)}")
        self.missing = list(missing)


class RemoteFetchError(RelayError):
    """Conversation API answered with a non-success status or was unreachable."""

    def __init__(self, status_code: Optional[int], body: str) -> None:
        if status_code is None:
            message = f"Conversation API unreachable: {body}"
        else:
            message = f"Conversation API responded with status {status_code}: {body}"
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class JobDispatchError(RelayError):
    """The automation webhook could not be called or answered with an error."""

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class MalformedDownstreamResponse(RelayError):
    """The automation webhook answered 2xx with an empty or non-JSON body."""
