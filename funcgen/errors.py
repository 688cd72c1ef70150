from __future__ import annotations

from typing import Optional


class FuncGenError(Exception):
    """Base class for every failure raised by funcgen itself."""


class InvalidArgument(FuncGenError, ValueError):
    """Malformed configuration or a None input. Never retried."""


class UnclassifiedRemoteError(FuncGenError):
    """
    The backend answered with a structured error whose message matched none of
    the declared execution errors.
    """

    def __init__(self, message: str) -> None:
        super().__init__(f"Error invoking function: {message}")
        self.remote_message = message


class MalformedResponse(FuncGenError):
    """
    The backend response could not be recovered to JSON, or the JSON did not
    decode into the declared output type.
    """

    def __init__(self, message: str, response: Optional[str] = None) -> None:
        super().__init__(message)
        self.response = response


class EmptyResult(FuncGenError):
    """The response decoded to nothing (null or blank)."""


class InternalInvocationError(FuncGenError):
    """Unexpected failure during orchestration. The underlying error is chained as __cause__."""


class BackendError(FuncGenError):
    """A generation backend rejected the request or answered with an unusable payload."""

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class TransientBackendError(BackendError):
    """Backend failure that may succeed on retry (rate limits, 5xx, timeouts)."""
