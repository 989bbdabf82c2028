"""Exceptions raised by the IQ client and the reporting layer."""

from typing import Any


class IQError(Exception):
    """Base exception for IQ API errors."""

    def __init__(self, message: str, status_code: int | None = None, response: Any = None):
        # Include response body in the message for debugging
        full_message = message
        if response:
            full_message = (
                f"{message} - Response: {response[:500] if len(str(response)) > 500 else response}"
            )
        super().__init__(full_message)
        self.status_code = status_code
        self.response = response


class NotFoundError(IQError):
    """An application, organization, stage or report identifier has no match."""


class RequestFailedError(IQError):
    """The server returned a non-success status or the transport failed."""


class DecodeFailedError(IQError):
    """A response body could not be decoded into the expected shape."""


class OperationCancelledError(IQError):
    """The operation was aborted by a deadline or the caller."""
