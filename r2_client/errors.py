"""Exceptions raised by the R2 client."""
from __future__ import annotations


class R2ClientError(RuntimeError):
    """Base class for every error raised by this package."""


class InvalidEndpoint(R2ClientError):
    """Raised when the configured endpoint URL cannot be used."""


class MissingURL(R2ClientError):
    """Raised when a request to sign has no resolvable host or path."""


class MissingMethod(R2ClientError):
    """Raised when a request to sign has no usable HTTP method."""


class PayloadTooLarge(R2ClientError):
    """Raised when an upload exceeds the configured size ceiling."""

    def __init__(self, maximum_mb: int):
        super().__init__(f"The file exceeds the maximum allowed size of {maximum_mb} MB.")
        self.maximum_mb = maximum_mb


class HTTPError(R2ClientError):
    """Raised for any non-2xx response."""

    def __init__(self, status_code: int, message: str):
        super().__init__(f"HTTP {status_code}: {message}")
        self.status_code = status_code
        self.message = message

    @property
    def is_retryable(self) -> bool:
        return self.status_code >= 500


class EmptyResponseBody(R2ClientError):
    """Raised when a successful response reported a zero-length body."""

    def __init__(self, message: str = "The S3 response body was empty."):
        super().__init__(message)


class MissingResponseBody(R2ClientError):
    """Raised when a successful response carried no body at all."""

    def __init__(self, message: str = "The S3 response did not contain a body."):
        super().__init__(message)


class MalformedResponse(R2ClientError):
    """Raised when a response cannot be interpreted."""


class TransportError(R2ClientError):
    """Raised when the request could not be delivered (network failure or timeout)."""
