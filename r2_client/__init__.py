"""SigV4-signed client for Cloudflare R2 (S3-compatible) object storage."""

from .client import R2Client
from .config import R2Configuration, RetryConfiguration
from .errors import (
    EmptyResponseBody,
    HTTPError,
    InvalidEndpoint,
    MalformedResponse,
    MissingMethod,
    MissingResponseBody,
    MissingURL,
    PayloadTooLarge,
    R2ClientError,
    TransportError,
)
from .listing import ListResultDecoder, decode_list_result
from .models import Credentials, HTTPMethod, ListPage, ObjectSummary, RequestDescriptor, SignedRequest
from .signing import SignerV4, sign
from .transport import BotocoreTransport, RequestsTransport, Transport

__all__ = [
    "BotocoreTransport",
    "Credentials",
    "EmptyResponseBody",
    "HTTPError",
    "HTTPMethod",
    "InvalidEndpoint",
    "ListPage",
    "ListResultDecoder",
    "MalformedResponse",
    "MissingMethod",
    "MissingResponseBody",
    "MissingURL",
    "ObjectSummary",
    "PayloadTooLarge",
    "R2Client",
    "R2ClientError",
    "R2Configuration",
    "RequestDescriptor",
    "RequestsTransport",
    "RetryConfiguration",
    "SignedRequest",
    "SignerV4",
    "Transport",
    "TransportError",
    "decode_list_result",
    "sign",
]
