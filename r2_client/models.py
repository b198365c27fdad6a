"""Data models shared by the signer, the transports and the client."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Mapping, Optional

SERVICE_NAME = "s3"
DEFAULT_REGION = "auto"


class HTTPMethod(str, Enum):
    GET = "GET"
    PUT = "PUT"
    DELETE = "DELETE"


@dataclass(frozen=True)
class Credentials:
    """Access key pair used to sign requests.

    The secret and session token are kept out of ``repr`` so credentials can
    appear in log records and tracebacks without leaking.
    """

    access_key_id: str
    secret_access_key: str = field(repr=False)
    session_token: Optional[str] = field(default=None, repr=False)


@dataclass
class RequestDescriptor:
    """An unsigned HTTP request."""

    method: HTTPMethod | str | None
    url: str | None
    headers: dict[str, str] = field(default_factory=dict)
    body: bytes = b""


@dataclass(frozen=True)
class SigningContext:
    region: str
    timestamp: datetime
    service: str = SERVICE_NAME

    @property
    def amz_date(self) -> str:
        return self.timestamp.strftime("%Y%m%dT%H%M%SZ")

    @property
    def date_stamp(self) -> str:
        return self.timestamp.strftime("%Y%m%d")

    @property
    def credential_scope(self) -> str:
        return f"{self.date_stamp}/{self.region}/{self.service}/aws4_request"


@dataclass(frozen=True)
class SignedRequest:
    """A request ready to transmit.

    ``headers`` is exactly the header set the signature was computed over,
    plus ``Authorization``. Mutating it afterwards invalidates the signature.
    """

    method: HTTPMethod
    url: str
    headers: Mapping[str, str]
    body: bytes
    signed_headers: tuple[str, ...]
    signature: str
    context: SigningContext

    @property
    def authorization(self) -> str:
        return self.headers["Authorization"]


@dataclass
class TransportResponse:
    status_code: int
    headers: dict[str, str] = field(default_factory=dict)
    body: bytes = b""
    reason: str = ""

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300

    def header(self, name: str) -> Optional[str]:
        wanted = name.lower()
        for key, value in self.headers.items():
            if key.lower() == wanted:
                return value
        return None


@dataclass
class ObjectSummary:
    """Metadata about a single object in a listing."""

    key: str
    size: int
    last_modified: Optional[datetime] = None
    etag: Optional[str] = None
    storage_class: Optional[str] = None


@dataclass
class ListPage:
    """One page of a ``ListObjectsV2`` response."""

    objects: list[ObjectSummary] = field(default_factory=list)
    next_continuation_token: Optional[str] = None
    is_truncated: bool = False
    common_prefixes: list[str] = field(default_factory=list)
    key_count: Optional[int] = None
