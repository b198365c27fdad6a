"""Runtime configuration for :class:`~r2_client.client.R2Client`."""
from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Mapping, Optional
from urllib.parse import quote, urlsplit

from .errors import InvalidEndpoint
from .models import DEFAULT_REGION, Credentials

R2_HOST_SUFFIX = "r2.cloudflarestorage.com"
# Literal dot segments would be collapsed by URL normalization before sending.
_DOT_SEGMENTS = {".": "%2E", "..": "%2E%2E"}


@dataclass(frozen=True)
class RetryConfiguration:
    """Retry behaviour for uploads hitting transient failures."""

    max_retries: int = 2

    def __post_init__(self) -> None:
        object.__setattr__(self, "max_retries", max(0, int(self.max_retries)))

    @property
    def attempts(self) -> int:
        return self.max_retries + 1

    @classmethod
    def none(cls) -> "RetryConfiguration":
        return cls(max_retries=0)


def build_endpoint(account_id: str, jurisdiction: Optional[str] = None) -> str:
    account = (account_id or "").strip()
    if not account:
        raise InvalidEndpoint("An account ID or an explicit endpoint is required")
    if jurisdiction:
        return f"https://{account}.{jurisdiction.strip().lower()}.{R2_HOST_SUFFIX}"
    return f"https://{account}.{R2_HOST_SUFFIX}"


def validate_endpoint(endpoint: str) -> str:
    """Return ``endpoint`` without a trailing slash or raise :class:`InvalidEndpoint`."""
    try:
        parts = urlsplit((endpoint or "").strip())
        hostname = parts.hostname
        parts.port  # raises for a non-numeric or out-of-range port
    except ValueError as exc:
        raise InvalidEndpoint(f"Invalid endpoint URL '{endpoint}': {exc}") from exc
    if parts.scheme not in ("http", "https"):
        raise InvalidEndpoint(f"Endpoint must use http or https: '{endpoint}'")
    if not hostname:
        raise InvalidEndpoint(f"Endpoint has no host: '{endpoint}'")
    if parts.query or parts.fragment:
        raise InvalidEndpoint(f"Endpoint must not carry a query or fragment: '{endpoint}'")
    return endpoint.strip().rstrip("/")


@dataclass
class R2Configuration:
    bucket: str
    credentials: Credentials
    endpoint: Optional[str] = None
    account_id: Optional[str] = None
    jurisdiction: Optional[str] = None
    region: str = DEFAULT_REGION
    retry: RetryConfiguration = field(default_factory=RetryConfiguration)
    max_upload_size_mb: Optional[int] = None
    timeout: Optional[float] = 30.0

    def __post_init__(self) -> None:
        if not self.bucket:
            raise ValueError("bucket must be provided")
        if self.endpoint:
            self.endpoint = validate_endpoint(self.endpoint)
        else:
            self.endpoint = build_endpoint(self.account_id or "", self.jurisdiction)
        self.region = self.region or DEFAULT_REGION

    def object_url(self, key: str = "", query: str = "") -> str:
        """Path-style URL for ``key`` in the configured bucket."""
        url = f"{self.endpoint}/{quote(self.bucket, safe='')}"
        if key:
            segments = quote(key, safe="/~").split("/")
            url += "/" + "/".join(_DOT_SEGMENTS.get(segment, segment) for segment in segments)
        if query:
            url += "?" + query
        return url

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None, **overrides) -> "R2Configuration":
        env = os.environ if environ is None else environ
        credentials = Credentials(
            access_key_id=env.get("R2_ACCESS_KEY_ID", ""),
            secret_access_key=env.get("R2_SECRET_ACCESS_KEY", ""),
            session_token=env.get("R2_SESSION_TOKEN") or None,
        )
        values = {
            "bucket": env.get("R2_BUCKET_NAME", ""),
            "credentials": credentials,
            "endpoint": env.get("R2_ENDPOINT") or None,
            "account_id": env.get("R2_ACCOUNT_ID") or None,
            "jurisdiction": env.get("R2_JURISDICTION") or None,
            "region": env.get("R2_REGION") or DEFAULT_REGION,
        }
        values.update(overrides)
        return cls(**values)
