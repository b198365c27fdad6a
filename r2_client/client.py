"""High-level object operations against a single R2 bucket."""
from __future__ import annotations

import logging
import xml.etree.ElementTree as ET
from datetime import datetime, timezone
from typing import Callable, Iterator, Mapping, Optional
from urllib.parse import quote, urlencode

from .config import R2Configuration, RetryConfiguration
from .errors import (
    EmptyResponseBody,
    HTTPError,
    MissingResponseBody,
    PayloadTooLarge,
    R2ClientError,
    TransportError,
)
from .listing import decode_list_result
from .models import HTTPMethod, ListPage, ObjectSummary, RequestDescriptor, TransportResponse
from .signing import SignerV4
from .transport import RequestsTransport, Transport

LOGGER = logging.getLogger(__name__)

BYTES_PER_MB = 1_048_576
LIST_PAGE_SIZE = 1000
_MAX_ERROR_TEXT = 200


def _encode_query(params: Mapping[str, object]) -> str:
    return urlencode({name: value for name, value in params.items() if value is not None}, safe="~", quote_via=quote)


def build_upload_headers(
    *,
    content_length: int,
    metadata: Optional[Mapping[str, str]] = None,
    content_type: Optional[str] = None,
    cache_control: Optional[str] = None,
    acl: Optional[str] = None,
    storage_class: Optional[str] = None,
    tagging: Optional[str] = None,
    server_side_encryption: Optional[str] = None,
    sse_kms_key_id: Optional[str] = None,
) -> dict[str, str]:
    """Request headers for a ``PutObject`` call."""
    headers = {"Content-Length": str(content_length)}
    if content_type:
        headers["Content-Type"] = content_type
    if cache_control:
        headers["Cache-Control"] = cache_control
    if acl:
        headers["x-amz-acl"] = acl
    if storage_class:
        headers["x-amz-storage-class"] = storage_class
    if tagging:
        headers["x-amz-tagging"] = tagging
    if server_side_encryption:
        headers["x-amz-server-side-encryption"] = server_side_encryption
    if sse_kms_key_id:
        headers["x-amz-server-side-encryption-aws-kms-key-id"] = sse_kms_key_id
    for name, value in (metadata or {}).items():
        headers[f"x-amz-meta-{name.lower()}"] = value
    return headers


def _owner_headers(expected_bucket_owner: Optional[str], request_payer: Optional[str]) -> dict[str, str]:
    headers: dict[str, str] = {}
    if expected_bucket_owner:
        headers["x-amz-expected-bucket-owner"] = expected_bucket_owner
    if request_payer:
        headers["x-amz-request-payer"] = request_payer
    return headers


def error_message(response: TransportResponse) -> str:
    """Best-effort human readable message for a failed response."""
    if response.body:
        try:
            root = ET.fromstring(response.body)
        except ET.ParseError:
            root = None
        if root is not None:
            code = root.findtext("Code")
            message = root.findtext("Message")
            if code and message:
                return f"{code}: {message}"
            if code or message:
                return code or message
        text = response.body.decode("utf-8", errors="replace").strip()
        if text:
            return text[:_MAX_ERROR_TEXT]
    return response.reason or "Unknown error"


def _is_retryable(exc: Exception) -> bool:
    if isinstance(exc, TransportError):
        return True
    return isinstance(exc, HTTPError) and exc.is_retryable


class R2Client:
    """Uploads, downloads, lists and deletes objects in one bucket.

    Every public operation signs a fresh request and makes a single round
    trip, except :meth:`upload` which may retry transient failures.
    Call :meth:`close` (or use the client as a context manager) to release
    a transport the client created itself; a transport passed in by the
    caller is left open.
    """

    def __init__(
        self,
        configuration: R2Configuration,
        *,
        transport: Transport | None = None,
        signer: SignerV4 | None = None,
        clock: Callable[[], datetime] | None = None,
    ):
        self.configuration = configuration
        self._owns_transport = transport is None
        self._transport = transport or RequestsTransport(timeout=configuration.timeout)
        self._signer = signer or SignerV4()
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._closed = False

    def __enter__(self) -> "R2Client":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        if self._owns_transport:
            self._transport.close()

    # ------------------------------------------------------------------
    # Object operations

    def upload(
        self,
        key: str,
        data: bytes,
        *,
        metadata: Optional[Mapping[str, str]] = None,
        content_type: Optional[str] = None,
        cache_control: Optional[str] = None,
        acl: Optional[str] = None,
        storage_class: Optional[str] = None,
        tagging: Optional[str] = None,
        server_side_encryption: Optional[str] = None,
        sse_kms_key_id: Optional[str] = None,
        expected_bucket_owner: Optional[str] = None,
        request_payer: Optional[str] = None,
        retry: Optional[RetryConfiguration] = None,
        max_upload_size_mb: Optional[int] = None,
    ) -> Optional[str]:
        """Upload ``data`` to ``key`` and return the ETag reported by the server.

        Raises:
            PayloadTooLarge: when ``data`` exceeds the size ceiling; nothing is sent.
            HTTPError | TransportError: after the last attempt fails.
        """
        self._require_key(key)
        limit = max_upload_size_mb if max_upload_size_mb is not None else self.configuration.max_upload_size_mb
        if limit and limit > 0 and len(data) > limit * BYTES_PER_MB:
            raise PayloadTooLarge(limit)

        headers = build_upload_headers(
            content_length=len(data),
            metadata=metadata,
            content_type=content_type,
            cache_control=cache_control,
            acl=acl,
            storage_class=storage_class,
            tagging=tagging,
            server_side_encryption=server_side_encryption,
            sse_kms_key_id=sse_kms_key_id,
        )
        headers.update(_owner_headers(expected_bucket_owner, request_payer))
        url = self.configuration.object_url(key)
        attempts = (retry or self.configuration.retry).attempts

        for attempt in range(1, attempts + 1):
            try:
                response = self._execute(HTTPMethod.PUT, url, headers, data)
            except (TransportError, HTTPError) as exc:
                if attempt == attempts or not _is_retryable(exc):
                    raise
                LOGGER.warning("Upload of '%s' failed (attempt %d/%d): %s", key, attempt, attempts, exc)
                continue
            etag = response.header("ETag")
            return etag.strip('"') if etag else None
        return None

    def download(
        self,
        key: str,
        *,
        version_id: Optional[str] = None,
        byte_range: Optional[tuple[int, int]] = None,
        expected_bucket_owner: Optional[str] = None,
        request_payer: Optional[str] = None,
        allow_empty_data: bool = False,
    ) -> bytes:
        """Download an object. ``byte_range`` is inclusive on both ends."""
        self._require_key(key)
        headers = _owner_headers(expected_bucket_owner, request_payer)
        if byte_range is not None:
            start, end = byte_range
            if start < 0 or end < start:
                raise ValueError(f"Invalid byte range: {byte_range}")
            headers["Range"] = f"bytes={start}-{end}"
        url = self.configuration.object_url(key, _encode_query({"versionId": version_id}))

        response = self._execute(HTTPMethod.GET, url, headers)
        if response.body:
            return response.body
        if allow_empty_data:
            return b""
        if response.header("Content-Length") == "0":
            raise EmptyResponseBody()
        raise MissingResponseBody()

    def delete(
        self,
        key: str,
        *,
        version_id: Optional[str] = None,
        mfa: Optional[str] = None,
        bypass_governance_retention: Optional[bool] = None,
        expected_bucket_owner: Optional[str] = None,
        request_payer: Optional[str] = None,
    ) -> None:
        self._require_key(key)
        headers = _owner_headers(expected_bucket_owner, request_payer)
        if mfa:
            headers["x-amz-mfa"] = mfa
        if bypass_governance_retention is not None:
            headers["x-amz-bypass-governance-retention"] = "true" if bypass_governance_retention else "false"
        url = self.configuration.object_url(key, _encode_query({"versionId": version_id}))
        self._execute(HTTPMethod.DELETE, url, headers)

    def list_objects(
        self,
        *,
        prefix: str = "",
        continuation_token: Optional[str] = None,
        max_keys: Optional[int] = None,
        delimiter: Optional[str] = None,
        start_after: Optional[str] = None,
    ) -> ListPage:
        """Fetch a single ``ListObjectsV2`` page."""
        query = _encode_query(
            {
                "list-type": "2",
                "prefix": prefix or None,
                "continuation-token": continuation_token,
                "max-keys": max_keys,
                "delimiter": delimiter or None,
                "start-after": start_after,
            }
        )
        response = self._execute(HTTPMethod.GET, self.configuration.object_url(query=query))
        page = decode_list_result(response.body)
        LOGGER.debug(
            "Listed %d objects (prefix=%r, truncated=%s)", len(page.objects), prefix, page.is_truncated
        )
        return page

    def iter_objects(
        self,
        *,
        prefix: str = "",
        delimiter: Optional[str] = None,
        page_size: int = LIST_PAGE_SIZE,
    ) -> Iterator[ObjectSummary]:
        """Yield every object under ``prefix``, following continuation tokens."""
        token: Optional[str] = None
        while True:
            page = self.list_objects(
                prefix=prefix,
                continuation_token=token,
                max_keys=page_size,
                delimiter=delimiter,
            )
            yield from page.objects
            if not page.is_truncated or not page.next_continuation_token:
                return
            token = page.next_continuation_token

    # ------------------------------------------------------------------
    # Internal helpers

    def _require_key(self, key: str) -> None:
        if not key:
            raise ValueError("Object key cannot be empty")

    def _execute(
        self,
        method: HTTPMethod,
        url: str,
        headers: Optional[Mapping[str, str]] = None,
        body: bytes = b"",
    ) -> TransportResponse:
        if self._closed:
            raise R2ClientError("The client has been closed")
        request = RequestDescriptor(method=method, url=url, headers=dict(headers or {}), body=body)
        signed = self._signer.sign(request, self.configuration.credentials, self.configuration.region, self._clock())
        response = self._transport.send(signed)
        LOGGER.debug("%s %s -> %d", method.value, url, response.status_code)
        if not response.ok:
            raise HTTPError(response.status_code, error_message(response))
        return response
