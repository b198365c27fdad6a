"""AWS Signature Version 4 request signing."""
from __future__ import annotations

import hashlib
import hmac
import logging
from datetime import datetime, timezone
from typing import Mapping, Optional
from urllib.parse import unquote, urlsplit

from .canonical import canonical_headers, canonical_query_string, canonical_signed_headers, canonical_uri
from .errors import MissingMethod, MissingURL
from .models import DEFAULT_REGION, Credentials, HTTPMethod, RequestDescriptor, SignedRequest, SigningContext

LOGGER = logging.getLogger(__name__)

ALGORITHM = "AWS4-HMAC-SHA256"

_DEFAULT_PORTS = {"http": 80, "https": 443}
# Headers the signer owns; caller-supplied variants are replaced.
_SIGNER_HEADERS = ("authorization", "host", "x-amz-date", "x-amz-content-sha256", "x-amz-security-token")


def _hmac_sha256(key: bytes, msg: str) -> bytes:
    return hmac.new(key, msg.encode("utf-8"), hashlib.sha256).digest()


def sha256_hex(data: bytes | str) -> str:
    if isinstance(data, str):
        data = data.encode("utf-8")
    return hashlib.sha256(data).hexdigest()


def derive_signing_key(secret_access_key: str, date_stamp: str, region: str, service: str = "s3") -> bytes:
    k_date = _hmac_sha256(("AWS4" + secret_access_key).encode("utf-8"), date_stamp)
    k_region = _hmac_sha256(k_date, region)
    k_service = _hmac_sha256(k_region, service)
    return _hmac_sha256(k_service, "aws4_request")


def _normalize_timestamp(now: Optional[datetime]) -> datetime:
    if now is None:
        now = datetime.now(timezone.utc)
    elif now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    else:
        now = now.astimezone(timezone.utc)
    return now.replace(microsecond=0)


def _resolve_method(method: HTTPMethod | str | None) -> HTTPMethod:
    if not method:
        raise MissingMethod("The request has no HTTP method.")
    try:
        return HTTPMethod(str(getattr(method, "value", method)).upper())
    except ValueError:
        raise MissingMethod(f"Unsupported HTTP method: {method}") from None


def _resolve_host(url: str | None) -> tuple[str, str, str]:
    """Return ``(host, decoded_path, query)`` for ``url``."""
    if not url:
        raise MissingURL("The request has no URL.")
    parts = urlsplit(url)
    if not parts.scheme or not parts.hostname:
        raise MissingURL(f"Cannot resolve a host from URL: {url}")
    host = parts.netloc.rpartition("@")[2]
    try:
        port = parts.port
    except ValueError:
        raise MissingURL(f"Invalid port in URL: {url}") from None
    if port is not None and _DEFAULT_PORTS.get(parts.scheme) == port:
        host = host.rsplit(":", 1)[0]
    return host, unquote(parts.path), parts.query


def _merge_caller_headers(headers: Mapping[str, str]) -> dict[str, str]:
    """Drop signer-owned headers and join names differing only by case into one entry.

    The first spelling of a name is kept, so the transmitted headers match the signed ones.
    """
    merged: dict[str, str] = {}
    spelling: dict[str, str] = {}
    for name, value in headers.items():
        lowered = name.strip().lower()
        if lowered in _SIGNER_HEADERS:
            continue
        value = str(value).strip()
        if lowered in spelling:
            first = spelling[lowered]
            merged[first] = f"{merged[first]},{value}"
        else:
            spelling[lowered] = name
            merged[name] = value
    return merged


class SignerV4:
    """Stateless SigV4 signer.

    Identical ``(request, credentials, region, now)`` inputs always produce
    identical output; nothing is cached between calls.
    """

    service = "s3"

    def sign(
        self,
        request: RequestDescriptor,
        credentials: Credentials,
        region: str = DEFAULT_REGION,
        now: Optional[datetime] = None,
    ) -> SignedRequest:
        method = _resolve_method(request.method)
        host, path, query = _resolve_host(request.url)
        # One clock reading for the whole call so amz_date and date_stamp agree.
        context = SigningContext(
            region=region or DEFAULT_REGION,
            timestamp=_normalize_timestamp(now),
            service=self.service,
        )
        body = request.body or b""
        payload_hash = sha256_hex(body)

        headers = _merge_caller_headers(request.headers)
        headers["Host"] = host
        headers["x-amz-content-sha256"] = payload_hash
        headers["x-amz-date"] = context.amz_date
        if credentials.session_token:
            headers["x-amz-security-token"] = credentials.session_token

        signed_headers = canonical_signed_headers(headers)
        canonical = self.canonical_request(method.value, path, query, headers, payload_hash)
        to_sign = self.string_to_sign(context, canonical)
        signing_key = derive_signing_key(
            credentials.secret_access_key, context.date_stamp, context.region, context.service
        )
        signature = hmac.new(signing_key, to_sign.encode("utf-8"), hashlib.sha256).hexdigest()

        headers["Authorization"] = (
            f"{ALGORITHM} Credential={credentials.access_key_id}/{context.credential_scope}, "
            f"SignedHeaders={signed_headers}, Signature={signature}"
        )
        LOGGER.debug("Signed %s %s%s (signed headers: %s)", method.value, host, path or "/", signed_headers)
        return SignedRequest(
            method=method,
            url=request.url,
            headers=headers,
            body=body,
            signed_headers=tuple(signed_headers.split(";")),
            signature=signature,
            context=context,
        )

    @staticmethod
    def canonical_request(method: str, path: str, query: str, headers: dict[str, str], payload_hash: str) -> str:
        return "\n".join(
            [
                method,
                canonical_uri(path),
                canonical_query_string(query),
                canonical_headers(headers),
                canonical_signed_headers(headers),
                payload_hash,
            ]
        )

    @staticmethod
    def string_to_sign(context: SigningContext, canonical_request: str) -> str:
        return "\n".join([ALGORITHM, context.amz_date, context.credential_scope, sha256_hex(canonical_request)])


def sign(
    request: RequestDescriptor,
    credentials: Credentials,
    region: str = DEFAULT_REGION,
    now: Optional[datetime] = None,
) -> SignedRequest:
    """Sign ``request`` with a throwaway :class:`SignerV4`."""
    return SignerV4().sign(request, credentials, region, now)
