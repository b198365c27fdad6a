"""HTTP transports that deliver already-signed requests.

Neither backend touches the signature: the headers of the
:class:`~r2_client.models.SignedRequest` are transmitted as they are.
"""
from __future__ import annotations

import logging
from typing import Optional, Protocol

import requests
from botocore import exceptions as botocore_exceptions
from botocore.awsrequest import AWSRequest
from botocore.httpsession import URLLib3Session

from .errors import MalformedResponse, TransportError
from .models import SignedRequest, TransportResponse

LOGGER = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30.0


class Transport(Protocol):
    def send(self, request: SignedRequest) -> TransportResponse: ...

    def close(self) -> None: ...


class RequestsTransport:
    """Direct HTTP backend on top of a :class:`requests.Session`."""

    def __init__(self, session: Optional[requests.Session] = None, timeout: Optional[float] = DEFAULT_TIMEOUT):
        self._owns_session = session is None
        self._session = session or requests.Session()
        self._timeout = timeout

    def send(self, request: SignedRequest) -> TransportResponse:
        LOGGER.debug("requests: %s %s", request.method.value, request.url)
        try:
            prepared = self._session.prepare_request(
                requests.Request(
                    request.method.value,
                    request.url,
                    headers=dict(request.headers),
                    data=request.body or None,
                )
            )
            # requests re-quotes the URL (``%2E`` becomes ``.``); send the exact URL that was signed.
            prepared.url = request.url
            settings = self._session.merge_environment_settings(prepared.url, {}, None, None, None)
            response = self._session.send(prepared, timeout=self._timeout, **settings)
        except (requests.ConnectionError, requests.Timeout) as exc:
            raise TransportError(str(exc)) from exc
        except requests.RequestException as exc:
            raise MalformedResponse(str(exc)) from exc
        return TransportResponse(
            status_code=response.status_code,
            headers=dict(response.headers),
            body=response.content or b"",
            reason=response.reason or "",
        )

    def close(self) -> None:
        if self._owns_session:
            self._session.close()


class BotocoreTransport:
    """Backend using the HTTP stack bundled with botocore."""

    def __init__(self, http_session: Optional[URLLib3Session] = None, timeout: Optional[float] = DEFAULT_TIMEOUT):
        self._owns_session = http_session is None
        self._http = http_session or URLLib3Session(timeout=timeout)

    def send(self, request: SignedRequest) -> TransportResponse:
        LOGGER.debug("botocore: %s %s", request.method.value, request.url)
        prepared = AWSRequest(
            method=request.method.value,
            url=request.url,
            headers=dict(request.headers),
            data=request.body,
        ).prepare()
        try:
            response = self._http.send(prepared)
        except (
            botocore_exceptions.ConnectionError,
            botocore_exceptions.ConnectionClosedError,
            botocore_exceptions.ReadTimeoutError,
        ) as exc:
            raise TransportError(str(exc)) from exc
        except botocore_exceptions.HTTPClientError as exc:
            raise MalformedResponse(str(exc)) from exc
        return TransportResponse(
            status_code=response.status_code,
            headers=dict(response.headers.items()),
            body=response.content or b"",
            reason=getattr(response.raw, "reason", None) or "",
        )

    def close(self) -> None:
        if self._owns_session:
            self._http.close()


TRANSPORTS = {
    "requests": RequestsTransport,
    "botocore": BotocoreTransport,
}


def create_transport(name: str = "requests", *, timeout: Optional[float] = DEFAULT_TIMEOUT) -> Transport:
    try:
        factory = TRANSPORTS[name.strip().lower()]
    except KeyError:
        raise ValueError(f"Unknown transport '{name}'; expected one of {sorted(TRANSPORTS)}") from None
    return factory(timeout=timeout)
