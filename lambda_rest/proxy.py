"""Forwarding of API Gateway requests to an upstream HTTP service.

:class:`ProxyHandler` is a processor for :class:`~lambda_rest.handler.LambdaHandler`.
It replays the inbound method, path, query string, headers and body against
a configured base URL and copies the upstream status, headers, cookies and
body onto the :class:`~lambda_rest.response.Response`.

Example:
    .. code-block:: python

        handler = LambdaHandler(
            ProxyHandler("https://internal.example.com/api"),
            authorizer=JwtAuthorizer(os.environ["JWT_SECRET_KEY"], {"id": "sub"}),
        )

        # GET /portfolios/acme?limit=5 is answered by
        # GET https://internal.example.com/api/portfolios/acme?limit=5
"""

from typing import Any, Dict, List, Optional, Tuple
import base64
import binascii

import httpx

from . import log
from .constants import (
    HDR_SET_COOKIE,
    HDR_X_CORRELATION_ID,
    HOP_BY_HOP_HEADERS,
    PROXY_CONNECT_TIMEOUT_SECONDS,
    PROXY_TIMEOUT_SECONDS,
)
from .request import Request
from .response import Response

# httpx decodes compressed upstream bodies, so the encoding header no longer applies
_DROPPED_RESPONSE_HEADERS = HOP_BY_HOP_HEADERS | {"content-encoding", HDR_SET_COOKIE}


class ProxyError(RuntimeError):
    """The upstream service could not be reached or did not answer in time."""


class ProxyHandler:
    """Processor that relays requests to an upstream HTTP service.

    The HTTP client is created on first use and reused by later invocations
    of the same Lambda container.

    Args:
        base_url (str): Upstream URL the request path is appended to.
        timeout (Optional[httpx.Timeout]): Defaults to ``PROXY_TIMEOUT_SECONDS``
            with a ``PROXY_CONNECT_TIMEOUT_SECONDS`` connect timeout.
        transport (Optional[httpx.BaseTransport]): Custom transport, a mock
            transport in tests for instance.

    Raises:
        ProxyError: From :meth:`__call__` on a network failure or timeout.
            The boundary renders it as an internal server error.
    """

    def __init__(
        self,
        base_url: str,
        timeout: Optional[httpx.Timeout] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.base_url = base_url
        self.timeout = timeout or httpx.Timeout(PROXY_TIMEOUT_SECONDS, connect=PROXY_CONNECT_TIMEOUT_SECONDS)
        self.transport = transport
        self._client: Optional[httpx.Client] = None

    def get_client(self) -> httpx.Client:
        if self._client is None:
            self._client = httpx.Client(base_url=self.base_url, timeout=self.timeout, transport=self.transport)
        return self._client

    @staticmethod
    def get_query_params(request: Request) -> List[Tuple[str, str]]:
        """Return the query string as sent by the client, repeated keys included."""
        raw = request.original_data

        multi = raw.get("multiValueQueryStringParameters") or {}
        if multi:
            return [(k, str(v)) for k, values in multi.items() for v in (values or []) if v is not None]

        single = raw.get("queryStringParameters") or {}
        return [(k, str(v)) for k, v in single.items() if v is not None]

    @staticmethod
    def get_forward_headers(request: Request) -> Dict[str, str]:
        """Return the client headers minus connection-level ones, plus the correlation id."""
        raw = request.original_data.get("headers") or {}

        headers = {k: str(v) for k, v in raw.items() if v is not None and k.lower() not in HOP_BY_HOP_HEADERS}
        headers = {k: v for k, v in headers.items() if k.lower() != HDR_X_CORRELATION_ID}
        headers[HDR_X_CORRELATION_ID] = request.get_correlation_id()
        return headers

    @staticmethod
    def get_content(request: Request) -> Optional[bytes]:
        """Return the raw request body bytes, decoding base64 bodies."""
        body = request.event.body
        if body is None:
            return None
        if request.event.isBase64Encoded:
            try:
                return base64.b64decode(body, validate=True)
            except binascii.Error:
                pass
        return body.encode("utf-8")

    def forward(self, request: Request) -> httpx.Response:
        """Send ``request`` upstream and return the upstream response.

        Raises:
            ProxyError: On a timeout or transport failure.
        """
        method = request.get_method()
        path = request.event.path or "/"

        try:
            return self.get_client().request(
                method,
                path,
                params=self.get_query_params(request),
                headers=self.get_forward_headers(request),
                content=self.get_content(request),
            )
        except httpx.TimeoutException as e:
            log.warning("Upstream request timed out", extra={"method": method, "upstream_path": path})
            raise ProxyError(f"Upstream timeout: {method} {path}") from e
        except httpx.HTTPError as e:
            log.warning("Upstream request failed", extra={"method": method, "upstream_path": path, "error": str(e)})
            raise ProxyError(f"Upstream network error: {method} {path}") from e

    @staticmethod
    def relay(upstream: httpx.Response, response: Response) -> Response:
        """Copy the upstream status, headers, cookies and body onto ``response``."""
        response.set_status(upstream.status_code)

        for name, value in upstream.headers.items():
            if name.lower() not in _DROPPED_RESPONSE_HEADERS:
                response.set_header(name, value)

        for cookie in upstream.headers.get_list(HDR_SET_COOKIE):
            response.append_set_cookie(cookie)

        content = upstream.content
        if not content:
            response.set_body(None)
            return response

        try:
            response.set_body(content.decode("utf-8"))
        except UnicodeDecodeError:
            response.set_body(base64.b64encode(content).decode("ascii"))
            response.is_base64_encoded = True
        return response

    def __call__(self, request: Request, response: Response) -> Any:
        upstream = self.forward(request)

        log.debug(
            "Upstream responded",
            extra={"status": upstream.status_code, "upstream_url": str(upstream.request.url)},
        )

        return self.relay(upstream, response).send()
