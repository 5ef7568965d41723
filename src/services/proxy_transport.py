"""Forwarding of rewritten requests to the backend object store."""
import logging
from typing import TYPE_CHECKING
from urllib.parse import quote

import httpx
from starlette.requests import Request
from starlette.responses import Response

from services.response_transformer import HOP_BY_HOP_HEADERS

if TYPE_CHECKING:
    from services.path_rewriter import RewrittenRequest
    from services.response_transformer import ResponseTransformer

logger = logging.getLogger(__name__)

USER_AGENT = "media-cdn-proxy/0.1"
DEFAULT_CONNECT_TIMEOUT = 10.0

# Characters left unescaped in upstream paths (RFC 3986 pchar minus unreserved)
PATH_SAFE_CHARS = "/:@!$&'()*+,;="


def create_http_client(read_timeout: float, max_connections: int = 100) -> httpx.AsyncClient:
    """Create the pooled HTTP client used for all backend calls."""
    limits = httpx.Limits(
        max_connections=max_connections,
        max_keepalive_connections=20,
    )
    timeout = httpx.Timeout(
        connect=DEFAULT_CONNECT_TIMEOUT,
        read=read_timeout,
        write=read_timeout,
        pool=DEFAULT_CONNECT_TIMEOUT,
    )
    # Redirects are the client's business, not the proxy's
    return httpx.AsyncClient(limits=limits, timeout=timeout, follow_redirects=False)


def forwarded_request_headers(request: Request) -> dict[str, str]:
    """
    Copy client request headers for the backend.

    Drops hop-by-hop headers and Host (httpx sets the backend host), and appends
    the usual X-Forwarded-* headers.
    """
    headers = {
        name: value
        for name, value in request.headers.items()
        if name not in HOP_BY_HOP_HEADERS and name != "host"
    }
    if request.client is not None:
        prior = headers.get("x-forwarded-for")
        headers["x-forwarded-for"] = (
            f"{prior}, {request.client.host}" if prior else request.client.host
        )
    if "host" in request.headers:
        headers["x-forwarded-host"] = request.headers["host"]
    headers["x-forwarded-proto"] = request.url.scheme
    headers.setdefault("user-agent", USER_AGENT)
    return headers


class ProxyTransport:
    """Sends rewritten requests upstream and hands responses to the transformer."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        backend_url: httpx.URL,
        transformer: "ResponseTransformer",
    ) -> None:
        """Initialize transport for the backend at `backend_url`."""
        self._client = client
        self._backend_url = backend_url
        self._transformer = transformer

    def upstream_url(self, rewritten: "RewrittenRequest") -> httpx.URL:
        """Build the absolute backend URL for a rewritten request."""
        # Paths are decoded, so "%", "?", "#" and the like must be escaped again
        url = self._backend_url.copy_with(path=quote(rewritten.path, safe=PATH_SAFE_CHARS))
        if rewritten.query:
            # Starlette exposes the raw query string decoded as latin-1
            url = url.copy_with(query=rewritten.query.encode("latin-1"))
        return url

    async def forward(self, request: Request, rewritten: "RewrittenRequest") -> Response:
        """
        Forward `request` to the backend and build the client response.

        Raises:
            httpx.HTTPError: If the backend could not be reached.
            UpstreamResponseError: If the backend response could not be rebuilt.
        """
        upstream_request = self._client.build_request(
            request.method,
            self.upstream_url(rewritten),
            headers=forwarded_request_headers(request),
        )
        logger.debug(
            "proxy_forward method=%s upstream=%s passthrough=%s",
            request.method,
            upstream_request.url,
            rewritten.is_passthrough,
        )
        upstream = await self._client.send(upstream_request, stream=True)
        return await self._transformer.transform(upstream, rewritten.object_key)
