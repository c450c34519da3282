"""Transparent reverse proxy for provider-hosted auth handler pages.

Browser sign-in flows load ``/__/auth/handler``, ``/__/auth/iframe`` and friends
from the relay's origin; this forwards them to the configured upstream and
mirrors the upstream response: status, headers (duplicates such as Set-Cookie
included) and raw body bytes. Bodies are not decompressed, so
Content-Encoding stays valid. Redirects are mirrored, not followed.
"""

from __future__ import annotations

import httpx
from starlette.requests import Request
from starlette.responses import Response

from ..core.exceptions import ProxyNotConfiguredError, ProxyUpstreamError
from ..core.http_client import get_http_client
from ..core.logging import get_logger

logger = get_logger(__name__)

AUTH_HANDLER_PREFIX = "/__/auth"

# RFC 7230 section 6.1 connection-scoped headers
HOP_BY_HOP_HEADERS = frozenset(
    [
        "connection",
        "keep-alive",
        "proxy-authenticate",
        "proxy-authorization",
        "te",
        "trailer",
        "trailers",
        "transfer-encoding",
        "upgrade",
    ]
)

# Recomputed by the transport on each side of the proxy
REQUEST_EXCLUDED_HEADERS = HOP_BY_HOP_HEADERS | {"host", "content-length"}
RESPONSE_EXCLUDED_HEADERS = HOP_BY_HOP_HEADERS | {"content-length"}


def _connection_tokens(headers: httpx.Headers | dict) -> set[str]:
    """Headers named in Connection are hop-by-hop for this message too."""
    value = headers.get("connection") or ""
    return {token.strip().lower() for token in value.split(",") if token.strip()}


class AuthHandlerProxy:
    """Stateless forwarder from ``/__/auth/*`` to the upstream origin."""

    def __init__(self, upstream: str | None, http_client: httpx.AsyncClient | None = None) -> None:
        self._upstream = upstream.rstrip("/") if upstream else None
        self._http_client = http_client

    @property
    def enabled(self) -> bool:
        return self._upstream is not None

    def upstream_url(self, path: str, query: str = "") -> str:
        if self._upstream is None:
            raise ProxyNotConfiguredError()
        url = f"{self._upstream}{path}"
        return f"{url}?{query}" if query else url

    async def _client(self) -> httpx.AsyncClient:
        if self._http_client is not None:
            return self._http_client
        return await get_http_client()

    async def forward(self, request: Request) -> Response:
        """Forward ``request`` upstream and mirror the reply.

        Raises:
            ProxyNotConfiguredError: If no upstream is configured.
            ProxyUpstreamError: If the upstream is unreachable or times out.
        """
        url = self.upstream_url(request.url.path, request.url.query)

        drop = REQUEST_EXCLUDED_HEADERS | _connection_tokens(request.headers)
        headers = [(k, v) for k, v in request.headers.items() if k.lower() not in drop]
        body = await request.body()

        client = await self._client()
        upstream_request = client.build_request(request.method, url, headers=headers, content=body)
        try:
            upstream_response = await client.send(upstream_request, stream=True, follow_redirects=False)
        except httpx.TimeoutException:
            logger.warning("Auth handler upstream timed out", extra={"path": request.url.path})
            raise ProxyUpstreamError("timeout") from None
        except httpx.HTTPError as e:
            logger.warning(
                "Auth handler upstream unreachable",
                extra={"path": request.url.path, "exception_type": type(e).__name__},
            )
            raise ProxyUpstreamError(f"transport error: {type(e).__name__}") from None

        try:
            content = b"".join([chunk async for chunk in upstream_response.aiter_raw()])
        except httpx.HTTPError as e:
            raise ProxyUpstreamError(f"body read failed: {type(e).__name__}") from None
        finally:
            await upstream_response.aclose()

        drop = RESPONSE_EXCLUDED_HEADERS | _connection_tokens(upstream_response.headers)
        if request.method == "HEAD":
            # No body to measure; the upstream length describes the GET representation
            drop = drop - {"content-length"}
        raw_headers = [
            (key.lower(), value)
            for key, value in upstream_response.headers.raw
            if key.decode("latin-1").lower() not in drop
        ]
        if request.method != "HEAD":
            raw_headers.insert(0, (b"content-length", str(len(content)).encode("latin-1")))

        response = Response(content=content, status_code=upstream_response.status_code)
        # Replace Starlette's default headers with the mirrored upstream set
        response.raw_headers = raw_headers

        logger.debug(
            "Proxied auth handler request",
            extra={"method": request.method, "path": request.url.path, "status_code": upstream_response.status_code},
        )
        return response
