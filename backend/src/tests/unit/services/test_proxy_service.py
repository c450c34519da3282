"""Unit tests for the auth handler reverse proxy."""

import gzip
import ssl
from http.cookiejar import CookieJar
from unittest.mock import patch

import httpx
import pytest
from starlette.requests import Request

from authrelay.core.exceptions import ProxyNotConfiguredError, ProxyUpstreamError
from authrelay.core.http_client import HTTPClientManager
from authrelay.services.proxy_service import AuthHandlerProxy

UPSTREAM = "https://demo.firebaseapp.com"


def _request(
    method: str = "GET",
    path: str = "/__/auth/handler",
    query: bytes = b"",
    headers: list[tuple[bytes, bytes]] | None = None,
    body: bytes = b"",
) -> Request:
    async def receive():
        return {"type": "http.request", "body": body, "more_body": False}

    scope = {
        "type": "http",
        "method": method,
        "scheme": "http",
        "server": ("relay.test", 80),
        "path": path,
        "query_string": query,
        "headers": headers or [(b"host", b"relay.test")],
        "root_path": "",
    }
    return Request(scope, receive)


def _proxy(handler) -> tuple[AuthHandlerProxy, list[httpx.Request]]:
    seen: list[httpx.Request] = []

    def record(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return handler(request)

    client = httpx.AsyncClient(transport=httpx.MockTransport(record))
    return AuthHandlerProxy(UPSTREAM, http_client=client), seen


class TestForward:
    @pytest.mark.asyncio
    async def test_response_mirrored_byte_for_byte(self) -> None:
        compressed = gzip.compress(b"<html>handler</html>")

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(
                200,
                headers=[
                    ("content-type", "text/html; charset=utf-8"),
                    ("content-encoding", "gzip"),
                    ("set-cookie", "a=1; Path=/"),
                    ("set-cookie", "b=2; Path=/"),
                    ("x-frame-options", "SAMEORIGIN"),
                ],
                stream=httpx.ByteStream(compressed),
            )

        proxy, _ = _proxy(handler)
        response = await proxy.forward(_request())

        assert response.status_code == 200
        assert response.body == compressed
        headers = response.headers
        assert headers.getlist("set-cookie") == ["a=1; Path=/", "b=2; Path=/"]
        assert headers["content-encoding"] == "gzip"
        assert headers["content-type"] == "text/html; charset=utf-8"
        assert headers["x-frame-options"] == "SAMEORIGIN"
        assert headers["content-length"] == str(len(compressed))

    @pytest.mark.asyncio
    async def test_redirect_mirrored_not_followed(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(
                302, headers={"location": "https://accounts.google.com/o/oauth2/auth"}, stream=httpx.ByteStream(b"")
            )

        proxy, seen = _proxy(handler)
        response = await proxy.forward(_request())

        assert response.status_code == 302
        assert response.headers["location"] == "https://accounts.google.com/o/oauth2/auth"
        assert len(seen) == 1

    @pytest.mark.asyncio
    async def test_request_forwarded_to_upstream(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, stream=httpx.ByteStream(b"ok"))

        proxy, seen = _proxy(handler)
        await proxy.forward(
            _request(
                method="POST",
                path="/__/auth/iframe",
                query=b"apiKey=abc&v=1",
                headers=[
                    (b"host", b"relay.test"),
                    (b"cookie", b"sid=1"),
                    (b"connection", b"keep-alive, x-hop"),
                    (b"x-hop", b"1"),
                    (b"te", b"trailers"),
                    (b"content-type", b"application/x-www-form-urlencoded"),
                ],
                body=b"field=value",
            )
        )

        upstream = seen[0]
        assert upstream.method == "POST"
        assert str(upstream.url) == f"{UPSTREAM}/__/auth/iframe?apiKey=abc&v=1"
        assert upstream.headers["host"] == "demo.firebaseapp.com"
        assert upstream.headers["cookie"] == "sid=1"
        assert "x-hop" not in upstream.headers
        assert "te" not in upstream.headers
        assert upstream.content == b"field=value"

    @pytest.mark.asyncio
    async def test_hop_by_hop_response_headers_stripped(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(
                200,
                headers=[("connection", "close, x-internal"), ("x-internal", "1"), ("keep-alive", "timeout=5")],
                stream=httpx.ByteStream(b"ok"),
            )

        proxy, _ = _proxy(handler)
        response = await proxy.forward(_request())

        for name in ("connection", "x-internal", "keep-alive"):
            assert name not in response.headers

    @pytest.mark.asyncio
    async def test_head_keeps_upstream_length(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, headers={"content-length": "512"}, stream=httpx.ByteStream(b""))

        proxy, _ = _proxy(handler)
        response = await proxy.forward(_request(method="HEAD"))

        assert response.headers["content-length"] == "512"
        assert response.body == b""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("error", [httpx.ConnectError("refused"), httpx.ReadTimeout("slow")])
    async def test_unreachable_upstream(self, error: httpx.HTTPError) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise error

        proxy, _ = _proxy(handler)
        with pytest.raises(ProxyUpstreamError) as exc_info:
            await proxy.forward(_request())

        assert exc_info.value.status_code == 502

    @pytest.mark.asyncio
    async def test_not_configured(self) -> None:
        proxy = AuthHandlerProxy(None)

        assert proxy.enabled is False
        with pytest.raises(ProxyNotConfiguredError):
            await proxy.forward(_request())


class TestSharedClient:
    @pytest.mark.asyncio
    async def test_upstream_cookies_not_retained(self) -> None:
        manager = HTTPClientManager()
        client = await manager.get_client()
        try:
            assert isinstance(client.cookies.jar, CookieJar)
            response = httpx.Response(
                200,
                headers={"set-cookie": "sid=secret; Domain=demo.firebaseapp.com; Path=/"},
                request=httpx.Request("GET", f"{UPSTREAM}/__/auth/handler"),
            )
            client.cookies.extract_cookies(response)
            assert len(client.cookies.jar) == 0
        finally:
            await manager.close()

    @pytest.mark.asyncio
    async def test_ca_bundle_passed_as_ssl_context(self) -> None:
        with patch("authrelay.core.http_client.httpx.AsyncClient") as client_cls:
            await HTTPClientManager().get_client()

        verify = client_cls.call_args.kwargs["verify"]
        assert isinstance(verify, ssl.SSLContext)
        assert verify.verify_mode == ssl.CERT_REQUIRED
