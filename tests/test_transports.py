"""Tests for transports and exception conversion."""

import ssl

import httpx
import pytest

from urltask import (
    ConnectError,
    ConnectTimeout,
    HTTPTransport,
    MockTransport,
    NetworkError,
    ProtocolError,
    ReadTimeout,
    Request,
    Response,
    ServerTrustSignal,
    TimeoutException,
    TransportError,
    UnsupportedProtocol,
    create_ssl_context,
)
from urltask._exceptions import _convert_exception
from urltask._transports import SERVER_TRUST_EXTENSION


async def httpx_backed(handler):
    """HTTPTransport whose httpx clients answer from ``handler``."""
    transport = HTTPTransport(trust_env=False)
    await transport._client.aclose()
    transport._client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    transport._trusting_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return transport


class TestExceptionConversion:
    """httpx exceptions map onto the package hierarchy."""

    @pytest.mark.parametrize(
        "exc, expected",
        [
            (httpx.ConnectTimeout("slow"), ConnectTimeout),
            (httpx.ReadTimeout("slow"), ReadTimeout),
            (httpx.ConnectError("refused"), ConnectError),
            (httpx.RemoteProtocolError("garbage"), ProtocolError),
            (httpx.UnsupportedProtocol("gopher"), UnsupportedProtocol),
            (httpx.DecodingError("bad gzip"), TransportError),
        ],
    )
    def test_mapping(self, exc, expected):
        request = Request("GET", "https://example.org/")
        converted = _convert_exception(exc, request)
        assert type(converted) is expected
        assert converted.request is request
        assert converted.cause is exc

    def test_hierarchy(self):
        assert issubclass(ConnectTimeout, TimeoutException)
        assert issubclass(ConnectError, NetworkError)
        assert issubclass(NetworkError, TransportError)

    def test_request_unset(self):
        with pytest.raises(RuntimeError):
            TransportError("no request").request


class TestMockTransport:
    """In-memory transport."""

    @pytest.mark.asyncio
    async def test_status_shortcut(self):
        transport = MockTransport(lambda request: 204)
        request = Request("GET", "https://example.org/")
        response = await transport.handle_async_request(request)
        assert response.status_code == 204
        assert response.request is request
        assert transport.requests == [request]

    @pytest.mark.asyncio
    async def test_async_handler(self):
        async def handler(request):
            return Response(200, content=b"ok")

        async with MockTransport(handler) as transport:
            response = await transport.handle_async_request(Request("GET", "https://x.org/"))
        assert await response.aread() == b"ok"


class TestHTTPTransport:
    """httpx-backed network transport."""

    @pytest.mark.asyncio
    async def test_round_trip(self):
        def handler(request):
            return httpx.Response(
                201,
                headers={"X-Echo": request.headers["X-Test"]},
                content=request.content[::-1],
            )

        transport = await httpx_backed(handler)
        request = Request(
            "POST", "https://example.org/items", headers={"X-Test": "yes"}, content=b"abc"
        )
        request.bind_body()
        response = await transport.handle_async_request(request)

        assert response.status_code == 201
        assert response.headers["x-echo"] == "yes"
        assert await response.aread() == b"cba"
        assert response.is_closed
        await transport.aclose()

    @pytest.mark.asyncio
    async def test_streamed_body(self):
        def handler(request):
            return httpx.Response(200, content=request.content)

        def chunks():
            yield b"part one, "
            yield b"part two"

        transport = await httpx_backed(handler)
        request = Request("PUT", "https://example.org/upload", stream=chunks)
        request.bind_body()
        response = await transport.handle_async_request(request)

        assert await response.aread() == b"part one, part two"
        await transport.aclose()

    @pytest.mark.asyncio
    async def test_certificate_error_signals_trust(self):
        def handler(request):
            raise httpx.ConnectError(
                "[SSL: CERTIFICATE_VERIFY_FAILED] certificate verify failed", request=request
            )

        transport = await httpx_backed(handler)
        request = Request("GET", "https://self-signed.example.org/")
        request.bind_body()
        with pytest.raises(ServerTrustSignal) as info:
            await transport.handle_async_request(request)
        assert info.value.host == "self-signed.example.org"
        assert info.value.port == 443
        await transport.aclose()

    @pytest.mark.asyncio
    async def test_trusted_request_uses_second_client(self):
        seen = []

        def trusting(request):
            seen.append(request.url.host)
            return httpx.Response(200)

        transport = await httpx_backed(lambda request: httpx.Response(500))
        await transport._trusting_client.aclose()
        transport._trusting_client = httpx.AsyncClient(transport=httpx.MockTransport(trusting))

        request = Request(
            "GET",
            "https://self-signed.example.org/",
            extensions={SERVER_TRUST_EXTENSION: object()},
        )
        request.bind_body()
        response = await transport.handle_async_request(request)

        assert response.status_code == 200
        assert seen == ["self-signed.example.org"]
        await transport.aclose()

    @pytest.mark.asyncio
    async def test_connect_error_is_converted(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        transport = await httpx_backed(handler)
        request = Request("GET", "https://example.org/")
        request.bind_body()
        with pytest.raises(ConnectError) as info:
            await transport.handle_async_request(request)
        assert info.value.request is request
        await transport.aclose()


class TestSSLContext:
    """create_ssl_context options."""

    def test_default_verifies(self):
        context = create_ssl_context(trust_env=False)
        assert context.verify_mode == ssl.CERT_REQUIRED
        assert context.check_hostname

    def test_verify_false(self):
        context = create_ssl_context(verify=False, trust_env=False)
        assert context.verify_mode == ssl.CERT_NONE

    def test_context_passthrough(self):
        context = ssl.create_default_context()
        assert create_ssl_context(verify=context) is context

    def test_missing_ca_bundle(self):
        with pytest.raises(IOError):
            create_ssl_context(verify="/nonexistent/ca.pem", trust_env=False)

    def test_ca_directory(self, tmp_path):
        context = create_ssl_context(verify=tmp_path, trust_env=False)
        assert context.verify_mode == ssl.CERT_REQUIRED

    def test_env_ca_only_when_verifying(self, monkeypatch):
        monkeypatch.setenv("SSL_CERT_FILE", "/nonexistent/ca.pem")
        context = create_ssl_context(verify=False)
        assert context.verify_mode == ssl.CERT_NONE
        with pytest.raises(OSError):
            create_ssl_context()
