# Transport base classes and implementations

import inspect
import ssl

import httpx

from ._compat import create_ssl_context, create_unverified_ssl_context
from ._exceptions import _convert_exception
from ._response import Response

# Request extension carrying an accepted server-trust credential
SERVER_TRUST_EXTENSION = "server_trust"


class ServerTrustSignal(Exception):
    """Raised by a transport when the server's certificate needs a trust decision.

    The task turns this into a server-trust challenge. If the handler accepts
    it, the request is re-sent with the trust credential attached under the
    ``server_trust`` request extension.
    """

    def __init__(self, host, port, *, request=None, cause=None):
        super().__init__(f"Server trust evaluation required for {host}:{port}")
        self.host = host
        self.port = port
        self.request = request
        self.cause = cause


class AsyncBaseTransport:
    """Base class for async HTTP transport implementations.

    Subclass and implement handle_async_request to create custom transports.
    The returned Response may carry an unread body stream. Failures are
    raised as TransportError subclasses.
    """

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.aclose()
        return None

    async def aclose(self):
        pass

    async def handle_async_request(self, request):
        raise NotImplementedError("Subclasses must implement handle_async_request()")


class MockTransport(AsyncBaseTransport):
    """Mock transport for testing - calls a handler function to generate responses.

    The handler receives the exchange's Request and returns a Response, or a
    coroutine resolving to one. It may read the request body with
    ``await request.aread()``. Every request seen is kept in ``requests``.
    """

    def __init__(self, handler=None):
        self._handler = handler
        self.requests = []

    @property
    def handler(self):
        """Public access to the handler function."""
        return self._handler

    async def handle_async_request(self, request):
        self.requests.append(request)
        if self._handler is None:
            response = Response(200)
        else:
            response = self._handler(request)
            if inspect.isawaitable(response):
                response = await response
            if isinstance(response, int):
                response = Response(response)
        response.request = request
        return response

    def __repr__(self):
        return "<MockTransport>"


class _HTTPXResponseStream:
    """Async byte stream reading an httpx streaming response."""

    def __init__(self, response, request):
        self._response = response
        self._request = request

    async def __aiter__(self):
        try:
            async for chunk in self._response.aiter_bytes():
                yield chunk
        except httpx.HTTPError as exc:
            raise _convert_exception(exc, self._request) from exc

    async def aclose(self):
        await self._response.aclose()


class HTTPTransport(AsyncBaseTransport):
    """Network transport backed by ``httpx.AsyncClient``.

    Certificate verification failures become a ServerTrustSignal so the
    handler can decide whether to trust the server. A request carrying an
    accepted trust credential goes through a second client with
    verification disabled.
    """

    def __init__(self, *, verify=True, cert=None, timeout=None, trust_env=True):
        self._ssl_context = create_ssl_context(cert=cert, verify=verify, trust_env=trust_env)
        self._timeout = httpx.Timeout(timeout)
        self._trust_env = trust_env
        self._client = httpx.AsyncClient(
            verify=self._ssl_context,
            timeout=self._timeout,
            trust_env=trust_env,
            follow_redirects=False,
        )
        self._trusting_client = None

    def _client_for(self, request):
        if request.extensions.get(SERVER_TRUST_EXTENSION) is None:
            return self._client
        if self._trusting_client is None:
            self._trusting_client = httpx.AsyncClient(
                verify=create_unverified_ssl_context(),
                timeout=self._timeout,
                trust_env=self._trust_env,
                follow_redirects=False,
            )
        return self._trusting_client

    async def handle_async_request(self, request):
        client = self._client_for(request)
        body = request.body
        if body is None:
            content = None
        elif request.stream is None:
            content = request.content
        else:
            content = body

        httpx_request = client.build_request(
            request.method,
            request.url,
            headers=request.headers,
            content=content,
        )
        try:
            httpx_response = await client.send(httpx_request, stream=True)
        except httpx.ConnectError as exc:
            if _is_certificate_error(exc) and client is self._client:
                raise ServerTrustSignal(
                    request.host, request.port, request=request, cause=exc
                ) from exc
            raise _convert_exception(exc, request) from exc
        except httpx.HTTPError as exc:
            raise _convert_exception(exc, request) from exc

        return Response(
            httpx_response.status_code,
            headers=httpx_response.headers,
            stream=_HTTPXResponseStream(httpx_response, request),
            request=request,
            reason_phrase=httpx_response.reason_phrase,
            http_version=httpx_response.http_version,
        )

    async def aclose(self):
        await self._client.aclose()
        if self._trusting_client is not None:
            await self._trusting_client.aclose()

    def __repr__(self):
        return "<HTTPTransport>"


def _is_certificate_error(exc):
    cause = exc
    seen = set()
    while cause is not None and id(cause) not in seen:
        seen.add(id(cause))
        if isinstance(cause, ssl.SSLCertVerificationError):
            return True
        cause = cause.__cause__ or cause.__context__
    return "CERTIFICATE_VERIFY_FAILED" in str(exc)

