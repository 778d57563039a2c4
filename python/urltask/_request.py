# Request descriptor with re-acquirable body stream support

from httpx import InvalidURL

from ._compat import URL, Headers
from ._exceptions import InvalidRequest
from ._streams import AsyncByteStream, as_stream_source, is_reacquirable, open_stream

_DEFAULT_PORTS = {"http": 80, "https": 443}


def _parse_url(url):
    try:
        return URL(url)
    except InvalidURL as exc:
        raise InvalidRequest(f"Request URL is invalid: {url!r}") from exc


class Request:
    """An HTTP request as the caller describes it.

    ``content`` is a finite body buffer. ``stream`` is a stream source: a
    zero-argument callable returning bytes, an iterable or async iterable of
    bytes, or a file-like object. When both are given the stream is sent.
    A plain iterator is accepted as ``stream`` too, but it can only be sent
    once, so an authenticated retry needs ``Handler.on_need_body_stream``.
    """

    def __init__(
        self,
        method,
        url,
        *,
        headers=None,
        content=None,
        stream=None,
        extensions=None,
    ):
        self.method = method.upper() if isinstance(method, str) else method
        self.url = _parse_url(url)
        self.headers = Headers(headers)
        if isinstance(content, str):
            content = content.encode("utf-8")
        self.content = bytes(content) if content is not None else None
        self.stream = as_stream_source(stream)
        self.extensions = dict(extensions or {})
        self._body = None

    def validate(self):
        """Raise InvalidRequest when the request cannot be sent at all."""
        if not self.method or not isinstance(self.method, str):
            raise InvalidRequest("Request method must be a non-empty string.")
        if self.scheme not in _DEFAULT_PORTS:
            raise InvalidRequest(
                f"Request URL has an unsupported scheme: '{self.url}'"
            )
        if not self.host:
            raise InvalidRequest(f"Request URL is missing a host: '{self.url}'")

    @property
    def scheme(self):
        return self.url.scheme

    @property
    def host(self):
        return self.url.host

    @property
    def port(self):
        return self.url.port or _DEFAULT_PORTS.get(self.scheme)

    @property
    def is_secure(self):
        return self.scheme == "https"

    @property
    def target(self):
        """Path plus query string, as used in the request line and Digest ``uri``."""
        return self.url.raw_path.decode("ascii")

    @property
    def has_body(self):
        return self.stream is not None or self.content is not None

    @property
    def stream_reacquirable(self):
        return is_reacquirable(self.stream)

    @property
    def body(self):
        """The body stream bound for the current exchange, if any."""
        return self._body

    def copy_with(self, **changes):
        """Return a copy with the given attributes replaced."""
        request = Request.__new__(Request)
        request.method = changes.pop("method", self.method)
        request.url = _parse_url(changes.pop("url", self.url))
        request.headers = Headers(changes.pop("headers", self.headers))
        request.content = changes.pop("content", self.content)
        request.stream = as_stream_source(changes.pop("stream", self.stream))
        request.extensions = dict(changes.pop("extensions", self.extensions))
        request._body = None
        if changes:
            raise TypeError(f"Unknown Request attributes: {', '.join(changes)}")
        return request

    def bind_body(self, source=None):
        """Open the body for one exchange from ``source`` or the request's own."""
        source = source if source is not None else self.stream
        if source is not None:
            self._body = open_stream(as_stream_source(source))
        elif self.content is not None:
            self._body = AsyncByteStream(self.content)
        else:
            self._body = None
        return self._body

    async def aread(self):
        """Read the body bound for this exchange."""
        if self._body is None:
            return self.content or b""
        data = await self._body.aread()
        # Keep the bytes readable after the stream has been drained
        self._body = AsyncByteStream(data)
        return data

    def __repr__(self):
        return f"<Request [{self.method} {self.url}]>"
