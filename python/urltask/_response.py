# Response with chunked body accumulation and typed decoding

import dataclasses
import json as _json
from http import HTTPStatus

from ._compat import Headers
from ._exceptions import DecodingError
from ._streams import AsyncByteStream

AUTH_CHALLENGE_STATUS_CODES = (401, 407)


class ResponseNotRead(Exception):
    """Response content accessed before the body was read."""

    def __init__(self):
        super().__init__(
            "Attempted to access response content without having read the body."
        )


class Response:
    """HTTP response.

    Transports hand back a Response whose body is still a stream. The task
    reads it chunk by chunk, and ``content`` holds the accumulated bytes
    once reading has finished.
    """

    def __init__(
        self,
        status_code,
        *,
        headers=None,
        content=None,
        stream=None,
        request=None,
        reason_phrase=None,
        http_version="HTTP/1.1",
        json=None,
    ):
        self.status_code = int(status_code)
        self.headers = Headers(headers)
        self.request = request
        self.http_version = http_version
        self._reason_phrase = reason_phrase
        self._authenticated = False
        self._num_bytes_downloaded = 0

        if json is not None:
            content = _json.dumps(json).encode("utf-8")
            self.headers.setdefault("Content-Type", "application/json")
        if isinstance(content, str):
            content = content.encode("utf-8")

        if stream is not None and content is None:
            self._stream = stream
            self._content = None
        else:
            self._content = bytes(content or b"")
            self._stream = AsyncByteStream(self._content)
        self._stream_consumed = False
        self._is_closed = False

    @property
    def reason_phrase(self):
        if self._reason_phrase is not None:
            return self._reason_phrase
        try:
            return HTTPStatus(self.status_code).phrase
        except ValueError:
            return ""

    @property
    def stream(self):
        return self._stream

    @property
    def content(self):
        if self._content is None:
            raise ResponseNotRead()
        return self._content

    @property
    def text(self):
        return self.content.decode(self._get_encoding(), errors="replace")

    @property
    def is_success(self):
        return 200 <= self.status_code < 300

    @property
    def is_auth_challenge(self):
        return self.status_code in AUTH_CHALLENGE_STATUS_CODES

    @property
    def authenticated(self):
        """True when engine-supplied credentials were accepted by the server."""
        return self._authenticated and not self.is_auth_challenge

    @property
    def num_bytes_downloaded(self):
        return self._num_bytes_downloaded

    @property
    def is_stream_consumed(self):
        return self._stream_consumed

    @property
    def is_closed(self):
        return self._is_closed

    def _get_encoding(self):
        content_type = self.headers.get("content-type", "")
        for param in content_type.split(";")[1:]:
            key, _, value = param.strip().partition("=")
            if key.lower() == "charset" and value:
                return value.strip('"')
        return "utf-8"

    async def aiter_bytes(self):
        """Async iterate over body chunks as they arrive, accumulating them."""
        if self._content is not None:
            self._stream_consumed = True
            if self._content:
                yield self._content
            return
        chunks = []
        try:
            async for chunk in self._stream:
                if not chunk:
                    continue
                chunks.append(chunk)
                self._num_bytes_downloaded += len(chunk)
                yield chunk
        finally:
            self._stream_consumed = True
            self._content = b"".join(chunks)
            await self.aclose()

    async def aread(self):
        """Async read and return the response body."""
        if self._content is None:
            async for _ in self.aiter_bytes():
                pass
        return self._content

    async def aclose(self):
        if self._is_closed:
            return
        self._is_closed = True
        aclose = getattr(self._stream, "aclose", None)
        if aclose is not None:
            await aclose()

    def json(self, **kwargs):
        """Parse the body as JSON, raising DecodingError on malformed input."""
        try:
            text = self.content.decode(self._get_encoding())
            if text.startswith("\ufeff"):
                text = text[1:]
            return _json.loads(text, **kwargs)
        except ValueError as exc:
            raise DecodingError(
                f"Response body is not valid JSON: {exc}", response=self
            ) from exc

    def decode(self, model):
        """Decode a JSON object body into the dataclass ``model``.

        Required fields must be present; unknown keys are ignored.
        """
        data = self.json()
        if not isinstance(data, dict):
            raise DecodingError(
                f"Expected a JSON object for {model.__name__}, got {type(data).__name__}",
                response=self,
            )
        kwargs = {}
        for field in dataclasses.fields(model):
            if field.name in data:
                kwargs[field.name] = data[field.name]
            elif (
                field.default is dataclasses.MISSING
                and field.default_factory is dataclasses.MISSING
            ):
                raise DecodingError(
                    f"Missing field {field.name!r} decoding {model.__name__}",
                    response=self,
                )
        return model(**kwargs)

    def __repr__(self):
        return f"<Response [{self.status_code} {self.reason_phrase}]>"
