# Request body stream sources and async byte streams

import inspect

from ._exceptions import StreamConsumed

_CHUNK_SIZE = 65536


class AsyncByteStream:
    """Async byte stream over an in-memory buffer.

    Re-iterable: every ``async for`` yields the whole buffer again.
    """

    def __init__(self, data=b""):
        if isinstance(data, str):
            data = data.encode("utf-8")
        self._data = bytes(data)

    async def __aiter__(self):
        if self._data:
            yield self._data

    async def aread(self):
        """Read all bytes asynchronously."""
        return self._data

    async def aclose(self):
        """Close the stream asynchronously."""
        pass

    def __repr__(self):
        return f"<AsyncByteStream [{len(self._data)} bytes]>"


class _IteratorStream(AsyncByteStream):
    """One-shot stream over a sync iterator, async iterator, or file-like object."""

    def __init__(self, iterator):
        self._iterator = iterator
        self._consumed = False
        self._started = False

    async def __aiter__(self):
        if self._started:
            raise StreamConsumed()
        self._started = True
        try:
            if hasattr(self._iterator, "read"):
                async for chunk in self._iter_file():
                    yield chunk
            elif hasattr(self._iterator, "__aiter__"):
                async for chunk in self._iterator:
                    if chunk:
                        yield _as_bytes(chunk)
            else:
                for chunk in self._iterator:
                    if chunk:
                        yield _as_bytes(chunk)
        finally:
            self._consumed = True

    async def _iter_file(self):
        while True:
            chunk = self._iterator.read(_CHUNK_SIZE)
            if inspect.isawaitable(chunk):
                chunk = await chunk
            if not chunk:
                return
            yield _as_bytes(chunk)

    async def aread(self):
        """Read all bytes asynchronously."""
        return b"".join([chunk async for chunk in self])

    async def aclose(self):
        close = getattr(self._iterator, "aclose", None)
        if close is not None:
            await close()
            return
        close = getattr(self._iterator, "close", None)
        if close is not None:
            close()

    @property
    def is_consumed(self):
        return self._consumed

    def __repr__(self):
        return "<IteratorStream>"


class _OneShotSource:
    """Stream source wrapping an iterator that can only be handed out once."""

    def __init__(self, iterator):
        self._iterator = iterator
        self._taken = False

    def __call__(self):
        if self._taken:
            raise StreamConsumed()
        self._taken = True
        return self._iterator

    @property
    def reacquirable(self):
        return False

    def __repr__(self):
        return f"<OneShotSource {self._iterator!r}>"


def as_stream_source(stream):
    """Normalize a request ``stream`` argument into a zero-argument source.

    Callables (including generator functions) are re-acquirable sources and
    are returned unchanged. Iterators, async iterators and file-like objects
    can only be sent once.
    """
    if stream is None:
        return None
    if isinstance(stream, (bytes, bytearray, str)):
        data = stream.encode("utf-8") if isinstance(stream, str) else bytes(stream)
        return lambda: data
    if isinstance(stream, _OneShotSource):
        return stream
    if callable(stream) and not _is_iterable(stream):
        return stream
    return _OneShotSource(stream)


def is_reacquirable(source):
    if source is None:
        return True
    return getattr(source, "reacquirable", True)


def open_stream(source):
    """Call a stream source and wrap what it produces as a fresh async stream."""
    produced = source()
    if isinstance(produced, AsyncByteStream):
        return produced
    if isinstance(produced, (bytes, bytearray, str)):
        return AsyncByteStream(produced)
    if produced is None:
        return AsyncByteStream(b"")
    if hasattr(produced, "read") or _is_iterable(produced):
        return _IteratorStream(produced)
    raise TypeError(
        f"Stream source returned {type(produced).__name__}; expected bytes, "
        "an iterable or async iterable of bytes, or a file-like object."
    )


def _is_iterable(value):
    return hasattr(value, "__iter__") or hasattr(value, "__aiter__")


def _as_bytes(chunk):
    if isinstance(chunk, str):
        return chunk.encode("utf-8")
    return bytes(chunk)
