# Exception classes with task and request attribute support


class TaskError(Exception):
    """Base class for errors reported on a task."""

    def __init__(self, message="", *, task=None):
        super().__init__(message)
        self.task = task


class InvalidState(TaskError):
    """Operation not allowed in the task's current state."""
    pass


class ChallengeCancelled(TaskError):
    """The handler cancelled an authentication challenge."""
    pass


class Cancelled(TaskError):
    """The task was cancelled by its caller."""
    pass


class SessionInvalidated(TaskError):
    """The owning session was invalidated before the task finished."""
    pass


class InvalidRequest(TaskError):
    """The request cannot be sent as described."""
    pass


class DecodingError(TaskError):
    """Response body failed to parse against the expected shape."""

    def __init__(self, message="", *, task=None, response=None):
        super().__init__(message, task=task)
        self.response = response


class StreamConsumed(TaskError):
    """A one-shot request body stream was needed a second time."""

    def __init__(self, message=None, *, task=None):
        if message is None:
            message = (
                "Attempted to send a request body stream that has already "
                "been consumed. Supply a re-creatable stream source or "
                "implement Handler.on_need_body_stream."
            )
        super().__init__(message, task=task)


class TransportError(Exception):
    """Base class for transport errors. Carries the underlying cause."""

    def __init__(self, message="", *, request=None, cause=None):
        super().__init__(message)
        self._request = request
        self.cause = cause

    @property
    def request(self):
        if self._request is None:
            raise RuntimeError(
                "The request instance has not been set on this exception."
            )
        return self._request


class TimeoutException(TransportError):
    """Base class for timeout exceptions."""
    pass


class ConnectTimeout(TimeoutException):
    """Timeout during connection."""
    pass


class ReadTimeout(TimeoutException):
    """Timeout while reading response."""
    pass


class WriteTimeout(TimeoutException):
    """Timeout while writing request."""
    pass


class PoolTimeout(TimeoutException):
    """Timeout waiting for connection pool."""
    pass


class NetworkError(TransportError):
    """Network-related errors."""
    pass


class ConnectError(NetworkError):
    """Error connecting to host."""
    pass


class ReadError(NetworkError):
    """Error reading from connection."""
    pass


class WriteError(NetworkError):
    """Error writing to connection."""
    pass


class CloseError(NetworkError):
    """Error closing connection."""
    pass


class ProtocolError(TransportError):
    """Protocol-related errors, including malformed auth challenges."""
    pass


class UnsupportedProtocol(TransportError):
    """Unsupported URL scheme."""
    pass


class ServerTrustRejected(TransportError):
    """The server's TLS certificate was not trusted and no override was given."""
    pass


def _convert_exception(exc, request=None):
    """Convert an httpx exception to the matching urltask exception."""
    import httpx

    msg = str(exc) or exc.__class__.__name__
    if isinstance(exc, httpx.ConnectTimeout):
        cls = ConnectTimeout
    elif isinstance(exc, httpx.ReadTimeout):
        cls = ReadTimeout
    elif isinstance(exc, httpx.WriteTimeout):
        cls = WriteTimeout
    elif isinstance(exc, httpx.PoolTimeout):
        cls = PoolTimeout
    elif isinstance(exc, httpx.TimeoutException):
        cls = TimeoutException
    elif isinstance(exc, httpx.ConnectError):
        cls = ConnectError
    elif isinstance(exc, httpx.ReadError):
        cls = ReadError
    elif isinstance(exc, httpx.WriteError):
        cls = WriteError
    elif isinstance(exc, httpx.CloseError):
        cls = CloseError
    elif isinstance(exc, httpx.NetworkError):
        cls = NetworkError
    elif isinstance(exc, httpx.UnsupportedProtocol):
        cls = UnsupportedProtocol
    elif isinstance(exc, httpx.ProtocolError):
        cls = ProtocolError
    else:
        cls = TransportError
    return cls(msg, request=request, cause=exc)
