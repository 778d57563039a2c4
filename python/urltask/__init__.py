"""
urltask - Task-based async HTTP client with an authentication challenge engine
"""

from ._api import get, post, request
from ._auth import BasicAuth, DigestAuth
from ._challenge import (
    AuthDecision,
    Challenge,
    ChallengeDisposition,
    ChallengeResolver,
)
from ._compat import URL, USE_SESSION_DEFAULT, Headers, create_ssl_context
from ._config import SessionConfig
from ._credentials import (
    AuthScheme,
    Credential,
    CredentialStore,
    Persistence,
    ProtectionSpace,
)
from ._exceptions import (
    Cancelled,
    ChallengeCancelled,
    CloseError,
    ConnectError,
    ConnectTimeout,
    DecodingError,
    InvalidRequest,
    InvalidState,
    NetworkError,
    PoolTimeout,
    ProtocolError,
    ReadError,
    ReadTimeout,
    ServerTrustRejected,
    SessionInvalidated,
    StreamConsumed,
    TaskError,
    TimeoutException,
    TransportError,
    UnsupportedProtocol,
    WriteError,
    WriteTimeout,
)
from ._handler import FunctionHandler, Handler
from ._request import Request
from ._response import Response, ResponseNotRead
from ._session import Session
from ._task import Task, TaskState
from ._transports import (
    AsyncBaseTransport,
    HTTPTransport,
    MockTransport,
    ServerTrustSignal,
)

__version__ = "0.1.0"

__all__ = [
    # API functions
    "request",
    "get",
    "post",
    # Core
    "Session",
    "SessionConfig",
    "Task",
    "TaskState",
    "Request",
    "Response",
    "ResponseNotRead",
    "Headers",
    "URL",
    # Handlers and challenges
    "Handler",
    "FunctionHandler",
    "Challenge",
    "ChallengeDisposition",
    "AuthDecision",
    "ChallengeResolver",
    # Credentials
    "AuthScheme",
    "Credential",
    "CredentialStore",
    "Persistence",
    "ProtectionSpace",
    "BasicAuth",
    "DigestAuth",
    # Transports
    "AsyncBaseTransport",
    "HTTPTransport",
    "MockTransport",
    "ServerTrustSignal",
    # Helpers
    "USE_SESSION_DEFAULT",
    "create_ssl_context",
    # Exceptions
    "TaskError",
    "InvalidState",
    "ChallengeCancelled",
    "Cancelled",
    "SessionInvalidated",
    "InvalidRequest",
    "DecodingError",
    "StreamConsumed",
    "TransportError",
    "TimeoutException",
    "ConnectTimeout",
    "ReadTimeout",
    "WriteTimeout",
    "PoolTimeout",
    "NetworkError",
    "ConnectError",
    "ReadError",
    "WriteError",
    "CloseError",
    "ProtocolError",
    "UnsupportedProtocol",
    "ServerTrustRejected",
]
