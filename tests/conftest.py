"""Pytest configuration for urltask tests."""

import asyncio
import base64
import hashlib

import pytest

from urltask import (
    AuthScheme,
    CredentialStore,
    Handler,
    MockTransport,
    ProtectionSpace,
    Response,
    Session,
    SessionConfig,
)
from urltask._utils import parse_challenges

BASE_URL = "https://httpbin.test"


def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line(
        "markers", "asyncio: mark test as async"
    )


class FakeHTTPBin:
    """In-memory stand-in for the httpbin endpoints the tests use.

    Routes:
        /get, /post                          echo method, headers and body
        /status/{code}                       bare status (401 carries a Basic challenge)
        /basic-auth/{user}/{passwd}          Basic protected resource
        /digest-auth/{qop}/{user}/{passwd}/{algorithm}/{stale}
                                             Digest protected resource; stale is
                                             "never" or "once"
        /proxy-auth/{user}/{passwd}          407 until Proxy-Authorization matches
        /multi-auth/{user}/{passwd}          offers Basic and Digest, accepts Digest
        /hang                                never answers
    """

    realm = "me@kennethreitz.com"

    def __init__(self):
        self._nonce_counter = 0
        self.nonce = self._new_nonce()
        self.opaque = "5ccc069c403ebaf9f0171e9517f40e41"
        self.stale_sent = False
        self.hang = asyncio.Event()

    def _new_nonce(self):
        self._nonce_counter += 1
        return hashlib.md5(f"nonce-{self._nonce_counter}".encode()).hexdigest()

    async def __call__(self, request):
        parts = request.target.split("?")[0].strip("/").split("/")
        route = parts[0]
        if route in ("get", "post"):
            return await self._echo(request)
        if route == "status":
            code = int(parts[1])
            if code == 401:
                return self._basic_challenge()
            return Response(code)
        if route == "basic-auth":
            return self._basic_auth(request, parts[1], parts[2])
        if route == "digest-auth":
            return self._digest_auth(request, *parts[1:6])
        if route == "proxy-auth":
            return self._proxy_auth(request, parts[1], parts[2])
        if route == "multi-auth":
            return self._multi_auth(request, parts[1], parts[2])
        if route == "hang":
            await self.hang.wait()
            return Response(200)
        return Response(404)

    async def _echo(self, request):
        body = await request.aread()
        return Response(
            200,
            json={
                "method": request.method,
                "url": str(request.url),
                "headers": dict(request.headers.items()),
                "data": body.decode("utf-8"),
            },
        )

    def _basic_challenge(self, realm="Fake Realm"):
        return Response(
            401,
            headers={"WWW-Authenticate": f'Basic realm="{realm}"'},
            content=b"Unauthorized",
        )

    def _basic_auth(self, request, user, passwd):
        if request.headers.get("Authorization") != _basic_value(user, passwd):
            return self._basic_challenge()
        return Response(200, json={"authenticated": True, "user": user})

    def _digest_challenge(self, qop="auth", algorithm="MD5", stale=False):
        value = (
            f'Digest realm="{self.realm}", nonce="{self.nonce}", '
            f'opaque="{self.opaque}", qop="{qop}", algorithm={algorithm}'
        )
        if stale:
            value += ", stale=TRUE"
        return value

    def _digest_auth(self, request, qop, user, passwd, algorithm="MD5", stale="never"):
        params = self._digest_params(request.headers.get("Authorization"))
        if params is None or not self._digest_valid(request, params, user, passwd):
            return Response(
                401,
                headers={"WWW-Authenticate": self._digest_challenge(qop, algorithm)},
            )
        if stale == "once" and not self.stale_sent:
            self.stale_sent = True
            self.nonce = self._new_nonce()
            return Response(
                401,
                headers={
                    "WWW-Authenticate": self._digest_challenge(qop, algorithm, stale=True)
                },
            )
        return Response(200, json={"authenticated": True, "user": user})

    def _proxy_auth(self, request, user, passwd):
        if request.headers.get("Proxy-Authorization") != _basic_value(user, passwd):
            return Response(
                407, headers={"Proxy-Authenticate": 'Basic realm="proxy"'}
            )
        return Response(200, json={"authenticated": True, "user": user})

    def _multi_auth(self, request, user, passwd):
        params = self._digest_params(request.headers.get("Authorization"))
        if params is not None and self._digest_valid(request, params, user, passwd):
            return Response(200, json={"authenticated": True, "user": user})
        return Response(
            401,
            headers={
                "WWW-Authenticate": 'Basic realm="multi", ' + self._digest_challenge()
            },
        )

    def _digest_params(self, value):
        if not value:
            return None
        challenges = parse_challenges([value])
        if not challenges or challenges[0][0].lower() != "digest":
            return None
        return challenges[0][1]

    def _digest_valid(self, request, params, user, passwd):
        if params.get("username") != user or params.get("nonce") != self.nonce:
            return False
        if params.get("uri") != request.target:
            return False
        algorithm = params.get("algorithm", "MD5").upper()
        hash_func = {"MD5": hashlib.md5, "SHA-256": hashlib.sha256}[algorithm]

        def H(data):
            return hash_func(data.encode("utf-8")).hexdigest()

        ha1 = H(f"{user}:{params.get('realm')}:{passwd}")
        ha2 = H(f"{request.method}:{params['uri']}")
        expected = H(
            f"{ha1}:{params['nonce']}:{params.get('nc')}:{params.get('cnonce')}:"
            f"{params.get('qop')}:{ha2}"
        )
        return params.get("response") == expected


def _basic_value(user, passwd):
    token = base64.b64encode(f"{user}:{passwd}".encode("utf-8")).decode("ascii")
    return f"Basic {token}"


class RecordingHandler(Handler):
    """Handler that records every callback and answers challenges from a script.

    ``decisions`` are handed out one per challenge; the last one repeats.
    With no decisions the handler asks for default handling.
    """

    def __init__(self, *decisions):
        self.decisions = list(decisions)
        self.responses = []
        self.chunks = []
        self.challenges = []
        self.completions = []
        self.body_requests = 0

    def on_response(self, task, response):
        self.responses.append(response)

    def on_body(self, task, chunk):
        self.chunks.append(chunk)

    def on_challenge(self, task, challenge):
        self.challenges.append(challenge)
        if not self.decisions:
            return super().on_challenge(task, challenge)
        if len(self.decisions) > 1:
            return self.decisions.pop(0)
        return self.decisions[0]

    def on_need_body_stream(self, task):
        self.body_requests += 1
        return super().on_need_body_stream(task)

    def on_complete(self, task, response, error):
        self.completions.append((response, error))

    @property
    def body(self):
        return b"".join(self.chunks)


@pytest.fixture
def httpbin():
    return FakeHTTPBin()


@pytest.fixture
def transport(httpbin):
    return MockTransport(httpbin)


@pytest.fixture
def store():
    return CredentialStore()


@pytest.fixture
def recorder():
    """Factory building a RecordingHandler from scripted decisions."""
    return RecordingHandler


@pytest.fixture
def make_session(transport, store):
    """Factory building a Session on the fake httpbin transport."""

    def factory(handler=None, **config):
        return Session(
            handler,
            credential_store=store,
            transport=transport,
            config=SessionConfig(**config),
        )

    return factory


@pytest.fixture
def space():
    """Factory for protection spaces on the fake httpbin host."""

    def factory(realm, scheme=AuthScheme.BASIC, **kwargs):
        kwargs.setdefault("secure", True)
        return ProtectionSpace("httpbin.test", 443, realm, scheme, **kwargs)

    return factory
