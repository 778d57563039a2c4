# Basic and Digest authorization header computation

import base64
import hashlib
import os
import time

from ._credentials import AuthScheme
from ._exceptions import ProtocolError
from ._utils import quote_param

_DIGEST_HASHES = {
    "MD5": hashlib.md5,
    "MD5-SESS": hashlib.md5,
    "SHA": hashlib.sha1,
    "SHA-SESS": hashlib.sha1,
    "SHA-256": hashlib.sha256,
    "SHA-256-SESS": hashlib.sha256,
    "SHA-512": hashlib.sha512,
    "SHA-512-SESS": hashlib.sha512,
}


def authorization_header_name(space):
    return "Proxy-Authorization" if space.proxy else "Authorization"


class BasicAuth:
    """HTTP Basic Authentication."""

    scheme = AuthScheme.BASIC

    def __init__(self, username="", password=""):
        self.username = username
        self.password = password

    def build_authorization(self, request, params=None):
        credentials = f"{self.username}:{self.password}"
        encoded = base64.b64encode(credentials.encode("utf-8")).decode("ascii")
        return f"Basic {encoded}"

    def __repr__(self):
        return f"BasicAuth(username={self.username!r}, password=***)"


class DigestAuth:
    """HTTP Digest Authentication (RFC 2617 / RFC 7616, qop=auth).

    One instance is kept per credential for the lifetime of a task so the
    nonce count keeps increasing while the server nonce stays the same.
    """

    scheme = AuthScheme.DIGEST

    def __init__(self, username="", password=""):
        self.username = username
        self.password = password
        self._nonce_count = 0
        self._challenge = None

    def _get_client_nonce(self, nonce_count: int, nonce: bytes) -> bytes:
        s = str(nonce_count).encode()
        s += nonce
        s += time.ctime().encode()
        s += os.urandom(8)
        return hashlib.sha1(s).hexdigest()[:16].encode()

    def build_authorization(self, request, params):
        """Build the Authorization header value answering ``params``."""
        nonce = params.get("nonce", "")
        if not nonce:
            raise ProtocolError(
                "Malformed Digest auth header: missing required 'nonce' field",
                request=request,
            )
        # New nonce starts a fresh count
        if self._challenge is None or self._challenge.get("nonce") != nonce:
            self._nonce_count = 0
        self._challenge = dict(params)

        realm = params.get("realm", "")
        qop = params.get("qop", "")
        opaque = params.get("opaque", "")
        algorithm = (params.get("algorithm") or "MD5").upper()

        hash_func = _DIGEST_HASHES.get(algorithm)
        if hash_func is None:
            raise ProtocolError(
                f"Unsupported Digest auth algorithm: {algorithm}", request=request
            )

        def H(data):
            return hash_func(data.encode("utf-8")).hexdigest()

        self._nonce_count += 1
        nc = f"{self._nonce_count:08x}"
        cnonce = self._get_client_nonce(self._nonce_count, nonce.encode()).decode("ascii")

        a1 = f"{self.username}:{realm}:{self.password}"
        if algorithm.endswith("-SESS"):
            a1 = f"{H(a1)}:{nonce}:{cnonce}"
        ha1 = H(a1)

        uri = request.target
        ha2 = H(f"{request.method}:{uri}")

        if qop:
            qop_options = [q.strip() for q in qop.split(",")]
            if "auth" in qop_options:
                qop_value = "auth"
            elif "auth-int" in qop_options:
                raise ProtocolError(
                    "Digest auth qop=auth-int is not supported", request=request
                )
            else:
                raise ProtocolError(
                    f"Unsupported Digest auth qop value: {qop}", request=request
                )
            response_value = H(f"{ha1}:{nonce}:{nc}:{cnonce}:{qop_value}:{ha2}")
        else:
            # RFC 2069 style
            response_value = H(f"{ha1}:{nonce}:{ha2}")
            qop_value = None

        auth_parts = [
            f"username={quote_param(self.username)}",
            f"realm={quote_param(realm)}",
            f"nonce={quote_param(nonce)}",
            f"uri={quote_param(uri)}",
            f'response="{response_value}"',
        ]
        if opaque:
            auth_parts.append(f"opaque={quote_param(opaque)}")
        auth_parts.append(f"algorithm={algorithm}")
        if qop_value:
            auth_parts.append(f"qop={qop_value}")
            auth_parts.append(f"nc={nc}")
            auth_parts.append(f'cnonce="{cnonce}"')

        return "Digest " + ", ".join(auth_parts)

    def __repr__(self):
        return f"DigestAuth(username={self.username!r}, password=***)"


def auth_for(scheme, credential):
    """Return the header builder for ``scheme`` using ``credential``."""
    if scheme is AuthScheme.BASIC:
        return BasicAuth(credential.user, credential.password)
    if scheme is AuthScheme.DIGEST:
        return DigestAuth(credential.user, credential.password)
    raise ValueError(f"No authorization header for scheme {scheme.value}")
