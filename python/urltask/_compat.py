# Logger, sentinels, and TLS helpers shared across the package

import logging as _logging
import os
import ssl
from pathlib import Path

from httpx import URL, Headers

_logger = _logging.getLogger("urltask")

_CA_ENV = ("SSL_CERT_FILE", "SSL_CERT_DIR")


# Sentinel for "not specified" - distinct from None, which disables the feature
class _UseSessionDefault:
    """Sentinel to indicate a task option falls back to the session's value."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self):
        return "<USE_SESSION_DEFAULT>"

    def __bool__(self):
        return False


USE_SESSION_DEFAULT = _UseSessionDefault()


def _load_client_cert(context, cert):
    if isinstance(cert, tuple):
        certfile, keyfile, *password = cert
        context.load_cert_chain(str(certfile), str(keyfile), *password)
    else:
        context.load_cert_chain(str(cert))


def create_ssl_context(cert=None, verify=True, trust_env=True):
    """Build the SSL context HTTPTransport connects with.

    ``verify`` is True, False, a CA bundle file or directory, or a ready
    ``ssl.SSLContext`` that is returned as is. ``cert`` is a client
    certificate path or a ``(certfile, keyfile[, password])`` tuple. With
    ``trust_env`` the SSL_CERT_FILE and SSL_CERT_DIR variables add CA
    locations to a verifying context.
    """
    if isinstance(verify, ssl.SSLContext):
        return verify

    context = ssl.create_default_context()
    if verify is False:
        context.check_hostname = False
        context.verify_mode = ssl.CERT_NONE
    else:
        locations = []
        if verify is not True:
            locations.append(Path(verify))
            if not locations[0].exists():
                raise IOError(f"CA bundle not found: {verify}")
        if trust_env:
            locations += [Path(os.environ[name]) for name in _CA_ENV if os.environ.get(name)]
        for location in locations:
            if location.is_dir():
                context.load_verify_locations(capath=str(location))
            else:
                context.load_verify_locations(cafile=str(location))

    if cert is not None:
        _load_client_cert(context, cert)
    return context


def create_unverified_ssl_context():
    """SSL context used once the handler has accepted a server's trust."""
    return create_ssl_context(verify=False, trust_env=False)
