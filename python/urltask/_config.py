# Session configuration

from ._compat import Headers

REJECT_EXHAUSTION_DEFAULT = "default"
REJECT_EXHAUSTION_FAIL = "fail"


class SessionConfig:
    """Settings shared by every task a Session creates.

    Args:
        headers: Default headers. Caller-set request headers win.
        timeout: Network timeout in seconds for the default HTTPTransport.
        verify: True, False, a CA bundle path, or an ssl.SSLContext.
        cert: Client certificate for the default HTTPTransport.
        trust_env: Whether the default transport reads proxy and TLS
            settings from the environment.
        max_challenge_rounds: Most authentication challenges answered per
            task. Past the limit the latest challenge response is delivered
            as the final response.
        reject_exhaustion: What happens once RejectProtectionSpace has used
            up every candidate credential. "default" falls through to default
            handling; "fail" fails the task with ChallengeCancelled.
    """

    def __init__(
        self,
        *,
        headers=None,
        timeout=60.0,
        verify=True,
        cert=None,
        trust_env=True,
        max_challenge_rounds=10,
        reject_exhaustion=REJECT_EXHAUSTION_DEFAULT,
    ):
        if max_challenge_rounds < 1:
            raise ValueError("max_challenge_rounds must be at least 1")
        if reject_exhaustion not in (REJECT_EXHAUSTION_DEFAULT, REJECT_EXHAUSTION_FAIL):
            raise ValueError(
                f"reject_exhaustion must be {REJECT_EXHAUSTION_DEFAULT!r} or "
                f"{REJECT_EXHAUSTION_FAIL!r}, got {reject_exhaustion!r}"
            )
        if timeout is not None and timeout <= 0:
            raise ValueError("timeout must be positive or None")
        self.headers = Headers(headers)
        self.timeout = timeout
        self.verify = verify
        self.cert = cert
        self.trust_env = trust_env
        self.max_challenge_rounds = max_challenge_rounds
        self.reject_exhaustion = reject_exhaustion

    def copy(self, **changes):
        values = {
            "headers": self.headers.copy(),
            "timeout": self.timeout,
            "verify": self.verify,
            "cert": self.cert,
            "trust_env": self.trust_env,
            "max_challenge_rounds": self.max_challenge_rounds,
            "reject_exhaustion": self.reject_exhaustion,
        }
        values.update(changes)
        return SessionConfig(**values)

    def __repr__(self):
        return (
            f"SessionConfig(timeout={self.timeout!r}, "
            f"max_challenge_rounds={self.max_challenge_rounds!r}, "
            f"reject_exhaustion={self.reject_exhaustion!r})"
        )
