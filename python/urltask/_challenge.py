# Authentication challenges, handler decisions, and the challenge resolver

import asyncio
import enum
import inspect
import typing
from dataclasses import dataclass, field

from ._compat import _logger
from ._credentials import AuthScheme, Credential, ProtectionSpace
from ._utils import parse_challenges

# Strongest scheme first
_SCHEME_PREFERENCE = {AuthScheme.DIGEST: 0, AuthScheme.BASIC: 1}


class ChallengeDisposition(enum.Enum):
    USE_CREDENTIAL = "use_credential"
    CANCEL_AUTHENTICATION_CHALLENGE = "cancel_authentication_challenge"
    REJECT_PROTECTION_SPACE = "reject_protection_space"
    PERFORM_DEFAULT_HANDLING = "perform_default_handling"


@dataclass(frozen=True)
class AuthDecision:
    """A handler's answer to a challenge: a disposition and maybe a credential."""

    disposition: ChallengeDisposition
    credential: typing.Optional[Credential] = None

    @classmethod
    def use_credential(cls, credential: typing.Optional[Credential]) -> "AuthDecision":
        return cls(ChallengeDisposition.USE_CREDENTIAL, credential)

    @classmethod
    def cancel(cls) -> "AuthDecision":
        return cls(ChallengeDisposition.CANCEL_AUTHENTICATION_CHALLENGE)

    @classmethod
    def reject_protection_space(cls) -> "AuthDecision":
        return cls(ChallengeDisposition.REJECT_PROTECTION_SPACE)

    @classmethod
    def perform_default_handling(cls) -> "AuthDecision":
        return cls(ChallengeDisposition.PERFORM_DEFAULT_HANDLING)


DEFAULT_HANDLING = AuthDecision.perform_default_handling()


@dataclass
class Challenge:
    """One authentication challenge observed by a task."""

    protection_space: ProtectionSpace
    previous_failure_count: int = 0
    parameters: dict = field(default_factory=dict)
    failure_response: typing.Any = None
    proposed_credential: typing.Optional[Credential] = None
    error: typing.Optional[BaseException] = None
    alternatives: typing.Tuple[typing.Tuple[ProtectionSpace, dict], ...] = ()

    @property
    def is_server_trust(self) -> bool:
        return self.protection_space.is_server_trust

    @property
    def nonce(self) -> typing.Optional[str]:
        return self.parameters.get("nonce")

    @property
    def stale(self) -> bool:
        return str(self.parameters.get("stale", "")).lower() == "true"

    def __repr__(self):
        return (
            f"<Challenge {self.protection_space} "
            f"previous_failure_count={self.previous_failure_count}>"
        )


def challenges_from_response(request, response):
    """Return the (ProtectionSpace, params) pairs a 401/407 response offers.

    Only Basic and Digest are understood; other schemes are skipped.
    Digest sorts ahead of Basic. Any other status offers nothing, whatever
    headers it carries.
    """
    if not response.is_auth_challenge:
        return []
    proxy = response.status_code == 407
    header = "Proxy-Authenticate" if proxy else "WWW-Authenticate"
    offered = []
    for scheme_name, params in parse_challenges(response.headers.get_list(header)):
        try:
            scheme = AuthScheme(scheme_name.capitalize())
        except ValueError:
            continue
        if scheme.is_server_trust:
            continue
        space = ProtectionSpace(
            host=request.host,
            port=request.port,
            realm=params.get("realm"),
            scheme=scheme,
            secure=request.is_secure,
            proxy=proxy,
        )
        offered.append((space, params))
    offered.sort(key=lambda item: _SCHEME_PREFERENCE[item[0].scheme])
    return offered


class ChallengeResolver:
    """Asks a handler how to answer a challenge and validates the answer.

    Handlers may answer with an AuthDecision, a bare ChallengeDisposition, a
    ``(disposition, credential)`` tuple, or an awaitable resolving to one of
    those (a coroutine, or an ``asyncio.Future`` completed later from a
    callback). A handler that raises, or answers with something else, gets
    default handling.
    """

    async def resolve(self, task, challenge: Challenge, handler) -> AuthDecision:
        try:
            decision = handler.on_challenge(task, challenge)
            if inspect.isawaitable(decision):
                decision = await decision
        except asyncio.CancelledError:
            raise
        except Exception:
            _logger.warning(
                "Challenge handler failed for %r; performing default handling",
                task,
                exc_info=True,
            )
            return DEFAULT_HANDLING

        decision = self._coerce(decision)
        if decision is None:
            _logger.warning(
                "Challenge handler returned an unusable decision for %r; "
                "performing default handling",
                task,
            )
            return DEFAULT_HANDLING

        if decision.disposition is ChallengeDisposition.USE_CREDENTIAL:
            return self._check_credential(challenge, decision)
        return decision

    def _coerce(self, decision):
        if isinstance(decision, AuthDecision):
            return decision
        if isinstance(decision, ChallengeDisposition):
            return AuthDecision(decision)
        if isinstance(decision, tuple) and len(decision) == 2:
            disposition, credential = decision
            if isinstance(disposition, ChallengeDisposition):
                return AuthDecision(disposition, credential)
        return None

    def _check_credential(self, challenge, decision):
        credential = decision.credential
        if credential is None:
            return DEFAULT_HANDLING
        if challenge.is_server_trust:
            if not credential.is_trust:
                _logger.debug(
                    "Ignoring user credential offered for server trust %s",
                    challenge.protection_space,
                )
                return DEFAULT_HANDLING
        elif not credential.has_password:
            _logger.debug(
                "Ignoring trust credential offered for %s", challenge.protection_space
            )
            return DEFAULT_HANDLING
        return decision
