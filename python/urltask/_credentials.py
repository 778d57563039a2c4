# Protection spaces, credentials, and the shared credential store

import enum
import threading
import typing
from dataclasses import dataclass, field, replace


class AuthScheme(str, enum.Enum):
    BASIC = "Basic"
    DIGEST = "Digest"
    SERVER_TRUST = "ServerTrust"

    @property
    def is_server_trust(self) -> bool:
        return self is AuthScheme.SERVER_TRUST


class Persistence(str, enum.Enum):
    """How long a stored credential lives."""

    NONE = "none"
    FOR_SESSION = "for_session"
    PERMANENT = "permanent"


@dataclass(frozen=True)
class ProtectionSpace:
    """The (host, port, realm, scheme) a challenge applies to."""

    host: str
    port: int
    realm: typing.Optional[str]
    scheme: AuthScheme
    secure: bool = False
    proxy: bool = False

    @property
    def is_server_trust(self) -> bool:
        return self.scheme.is_server_trust

    def with_realm(self, realm: typing.Optional[str]) -> "ProtectionSpace":
        return replace(self, realm=realm)

    def __str__(self) -> str:
        realm = f' realm="{self.realm}"' if self.realm is not None else ""
        kind = "proxy " if self.proxy else ""
        return f"{kind}{self.scheme.value} {self.host}:{self.port}{realm}"


@dataclass(frozen=True)
class Credential:
    """A user/password pair, or a server-trust acceptance."""

    user: typing.Optional[str] = None
    password: str = field(default="", repr=False)
    persistence: Persistence = Persistence.NONE
    trust: typing.Optional[str] = None

    @classmethod
    def for_trust(cls, trust: str = "*") -> "Credential":
        """Accept a server's certificate. ``trust`` names what was accepted."""
        return cls(trust=trust)

    @property
    def has_password(self) -> bool:
        return self.user is not None

    @property
    def is_trust(self) -> bool:
        return self.trust is not None

    @property
    def identity(self) -> tuple:
        """Identity ignoring persistence, so the same secret is tried once."""
        return (self.user, self.password, self.trust)


class CredentialStore:
    """Thread-safe store of protection space → credentials.

    Each protection space holds an ordered list of credentials and an
    optional default. The store only changes when the caller writes to it.
    """

    def __init__(self, credentials=None):
        self._lock = threading.RLock()
        self._entries: typing.Dict[ProtectionSpace, typing.List[Credential]] = {}
        self._defaults: typing.Dict[ProtectionSpace, Credential] = {}
        for space, value in (credentials or {}).items():
            for credential in value if isinstance(value, (list, tuple)) else [value]:
                self.put(space, credential)

    def lookup(self, space: ProtectionSpace) -> typing.Optional[Credential]:
        """Return the default credential for ``space``, else its first one."""
        with self._lock:
            default = self._defaults.get(space)
            if default is not None:
                return default
            entries = self._entries.get(space)
            return entries[0] if entries else None

    def default_credential(self, space: ProtectionSpace) -> typing.Optional[Credential]:
        with self._lock:
            return self._defaults.get(space)

    def set_default_credential(self, space: ProtectionSpace, credential: Credential) -> None:
        with self._lock:
            self._add(space, credential)
            self._defaults[space] = credential

    def put(
        self,
        space: ProtectionSpace,
        credential: Credential,
        persistence: typing.Optional[Persistence] = None,
    ) -> Credential:
        """Store ``credential`` for ``space`` and return the stored value.

        ``persistence`` overrides the credential's own policy when given.
        """
        if persistence is not None:
            credential = replace(credential, persistence=Persistence(persistence))
        with self._lock:
            self._add(space, credential)
        return credential

    def _add(self, space, credential):
        entries = self._entries.setdefault(space, [])
        for index, existing in enumerate(entries):
            if existing.user == credential.user and existing.trust == credential.trust:
                entries[index] = credential
                break
        else:
            entries.append(credential)
        default = self._defaults.get(space)
        if default is not None and default.user == credential.user:
            self._defaults[space] = credential

    def remove(self, space: ProtectionSpace, credential: typing.Optional[Credential] = None) -> None:
        """Remove one credential, or every credential, for ``space``."""
        with self._lock:
            if credential is None:
                self._entries.pop(space, None)
                self._defaults.pop(space, None)
                return
            entries = [
                c for c in self._entries.get(space, []) if c.identity != credential.identity
            ]
            if entries:
                self._entries[space] = entries
            else:
                self._entries.pop(space, None)
            default = self._defaults.get(space)
            if default is not None and default.identity == credential.identity:
                del self._defaults[space]

    def credentials_for(self, space: ProtectionSpace) -> typing.List[Credential]:
        with self._lock:
            return list(self._entries.get(space, []))

    @property
    def all_credentials(self) -> typing.Dict[ProtectionSpace, typing.List[Credential]]:
        with self._lock:
            return {space: list(entries) for space, entries in self._entries.items()}

    def next_candidate(
        self,
        space: ProtectionSpace,
        excluding: typing.Iterable = (),
    ) -> typing.Optional[Credential]:
        """Return a credential for ``space`` not in ``excluding``.

        The search broadens step by step: the exact protection space, then
        the same host, port and scheme under any realm, then the same host
        and port under any scheme. ``excluding`` holds credentials or their
        ``identity`` tuples.
        """
        tried = {getattr(item, "identity", item) for item in excluding}
        with self._lock:
            for candidate_space in self._candidate_spaces(space):
                for credential in self._ordered(candidate_space):
                    if credential.identity in tried:
                        continue
                    if space.is_server_trust != credential.is_trust:
                        continue
                    return credential
        return None

    def _candidate_spaces(self, space):
        yield space
        same_scheme = []
        same_host = []
        for other in self._entries:
            if other == space:
                continue
            if (other.host, other.port, other.proxy) != (space.host, space.port, space.proxy):
                continue
            if other.scheme == space.scheme:
                same_scheme.append(other)
            elif not other.is_server_trust and not space.is_server_trust:
                same_host.append(other)
        yield from same_scheme
        yield from same_host

    def _ordered(self, space):
        entries = self._entries.get(space, [])
        default = self._defaults.get(space)
        if default is None:
            return list(entries)
        return [default] + [c for c in entries if c.identity != default.identity]

    def clear_session_credentials(self) -> None:
        """Drop credentials whose persistence ends with the session."""
        with self._lock:
            for space in list(self._entries):
                self._entries[space] = [
                    c for c in self._entries[space] if c.persistence is Persistence.PERMANENT
                ]
                if not self._entries[space]:
                    del self._entries[space]
            for space, default in list(self._defaults.items()):
                if default.persistence is not Persistence.PERMANENT:
                    del self._defaults[space]

    def __len__(self):
        with self._lock:
            return sum(len(entries) for entries in self._entries.values())

    def __repr__(self):
        return f"<CredentialStore [{len(self)} credentials]>"
