"""
Internal helpers for parsing authentication headers.
"""

import re
import typing

from ._exceptions import ProtocolError

# A token, optionally followed by "=" and a quoted string or a bare value
_AUTH_PARAM_RE = re.compile(
    r"""
    (?P<token>[!#$%&'*+.^_`|~0-9A-Za-z-]+)
    (?:
        \s*(?P<eq>=)\s*
        (?:"(?P<quoted>(?:[^"\\]|\\.)*)"|(?P<bare>[^\s,]*))
    )?
    """,
    re.VERBOSE,
)


def parse_challenges(header_values: typing.Iterable[str]) -> typing.List[typing.Tuple[str, dict]]:
    """
    Parse WWW-Authenticate / Proxy-Authenticate values into challenges.

    Returns a list of (scheme, params) tuples in header order. Scheme names
    keep their original casing; parameter names are lowercased.

    A single header value may carry several challenges, e.g.
    ``Digest realm="a", nonce="b", Basic realm="a"``.
    """
    challenges = []
    for value in header_values:
        if _has_unclosed_quote(value):
            raise ProtocolError(f"Malformed authentication header: unclosed quote in {value!r}")
        current = None
        for match in _AUTH_PARAM_RE.finditer(value):
            token = match.group("token")
            if match.group("eq") is None:
                current = (token, {})
                challenges.append(current)
                continue
            if current is None:
                raise ProtocolError(
                    f"Malformed authentication header: parameter before scheme in {value!r}"
                )
            if match.group("quoted") is not None:
                param = re.sub(r"\\(.)", r"\1", match.group("quoted"))
            else:
                param = match.group("bare")
            current[1][token.lower()] = param
    return challenges


def _has_unclosed_quote(value):
    in_quote = False
    escaped = False
    for char in value:
        if escaped:
            escaped = False
        elif char == "\\" and in_quote:
            escaped = True
        elif char == '"':
            in_quote = not in_quote
    return in_quote


def quote_param(value: str) -> str:
    """Quote a header parameter value, escaping quotes and backslashes."""
    return '"' + value.replace("\\", "\\\\").replace('"', '\\"') + '"'
