"""Parsing of user-supplied channel identifiers.

Accepted forms::

    @handle
    UCxxxxxxxxxxxxxxxxxxxxxx                       (bare channel id)
    https://www.youtube.com/channel/UCxxxxxxxxxxxxxxxxxxxxxx
    https://www.youtube.com/c/<name>
    https://www.youtube.com/user/<name>
    https://www.youtube.com/<name>                 (name may start with @)

The scheme may be http or https and ``www.`` is optional. Anything else is
unresolved; parsing never raises.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Literal, Union

IdentifierKind = Literal["channel_id", "handle", "username"]

# "UC" + 21 token characters + one of a fixed set of trailing characters
CHANNEL_ID_RE = re.compile(r"UC[\w-]{21}[AQgw]")
TOKEN_RE = re.compile(r"[\w@-]+")

URL_PREFIXES = (
    "https://www.youtube.com/",
    "https://youtube.com/",
    "http://www.youtube.com/",
    "http://youtube.com/",
)


@dataclass(frozen=True)
class ResolvedIdentifier:
    kind: IdentifierKind
    value: str

    @property
    def lookup_param(self) -> str:
        """Query parameter of channels.list that selects by this identifier."""
        return {"channel_id": "id", "handle": "forHandle", "username": "forUsername"}[self.kind]


@dataclass(frozen=True)
class UnresolvedIdentifier:
    identifier: str
    reason: str


ParsedIdentifier = Union[ResolvedIdentifier, UnresolvedIdentifier]


def _is_channel_id(value: str) -> bool:
    return CHANNEL_ID_RE.fullmatch(value) is not None


def _is_token(value: str) -> bool:
    return TOKEN_RE.fullmatch(value) is not None


def _parse_path(identifier: str, path: str) -> ParsedIdentifier:
    head, sep, rest = path.partition("/")

    if sep and head == "channel":
        if _is_channel_id(rest):
            return ResolvedIdentifier("channel_id", rest)
        return UnresolvedIdentifier(identifier, "malformed channel id")

    if sep and head in ("c", "user"):
        if not _is_token(rest):
            return UnresolvedIdentifier(identifier, f"malformed {head}/ name")
        return ResolvedIdentifier("handle" if head == "c" else "username", rest)

    if sep:
        return UnresolvedIdentifier(identifier, f"unsupported path /{head}/")

    if _is_token(path):
        return ResolvedIdentifier("handle", path)
    return UnresolvedIdentifier(identifier, "empty or malformed channel name")


def parse_channel_identifier(identifier: str) -> ParsedIdentifier:
    """Dispatch on the identifier prefix and return a tagged result."""
    value = (identifier or "").strip()
    if not value:
        return UnresolvedIdentifier(identifier, "empty identifier")

    if value.startswith("@"):
        if _is_token(value[1:]):
            return ResolvedIdentifier("handle", value)
        return UnresolvedIdentifier(identifier, "malformed handle")

    if value.startswith("UC") and _is_channel_id(value):
        return ResolvedIdentifier("channel_id", value)

    for prefix in URL_PREFIXES:
        if value.startswith(prefix):
            return _parse_path(identifier, value[len(prefix):])

    return UnresolvedIdentifier(identifier, "expected @handle, channel id or youtube.com URL")
