"""
Path codec

Tracked paths are stored as flat file names so that nested paths never
need a directory hierarchy inside the store. The key is URL-safe base64
of the UTF-8 path, which never contains a path separator. Bytes that are
not valid UTF-8 survive the round trip via surrogate escapes, matching how
paths are read from git.
"""

import base64
import binascii
import re

from .errors import InvalidStorageKey

_KEY_RE = re.compile(r"[A-Za-z0-9_-]+={0,2}")


def encode(path: str) -> str:
    """Encode a repository-relative path as a storage key."""
    if not path:
        raise ValueError("Cannot encode an empty path")
    return base64.urlsafe_b64encode(path.encode("utf-8", "surrogateescape")).decode("ascii")


def decode(key: str) -> str:
    """Decode a storage key back into its path.

    Raises InvalidStorageKey rather than returning a mangled path.
    Only the canonical encoding of a path is accepted, so two keys can
    never name the same path.
    """
    if not _KEY_RE.fullmatch(key) or len(key) % 4:
        raise InvalidStorageKey(key)
    try:
        raw = base64.urlsafe_b64decode(key)
    except binascii.Error:
        raise InvalidStorageKey(key) from None
    path = raw.decode("utf-8", "surrogateescape")
    if not path:
        raise InvalidStorageKey(key, "decodes to an empty path")
    if encode(path) != key:
        raise InvalidStorageKey(key, "not in canonical form")
    return path
