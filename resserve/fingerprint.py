"""
Fingerprints are the ETag values the server hands out. All of them are
quoted, so they can be put into the etag header as is. Nothing here does
any I/O: storages collect the key material and pass it in
"""

import re
import hashlib
from typing import Union

from .typehints import Fingerprint

# quotes, backslashes, whitespace and control characters
FORBIDDEN_CHARS = re.compile(r'["\\\s\x00-\x1f\x7f]')
WEAK_PREFIX = 'W/'


def quote(token: str) -> Fingerprint:
    if not token or FORBIDDEN_CHARS.search(token):
        raise ValueError(f'token can not be used as a validator: {token!r}')

    return f'"{token}"'


def unquote(value: str) -> str:
    """
    Strips whitespaces, weak-validator prefix and one pair of surrounding
    quotes. Weak and strong validators compare equal after this, that is
    how If-None-Match is defined (weak comparison)
    """

    value = value.strip()

    if value.startswith(WEAK_PREFIX):
        value = value[len(WEAK_PREFIX):]

    if len(value) >= 2 and value[0] == value[-1] == '"':
        value = value[1:-1]

    return value


def from_identity(*parts: Union[str, bytes]) -> Fingerprint:
    """
    Fingerprint for a named resource of a compiled bundle. Parts are, in
    order, the bundle name, its build id and the resource name
    """

    digest = hashlib.md5()

    for index, part in enumerate(parts):
        if index:
            digest.update(b'\x00')

        digest.update(part if isinstance(part, bytes) else part.encode())

    return quote(digest.hexdigest())


def from_bytes(data: bytes) -> Fingerprint:
    return quote(hashlib.md5(data).hexdigest())


def from_stat(mtime_ns: int, size: int) -> Fingerprint:
    # a rewrite keeping both size and mtime within one tick is not
    # noticed here; that's the price for not reading the file at all
    return quote(f'{mtime_ns:x}-{size:x}')
