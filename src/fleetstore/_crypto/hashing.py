"""Credential hashing.

Passwords are hashed with salted scrypt and
stored in a self-describing string so the cost parameters can be raised
later without invalidating existing hashes::

    scrypt$<n>$<r>$<p>$<salt b64>$<hash b64>
"""

from __future__ import annotations

import base64
import binascii
import secrets

from cryptography.exceptions import InvalidKey
from cryptography.hazmat.primitives.kdf.scrypt import Scrypt

_SCHEME = "scrypt"
_SALT_BYTES = 16
_KEY_BYTES = 32

DEFAULT_N = 2**14
DEFAULT_R = 8
DEFAULT_P = 1


def _b64encode(raw: bytes) -> str:
    return base64.b64encode(raw).decode("ascii")


def hash_credential(
    plain: str,
    *,
    n: int = DEFAULT_N,
    r: int = DEFAULT_R,
    p: int = DEFAULT_P,
) -> str:
    """Hash *plain* with a fresh random salt.

    Parameters
    ----------
    plain : str
        The plaintext password. Never stored or logged.
    n, r, p : int
        scrypt cost parameters.

    Returns
    -------
    str
        Encoded hash string.
    """
    salt = secrets.token_bytes(_SALT_BYTES)
    kdf = Scrypt(salt=salt, length=_KEY_BYTES, n=n, r=r, p=p)
    derived = kdf.derive(plain.encode("utf-8"))
    return "$".join((_SCHEME, str(n), str(r), str(p), _b64encode(salt), _b64encode(derived)))


def verify_credential(plain: str, encoded: str) -> bool:
    """Check *plain* against an encoded hash in constant time.

    A malformed or foreign hash string verifies as ``False``.
    """
    parts = encoded.split("$")
    if len(parts) != 6 or parts[0] != _SCHEME:
        return False
    try:
        n, r, p = (int(part) for part in parts[1:4])
        salt = base64.b64decode(parts[4], validate=True)
        expected = base64.b64decode(parts[5], validate=True)
    except (ValueError, binascii.Error):
        return False

    try:
        kdf = Scrypt(salt=salt, length=len(expected), n=n, r=r, p=p)
    except ValueError:
        return False
    try:
        kdf.verify(plain.encode("utf-8"), expected)
    except InvalidKey:
        return False
    return True
