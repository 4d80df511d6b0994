"""
Password hash detection and verification for htpasswd/htdigest secrets.

Stored secrets are classified by their prefix into one of a closed set of
schemes, then handed to the verifier for that scheme:

- ``{SHA}``                        base64 of the raw SHA-1 digest
- ``$2a$`` ``$2b$`` ``$2x$`` ``$2y$``  bcrypt
- ``$1$`` ``$apr1$``               crypt-MD5
- anything else                    unrecognized (legacy DES-crypt included)

Verification fails closed: a malformed or unsupported secret returns False
instead of raising.
"""

from __future__ import annotations

import hashlib
import hmac
import logging
from enum import Enum

import bcrypt
from passlib.context import CryptContext  # type: ignore[import-untyped]

logger = logging.getLogger(__name__)

SHA1_PREFIX = "{SHA}"
BCRYPT_PREFIXES = ("$2a$", "$2b$", "$2x$", "$2y$")
MD5_CRYPT_PREFIXES = ("$1$", "$apr1$")

# bcrypt only ever looks at the first 72 bytes of a password
BCRYPT_MAX_PASSWORD_BYTES = 72

# {SHA} and crypt-MD5 verification; bcrypt goes through the bcrypt library directly
pwd_context = CryptContext(schemes=["ldap_sha1", "apr_md5_crypt", "md5_crypt"])


class SecretScheme(Enum):
    """Hash schemes a stored secret can be written in."""

    SHA1 = "sha1"
    BCRYPT = "bcrypt"
    MD5_CRYPT = "md5-crypt"
    UNRECOGNIZED = "unrecognized"


def classify_secret(secret: str) -> SecretScheme:
    """
    Work out which scheme produced a stored secret.

    Prefixes are tried in a fixed order; the first match wins.

    Args:
        secret: Stored secret as read from the credential file

    Returns:
        The matching SecretScheme, UNRECOGNIZED if no prefix matches
    """
    if secret.startswith(SHA1_PREFIX):
        return SecretScheme.SHA1
    if secret.startswith(BCRYPT_PREFIXES):
        return SecretScheme.BCRYPT
    if secret.startswith(MD5_CRYPT_PREFIXES):
        return SecretScheme.MD5_CRYPT
    return SecretScheme.UNRECOGNIZED


def _to_bytes(password: str | bytes) -> bytes:
    if isinstance(password, bytes):
        return password
    return password.encode("utf-8")


def _check_passlib(password: bytes, secret: str) -> bool:
    try:
        result: bool = pwd_context.verify(password, secret)
    except ValueError:
        # Truncated or otherwise malformed hash
        logger.debug("Rejecting malformed secret")
        return False
    return result


def _check_bcrypt(password: bytes, secret: str) -> bool:
    try:
        return bcrypt.checkpw(password[:BCRYPT_MAX_PASSWORD_BYTES], secret.encode("ascii"))
    except ValueError:
        # Bad salt, unsupported minor version, non-ASCII secret
        logger.debug("Rejecting malformed bcrypt secret")
        return False


def check_secret(password: str | bytes, secret: str) -> bool:
    """
    Verify a plaintext password against a stored htpasswd secret.

    Args:
        password: Plaintext password supplied by the client
        secret: Stored secret in one of the supported schemes

    Returns:
        True only if the password matches. Empty, malformed and
        unsupported secrets always return False.
    """
    if not secret:
        return False

    pw = _to_bytes(password)
    scheme = classify_secret(secret)
    if scheme is SecretScheme.BCRYPT:
        return _check_bcrypt(pw, secret)
    if scheme in (SecretScheme.SHA1, SecretScheme.MD5_CRYPT):
        return _check_passlib(pw, secret)

    logger.debug("Unsupported secret scheme, rejecting")
    return False


def digest_ha1(username: str, realm: str, password: str | bytes) -> str:
    """Return the htdigest secret, hex MD5 of ``username:realm:password``."""
    prefix = f"{username}:{realm}:".encode("utf-8")
    return hashlib.md5(prefix + _to_bytes(password)).hexdigest()


def check_digest_secret(username: str, realm: str, password: str | bytes, ha1: str) -> bool:
    """Verify a plaintext password against an htdigest row's secret."""
    if not ha1:
        return False
    computed = digest_ha1(username, realm, password)
    return hmac.compare_digest(computed.encode("ascii"), ha1.lower().encode("utf-8"))
