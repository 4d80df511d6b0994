"""
Secret providers: the seam between credential storage and authenticators.

A provider is any callable ``(request, username, realm) -> str`` that
returns the stored secret for a user, or an empty string when there is
none. Authenticators depend only on this signature.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING, Any, Mapping, Protocol, runtime_checkable

from .cache import CredentialFileCache
from .files import CredentialKey, FileFormat

if TYPE_CHECKING:
    from .config import AuthConfig

logger = logging.getLogger(__name__)


@runtime_checkable
class SecretProvider(Protocol):
    """Callable returning the stored secret for (username, realm)."""

    def __call__(self, request: Any, username: str, realm: str) -> str: ...


class HtpasswdFileProvider:
    """Serve secrets from an htpasswd file. The realm is ignored."""

    def __init__(self, path: str | Path):
        self.cache = CredentialFileCache(path, FileFormat.HTPASSWD)

    def __call__(self, request: Any, username: str, realm: str) -> str:
        return self.cache.lookup(username)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.cache.path!r})"


class HtdigestFileProvider:
    """Serve precomputed digests from an htdigest file, keyed by (username, realm)."""

    def __init__(self, path: str | Path):
        self.cache = CredentialFileCache(path, FileFormat.HTDIGEST)

    def __call__(self, request: Any, username: str, realm: str) -> str:
        return self.cache.lookup(username, realm)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.cache.path!r})"


class StaticSecretProvider:
    """
    Serve secrets from an in-memory mapping.

    Keys are either usernames or (username, realm) tuples. A (username,
    realm) entry takes precedence over a plain username entry.
    """

    def __init__(self, secrets: Mapping[CredentialKey, str]):
        self._secrets = dict(secrets)

    def __call__(self, request: Any, username: str, realm: str) -> str:
        secret = self._secrets.get((username, realm))
        if secret is None:
            secret = self._secrets.get(username, "")
        return secret

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({len(self._secrets)} entries)"


def provider_from_config(config: "AuthConfig") -> SecretProvider:
    """
    Build the secret provider described by an AuthConfig.

    Raises:
        ValueError: If the backend is unknown or a file backend has no path
    """
    backend = config.backend
    if backend == "static":
        provider: SecretProvider = StaticSecretProvider(config.users)
    elif backend in ("htpasswd", "htdigest"):
        if not config.file:
            raise ValueError(f"auth.file is required for the {backend} backend")
        if backend == "htpasswd":
            provider = HtpasswdFileProvider(config.file)
        else:
            provider = HtdigestFileProvider(config.file)
    else:
        raise ValueError(f"Unknown auth backend: {backend!r}")

    logger.info(f"Using secret provider {provider!r}")
    return provider
