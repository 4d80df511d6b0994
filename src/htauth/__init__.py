"""htauth - Basic/Digest credential verification against htpasswd and htdigest files"""

__version__ = "0.1.0"

from htauth.cache import CacheEntry, CredentialFileCache
from htauth.files import (
    CredentialFileError,
    FileFormat,
    HtauthError,
    parse_htdigest,
    parse_htpasswd,
)
from htauth.hashes import SecretScheme, check_digest_secret, check_secret, classify_secret
from htauth.providers import (
    HtdigestFileProvider,
    HtpasswdFileProvider,
    SecretProvider,
    StaticSecretProvider,
)

__all__ = [
    "__version__",
    "CacheEntry",
    "CredentialFileCache",
    "CredentialFileError",
    "FileFormat",
    "HtauthError",
    "HtdigestFileProvider",
    "HtpasswdFileProvider",
    "SecretProvider",
    "SecretScheme",
    "StaticSecretProvider",
    "check_digest_secret",
    "check_secret",
    "classify_secret",
    "parse_htdigest",
    "parse_htpasswd",
]
