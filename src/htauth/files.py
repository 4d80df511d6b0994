"""Parsing of htpasswd and htdigest credential files."""

from __future__ import annotations

import logging
from enum import Enum
from pathlib import Path
from types import MappingProxyType
from typing import Mapping, Union

logger = logging.getLogger(__name__)

CredentialKey = Union[str, tuple[str, str]]
CredentialTable = Mapping[CredentialKey, str]

EMPTY_TABLE: CredentialTable = MappingProxyType({})


class HtauthError(Exception):
    """Base class for htauth errors."""


class CredentialFileError(HtauthError):
    """A credential file could not be read."""

    def __init__(self, path: str | Path, reason: str):
        super().__init__(f"Cannot read credential file {path}: {reason}")
        self.path = str(path)
        self.reason = reason


class FileFormat(Enum):
    """Supported credential file layouts."""

    HTPASSWD = "htpasswd"
    HTDIGEST = "htdigest"


def read_credential_file(path: str | Path) -> str:
    """
    Read the whole credential file.

    Raises:
        CredentialFileError: If the file cannot be opened or read
    """
    try:
        with open(path, encoding="utf-8", errors="replace") as f:
            return f.read()
    except OSError as e:
        raise CredentialFileError(path, e.strerror or str(e)) from e


def _lines(text: str):
    for line in text.splitlines():
        line = line.strip()
        if line:
            yield line


def parse_htpasswd(text: str) -> CredentialTable:
    """
    Parse ``user:secret`` lines into a table keyed by username.

    Lines that do not have exactly two fields, or have an empty username,
    are skipped. The last line for a user wins.
    """
    table: dict[CredentialKey, str] = {}
    skipped = 0
    for line in _lines(text):
        fields = line.split(":")
        if len(fields) != 2 or not fields[0]:
            skipped += 1
            continue
        table[fields[0]] = fields[1]
    if skipped:
        logger.debug(f"Skipped {skipped} malformed htpasswd line(s)")
    return MappingProxyType(table)


def parse_htdigest(text: str) -> CredentialTable:
    """
    Parse ``user:realm:secret`` lines into a table keyed by (user, realm).

    Lines that do not have exactly three fields, or have an empty username,
    are skipped. The last line for a (user, realm) pair wins.
    """
    table: dict[CredentialKey, str] = {}
    skipped = 0
    for line in _lines(text):
        fields = line.split(":")
        if len(fields) != 3 or not fields[0]:
            skipped += 1
            continue
        user, realm, secret = fields
        table[(user, realm)] = secret
    if skipped:
        logger.debug(f"Skipped {skipped} malformed htdigest line(s)")
    return MappingProxyType(table)


PARSERS = {
    FileFormat.HTPASSWD: parse_htpasswd,
    FileFormat.HTDIGEST: parse_htdigest,
}


def parse(text: str, file_format: FileFormat) -> CredentialTable:
    """Parse file contents with the parser for ``file_format``."""
    return PARSERS[file_format](text)


def load_credential_file(path: str | Path, file_format: FileFormat) -> CredentialTable:
    """Read and parse a credential file in one step."""
    return parse(read_credential_file(path), file_format)


def lookup(table: CredentialTable, username: str, realm: str | None = None) -> str:
    """
    Look up a stored secret.

    Args:
        table: Parsed credential table
        username: Claimed username
        realm: Realm for htdigest tables, None for htpasswd tables

    Returns:
        The stored secret, or an empty string if there is none
    """
    key: CredentialKey = username if realm is None else (username, realm)
    return table.get(key, "")
