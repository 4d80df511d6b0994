"""
Self-refreshing cache of a parsed credential file.

This module keeps one parsed CredentialTable per file and:
- Re-parses the file only when its modification time changes
- Publishes each new table as a single immutable CacheEntry
- Serves lookups without taking a lock on the cache-hit path
"""

from __future__ import annotations

import logging
import os
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from .files import (
    EMPTY_TABLE,
    CredentialFileError,
    CredentialTable,
    FileFormat,
    load_credential_file,
    lookup,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CacheEntry:
    """A fully parsed credential table and the file version it came from."""

    table: CredentialTable
    mtime_ns: int
    path: str

    def __len__(self) -> int:
        return len(self.table)


class CredentialFileCache:
    """
    Lazily reloaded view of a single htpasswd or htdigest file.

    Readers pick up ``self._entry`` with one attribute read, so they see
    either the old entry or the new one, never a mix. Only the re-parse and
    swap run under the lock, which also stops concurrent callers that saw
    the same mtime change from all parsing the file at once.
    """

    def __init__(self, path: str | Path, file_format: FileFormat = FileFormat.HTPASSWD):
        """
        Initialize the cache. Nothing is read until the first lookup.

        Args:
            path: Path to the credential file
            file_format: Layout of the file (htpasswd or htdigest)
        """
        self.path = str(path)
        self.file_format = file_format
        self.reload_count = 0
        self._entry: CacheEntry | None = None
        self._stale = False
        self._stat_failing = False
        self._lock = threading.Lock()

        logger.debug(f"Credential cache created for {self.path} ({file_format.value})")

    @property
    def entry(self) -> CacheEntry | None:
        """The currently published entry, None before the first load."""
        return self._entry

    def _held_table(self) -> CredentialTable:
        entry = self._entry
        return entry.table if entry is not None else EMPTY_TABLE

    def _is_fresh(self, entry: CacheEntry | None, mtime_ns: int) -> bool:
        return entry is not None and entry.mtime_ns == mtime_ns and not self._stale

    def current(self) -> CredentialTable:
        """
        Return the table for the current version of the file.

        A failed stat or read is logged and the last good table (or an
        empty one) is returned instead.
        """
        try:
            mtime_ns = os.stat(self.path).st_mtime_ns
        except OSError as e:
            # Warn once per failure streak, not on every request
            if self._stat_failing:
                logger.debug(f"Cannot stat credential file {self.path}: {e}")
            else:
                self._stat_failing = True
                logger.warning(f"Cannot stat credential file {self.path}: {e}")
            return self._held_table()

        if self._stat_failing:
            self._stat_failing = False
            logger.info(f"Credential file {self.path} is available again")

        entry = self._entry
        if self._is_fresh(entry, mtime_ns):
            return entry.table  # type: ignore[union-attr]
        return self._reload(mtime_ns)

    def _reload(self, mtime_ns: int) -> CredentialTable:
        with self._lock:
            entry = self._entry
            if self._is_fresh(entry, mtime_ns):
                # Another caller already loaded this version
                return entry.table  # type: ignore[union-attr]

            try:
                table = load_credential_file(self.path, self.file_format)
            except CredentialFileError as e:
                logger.warning(f"{e}; keeping previous credentials")
                return self._held_table()

            self._entry = CacheEntry(table=table, mtime_ns=mtime_ns, path=self.path)
            self._stale = False
            self.reload_count += 1

        logger.info(f"Loaded {len(table)} credential(s) from {self.path}")
        return table

    def lookup(self, username: str, realm: str | None = None) -> str:
        """
        Look up the stored secret for a user.

        Args:
            username: Claimed username
            realm: Realm, only used for htdigest files

        Returns:
            Stored secret, or an empty string if unknown
        """
        if self.file_format is FileFormat.HTPASSWD:
            realm = None
        return lookup(self.current(), username, realm)

    def reload(self) -> None:
        """Force a re-parse on the next lookup even if the mtime is unchanged."""
        # Serialized with _reload, which clears the flag after its swap
        with self._lock:
            self._stale = True

    def get_status(self) -> dict[str, Any]:
        """
        Get cache status information.

        Returns:
            Dictionary describing the loaded file version
        """
        entry = self._entry
        return {
            "path": self.path,
            "format": self.file_format.value,
            "loaded": entry is not None,
            "entries": len(entry) if entry is not None else 0,
            "mtime_ns": entry.mtime_ns if entry is not None else None,
            "reload_count": self.reload_count,
        }
