"""Tests for cache module"""

import logging
import os
import threading
import time
from unittest import mock

from htauth import files
from htauth.cache import CacheEntry, CredentialFileCache
from htauth.files import CredentialFileError, FileFormat


def _bump_mtime(path, seconds=10):
    """Move the file's mtime forward without touching its content"""
    st = os.stat(path)
    new_mtime = st.st_mtime_ns + seconds * 1_000_000_000
    os.utime(path, ns=(new_mtime, new_mtime))


def _count_reads():
    return mock.patch(
        "htauth.files.read_credential_file", wraps=files.read_credential_file
    )


class TestCacheEntry:
    """Test CacheEntry class"""

    def test_len(self):
        """Test entry length is the number of credentials"""
        entry = CacheEntry(table={"a": "x", "b": "y"}, mtime_ns=1, path="p")
        assert len(entry) == 2


class TestCredentialFileCache:
    """Test CredentialFileCache class"""

    def test_initialization(self, htpasswd_file):
        """Test nothing is read until the first lookup"""
        with _count_reads() as read:
            cache = CredentialFileCache(htpasswd_file)
            assert cache.entry is None
            assert read.call_count == 0

    def test_lookup(self, htpasswd_file):
        """Test basic htpasswd lookups"""
        cache = CredentialFileCache(htpasswd_file)
        assert cache.lookup("test") == "{SHA}qvTGHdzF6KLavt4PO0gs2a6pQ00="
        assert cache.lookup("nosuchuser") == ""

    def test_htpasswd_ignores_realm(self, htpasswd_file):
        """Test a realm passed to an htpasswd cache is ignored"""
        cache = CredentialFileCache(htpasswd_file)
        assert cache.lookup("test", "blah") == "{SHA}qvTGHdzF6KLavt4PO0gs2a6pQ00="

    def test_htdigest_lookup(self, htdigest_file):
        """Test htdigest lookups are realm scoped"""
        cache = CredentialFileCache(htdigest_file, FileFormat.HTDIGEST)
        assert cache.lookup("test", "example.com") == "aa78524fceb0e50fd8ca96dd818b8cf9"
        assert cache.lookup("test", "example1.com") == ""
        assert cache.lookup("test1", "example.com") == ""

    def test_repeated_lookups_read_once(self, htpasswd_file):
        """Test an unchanged file is parsed only once"""
        cache = CredentialFileCache(htpasswd_file)
        with _count_reads() as read:
            for _ in range(5):
                cache.lookup("test")
            assert read.call_count == 1
        assert cache.reload_count == 1

    def test_mtime_change_reparses(self, htpasswd_file):
        """Test touching the file triggers a re-parse even with identical content"""
        cache = CredentialFileCache(htpasswd_file)
        with _count_reads() as read:
            cache.lookup("test")
            _bump_mtime(htpasswd_file)
            cache.lookup("test")
            cache.lookup("test")
            assert read.call_count == 2

    def test_new_content_visible_after_change(self, htpasswd_file):
        """Test rewritten files are picked up"""
        cache = CredentialFileCache(htpasswd_file)
        assert cache.lookup("newuser") == ""

        htpasswd_file.write_text("newuser:{SHA}abc=\n")
        _bump_mtime(htpasswd_file)

        assert cache.lookup("newuser") == "{SHA}abc="
        assert cache.lookup("test") == ""

    def test_entry_replaced_not_mutated(self, htpasswd_file):
        """Test a reload publishes a new entry and leaves the old one intact"""
        cache = CredentialFileCache(htpasswd_file)
        cache.lookup("test")
        old = cache.entry

        htpasswd_file.write_text("other:{SHA}abc=\n")
        _bump_mtime(htpasswd_file)
        cache.lookup("other")

        assert cache.entry is not old
        assert "test" in old.table
        assert "test" not in cache.entry.table

    def test_missing_file_returns_empty(self, tmp_path):
        """Test a file that never existed yields no credentials"""
        cache = CredentialFileCache(tmp_path / "missing.htpasswd")
        assert cache.lookup("test") == ""
        assert cache.entry is None

    def test_deleted_file_keeps_last_table(self, htpasswd_file):
        """Test stat failures fall back to the cached table"""
        cache = CredentialFileCache(htpasswd_file)
        cache.lookup("test")

        htpasswd_file.unlink()

        assert cache.lookup("test") == "{SHA}qvTGHdzF6KLavt4PO0gs2a6pQ00="

    def test_read_failure_keeps_last_table(self, htpasswd_file):
        """Test a failed re-read keeps the previous version"""
        cache = CredentialFileCache(htpasswd_file)
        cache.lookup("test")
        _bump_mtime(htpasswd_file)

        error = CredentialFileError(htpasswd_file, "Permission denied")
        with mock.patch("htauth.files.read_credential_file", side_effect=error):
            assert cache.lookup("test") == "{SHA}qvTGHdzF6KLavt4PO0gs2a6pQ00="

        assert cache.reload_count == 1

    def test_read_failure_without_cache_is_empty(self, htpasswd_file):
        """Test a failed first read yields no credentials and is retried later"""
        cache = CredentialFileCache(htpasswd_file)
        error = CredentialFileError(htpasswd_file, "Permission denied")
        with mock.patch("htauth.files.read_credential_file", side_effect=error):
            assert cache.lookup("test") == ""

        assert cache.lookup("test") == "{SHA}qvTGHdzF6KLavt4PO0gs2a6pQ00="

    def test_reload_forces_reparse(self, htpasswd_file):
        """Test reload() re-reads even when the mtime is unchanged"""
        cache = CredentialFileCache(htpasswd_file)
        with _count_reads() as read:
            cache.lookup("test")
            cache.reload()
            cache.lookup("test")
            cache.lookup("test")
            assert read.call_count == 2

    def test_reload_during_reparse_not_lost(self, htpasswd_file):
        """Test reload() called while a re-parse is reading the file still forces the next one"""
        cache = CredentialFileCache(htpasswd_file)
        read = files.read_credential_file
        started = threading.Event()
        threads = []

        def read_while_reloading(path):
            if not threads:
                t = threading.Thread(target=lambda: (started.set(), cache.reload()))
                threads.append(t)
                t.start()
                started.wait()
                time.sleep(0.05)
            return read(path)

        with mock.patch(
            "htauth.files.read_credential_file", side_effect=read_while_reloading
        ) as patched:
            cache.lookup("test")
            threads[0].join()
            cache.lookup("test")
            assert patched.call_count == 2

    def test_missing_file_warns_once(self, tmp_path, caplog):
        """Test repeated stat failures log one warning per failure streak"""
        path = tmp_path / "late.htpasswd"
        cache = CredentialFileCache(path)

        with caplog.at_level(logging.DEBUG, logger="htauth.cache"):
            for _ in range(5):
                cache.lookup("test")
            path.write_text("test:{SHA}abc=\n")
            assert cache.lookup("test") == "{SHA}abc="
            path.unlink()
            cache.lookup("test")

        warnings = [r for r in caplog.records if r.levelno == logging.WARNING]
        assert len(warnings) == 2
        assert any("available again" in r.getMessage() for r in caplog.records)

    def test_get_status(self, htpasswd_file):
        """Test cache status reporting"""
        cache = CredentialFileCache(htpasswd_file)
        status = cache.get_status()
        assert status["loaded"] is False
        assert status["entries"] == 0

        cache.lookup("test")
        status = cache.get_status()

        assert status["loaded"] is True
        assert status["entries"] == 6
        assert status["format"] == "htpasswd"
        assert status["reload_count"] == 1
        assert status["mtime_ns"] == os.stat(htpasswd_file).st_mtime_ns


class TestConcurrentAccess:
    """Test concurrent readers while the file changes"""

    def test_concurrent_first_lookup(self, htpasswd_file):
        """Test simultaneous first lookups all see the loaded table"""
        cache = CredentialFileCache(htpasswd_file)
        os.utime(htpasswd_file)
        results = []
        barrier = threading.Barrier(8)

        def worker():
            barrier.wait()
            results.append(cache.lookup("test"))

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert results == ["{SHA}qvTGHdzF6KLavt4PO0gs2a6pQ00="] * 8
        assert cache.reload_count == 1

    def test_readers_never_see_mixed_versions(self, tmp_path):
        """Test every table a reader gets comes from one complete file version"""
        path = tmp_path / "stress.htpasswd"
        users = [f"user{i}" for i in range(50)]

        def write_version(version):
            tmp = tmp_path / "stress.tmp"
            tmp.write_text("".join(f"{u}:v{version}\n" for u in users))
            mtime = 1_000_000_000_000_000_000 + version * 1_000_000_000
            os.utime(tmp, ns=(mtime, mtime))
            os.replace(tmp, path)

        write_version(0)
        cache = CredentialFileCache(path)
        stop = threading.Event()
        errors = []

        def reader():
            while not stop.is_set():
                table = cache.current()
                versions = {table.get(u) for u in users}
                if len(versions) != 1 or None in versions:
                    errors.append(versions)
                    return

        readers = [threading.Thread(target=reader) for _ in range(8)]
        for t in readers:
            t.start()
        try:
            for version in range(1, 200):
                write_version(version)
        finally:
            stop.set()
            for t in readers:
                t.join()

        assert errors == []
        assert cache.lookup("user0") == "v199"
