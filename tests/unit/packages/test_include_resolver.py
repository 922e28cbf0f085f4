"""Tests for include resolution."""

import logging
from unittest.mock import Mock

import pytest
import requests

from zealbuild.build.file_store import MemoryFileStore
from zealbuild.packages.downloader import RemoteIncludeFetcher, TransportError
from zealbuild.packages.include_resolver import (
    IncludeDirective,
    IncludeResolver,
    LocalIncludeSource,
    canonical_name,
    scan_directives,
)

BASE_URL = "https://zeal.example/"


def fake_session(files):
    """Session double serving `files` (URL path -> bytes), 404 for the rest."""
    session = Mock()

    def get(url, timeout=None):
        path = url[len(BASE_URL):]
        if path in files:
            return Mock(ok=True, content=files[path], status_code=200, reason="OK")
        return Mock(ok=False, content=b"", status_code=404, reason="Not Found")

    session.get.side_effect = get
    return session


def make_resolver(local_files=None, remote_files=None, prefix="user"):
    local = LocalIncludeSource(MemoryFileStore(local_files or {}), prefix=prefix)
    remote = None
    session = None
    if remote_files is not None:
        session = fake_session(remote_files)
        remote = RemoteIncludeFetcher(BASE_URL, session=session)
    return IncludeResolver(local=local, remote=remote), session


class TestScanDirectives:
    """Test directive scanning."""

    def test_include_and_incbin(self):
        text = (
            '.include "zos_sys.asm"\n'
            '    ld a, 1\n'
            '\t.incbin "font.bin" ; glyphs\n'
        )

        assert scan_directives(text) == [
            IncludeDirective("include", "zos_sys.asm"),
            IncludeDirective("incbin", "font.bin"),
        ]

    def test_commented_directive_ignored(self):
        assert scan_directives('; .include "old.asm"\n') == []

    def test_directive_str(self):
        assert str(IncludeDirective("incbin", "a.bin")) == '.incbin "a.bin"'


class TestCanonicalName:
    """Test directive path canonicalization."""

    def test_dot_segments(self):
        assert canonical_name("./lib/../sub.asm") == "sub.asm"

    def test_backslashes(self):
        assert canonical_name("lib\\sub.asm") == "lib/sub.asm"


class TestIncludeResolver:
    """Test suite for IncludeResolver."""

    def test_local_hit_makes_no_remote_request(self):
        resolver, session = make_resolver(
            local_files={"user/sub.asm": "nop\n"},
            remote_files={},
        )

        bundle = resolver.resolve("main.asm", '.include "sub.asm"\n')

        assert bundle == {"sub.asm": "nop\n"}
        session.get.assert_not_called()

    def test_nested_local_includes(self):
        resolver, _ = make_resolver(local_files={
            "user/a.asm": '.include "lib/b.asm"\n',
            "user/lib/b.asm": "nop\n",
        })

        bundle = resolver.resolve("main.asm", '.include "a.asm"\n')

        assert bundle == {"a.asm": '.include "lib/b.asm"\n', "lib/b.asm": "nop\n"}

    def test_root_is_excluded(self):
        resolver, _ = make_resolver(local_files={
            "user/a.asm": '.include "main.asm"\n',
            "user/main.asm": '.include "a.asm"\n',
        })

        bundle = resolver.resolve("main.asm", '.include "a.asm"\n')

        assert list(bundle) == ["a.asm"]

    def test_cycle_terminates(self):
        resolver, _ = make_resolver(local_files={
            "user/a.asm": '.include "b.asm"\n',
            "user/b.asm": '.include "a.asm"\n',
        })

        bundle = resolver.resolve("main.asm", '.include "a.asm"\n')

        assert set(bundle) == {"a.asm", "b.asm"}

    def test_depth_first_order(self):
        resolver, _ = make_resolver(local_files={
            "user/a.asm": '.include "a1.asm"\n',
            "user/a1.asm": "nop\n",
            "user/b.asm": "nop\n",
        })

        bundle = resolver.resolve("main.asm", '.include "a.asm"\n.include "b.asm"\n')

        assert list(bundle) == ["a.asm", "a1.asm", "b.asm"]

    def test_equivalent_paths_resolved_once(self):
        resolver, _ = make_resolver(local_files={"user/sub.asm": "nop\n"})

        bundle = resolver.resolve(
            "main.asm",
            '.include "sub.asm"\n.include "./sub.asm"\n.include "lib/../sub.asm"\n'
        )

        assert bundle == {"sub.asm": "nop\n"}

    def test_remote_primary_location(self):
        resolver, session = make_resolver(remote_files={
            "files/headers/zos_sys.asm": b"; syscalls\n",
        })

        bundle = resolver.resolve("main.asm", '.include "zos_sys.asm"\n')

        assert bundle == {"files/headers/zos_sys.asm": "; syscalls\n"}
        assert session.get.call_count == 1

    def test_remote_fallback_location(self):
        resolver, session = make_resolver(remote_files={
            "files/util.asm": b"nop\n",
        })

        bundle = resolver.resolve("main.asm", '.include "util.asm"\n')

        assert bundle == {"files/util.asm": "nop\n"}
        requested = [c.args[0] for c in session.get.call_args_list]
        assert requested == [
            BASE_URL + "files/headers/util.asm",
            BASE_URL + "files/util.asm",
        ]

    def test_remote_diamond_fetched_once(self):
        resolver, session = make_resolver(remote_files={
            "files/headers/x.asm": b'.include "common.asm"\n',
            "files/headers/y.asm": b'.include "common.asm"\n',
            "files/headers/common.asm": b"nop\n",
        })

        bundle = resolver.resolve("main.asm", '.include "x.asm"\n.include "y.asm"\n')

        assert set(bundle) == {
            "files/headers/x.asm",
            "files/headers/y.asm",
            "files/headers/common.asm",
        }
        requested = [c.args[0] for c in session.get.call_args_list]
        assert requested.count(BASE_URL + "files/headers/common.asm") == 1

    def test_incbin_kept_as_bytes(self):
        resolver, _ = make_resolver(remote_files={
            "files/headers/font.bin": b'\x00\xff.include "never.asm"',
        })

        bundle = resolver.resolve("main.asm", '.incbin "font.bin"\n')

        assert bundle == {"files/headers/font.bin": b'\x00\xff.include "never.asm"'}

    def test_local_binary_not_scanned(self):
        resolver, _ = make_resolver(local_files={"user/font.bin": b"\xff\xfe\x00"})

        bundle = resolver.resolve("main.asm", '.incbin "font.bin"\n')

        assert bundle == {"font.bin": b"\xff\xfe\x00"}

    def test_missing_include_is_skipped(self, caplog):
        caplog.set_level(logging.WARNING)
        resolver, _ = make_resolver(
            local_files={"user/b.asm": "nop\n"},
            remote_files={},
        )

        bundle = resolver.resolve("main.asm", '.include "missing.asm"\n.include "b.asm"\n')

        assert bundle == {"b.asm": "nop\n"}
        assert "missing.asm" in caplog.text

    def test_missing_include_without_remote(self, caplog):
        caplog.set_level(logging.WARNING)
        resolver, _ = make_resolver()

        bundle = resolver.resolve("main.asm", '.include "missing.asm"\n')

        assert bundle == {}
        assert "no remote location configured" in caplog.text

    def test_transport_error_aborts(self):
        resolver, session = make_resolver(remote_files={})
        session.get.side_effect = requests.ConnectionError("connection refused")

        with pytest.raises(TransportError):
            resolver.resolve("main.asm", '.include "zos_sys.asm"\n')

    def test_resolutions_are_independent(self):
        resolver, _ = make_resolver(local_files={"user/sub.asm": "nop\n"})

        first = resolver.resolve("main.asm", '.include "sub.asm"\n')
        second = resolver.resolve("main.asm", '.include "sub.asm"\n')

        assert first == second == {"sub.asm": "nop\n"}
        assert first is not second

    def test_no_directives(self):
        resolver, _ = make_resolver()

        assert resolver.resolve("main.asm", "ld a, 1\nret\n") == {}


class TestLocalIncludeSource:
    """Test suite for LocalIncludeSource."""

    def test_prefix(self):
        source = LocalIncludeSource(MemoryFileStore({"user/a.asm": "nop\n"}), prefix="user")

        assert source.path_for("a.asm") == "user/a.asm"
        assert source.read("a.asm") == "nop\n"

    def test_empty_prefix(self):
        source = LocalIncludeSource(MemoryFileStore({"a.asm": "nop\n"}), prefix="")

        assert source.path_for("a.asm") == "a.asm"
        assert source.read("a.asm") == "nop\n"

    def test_miss(self):
        source = LocalIncludeSource(MemoryFileStore())

        assert source.read("a.asm") is None

    def test_escaping_path_is_a_miss(self):
        source = LocalIncludeSource(MemoryFileStore(), prefix="")

        assert source.read("../secret.asm") is None

    def test_store_returning_text(self):
        store = Mock()
        store.exists.return_value = True
        store.read_file.return_value = "nop\n"
        source = LocalIncludeSource(store, prefix="")

        assert source.read("a.asm") == "nop\n"

    def test_undecodable_bytes_stay_bytes(self):
        source = LocalIncludeSource(MemoryFileStore({"a.bin": b"\xff\x00"}), prefix="")

        assert source.read("a.bin") == b"\xff\x00"
