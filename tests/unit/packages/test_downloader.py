"""Tests for remote include fetching."""

from unittest.mock import Mock

import pytest
import requests

from zealbuild.packages.downloader import (
    FetchError,
    FetchedInclude,
    RemoteIncludeFetcher,
    TransportError,
)


def response(status_code=200, content=b"", reason="OK"):
    return Mock(ok=status_code < 400, status_code=status_code, content=content, reason=reason)


class TestRemoteIncludeFetcher:
    """Test suite for RemoteIncludeFetcher."""

    def test_base_url_gets_trailing_slash(self):
        fetcher = RemoteIncludeFetcher("https://zeal.example/playground", session=Mock())

        assert fetcher.base_url == "https://zeal.example/playground/"

    def test_candidate_urls(self):
        fetcher = RemoteIncludeFetcher("https://zeal.example/playground/", session=Mock())

        assert fetcher.candidate_urls("zos_sys.asm") == [
            "https://zeal.example/playground/files/headers/zos_sys.asm",
            "https://zeal.example/playground/files/zos_sys.asm",
        ]

    def test_candidate_names(self):
        fetcher = RemoteIncludeFetcher("https://zeal.example/", session=Mock())

        assert fetcher.candidate_names("lib/a.asm") == [
            "files/headers/lib/a.asm",
            "files/lib/a.asm",
        ]

    def test_name_for_unquotes_path(self):
        assert RemoteIncludeFetcher.name_for(
            "https://zeal.example/files/my%20file.asm"
        ) == "files/my file.asm"

    def test_fetch_primary(self):
        session = Mock()
        session.get.return_value = response(content=b"nop\n")
        fetcher = RemoteIncludeFetcher("https://zeal.example/", session=session, timeout=5)

        fetched = fetcher.fetch("a.asm")

        assert fetched == FetchedInclude(
            name="files/headers/a.asm",
            url="https://zeal.example/files/headers/a.asm",
            content=b"nop\n",
        )
        assert fetched.text() == "nop\n"
        session.get.assert_called_once_with("https://zeal.example/files/headers/a.asm", timeout=5)

    def test_fetch_fallback_after_primary_miss(self):
        session = Mock()
        session.get.side_effect = [
            response(404, reason="Not Found"),
            response(content=b"nop\n"),
        ]
        fetcher = RemoteIncludeFetcher("https://zeal.example/", session=session)

        fetched = fetcher.fetch("a.asm")

        assert fetched.name == "files/a.asm"
        assert session.get.call_count == 2

    def test_fetch_missing_everywhere(self):
        session = Mock()
        session.get.side_effect = [
            response(404, reason="Not Found"),
            response(500, reason="Server Error"),
        ]
        fetcher = RemoteIncludeFetcher("https://zeal.example/", session=session)

        with pytest.raises(FetchError) as exc_info:
            fetcher.fetch("a.asm")

        message = str(exc_info.value)
        assert "Failed to load a.asm" in message
        assert "404 Not Found" in message
        assert "500 Server Error" in message

    def test_network_fault_is_transport_error(self):
        session = Mock()
        session.get.side_effect = requests.Timeout("timed out")
        fetcher = RemoteIncludeFetcher("https://zeal.example/", session=session)

        with pytest.raises(TransportError) as exc_info:
            fetcher.fetch("a.asm")

        assert "https://zeal.example/files/headers/a.asm" in str(exc_info.value)

    def test_text_replaces_invalid_bytes(self):
        fetched = FetchedInclude(name="a", url="u", content=b"ok\xff")

        assert fetched.text() == "ok�"
