"""Remote include fetching.

This module downloads `.include`/`.incbin` targets that are not present in the
local store. Two locations under a base URL are tried in order: the headers
directory first, then the flat files directory.
"""

import logging
from dataclasses import dataclass
from typing import List, Optional
from urllib.parse import unquote, urljoin, urlparse

import requests

logger = logging.getLogger(__name__)


class ResolutionError(Exception):
    """Base class for include resolution failures."""

    pass


class FetchError(ResolutionError):
    """Raised when an include is missing from every remote location."""

    pass


class TransportError(ResolutionError):
    """Raised on a network fault (as opposed to a missing file)."""

    pass


@dataclass(frozen=True)
class FetchedInclude:
    """A successfully downloaded include."""

    name: str  # URL path without the leading '/', used as the bundle key
    url: str
    content: bytes

    def text(self, encoding: str = "utf-8") -> str:
        return self.content.decode(encoding, errors="replace")


class RemoteIncludeFetcher:
    """Fetches includes from a primary and a fallback location.

    Example:
        fetcher = RemoteIncludeFetcher("https://example.org/playground/")
        fetcher.candidate_urls("zos_sys.asm")
        # ['https://example.org/playground/files/headers/zos_sys.asm',
        #  'https://example.org/playground/files/zos_sys.asm']
    """

    def __init__(
        self,
        base_url: str,
        primary_dir: str = "files/headers/",
        fallback_dir: str = "files/",
        session: Optional[requests.Session] = None,
        timeout: float = 30,
    ):
        """Initialize fetcher.

        Args:
            base_url: URL both locations are resolved against
            primary_dir: Directory tried first (relative to base_url)
            fallback_dir: Directory tried when the primary misses
            session: requests session to use (one is created if omitted)
            timeout: Per-request timeout in seconds
        """
        self.base_url = base_url if base_url.endswith("/") else base_url + "/"
        self.primary_dir = primary_dir
        self.fallback_dir = fallback_dir
        self.session = session or requests.Session()
        self.timeout = timeout

    def candidate_urls(self, include_path: str) -> List[str]:
        """URLs for an include path, in lookup order."""
        return [
            urljoin(self.base_url, f"{self.primary_dir}{include_path}"),
            urljoin(self.base_url, f"{self.fallback_dir}{include_path}"),
        ]

    def candidate_names(self, include_path: str) -> List[str]:
        """Bundle keys the candidate URLs would be stored under."""
        return [self.name_for(url) for url in self.candidate_urls(include_path)]

    @staticmethod
    def name_for(url: str) -> str:
        return unquote(urlparse(url).path).lstrip("/")

    def fetch(self, include_path: str) -> FetchedInclude:
        """Download an include from the first location that has it.

        Args:
            include_path: Path as written in the directive

        Returns:
            FetchedInclude with the raw response body

        Raises:
            FetchError: If neither location returned a success response
            TransportError: If a request failed at the network level
        """
        failures = []
        for url in self.candidate_urls(include_path):
            response = self._get(url)
            if response.ok:
                logger.debug(f"Fetched {url} ({len(response.content)} bytes)")
                return FetchedInclude(
                    name=self.name_for(url),
                    url=url,
                    content=response.content,
                )
            failures.append(f"{url}: {response.status_code} {response.reason}")

        raise FetchError(f"Failed to load {include_path}\n" + "\n".join(failures))

    def _get(self, url: str) -> requests.Response:
        try:
            return self.session.get(url, timeout=self.timeout)
        except requests.RequestException as e:
            raise TransportError(f"Failed to download {url}: {e}") from e
