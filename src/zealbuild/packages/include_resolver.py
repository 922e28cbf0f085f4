"""
Include resolution for assembly sources.

This module handles:
- Scanning source text for `.include "path"` and `.incbin "path"` directives
- Looking each target up in the local user store, then remotely
- Collecting every dependency exactly once into a DependencyBundle

Traversal is depth-first over an explicit stack. The seen-set and the bundle
belong to a single resolve() call, so concurrent resolutions never share
state.
"""

import logging
import posixpath
import re
from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Optional, Set

from ..build.file_store import Content, FileStoreError, VirtualFileStore
from .downloader import FetchError, RemoteIncludeFetcher, TransportError

logger = logging.getLogger(__name__)

DependencyBundle = Dict[str, Content]

DIRECTIVE_PATTERN = re.compile(
    r'^[ \t]*\.(?P<kind>include|incbin)[ \t]+"(?P<path>[^"]+)"[ \t]*(?:;.*)?$',
    re.MULTILINE
)


@dataclass(frozen=True)
class IncludeDirective:
    """One `.include`/`.incbin` line."""

    kind: str  # "include" or "incbin"
    path: str

    def __str__(self) -> str:
        return f'.{self.kind} "{self.path}"'


@dataclass(frozen=True)
class SourceUnit:
    """A resolved dependency."""

    name: str
    content: Content


def scan_directives(text: str) -> List[IncludeDirective]:
    """Find every include directive in source text, in order of appearance."""
    return [
        IncludeDirective(kind=m.group('kind'), path=m.group('path'))
        for m in DIRECTIVE_PATTERN.finditer(text)
    ]


def canonical_name(path: str) -> str:
    """Normalize a directive path before it is used as a bundle key."""
    return posixpath.normpath(path.replace('\\', '/'))


class LocalIncludeSource:
    """Looks includes up in a local store under a namespace prefix.

    Content is returned as text when it decodes as UTF-8, otherwise as bytes.
    """

    def __init__(self, store: VirtualFileStore, prefix: str = "user"):
        self.store = store
        self.prefix = prefix.strip('/')

    def path_for(self, include_path: str) -> str:
        return f"{self.prefix}/{include_path}" if self.prefix else include_path

    def read(self, include_path: str) -> Optional[Content]:
        """
        Read an include from the store.

        Returns:
            Content, or None if the store has no such file

        Raises:
            TransportError: If the file exists but cannot be read
        """
        path = self.path_for(include_path)
        try:
            if not self.store.exists(path):
                return None
        except FileStoreError:
            return None

        try:
            data = self.store.read_file(path)
        except FileStoreError as e:
            if not self.store.exists(path):
                return None
            raise TransportError(f"Failed to read local include {path}: {e}") from e

        if isinstance(data, str):
            return data
        try:
            return data.decode('utf-8')
        except UnicodeDecodeError:
            return data


@dataclass
class _ResolutionState:
    """Run-scoped state of one resolve() call."""

    seen: Set[str] = field(default_factory=set)
    bundle: DependencyBundle = field(default_factory=dict)

    def visit(self, name: str, content: Content) -> bool:
        """Mark a name seen and store its content. False if already seen."""
        if name in self.seen:
            return False
        self.seen.add(name)
        self.bundle[name] = content
        return True


class IncludeResolver:
    """
    Discovers and fetches every dependency of a root source.

    Lookup order for each directive:
    1. Local store (under the user namespace); a hit is expanded as an
       include whatever the directive kind, and no remote request is made
    2. Remote primary location (headers)
    3. Remote fallback location (files), only after a primary miss

    A directive found nowhere is logged and skipped. Network faults raise
    TransportError and abort the whole resolution.

    Example usage:
        resolver = IncludeResolver(
            local=LocalIncludeSource(DirectoryFileStore(project_dir), prefix=""),
            remote=RemoteIncludeFetcher("https://example.org/playground/"),
        )
        bundle = resolver.resolve("main.asm", source_text)
    """

    def __init__(
        self,
        local: Optional[LocalIncludeSource] = None,
        remote: Optional[RemoteIncludeFetcher] = None
    ):
        """
        Initialize resolver.

        Args:
            local: Local store lookup (skipped if None)
            remote: Remote fetcher (skipped if None)
        """
        self.local = local
        self.remote = remote

    def resolve(self, root_name: str, root_content: str) -> DependencyBundle:
        """
        Resolve the include graph of a root source.

        Args:
            root_name: Name of the root source (excluded from the result)
            root_content: Root source text

        Returns:
            Mapping of dependency name to text (includes) or bytes (incbin)

        Raises:
            TransportError: On a network or filesystem fault
        """
        state = _ResolutionState()
        root_key = canonical_name(root_name)
        state.visit(root_key, root_content)

        stack: List[Iterator[IncludeDirective]] = [iter(scan_directives(root_content))]
        while stack:
            directive = next(stack[-1], None)
            if directive is None:
                stack.pop()
                continue

            unit = self._resolve_directive(directive, state)
            if unit is not None and isinstance(unit.content, str):
                stack.append(iter(scan_directives(unit.content)))

        bundle = state.bundle
        del bundle[root_key]
        logger.debug(f"Resolved {len(bundle)} dependencies for {root_name}")
        return bundle

    def _resolve_directive(
        self,
        directive: IncludeDirective,
        state: _ResolutionState
    ) -> Optional[SourceUnit]:
        """Resolve one directive. Returns the new unit to expand, if any."""
        path = canonical_name(directive.path)
        if path in state.seen:
            return None

        if self.local is not None:
            local_content = self.local.read(path)
            if local_content is not None:
                logger.debug(f"{directive}: found in local store")
                state.visit(path, local_content)
                return SourceUnit(path, local_content)

        if self.remote is None:
            logger.warning(f"Skipping {directive}: not found locally and no remote location configured")
            return None

        if any(name in state.seen for name in self.remote.candidate_names(path)):
            return None

        try:
            fetched = self.remote.fetch(path)
        except FetchError as e:
            logger.warning(f"Skipping {directive}: {e}")
            return None

        if directive.kind == 'include':
            unit = SourceUnit(fetched.name, fetched.text())
        else:
            unit = SourceUnit(fetched.name, fetched.content)

        if not state.visit(unit.name, unit.content):
            return None
        return unit
