"""Dependency management for Zealbuild.

This module handles finding the dependencies of an assembly source: local
and remote includes, and the toolchain binaries that build it.
"""

from .downloader import (
    FetchedInclude,
    FetchError,
    RemoteIncludeFetcher,
    ResolutionError,
    TransportError,
)
from .include_resolver import (
    DependencyBundle,
    IncludeDirective,
    IncludeResolver,
    LocalIncludeSource,
    SourceUnit,
    scan_directives,
)
from .toolchain_binaries import BinaryNotFoundError, ToolchainBinaryFinder

__all__ = [
    "DependencyBundle",
    "FetchedInclude",
    "FetchError",
    "IncludeDirective",
    "IncludeResolver",
    "LocalIncludeSource",
    "RemoteIncludeFetcher",
    "ResolutionError",
    "SourceUnit",
    "TransportError",
    "BinaryNotFoundError",
    "ToolchainBinaryFinder",
    "scan_directives",
]
