"""
Build system components for Zealbuild.

This module provides the build system implementation including:
- Isolated virtual file stores for each tool stage
- Stage invocation (as, ld, objcopy)
- Diagnostic extraction from tool error output
- The assemble -> link -> extract pipeline
- Memory image reconstruction from assembler listings

Project-level orchestration lives in zealbuild.build.orchestrator.
"""

from .diagnostics import Diagnostic, DiagnosticExtractor, PipelineStage
from .file_store import (
    DirectoryFileStore,
    FileStoreError,
    MemoryFileStore,
    VirtualFileStore,
)
from .image_assembler import AddressedChunk, ImageAssembler, ListingParser, format_hex_dump
from .pipeline import (
    BaseAddress,
    PipelineConfig,
    PipelineError,
    PipelineResult,
    StageDiagnosticError,
    StageExitError,
    ToolchainPipeline,
)
from .stage_runner import StageRunner, SubprocessStageRunner

__all__ = [
    'AddressedChunk',
    'BaseAddress',
    'Diagnostic',
    'DiagnosticExtractor',
    'DirectoryFileStore',
    'FileStoreError',
    'ImageAssembler',
    'ListingParser',
    'MemoryFileStore',
    'PipelineConfig',
    'PipelineError',
    'PipelineResult',
    'PipelineStage',
    'StageDiagnosticError',
    'StageExitError',
    'StageRunner',
    'SubprocessStageRunner',
    'ToolchainPipeline',
    'VirtualFileStore',
    'format_hex_dump',
]
