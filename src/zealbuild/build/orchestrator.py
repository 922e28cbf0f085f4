"""
Build orchestration for Zeal 8-bit assembly projects.

This module coordinates a complete project build:
- Configuration parsing (zeal8bit.ini)
- Include resolution (project directory, then the remote headers location)
- Toolchain lookup (as, ld, objcopy)
- The assemble -> link -> extract pipeline
- Writing build artifacts (.bin, .lst, .map, hex dump)
"""

import shutil
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

import requests

from ..config import ProjectConfig
from ..config.project_config import ProjectConfigError
from ..packages.downloader import RemoteIncludeFetcher, ResolutionError
from ..packages.include_resolver import DependencyBundle, IncludeResolver, LocalIncludeSource
from ..packages.toolchain_binaries import BinaryNotFoundError, ToolchainBinaryFinder
from .diagnostics import Diagnostic
from .file_store import DirectoryFileStore, FileStoreError
from .pipeline import PipelineConfig, PipelineError, PipelineResult, ToolchainPipeline
from .stage_runner import SubprocessStageRunner


@dataclass
class BuildResult:
    """Result of a complete build operation."""

    success: bool
    bin_path: Optional[Path]
    listing_path: Optional[Path]
    map_path: Optional[Path]
    build_time: float
    message: str
    image_size: int = 0
    diagnostics: List[Diagnostic] = field(default_factory=list)


class BuildOrchestratorError(Exception):
    """Exception raised for build orchestration errors."""
    pass


class BuildOrchestrator:
    """
    Orchestrates the complete build process for a project directory.

    This class coordinates all phases of the build:
    1. Parse zeal8bit.ini configuration
    2. Read the root source file
    3. Resolve .include/.incbin dependencies
    4. Assemble, link and extract the raw binary
    5. Write artifacts to the build directory

    Example usage:
        orchestrator = BuildOrchestrator()
        result = orchestrator.build(project_dir=Path("."), verbose=False)
        if result.success:
            print(f"Binary: {result.bin_path}")
    """

    def __init__(
        self,
        verbose: bool = False,
        pipeline: Optional[ToolchainPipeline] = None,
        session: Optional[requests.Session] = None
    ):
        """
        Initialize build orchestrator.

        Args:
            verbose: Enable verbose output
            pipeline: Pipeline to use (built from the configured toolchain if None)
            session: HTTP session for remote includes
        """
        self.verbose = verbose
        self.pipeline = pipeline
        self.session = session

    def resolve(self, project_dir: Path, source: Optional[str] = None) -> DependencyBundle:
        """
        Resolve the dependencies of a project's root source.

        Args:
            project_dir: Project root directory
            source: Root source file (defaults to the configured one)

        Returns:
            DependencyBundle of every included file

        Raises:
            ProjectConfigError: If zeal8bit.ini is invalid
            BuildOrchestratorError: If the root source cannot be read
            ResolutionError: On a transport fault
        """
        project_dir = Path(project_dir).resolve()
        config = ProjectConfig.load(project_dir)
        source_name = source or config.source
        source_text = self._read_source(project_dir, source_name)
        return self._create_resolver(project_dir, config).resolve(source_name, source_text)

    def build(
        self,
        project_dir: Path,
        source: Optional[str] = None,
        clean: bool = False,
        verbose: Optional[bool] = None
    ) -> BuildResult:
        """
        Execute complete build process.

        Args:
            project_dir: Project root directory
            source: Root source file (defaults to the configured one)
            clean: Remove the build directory before building
            verbose: Override verbose setting

        Returns:
            BuildResult with build status, artifact paths and diagnostics
        """
        start_time = time.time()
        verbose_mode = verbose if verbose is not None else self.verbose

        try:
            project_dir = Path(project_dir).resolve()

            # Phase 1: Parse configuration
            if verbose_mode:
                print("[1/5] Loading zeal8bit.ini...")

            config = ProjectConfig.load(project_dir)
            source_name = source or config.source
            base_address = config.base_address

            if verbose_mode:
                print(f"      Source: {source_name}")
                print(f"      Target: {config.uses} (base address: {base_address})")

            build_dir = project_dir / config.build_dir
            if clean and build_dir.exists():
                if verbose_mode:
                    print(f"      Cleaning {build_dir}")
                shutil.rmtree(build_dir)

            # Phase 2: Read source
            if verbose_mode:
                print("[2/5] Reading source...")

            source_text = self._read_source(project_dir, source_name)

            # Phase 3: Resolve includes
            if verbose_mode:
                print("[3/5] Resolving includes...")

            dependencies = self._create_resolver(project_dir, config).resolve(source_name, source_text)

            if verbose_mode:
                for name in dependencies:
                    print(f"      {name}")
                print(f"      {len(dependencies)} dependencies")

            # Phase 4: Run the toolchain
            if verbose_mode:
                print("[4/5] Assembling, linking and extracting...")

            pipeline = self.pipeline or self._create_pipeline(config)
            file_name = Path(source_name).name
            result = pipeline.run(
                file_name,
                source_text,
                PipelineConfig(
                    verbose=verbose_mode,
                    base_address=base_address,
                    dependencies=dependencies,
                ),
            )

            # Phase 5: Write artifacts
            if verbose_mode:
                print("[5/5] Writing artifacts...")

            bin_path, listing_path, map_path = self._write_artifacts(build_dir, result)

            build_time = time.time() - start_time
            if verbose_mode:
                print(f"      Binary: {bin_path} ({len(result.binary)} bytes)")
                print(f"Build time: {build_time:.2f}s")

            return BuildResult(
                success=True,
                bin_path=bin_path,
                listing_path=listing_path,
                map_path=map_path,
                build_time=build_time,
                message="Build successful",
                image_size=len(result.binary),
                diagnostics=result.diagnostics,
            )

        except PipelineError as e:
            return BuildResult(
                success=False,
                bin_path=None,
                listing_path=None,
                map_path=None,
                build_time=time.time() - start_time,
                message="No binary file was produced, check for errors",
                diagnostics=e.diagnostics,
            )
        except (
            BuildOrchestratorError,
            ProjectConfigError,
            ResolutionError,
            BinaryNotFoundError,
            FileStoreError
        ) as e:
            return BuildResult(
                success=False,
                bin_path=None,
                listing_path=None,
                map_path=None,
                build_time=time.time() - start_time,
                message=str(e),
            )

    def _read_source(self, project_dir: Path, source_name: str) -> str:
        source_path = project_dir / source_name
        if not source_path.is_file():
            raise BuildOrchestratorError(f"Source file not found: {source_path}")
        return source_path.read_text(encoding="utf-8", errors="replace")

    def _create_resolver(self, project_dir: Path, config: ProjectConfig) -> IncludeResolver:
        local = LocalIncludeSource(DirectoryFileStore(project_dir), prefix=config.user_prefix)
        remote = None
        if config.headers_url:
            remote = RemoteIncludeFetcher(config.headers_url, session=self.session)
        return IncludeResolver(local=local, remote=remote)

    def _create_pipeline(self, config: ProjectConfig) -> ToolchainPipeline:
        finder = ToolchainBinaryFinder(config.toolchain_prefix, config.toolchain_bin_dir)
        tools = finder.require_binaries()
        return ToolchainPipeline(
            assembler=SubprocessStageRunner(tools["as"]),
            linker=SubprocessStageRunner(tools["ld"]),
            extractor=SubprocessStageRunner(tools["objcopy"]),
        )

    def _write_artifacts(self, build_dir: Path, result: PipelineResult):
        """Write .bin, .lst, .map and the hex dump. Returns (bin, lst, map) paths."""
        build_dir.mkdir(parents=True, exist_ok=True)
        stem = result.file_name

        bin_path = build_dir / f"{stem}.bin"
        listing_path = build_dir / f"{stem}.lst"
        map_path = build_dir / f"{stem}.map"

        bin_path.write_bytes(result.binary)
        listing_path.write_text(result.combined_listing(), encoding="utf-8")
        map_path.write_text(result.map, encoding="utf-8")
        (build_dir / f"{stem}.hex.txt").write_text(result.hex_dump() + "\n", encoding="utf-8")

        return bin_path, listing_path, map_path
