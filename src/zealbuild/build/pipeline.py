"""
Toolchain pipeline: assemble -> link -> extract raw binary.

This module sequences the three external tool stages. Each stage runs inside
a freshly created, isolated VirtualFileStore; only the declared outputs of one
stage are handed to the next. Every stderr line from every stage becomes a
Diagnostic in a single run-wide list, and the run stops at the first stage
that exits non-zero or produces any diagnostic.
"""

import logging
import posixpath
import subprocess
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Callable, Dict, List, Mapping, Optional, Tuple

from .diagnostics import Diagnostic, DiagnosticExtractor, PipelineStage
from .file_store import Content, DirectoryFileStore, FileStoreError, VirtualFileStore
from .image_assembler import ImageAssembler, ListingParser, format_hex_dump
from .stage_runner import StageRunner

logger = logging.getLogger(__name__)

SOURCE_DIR = "src"
LINKER_SCRIPT_NAME = "zeal8bit.ld"
DEFAULT_LINKER_SCRIPT = Path(__file__).resolve().parent.parent / "assets" / LINKER_SCRIPT_NAME


class PipelineError(Exception):
    """Raised when a stage fails; carries every diagnostic collected so far."""

    def __init__(self, diagnostics: List[Diagnostic]):
        self.diagnostics = list(diagnostics)
        stage = self.diagnostics[-1].stage.value if self.diagnostics else "pipeline"
        super().__init__(
            f"{stage} failed with {len(self.diagnostics)} diagnostic(s)"
        )

    @property
    def stage(self) -> Optional[PipelineStage]:
        """Stage that stopped the pipeline."""
        return self.diagnostics[-1].stage if self.diagnostics else None


class StageExitError(PipelineError):
    """A stage returned a non-zero exit code without reporting anything."""
    pass


class StageDiagnosticError(PipelineError):
    """A stage reported one or more diagnostics (warnings included)."""
    pass


@dataclass(frozen=True)
class BaseAddress:
    """Where the linked text segment is placed.

    Either the packaged linker script governs placement (`linked()`, origin
    0x0000) or an explicit 16-bit origin is passed to the linker (`fixed()`).
    """

    origin: Optional[int] = None

    @classmethod
    def linked(cls) -> 'BaseAddress':
        return cls(None)

    @classmethod
    def fixed(cls, origin: int) -> 'BaseAddress':
        if not 0 <= origin <= 0xFFFF:
            raise ValueError(f"Base address out of range: {origin:#x}")
        return cls(origin)

    @property
    def is_linked(self) -> bool:
        return self.origin is None

    def __str__(self) -> str:
        return "linked" if self.origin is None else f"0x{self.origin:04x}"


@dataclass(frozen=True)
class PipelineConfig:
    """Per-run pipeline settings. Immutable for the duration of a run."""

    verbose: bool = False
    base_address: BaseAddress = field(default_factory=BaseAddress.linked)
    dependencies: Mapping[str, Content] = field(default_factory=dict)

    def __post_init__(self):
        object.__setattr__(self, 'dependencies', MappingProxyType(dict(self.dependencies)))


@dataclass
class PipelineResult:
    """Artifacts of a successful pipeline run."""

    file_name: str
    binary: bytes
    listing: str
    map: str
    obj: bytes
    elf: bytes
    image: bytes
    diagnostics: List[Diagnostic] = field(default_factory=list)

    def hex_dump(self) -> str:
        """Byte dump of the memory image rebuilt from the listing."""
        return format_hex_dump(self.image)

    def combined_listing(self) -> str:
        """Listing followed by the linker map."""
        return f"{self.listing}\n\n\nGLD MAP /user/{self.file_name}\n{self.map}"


@dataclass
class _StageSpec:
    """Everything needed to run one stage in its own store."""

    stage: PipelineStage
    directories: List[str]
    inputs: Dict[str, Content]
    argv: List[str]
    outputs: Dict[str, Tuple[str, Optional[str]]]  # name -> (path, encoding)


class ToolchainPipeline:
    """
    Runs assemble, link and extract in sequence.

    Example usage:
        pipeline = ToolchainPipeline(
            assembler=SubprocessStageRunner("z80-elf-as"),
            linker=SubprocessStageRunner("z80-elf-ld"),
            extractor=SubprocessStageRunner("z80-elf-objcopy"),
        )
        result = pipeline.run("main.asm", source, PipelineConfig(
            base_address=BaseAddress.fixed(0x4000),
            dependencies=bundle,
        ))
        print(result.hex_dump())
    """

    def __init__(
        self,
        assembler: StageRunner,
        linker: StageRunner,
        extractor: StageRunner,
        store_factory: Callable[[], VirtualFileStore] = DirectoryFileStore.temporary,
        linker_script: Optional[str] = None,
        diagnostic_extractor: Optional[DiagnosticExtractor] = None
    ):
        """
        Initialize pipeline.

        Args:
            assembler: Runner for the assemble stage
            linker: Runner for the link stage
            extractor: Runner for the raw binary extraction stage
            store_factory: Creates a fresh isolated store for every stage
            linker_script: Linker script text (defaults to the packaged script)
            diagnostic_extractor: Parser for stderr lines
        """
        self.runners = {
            PipelineStage.ASSEMBLE: assembler,
            PipelineStage.LINK: linker,
            PipelineStage.EXTRACT: extractor,
        }
        self.store_factory = store_factory
        self._linker_script = linker_script
        self.diagnostic_extractor = diagnostic_extractor or DiagnosticExtractor()

    @property
    def linker_script(self) -> str:
        if self._linker_script is None:
            self._linker_script = DEFAULT_LINKER_SCRIPT.read_text(encoding='utf-8')
        return self._linker_script

    def run(self, file_name: str, source_text: str, config: PipelineConfig) -> PipelineResult:
        """
        Assemble, link and extract a source file.

        Args:
            file_name: Base name for every staged file (e.g. "main.asm")
            source_text: Root source text
            config: Run configuration

        Returns:
            PipelineResult with the raw binary, listing, map and memory image

        Raises:
            StageDiagnosticError: If any stage reported diagnostics
            StageExitError: If a stage exited non-zero
        """
        diagnostics: List[Diagnostic] = []

        assembled = self._run_stage(self.assemble_spec(file_name, source_text, config), diagnostics)
        linked = self._run_stage(self.link_spec(file_name, assembled['obj'], config), diagnostics)
        extracted = self._run_stage(self.extract_spec(file_name, linked['elf'], config), diagnostics)

        listing = assembled['listing']
        image = ImageAssembler.assemble(ListingParser().parse(listing))

        return PipelineResult(
            file_name=file_name,
            binary=extracted['bin'],
            listing=listing,
            map=linked['map'],
            obj=assembled['obj'],
            elf=linked['elf'],
            image=image,
            diagnostics=diagnostics,
        )

    def assemble_spec(self, file_name: str, source_text: str, config: PipelineConfig) -> _StageSpec:
        """Inputs and arguments for the assemble stage."""
        source_path = f"{SOURCE_DIR}/{file_name}"
        directories = [posixpath.dirname(source_path)]
        inputs: Dict[str, Content] = {source_path: source_text}

        for name, content in config.dependencies.items():
            path = f"{SOURCE_DIR}/{name}"
            directories.append(posixpath.dirname(path))
            inputs[path] = content

        argv = ['-g', f'-I{SOURCE_DIR}/user', f'-I{SOURCE_DIR}/files', f'-I{SOURCE_DIR}']
        argv.extend(f'-I{SOURCE_DIR}/{d}' for d in include_dirs(config.dependencies))
        argv.extend([
            f'-alh={source_path}.lst',
            '-o', f'{source_path}.o',
            source_path,
        ])
        if config.verbose:
            argv.insert(0, '--warn')

        return _StageSpec(
            stage=PipelineStage.ASSEMBLE,
            directories=directories,
            inputs=inputs,
            argv=argv,
            outputs={
                'obj': (f'{source_path}.o', None),
                'listing': (f'{source_path}.lst', 'utf-8'),
            },
        )

    def link_spec(self, file_name: str, obj: bytes, config: PipelineConfig) -> _StageSpec:
        """Inputs and arguments for the link stage."""
        source_path = f"{SOURCE_DIR}/{file_name}"
        inputs: Dict[str, Content] = {f'{source_path}.o': obj}

        argv = ['-o', f'{source_path}.elf', f'-Map={source_path}.map', f'{source_path}.o']
        if config.base_address.is_linked:
            inputs[LINKER_SCRIPT_NAME] = self.linker_script
            argv[:0] = ['-T', LINKER_SCRIPT_NAME]
        else:
            argv[:0] = ['-Ttext', str(config.base_address)]
        if config.verbose:
            argv.insert(0, '-verbose')

        return _StageSpec(
            stage=PipelineStage.LINK,
            directories=[posixpath.dirname(source_path)],
            inputs=inputs,
            argv=argv,
            outputs={
                'elf': (f'{source_path}.elf', None),
                'map': (f'{source_path}.map', 'utf-8'),
            },
        )

    def extract_spec(self, file_name: str, elf: bytes, config: PipelineConfig) -> _StageSpec:
        """Inputs and arguments for the raw binary extraction stage."""
        source_path = f"{SOURCE_DIR}/{file_name}"
        argv = ['-O', 'binary', f'{source_path}.elf', f'{source_path}.bin']
        if config.verbose:
            argv.insert(0, '--verbose')

        return _StageSpec(
            stage=PipelineStage.EXTRACT,
            directories=[posixpath.dirname(source_path)],
            inputs={f'{source_path}.elf': elf},
            argv=argv,
            outputs={'bin': (f'{source_path}.bin', None)},
        )

    def _run_stage(self, spec: _StageSpec, diagnostics: List[Diagnostic]) -> Dict[str, Content]:
        """Create a store, stage inputs, invoke the tool and collect outputs."""
        runner = self.runners[spec.stage]
        stage_name = spec.stage.value

        def on_stderr(line: str) -> None:
            logger.debug(f"{stage_name} stderr: {line}")
            diagnostics.append(self.diagnostic_extractor.extract(spec.stage, line))

        with self.store_factory() as store:
            for directory in spec.directories:
                store.mkdir_tree(directory)
            for path, content in spec.inputs.items():
                store.write_file(path, content)

            logger.info(f"Running {stage_name} {' '.join(spec.argv)}")
            try:
                exit_code = runner.run(spec.argv, store, on_stderr)
            except (OSError, subprocess.SubprocessError, FileStoreError) as e:
                diagnostics.append(Diagnostic(stage=spec.stage, message=str(e)))
                exit_code = -1

            if diagnostics:
                raise StageDiagnosticError(diagnostics)
            if exit_code != 0:
                raise StageExitError([Diagnostic(stage=spec.stage, message=f"exit code {exit_code}")])

            outputs: Dict[str, Content] = {}
            for name, (path, encoding) in spec.outputs.items():
                try:
                    content = store.read_file(path)
                except FileStoreError as e:
                    diagnostics.append(Diagnostic(stage=spec.stage, message=str(e)))
                    raise StageDiagnosticError(diagnostics) from e
                # listings and maps echo source bytes verbatim
                outputs[name] = content.decode(encoding, errors='replace') if encoding else content
                logger.debug(f"{stage_name} produced {name} ({len(outputs[name])} bytes/chars)")

        return outputs


def include_dirs(dependencies: Mapping[str, Content]) -> List[str]:
    """Distinct directory prefixes of dependency names, in first-seen order.

    The `user` and `files` roots are always searched and are not repeated.
    """
    dirs: List[str] = []
    for name in dependencies:
        directory = posixpath.dirname(name)
        if directory and directory not in dirs and directory not in ('user', 'files'):
            dirs.append(directory)
    return dirs
