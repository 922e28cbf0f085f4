"""
Command-line interface for Zealbuild.

This module provides the `zealbuild` CLI tool for building Zeal 8-bit
assembly programs.
"""

import argparse
import sys
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from zealbuild import __version__
from zealbuild.build.orchestrator import BuildOrchestrator, BuildOrchestratorError
from zealbuild.cli_utils import ErrorFormatter, PathValidator, setup_logging
from zealbuild.config import ProjectConfigError
from zealbuild.packages import ResolutionError


@dataclass
class BuildArgs:
    """Arguments for the build command."""

    project_dir: Path
    source: Optional[str] = None
    clean: bool = False
    verbose: bool = False


@dataclass
class ResolveArgs:
    """Arguments for the resolve command."""

    project_dir: Path
    source: Optional[str] = None
    verbose: bool = False


def build_command(args: BuildArgs) -> None:
    """Assemble, link and extract a raw binary.

    Examples:
        zealbuild build                  # Build the configured source
        zealbuild build examples/hello   # Build a specific project
        zealbuild build -s game.asm      # Build another root source
        zealbuild build --clean          # Clean build
        zealbuild build --verbose        # Verbose output
    """
    print(f"Zealbuild v{__version__}")
    print()

    try:
        orchestrator = BuildOrchestrator(verbose=args.verbose)

        if args.verbose:
            print(f"Building project: {args.project_dir}")
            print()
        else:
            print(f"Building {args.source or args.project_dir}...")

        start_time = time.time()
        result = orchestrator.build(
            project_dir=args.project_dir,
            source=args.source,
            clean=args.clean,
            verbose=args.verbose,
        )
        build_time = time.time() - start_time

        if result.success:
            ErrorFormatter.print_success("Build successful!")
            print()
            print(f"Binary:  {result.bin_path} ({result.image_size} bytes)")
            print(f"Listing: {result.listing_path}")
            print(f"Map:     {result.map_path}")
            print()
            print(f"Build time: {build_time:.2f}s")
            sys.exit(0)
        else:
            ErrorFormatter.print_error("Build failed!", result.message)
            ErrorFormatter.print_diagnostics(result.diagnostics)
            sys.exit(1)

    except FileNotFoundError as e:
        ErrorFormatter.handle_file_not_found(e)
    except KeyboardInterrupt:
        ErrorFormatter.handle_keyboard_interrupt()
    except Exception as e:
        ErrorFormatter.handle_unexpected_error(e, args.verbose)


def resolve_command(args: ResolveArgs) -> None:
    """List every dependency of a source file.

    Examples:
        zealbuild resolve                # Resolve the configured source
        zealbuild resolve -s game.asm    # Resolve another root source
    """
    try:
        orchestrator = BuildOrchestrator(verbose=args.verbose)
        bundle = orchestrator.resolve(args.project_dir, args.source)

        for name, content in bundle.items():
            kind = "binary" if isinstance(content, bytes) else "source"
            print(f"{name} ({kind}, {len(content)} {'bytes' if kind == 'binary' else 'chars'})")
        print()
        print(f"{len(bundle)} dependencies")
        sys.exit(0)

    except (BuildOrchestratorError, ProjectConfigError, ResolutionError) as e:
        ErrorFormatter.print_error("Resolution failed!", str(e))
        sys.exit(1)
    except FileNotFoundError as e:
        ErrorFormatter.handle_file_not_found(e)
    except KeyboardInterrupt:
        ErrorFormatter.handle_keyboard_interrupt()
    except Exception as e:
        ErrorFormatter.handle_unexpected_error(e, args.verbose)


def main() -> None:
    """Zealbuild - build Zeal 8-bit assembly programs with GNU binutils."""
    parser = argparse.ArgumentParser(
        prog="zealbuild",
        description="Zealbuild - Zeal 8-bit assembly build pipeline",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"zealbuild {__version__}",
    )

    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    # Build command
    build_parser = subparsers.add_parser(
        "build",
        help="Assemble, link and extract a raw binary",
    )
    build_parser.add_argument(
        "project_dir",
        nargs="?",
        type=Path,
        default=Path.cwd(),
        help="Project directory (default: current directory)",
    )
    build_parser.add_argument(
        "-s",
        "--source",
        default=None,
        help="Root source file (default: from zeal8bit.ini, else main.asm)",
    )
    build_parser.add_argument(
        "-c",
        "--clean",
        action="store_true",
        help="Clean build artifacts before building",
    )
    build_parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Show verbose build output",
    )

    # Resolve command
    resolve_parser = subparsers.add_parser(
        "resolve",
        help="List the .include/.incbin dependencies of a source",
    )
    resolve_parser.add_argument(
        "project_dir",
        nargs="?",
        type=Path,
        default=Path.cwd(),
        help="Project directory (default: current directory)",
    )
    resolve_parser.add_argument(
        "-s",
        "--source",
        default=None,
        help="Root source file (default: from zeal8bit.ini, else main.asm)",
    )
    resolve_parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Show verbose output",
    )

    parsed_args = parser.parse_args()

    # If no command specified, show help
    if not parsed_args.command:
        parser.print_help()
        sys.exit(0)

    PathValidator.validate_project_dir(parsed_args.project_dir)
    setup_logging(parsed_args.verbose)

    if parsed_args.command == "build":
        build_command(BuildArgs(
            project_dir=parsed_args.project_dir,
            source=parsed_args.source,
            clean=parsed_args.clean,
            verbose=parsed_args.verbose,
        ))
    elif parsed_args.command == "resolve":
        resolve_command(ResolveArgs(
            project_dir=parsed_args.project_dir,
            source=parsed_args.source,
            verbose=parsed_args.verbose,
        ))


if __name__ == "__main__":
    main()
