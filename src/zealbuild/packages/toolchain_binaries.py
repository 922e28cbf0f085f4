"""Toolchain Binary Finder Utilities.

This module locates the assembler, linker and objcopy binaries of the target
toolchain.

Binary Naming Conventions:
    - Z80 GNU binutils: z80-elf-as, z80-elf-ld, z80-elf-objcopy

Search Order:
    1. The configured bin directory (bin_dir/z80-elf-as[.exe])
    2. The PATH
"""

import shutil
from pathlib import Path
from typing import Dict, List, Optional


class BinaryNotFoundError(Exception):
    """Raised when a required toolchain binary is not found."""

    pass


class ToolchainBinaryFinder:
    """Finds the toolchain binaries used by the pipeline stages."""

    REQUIRED_TOOLS = ["as", "ld", "objcopy"]

    def __init__(self, binary_prefix: str = "z80-elf", bin_dir: Optional[Path] = None):
        """Initialize the binary finder.

        Args:
            binary_prefix: Binary name prefix (e.g., "z80-elf")
            bin_dir: Directory holding the binaries (PATH is used if None)
        """
        self.binary_prefix = binary_prefix
        self.bin_dir = Path(bin_dir) if bin_dir else None

    def find_binary(self, binary_name: str) -> Optional[Path]:
        """Find a specific binary.

        Args:
            binary_name: Name of the binary without prefix (e.g., "as", "ld")

        Returns:
            Path to the binary, or None if not found
        """
        binary_with_prefix = f"{self.binary_prefix}-{binary_name}"

        if self.bin_dir is not None:
            # Check both with and without .exe extension (Windows compatibility)
            for ext in [".exe", ""]:
                binary_path = self.bin_dir / f"{binary_with_prefix}{ext}"
                if binary_path.is_file():
                    return binary_path
            return None

        found = shutil.which(binary_with_prefix)
        return Path(found) if found else None

    def find_all_binaries(self, binary_names: List[str]) -> Dict[str, Optional[Path]]:
        """Find multiple binaries at once."""
        return {name: self.find_binary(name) for name in binary_names}

    def require_binaries(self) -> Dict[str, Path]:
        """Locate every binary the pipeline needs.

        Returns:
            Mapping of tool name ("as", "ld", "objcopy") to its path

        Raises:
            BinaryNotFoundError: If any binary is missing
        """
        found = self.find_all_binaries(self.REQUIRED_TOOLS)
        missing = [name for name, path in found.items() if path is None]

        if missing:
            location = self.bin_dir if self.bin_dir else "PATH"
            names = ", ".join(f"{self.binary_prefix}-{name}" for name in missing)
            raise BinaryNotFoundError(f"Toolchain binaries not found in {location}: {names}")

        return {name: path for name, path in found.items() if path is not None}
