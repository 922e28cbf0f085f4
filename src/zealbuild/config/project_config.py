"""
zeal8bit.ini project configuration parser.

This module reads the optional project configuration file and exposes the
settings the build needs: root source, target environment, base address,
remote include location and toolchain lookup.
"""

import configparser
from pathlib import Path
from typing import Optional

from ..build.pipeline import BaseAddress

CONFIG_FILE_NAME = "zeal8bit.ini"
ZEALOS_BASE_ADDRESS = 0x4000


class ProjectConfigError(Exception):
    """Exception raised for zeal8bit.ini configuration errors."""

    pass


class ProjectConfig:
    """
    Parser for zeal8bit.ini configuration files.

    A missing file is not an error: every setting has a default.

    Example zeal8bit.ini:
        [zeal8bit]
        source = main.asm
        uses = zealos
        headers_url = https://example.org/playground/

        [toolchain]
        prefix = z80-elf

    Usage:
        config = ProjectConfig.load(Path("."))
        config.base_address   # BaseAddress.fixed(0x4000)
    """

    SECTION = "zeal8bit"
    TOOLCHAIN_SECTION = "toolchain"

    def __init__(self, ini_path: Optional[Path] = None):
        """
        Initialize the parser.

        Args:
            ini_path: Path to zeal8bit.ini (None or a missing file gives defaults)

        Raises:
            ProjectConfigError: If the file cannot be parsed
        """
        self.ini_path = ini_path
        self.config = configparser.ConfigParser(
            allow_no_value=True,
            inline_comment_prefixes=(";", "#"),
            interpolation=configparser.ExtendedInterpolation(),
        )

        if ini_path is not None and ini_path.exists():
            try:
                self.config.read(ini_path, encoding="utf-8")
            except configparser.Error as e:
                raise ProjectConfigError(f"Failed to parse {ini_path}: {e}") from e

    @classmethod
    def load(cls, project_dir: Path) -> 'ProjectConfig':
        """Load zeal8bit.ini from a project directory."""
        return cls(Path(project_dir) / CONFIG_FILE_NAME)

    def _get(self, section: str, key: str, default: Optional[str] = None) -> Optional[str]:
        if not self.config.has_section(section):
            return default
        try:
            value = self.config.get(section, key, fallback=None)
        except configparser.Error as e:
            raise ProjectConfigError(f"Invalid value for {section}.{key} in {self.ini_path}: {e}") from e
        if value is None or not value.strip():
            return default
        return value.strip()

    @property
    def source(self) -> str:
        """Root source file, relative to the project directory."""
        return self._get(self.SECTION, "source", "main.asm") or "main.asm"

    @property
    def uses(self) -> str:
        """Target environment ("zealos" or bare metal)."""
        return (self._get(self.SECTION, "uses", "zealos") or "zealos").lower()

    @property
    def base_address(self) -> BaseAddress:
        """
        Link base address.

        An explicit `org` wins; otherwise ZealOS programs load at 0x4000 and
        anything else is placed by the packaged linker script.

        Raises:
            ProjectConfigError: If `org` is not a 16-bit number
        """
        org = self._get(self.SECTION, "org")
        if org is not None:
            try:
                return BaseAddress.fixed(int(org, 0))
            except ValueError as e:
                raise ProjectConfigError(f"Invalid org '{org}': {e}") from e

        if self.uses == "zealos":
            return BaseAddress.fixed(ZEALOS_BASE_ADDRESS)
        return BaseAddress.linked()

    @property
    def build_dir(self) -> str:
        return self._get(self.SECTION, "build_dir", "build") or "build"

    @property
    def headers_url(self) -> Optional[str]:
        """Base URL for remote includes, or None to resolve locally only."""
        return self._get(self.SECTION, "headers_url")

    @property
    def user_prefix(self) -> str:
        """Namespace of local includes inside the project directory."""
        return self._get(self.SECTION, "user_prefix", "") or ""

    @property
    def toolchain_prefix(self) -> str:
        return self._get(self.TOOLCHAIN_SECTION, "prefix", "z80-elf") or "z80-elf"

    @property
    def toolchain_bin_dir(self) -> Optional[Path]:
        bin_dir = self._get(self.TOOLCHAIN_SECTION, "bin_dir")
        return Path(bin_dir).expanduser() if bin_dir else None
