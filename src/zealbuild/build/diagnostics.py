"""
Diagnostic extraction from tool stage error streams.

Every line a stage writes to stderr becomes one Diagnostic. The position
prefix (`file:line:`) is recovered when present; lines without one are kept
with the position fields left empty.
"""

import re
from dataclasses import dataclass
from enum import Enum
from typing import Optional


class PipelineStage(Enum):
    """Toolchain stages, valued by the tool that implements them."""

    ASSEMBLE = "as"
    LINK = "ld"
    EXTRACT = "objcopy"


@dataclass(frozen=True)
class Diagnostic:
    """A structured record derived from one line of a stage's stderr."""

    stage: PipelineStage
    message: str
    file: Optional[str] = None
    line: Optional[int] = None
    severity: Optional[str] = None  # "error", "warning" or None if unknown

    def format(self) -> str:
        """Render the diagnostic for display.

        Example:
            as: src/main.asm:3: Error: unknown instruction
            Line: src/main.asm:3
        """
        text = f"{self.stage.value}: {self.message}"
        if self.line is not None:
            text += f"\nLine: {self.file}:{self.line}"
        return text


class DiagnosticExtractor:
    """
    Parses raw stderr lines into Diagnostic records.

    The position rule scans lazily from the start of the line and stops
    before the first "warning:" marker, so in

        src/main.asm:5: warning: value truncated

    the position is src/main.asm line 5, while a bare "warning: foo" line
    carries no position at all.
    """

    POSITION_PATTERN = re.compile(r'^(?:(?!warning:).)*?([\w/.\-]+):(\d+):')
    SEVERITY_PATTERN = re.compile(r'\b(fatal error|error|warning)\s*:', re.IGNORECASE)

    def extract(self, stage: PipelineStage, raw_line: str) -> Diagnostic:
        """
        Build a Diagnostic from one stderr line.

        Args:
            stage: Stage that emitted the line
            raw_line: Line as read from the stream (trailing newline allowed)

        Returns:
            Diagnostic with the verbatim message
        """
        message = raw_line.rstrip('\r\n')

        file_name = None
        line_number = None
        match = self.POSITION_PATTERN.match(message)
        if match:
            file_name = match.group(1)
            line_number = int(match.group(2))

        severity = None
        severity_match = self.SEVERITY_PATTERN.search(message)
        if severity_match:
            severity = 'warning' if severity_match.group(1).lower() == 'warning' else 'error'

        return Diagnostic(
            stage=stage,
            message=message,
            file=file_name,
            line=line_number,
            severity=severity
        )
