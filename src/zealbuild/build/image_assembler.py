"""
Memory image reconstruction from assembler listings.

This module handles:
- Parsing GNU as `-alh` listing text into addressed byte chunks
- Rebuilding a contiguous memory image, zero-filling forward gaps
- Rendering an image as a 16-bytes-per-row hex dump
"""

import re
from dataclasses import dataclass, field
from typing import Iterable, List


@dataclass
class AddressedChunk:
    """Bytes emitted by one listing line, at their load address."""

    address: int
    data: List[int] = field(default_factory=list)


class ListingParser:
    """
    Extracts AddressedChunks from a GNU as listing.

    Recognized line shapes (the source column always follows a tab):

        "   2 0000 3E01     \\tld a, 1"        address + bytes
        "   5 0004 01020304 \\t.db 1,2,3,4,5"  address + bytes
        "   5      05       "                  continuation of line 5
        "   3 0002          \\tstart:"          address, no bytes (ignored)

    Page headers, blank lines and everything from the symbol table onwards
    are skipped.
    """

    ADDRESS_LINE = re.compile(
        r'^ *\d+ (?P<address>[0-9A-Fa-f]{4,8})'
        r'(?: (?P<data>(?:[0-9A-Fa-f]{2})+(?: (?:[0-9A-Fa-f]{2})+)*))?(?= |\t|$)'
    )
    CONTINUATION_LINE = re.compile(
        r'^ *\d+ {2,}(?P<data>(?:[0-9A-Fa-f]{2})+(?: (?:[0-9A-Fa-f]{2})+)*)(?= |\t|$)'
    )
    SYMBOL_TABLE_MARKERS = ('DEFINED SYMBOLS', 'UNDEFINED SYMBOLS', 'NO DEFINED SYMBOLS')

    def parse(self, listing: str) -> List[AddressedChunk]:
        """
        Parse listing text.

        Args:
            listing: Listing file contents

        Returns:
            Chunks in listing order (only lines that emitted bytes)
        """
        chunks: List[AddressedChunk] = []

        for line in listing.splitlines():
            if line.strip().startswith(self.SYMBOL_TABLE_MARKERS):
                break

            match = self.ADDRESS_LINE.match(line)
            if match:
                data = match.group('data')
                if data:
                    chunks.append(AddressedChunk(
                        address=int(match.group('address'), 16),
                        data=self._parse_hex(data)
                    ))
                continue

            match = self.CONTINUATION_LINE.match(line)
            if match and chunks:
                chunks[-1].data.extend(self._parse_hex(match.group('data')))

        return chunks

    @staticmethod
    def _parse_hex(data: str) -> List[int]:
        digits = data.replace(' ', '')
        return [int(digits[i:i + 2], 16) for i in range(0, len(digits), 2)]


class ImageAssembler:
    """Builds a contiguous MemoryImage from addressed chunks."""

    @staticmethod
    def assemble(chunks: Iterable[AddressedChunk]) -> bytes:
        """
        Concatenate chunks in encounter order.

        The write cursor starts at the first chunk's address. A chunk beyond
        the cursor is preceded by zero bytes up to its address; a chunk at or
        behind the cursor is appended where the cursor is.

        Args:
            chunks: Chunks in listing order

        Returns:
            Memory image bytes (empty for no chunks)
        """
        image = bytearray()
        cursor = None

        for chunk in chunks:
            if cursor is None:
                cursor = chunk.address
            elif chunk.address > cursor:
                image.extend(bytes(chunk.address - cursor))
                cursor = chunk.address
            image.extend(chunk.data)
            cursor += len(chunk.data)

        return bytes(image)


def format_hex_dump(image: bytes, width: int = 16) -> str:
    """
    Render bytes as rows of `width` hex octets prefixed by their offset.

    Example:
        0000: 3e 01 c9
    """
    rows = []
    for offset in range(0, len(image), width):
        row = image[offset:offset + width]
        octets = ' '.join(f'{byte:02x}' for byte in row)
        rows.append(f'{offset:04x}: {octets}')
    return '\n'.join(rows)
