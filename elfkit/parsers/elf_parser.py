"""
ELF Binary Format Parser
==========================

Bounded, struct-based parser for the Executable and Linkable Format.
Both 32-bit (ELF32) and 64-bit (ELF64) variants in either byte order are
supported; the class and data bytes select an
:class:`~elfkit.parsers.layout.ElfLayout` once and every record is then
decoded through it.

Object files are untrusted input.  The parser therefore:
    - checks every count and size field against
      :class:`~shared.config.LimitsConfig` *before* reading;
    - reads through a single bounds-checked accessor, so an offset or size
      reaching past the end of the input raises
      :class:`~elfkit.core.errors.TruncatedError`;
    - never recovers internally: the first structural problem aborts the
      parse with an :class:`~elfkit.core.errors.ElfkitError`.

The parser extracts:
    - ELF header (identification, type, machine, entry point, table offsets)
    - Section headers with names and raw payloads
    - Program headers (segments)
    - The first symbol table (.symtab) with names

References:
    - TIS Committee. (1995). Tool Interface Standard (TIS) Executable and
      Linkable Format (ELF) Specification, Version 1.2.
    - System V Application Binary Interface, Edition 4.1.
    - Linux man page: elf(5).
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import BinaryIO, Union

from elfkit.core import constants as C
from elfkit.core.errors import (
    ElfkitError,
    FormatError,
    LimitExceededError,
    TruncatedError,
)
from elfkit.core.models import ElfFile, ElfHeader, ProgramHeader, Section, Symbol
from elfkit.parsers.layout import ElfLayout, layout_from_ident
from shared.config import LimitsConfig

ElfSource = Union[bytes, bytearray, memoryview, BinaryIO]


class ELFParser:
    """Bounded ELF parser producing an :class:`ElfFile` model.

    Usage::

        parser = ELFParser(raw_bytes)
        elf = parser.parse()
        for section in elf.sections:
            print(section.name, section.size)

    Args:
        source: Complete file contents, or a readable and seekable binary
            stream positioned anywhere.
        limits: Safety ceilings; defaults to :class:`LimitsConfig` values.
    """

    def __init__(self, source: ElfSource, limits: LimitsConfig | None = None) -> None:
        self._limits = limits or LimitsConfig()
        self._stream: BinaryIO | None = None
        self._buffer: bytes = b""

        if isinstance(source, (bytes, bytearray, memoryview)):
            self._buffer = bytes(source)
            self._size = len(self._buffer)
        else:
            self._stream = source
            self._size = source.seek(0, os.SEEK_END)

    # ------------------------------------------------------------------ #
    #  Public interface
    # ------------------------------------------------------------------ #

    def parse(self) -> ElfFile:
        """Decode the whole object.

        Returns:
            The populated :class:`ElfFile`.

        Raises:
            FormatError: Bad magic, unknown class / data byte, or an
                inconsistent table.
            TruncatedError: A header, table or payload reaches past EOF.
            LimitExceededError: A count or size exceeds its ceiling.
        """
        ident = self._read_ident()
        layout = layout_from_ident(ident)

        body = self._read_at(C.EI_NIDENT, layout.header.size, "ELF header")
        header = layout.decode_header(ident, body)

        elf = ElfFile(header=header)
        elf.sections = self._parse_section_headers(layout, header)
        self._resolve_section_names(elf)
        elf.segments = self._parse_program_headers(layout, header)
        self._parse_symbol_table(layout, elf)
        return elf

    # ------------------------------------------------------------------ #
    #  Identification
    # ------------------------------------------------------------------ #

    def _read_ident(self) -> bytes:
        if self._size < len(C.ELF_MAGIC):
            raise TruncatedError("file too short to hold an ELF magic number")
        if self._read_at(0, len(C.ELF_MAGIC), "ELF magic") != C.ELF_MAGIC:
            raise FormatError("bad ELF magic number")
        return self._read_at(0, C.EI_NIDENT, "ELF identification")

    # ------------------------------------------------------------------ #
    #  Section header parsing
    # ------------------------------------------------------------------ #

    def _parse_section_headers(
        self, layout: ElfLayout, header: ElfHeader
    ) -> list[Section]:
        """Decode every section header and read each payload."""
        if header.shoff == 0 or header.shnum == 0:
            return []

        if header.shnum > self._limits.max_sections:
            raise LimitExceededError(
                f"section count {header.shnum} exceeds limit "
                f"{self._limits.max_sections}"
            )
        if header.shentsize < layout.shentsize:
            raise FormatError(
                f"section header entry size {header.shentsize} is smaller "
                f"than {layout.shentsize}"
            )

        sections: list[Section] = []
        payload_total = 0
        for index in range(header.shnum):
            raw = self._read_at(
                header.shoff + index * header.shentsize,
                layout.shentsize,
                f"section header {index}",
            )
            section = layout.decode_section(index, raw)
            if section.has_payload and section.size:
                if section.size > self._limits.max_table_size:
                    raise LimitExceededError(
                        f"section {index} size {section.size} exceeds limit "
                        f"{self._limits.max_table_size}"
                    )
                # headers may alias one file region; bound the copies, not the file
                payload_total += section.size
                if payload_total > self._limits.max_table_size:
                    raise LimitExceededError(
                        f"section payloads total {payload_total} bytes, "
                        f"exceeding limit {self._limits.max_table_size}"
                    )
                section.data = self._read_at(
                    section.offset, section.size, f"section {index} data"
                )
            sections.append(section)
        return sections

    def _resolve_section_names(self, elf: ElfFile) -> None:
        """Resolve section names from the section header string table."""
        shstrndx = elf.header.shstrndx
        if shstrndx == C.SHN_UNDEF:
            return

        table = elf.section_at(shstrndx).data
        elf.section_string_table = table
        for section in elf.sections:
            section.name = self._read_cstring(
                table, section.name_offset, f"section {section.index} name"
            )

    # ------------------------------------------------------------------ #
    #  Program header parsing
    # ------------------------------------------------------------------ #

    def _parse_program_headers(
        self, layout: ElfLayout, header: ElfHeader
    ) -> list[ProgramHeader]:
        if header.phoff == 0 or header.phnum == 0:
            return []

        if header.phnum > self._limits.max_program_headers:
            raise LimitExceededError(
                f"program header count {header.phnum} exceeds limit "
                f"{self._limits.max_program_headers}"
            )
        if header.phentsize < layout.phentsize:
            raise FormatError(
                f"program header entry size {header.phentsize} is smaller "
                f"than {layout.phentsize}"
            )

        segments: list[ProgramHeader] = []
        for index in range(header.phnum):
            raw = self._read_at(
                header.phoff + index * header.phentsize,
                layout.phentsize,
                f"program header {index}",
            )
            segments.append(layout.decode_segment(raw))
        return segments

    # ------------------------------------------------------------------ #
    #  Symbol table parsing
    # ------------------------------------------------------------------ #

    def _parse_symbol_table(self, layout: ElfLayout, elf: ElfFile) -> None:
        """Decode the first ``SHT_SYMTAB`` section, if any."""
        symtab = elf.symbol_table()
        if symtab is None:
            return

        entsize = layout.symentsize
        if symtab.size % entsize:
            raise FormatError(
                f"symbol table size {symtab.size} is not a multiple of "
                f"{entsize}"
            )
        count = symtab.size // entsize
        if count > self._limits.max_symbols:
            raise LimitExceededError(
                f"symbol count {count} exceeds limit {self._limits.max_symbols}"
            )

        strtab = b""
        if symtab.link != C.SHN_UNDEF:
            strtab = elf.section_at(symtab.link).data
        elf.symbol_string_table = strtab

        symbols: list[Symbol] = []
        data = symtab.data
        for index in range(count):
            symbol = layout.decode_symbol(data[index * entsize:(index + 1) * entsize])
            if symtab.link != C.SHN_UNDEF:
                symbol.name = self._read_cstring(
                    strtab, symbol.name_offset, f"symbol {index} name"
                )
            symbols.append(symbol)
        elf.symbols = symbols

    # ------------------------------------------------------------------ #
    #  Utility methods
    # ------------------------------------------------------------------ #

    def _read_at(self, offset: int, size: int, what: str) -> bytes:
        """Return exactly *size* bytes at *offset*.

        Raises:
            TruncatedError: If the range is not fully inside the input.
        """
        if offset < 0 or size < 0 or offset + size > self._size:
            raise TruncatedError(
                f"{what} extends past end of file "
                f"(offset {offset}, size {size}, file size {self._size})"
            )
        if self._stream is None:
            return self._buffer[offset:offset + size]

        self._stream.seek(offset)
        chunk = self._stream.read(size)
        if len(chunk) != size:
            raise TruncatedError(f"short read of {what} at offset {offset}")
        return chunk

    @staticmethod
    def _read_cstring(table: bytes, offset: int, what: str) -> str:
        """Read a NUL-terminated string from a string table.

        Args:
            table: Raw string table bytes.
            offset: Starting offset within *table*.
            what: Description used in error messages.

        Returns:
            The decoded string.  Offset 0 of an empty table is ``""``.

        Raises:
            FormatError: If *offset* is outside the table or the string
                has no terminator.
        """
        if offset == 0 and not table:
            return ""
        if offset >= len(table):
            raise FormatError(
                f"{what}: string offset {offset} outside table of "
                f"{len(table)} bytes"
            )
        end = table.find(b"\x00", offset)
        if end == -1:
            raise FormatError(f"{what}: unterminated string at offset {offset}")
        return table[offset:end].decode("utf-8", errors="replace")


# ---------------------------------------------------------------------------
# Module-level convenience
# ---------------------------------------------------------------------------

def parse_elf(source: ElfSource, limits: LimitsConfig | None = None) -> ElfFile:
    """Parse an ELF image held in memory or behind a binary stream."""
    return ELFParser(source, limits).parse()


def parse_elf_file(path: str | Path, limits: LimitsConfig | None = None) -> ElfFile:
    """Parse the ELF file at *path*.

    Errors raised while decoding are tagged with the file name.

    Raises:
        OSError: If the file cannot be opened or read.
        LimitExceededError: If the file is larger than ``max_file_size``.
    """
    limits = limits or LimitsConfig()
    file_path = Path(path)
    try:
        file_size = file_path.stat().st_size
        if file_size > limits.max_file_size:
            raise LimitExceededError(
                f"file size {file_size} exceeds limit {limits.max_file_size}"
            )
        with open(file_path, "rb") as fh:
            return ELFParser(fh, limits).parse()
    except ElfkitError as exc:
        if exc.source:
            raise
        raise exc.with_source(str(path)) from exc


def is_elf(data: bytes) -> bool:
    """Return ``True`` if *data* starts with the ELF magic number."""
    return data[:4] == C.ELF_MAGIC
