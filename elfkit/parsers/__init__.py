"""
elfkit Parsers
===============

Bounded decoders and encoders for ELF objects and ``ar`` archives.
"""

from elfkit.parsers.layout import ElfLayout, get_layout
from elfkit.parsers.elf_parser import ELFParser, is_elf, parse_elf, parse_elf_file
from elfkit.parsers.elf_writer import ELFWriter, StringTableBuilder, serialize_elf
from elfkit.parsers.archive import (
    ArchiveReader,
    build_symbol_index,
    is_archive,
    read_archive,
    read_symbol_index,
    write_archive,
)

__all__ = [
    "ArchiveReader",
    "ELFParser",
    "ELFWriter",
    "ElfLayout",
    "StringTableBuilder",
    "build_symbol_index",
    "get_layout",
    "is_archive",
    "is_elf",
    "parse_elf",
    "parse_elf_file",
    "read_archive",
    "read_symbol_index",
    "serialize_elf",
    "write_archive",
]
