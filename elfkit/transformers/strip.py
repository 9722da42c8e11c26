"""
Symbol and Debug Stripper (strip)
==================================

Removes the symbol table, its private string table and every debug-style
section (``.debug*``, ``.zdebug*``, ``.comment*``, ``.note*``) from an
object file.  The input is parsed completely before anything is written,
and the result replaces the target atomically.
"""

from __future__ import annotations

from pathlib import Path

from elfkit.core.models import ElfFile
from elfkit.parsers.elf_parser import parse_elf_file
from elfkit.parsers.elf_writer import serialize_elf
from elfkit.transformers.atomic import atomic_write
from elfkit.transformers.sections import remove_sections
from shared.config import ElfkitConfig
from shared.logger import ToolLogger

DEBUG_PREFIXES: tuple[str, ...] = (".debug", ".zdebug", ".comment", ".note")


def is_debug_section(name: str) -> bool:
    return name.startswith(DEBUG_PREFIXES)


def strip_debug(elf: ElfFile) -> ElfFile:
    """Remove debug-style sections from *elf* in place."""
    return remove_sections(elf, lambda section: is_debug_section(section.name))


def strip_model(elf: ElfFile) -> ElfFile:
    """Return a copy of *elf* without symbols or debug sections."""
    stripped = elf.model_copy(deep=True)
    stripped.symbols = []
    stripped.symbol_string_table = b""

    position = {id(section): i for i, section in enumerate(stripped.sections)}
    doomed: set[int] = set()
    symtab = stripped.symbol_table()
    if symtab is not None:
        symtab_index = position[id(symtab)]
        doomed.add(symtab_index)
        strtab_index = symtab.link
        shared_elsewhere = strtab_index == stripped.header.shstrndx or any(
            section.link == strtab_index
            for i, section in enumerate(stripped.sections)
            if i != symtab_index
        )
        if strtab_index and not shared_elsewhere:
            doomed.add(strtab_index)

    return remove_sections(
        stripped,
        lambda section: position[id(section)] in doomed
        or is_debug_section(section.name),
    )


def strip_file(
    path: str | Path,
    output: str | Path | None = None,
    config: ElfkitConfig | None = None,
    logger: ToolLogger | None = None,
) -> Path:
    """Strip *path*, writing to *output* (default: in place).

    Raises:
        ElfkitError: The input did not parse; nothing is written.
        OSError: Reading or writing failed.
    """
    config = config or ElfkitConfig()
    elf = parse_elf_file(path, config.limits)
    stripped = strip_model(elf)
    data = serialize_elf(stripped)
    target = atomic_write(output or path, data)
    if logger is not None:
        logger.info(
            "Stripped %s: %d -> %d sections",
            path, len(elf.sections), len(stripped.sections),
        )
    return target
