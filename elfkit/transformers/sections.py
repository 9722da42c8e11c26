"""
Section Removal
================

Deletes sections from a model while keeping every cross-reference
valid.  Removing a section shifts the indices of all later sections, so
the following fields are remapped:

    - ``sh_link`` of every surviving section
    - ``sh_info`` of REL / RELA sections (it names the patched section)
    - ``e_shstrndx``
    - ``st_shndx`` of every symbol (reserved indices are kept as-is)

Symbols defined in a removed section are dropped.  A link to a removed
section becomes 0.
"""

from __future__ import annotations

from typing import Callable

from elfkit.core import constants as C
from elfkit.core.models import ElfFile, Section


def remove_sections(elf: ElfFile, predicate: Callable[[Section], bool]) -> ElfFile:
    """Remove every non-null section for which *predicate* is true.

    *elf* is modified in place and returned.
    """
    mapping: dict[int, int] = {}
    kept: list[Section] = []
    for position, section in enumerate(elf.sections):
        if position != 0 and predicate(section):
            continue
        mapping[position] = len(kept)
        kept.append(section)

    if len(kept) == len(elf.sections):
        return elf

    for new_index, section in enumerate(kept):
        section.index = new_index
        if section.link:
            section.link = mapping.get(section.link, 0)
        if section.type in (C.SHT_REL, C.SHT_RELA) and section.info:
            section.info = mapping.get(section.info, 0)

    elf.header.shstrndx = mapping.get(elf.header.shstrndx, C.SHN_UNDEF)

    symbols = []
    for position, sym in enumerate(elf.symbols):
        if position == 0 or sym.shndx == C.SHN_UNDEF or sym.shndx >= C.SHN_LORESERVE:
            symbols.append(sym)
        elif sym.shndx in mapping:
            sym.shndx = mapping[sym.shndx]
            symbols.append(sym)
    elf.symbols = symbols
    elf.sections = kept
    return elf


def remove_sections_named(elf: ElfFile, names: set[str] | frozenset[str]) -> ElfFile:
    return remove_sections(elf, lambda section: section.name in names)
