"""
Symbol Lister (nm)
===================

Projects the symbol table of a parsed object into ``nm``-style lines::

    0000000000001040 T main
                     U printf

Symbols are sorted by value (stable, so equal values keep table order)
and unnamed entries are skipped.  The type character comes from the
symbol type and is then adjusted for binding: global symbols use the
upper-case letter, weak symbols the lower-case letter (``w`` for an
undefined weak reference), and local symbols keep the table letter.

References:
    - GNU binutils documentation, "nm".
"""

from __future__ import annotations

from elfkit.core import constants as C
from elfkit.core.models import ElfFile, Symbol

_TYPE_CHARS: dict[int, str] = {
    C.STT_NOTYPE: "U",
    C.STT_OBJECT: "D",
    C.STT_FUNC: "T",
    C.STT_SECTION: "S",
    C.STT_FILE: "A",
}


def symbol_type_char(sym: Symbol) -> str:
    """Return the one-letter ``nm`` classification of *sym*."""
    char = _TYPE_CHARS.get(sym.st_type, "?")
    if sym.st_bind == C.STB_GLOBAL:
        return char.upper()
    if sym.st_bind == C.STB_WEAK:
        return "w" if char == "U" else char.lower()
    return char


def format_symbol_line(sym: Symbol, is_64bit: bool) -> str:
    width = 16 if is_64bit else 8
    char = symbol_type_char(sym)
    if sym.value == 0 and sym.st_type == C.STT_NOTYPE:
        return f"{'':{width}} {char} {sym.name}"
    value = sym.value if is_64bit else sym.value & 0xFFFFFFFF
    return f"{value:0{width}x} {char} {sym.name}"


def sorted_symbols(elf: ElfFile) -> list[Symbol]:
    """Named symbols ordered by ascending value."""
    return sorted(elf.named_symbols(), key=lambda sym: sym.value)


def list_symbols(elf: ElfFile) -> list[str]:
    """Return one ``nm`` line per named symbol of *elf*."""
    is_64bit = elf.header.is_64bit
    return [format_symbol_line(sym, is_64bit) for sym in sorted_symbols(elf)]
