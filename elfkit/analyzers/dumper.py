"""
Header, Section and Symbol Dumper (objdump / readelf)
======================================================

Text projections of a parsed :class:`~elfkit.core.models.ElfFile`.  Each
``format_*`` function returns a list of lines without trailing newlines
so the CLI can print them and tests can compare them directly.

Two families of views are provided:

* ``objdump`` views: a one-line file-format summary, a short file header,
  a compact section table and a symbol table with flag characters
  (``g`` global, ``w`` weak; ``F`` function, ``O`` object).
* ``readelf`` views: the full ELF header, the section header table, the
  symbol table with type / binding columns and the program headers.

References:
    - GNU binutils documentation, "objdump" and "readelf".
"""

from __future__ import annotations

from elfkit.core import constants as C
from elfkit.core.models import ElfFile, Symbol

_LABEL_COL = 37


def _field(label: str, value: object) -> str:
    """Align *value* at the readelf value column."""
    return f"  {label + ':':<{_LABEL_COL - 2}}{value}"


def _short_label(label: str) -> str:
    """``STT_FUNC`` -> ``FUNC``; leaves unknown-code labels readable."""
    return label.split("_", 1)[1] if "_" in label else label


def _clip(text: str, width: int) -> str:
    return text[:width]


# ---------------------------------------------------------------------------
# objdump views
# ---------------------------------------------------------------------------

def format_summary(elf: ElfFile, filename: str) -> list[str]:
    h = elf.header
    return [
        f"{filename}:     file format {h.class_label}-{h.data_label}",
        f"architecture: {h.machine_label}",
        "",
    ]


def format_objdump_header(elf: ElfFile) -> list[str]:
    h = elf.header
    return [
        "File Header:",
        "  Magic:   " + " ".join(f"{b:02x}" for b in C.ELF_MAGIC),
        _field("Class", h.class_label),
        _field("Data", h.data_label),
        _field("Version", h.version),
        _field("OS/ABI", h.osabi_label),
        _field("Type", h.type_label),
        _field("Machine", h.machine_label),
        _field("Entry point address", f"0x{h.entry:x}"),
        "",
    ]


def format_objdump_sections(elf: ElfFile) -> list[str]:
    lines = ["Sections:", "Idx Name          Size      Address"]
    for section in elf.sections:
        lines.append(
            f"{section.index:3d} {_clip(section.name, 13):<13s} "
            f"{section.size:08x}  {section.addr:016x}"
        )
    lines.append("")
    return lines


def objdump_symbol_flags(sym: Symbol) -> str:
    """Binding and type flag characters, e.g. ``"gF"``."""
    binding = {C.STB_GLOBAL: "g", C.STB_WEAK: "w"}.get(sym.st_bind, " ")
    kind = {C.STT_FUNC: "F", C.STT_OBJECT: "O"}.get(sym.st_type, " ")
    return binding + kind


def format_objdump_symbols(elf: ElfFile) -> list[str]:
    if not elf.symbols:
        return []
    lines = ["SYMBOL TABLE:"]
    for sym in elf.named_symbols():
        lines.append(f"{sym.value:016x} {objdump_symbol_flags(sym)} {sym.name}")
    lines.append("")
    return lines


def format_objdump(
    elf: ElfFile,
    filename: str,
    *,
    file_header: bool = True,
    section_headers: bool = True,
    symbols: bool = True,
) -> list[str]:
    """Compose the requested objdump views after the summary lines."""
    lines = format_summary(elf, filename)
    if file_header:
        lines += format_objdump_header(elf)
    if section_headers:
        lines += format_objdump_sections(elf)
    if symbols:
        lines += format_objdump_symbols(elf)
    return lines


# ---------------------------------------------------------------------------
# readelf views
# ---------------------------------------------------------------------------

def format_file_header(elf: ElfFile) -> list[str]:
    """The ``readelf -h`` view."""
    h = elf.header
    ident = (
        list(C.ELF_MAGIC)
        + [int(h.elf_class), int(h.data), h.ident_version, h.osabi, h.abi_version]
    )
    ident += [0] * (C.EI_NIDENT - len(ident))
    return [
        "ELF Header:",
        "  Magic:   " + " ".join(f"{b:02x}" for b in ident),
        _field("Class", h.class_label),
        _field("Data", h.data_label),
        _field("Version", f"{h.ident_version} (current)" if h.ident_version == C.EV_CURRENT else h.ident_version),
        _field("OS/ABI", h.osabi_label),
        _field("ABI Version", h.abi_version),
        _field("Type", h.type_label),
        _field("Machine", h.machine_label),
        _field("Version", f"0x{h.version:x}"),
        _field("Entry point address", f"0x{h.entry:x}"),
        _field("Start of program headers", f"{h.phoff} (bytes into file)"),
        _field("Start of section headers", f"{h.shoff} (bytes into file)"),
        _field("Flags", f"0x{h.flags:x}"),
        _field("Size of this header", f"{h.ehsize} (bytes)"),
        _field("Size of program headers", f"{h.phentsize} (bytes)"),
        _field("Number of program headers", h.phnum),
        _field("Size of section headers", f"{h.shentsize} (bytes)"),
        _field("Number of section headers", h.shnum),
        _field("Section header string table index", h.shstrndx),
    ]


def format_section_headers(elf: ElfFile) -> list[str]:
    """The ``readelf -S`` view."""
    if not elf.sections:
        return ["There are no sections in this file."]
    lines = [
        f"There are {len(elf.sections)} section headers, "
        f"starting at offset 0x{elf.header.shoff:x}:",
        "",
        "Section Headers:",
        "  [Nr] Name              Type            Address          Off    Size   ES Flg Lk Inf Al",
    ]
    for s in elf.sections:
        lines.append(
            f"  [{s.index:2d}] {_clip(s.name, 17):<17s} {s.type_label:<15s} "
            f"{s.addr:016x} {s.offset:06x} {s.size:06x} {s.entsize:02x} "
            f"{s.flags_str:>3s} {s.link:2d} {s.info:3d} {s.addralign:2d}"
        )
    lines += [
        "Key to Flags:",
        "  W (write), A (alloc), X (execute)",
    ]
    return lines


def _section_index_label(shndx: int) -> str:
    if shndx == C.SHN_UNDEF:
        return "UND"
    if shndx == C.SHN_ABS:
        return "ABS"
    if shndx == C.SHN_COMMON:
        return "COM"
    return f"{shndx:3d}"


def format_symbols(elf: ElfFile) -> list[str]:
    """The ``readelf -s`` view."""
    if not elf.symbols:
        return ["No symbol table found"]
    lines = [
        f"Symbol table '.symtab' contains {len(elf.symbols)} entries:",
        "   Num:    Value          Size Type    Bind   Vis      Ndx Name",
    ]
    for num, sym in enumerate(elf.symbols):
        lines.append(
            f"{num:6d}: {sym.value:016x} {sym.size:5d} "
            f"{_short_label(sym.type_label):<7s} {_short_label(sym.bind_label):<6s} "
            f"DEFAULT {_section_index_label(sym.shndx):>3s} {sym.name}"
        )
    return lines


def format_program_headers(elf: ElfFile) -> list[str]:
    """The ``readelf -l`` view."""
    h = elf.header
    lines = [
        f"Elf file type is {h.type_label}",
        f"Entry point 0x{h.entry:x}",
        f"There are {h.phnum} program headers, starting at offset {h.phoff}",
        "",
    ]
    if not elf.segments:
        lines.append("No program headers found")
        return lines

    lines += [
        "Program Headers:",
        "  Type           Offset             VirtAddr           PhysAddr",
        "                 FileSiz            MemSiz              Flags  Align",
    ]
    for seg in elf.segments:
        lines.append(
            f"  {seg.type_label:<14s} 0x{seg.offset:016x} "
            f"0x{seg.vaddr:016x} 0x{seg.paddr:016x}"
        )
        lines.append(
            f"                 0x{seg.filesz:016x} 0x{seg.memsz:016x} "
            f"{seg.flags_str:>3s}    0x{seg.align:x}"
        )
    return lines


def format_all(elf: ElfFile) -> list[str]:
    """Every readelf view separated by blank lines (``readelf -a``)."""
    lines = format_file_header(elf)
    for view in (format_section_headers, format_symbols, format_program_headers):
        lines.append("")
        lines += view(elf)
    return lines
