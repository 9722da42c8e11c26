"""
ELF Constants and Label Tables
===============================

Numeric constants from the System V ABI plus closed lookup tables that
map codes to printable labels.  Every ``describe_*`` helper is total:
an unknown code renders as ``"<CATEGORY>_UNKNOWN(code)"`` instead of
raising, so a single odd field never aborts a report.

References:
    - TIS Committee. (1995). Tool Interface Standard (TIS) Executable and
      Linkable Format (ELF) Specification, Version 1.2.
    - System V Application Binary Interface, Edition 4.1.
"""

from __future__ import annotations


# ---------------------------------------------------------------------------
# Identification
# ---------------------------------------------------------------------------

ELF_MAGIC: bytes = b"\x7fELF"
EI_NIDENT: int = 16

ELFCLASSNONE: int = 0
ELFCLASS32: int = 1
ELFCLASS64: int = 2

ELFDATANONE: int = 0
ELFDATA2LSB: int = 1
ELFDATA2MSB: int = 2

EV_CURRENT: int = 1

ELFOSABI_NONE: int = 0x00
ELFOSABI_HPUX: int = 0x01
ELFOSABI_NETBSD: int = 0x02
ELFOSABI_LINUX: int = 0x03
ELFOSABI_SOLARIS: int = 0x06
ELFOSABI_AIX: int = 0x07
ELFOSABI_IRIX: int = 0x08
ELFOSABI_FREEBSD: int = 0x09
ELFOSABI_OPENBSD: int = 0x0C

_OSABI_NAMES: dict[int, str] = {
    ELFOSABI_NONE: "ELFOSABI_NONE",
    ELFOSABI_HPUX: "ELFOSABI_HPUX",
    ELFOSABI_NETBSD: "ELFOSABI_NETBSD",
    ELFOSABI_LINUX: "ELFOSABI_LINUX",
    ELFOSABI_SOLARIS: "ELFOSABI_SOLARIS",
    ELFOSABI_AIX: "ELFOSABI_AIX",
    ELFOSABI_IRIX: "ELFOSABI_IRIX",
    ELFOSABI_FREEBSD: "ELFOSABI_FREEBSD",
    ELFOSABI_OPENBSD: "ELFOSABI_OPENBSD",
}

# ---------------------------------------------------------------------------
# File types
# ---------------------------------------------------------------------------

ET_NONE: int = 0
ET_REL: int = 1
ET_EXEC: int = 2
ET_DYN: int = 3
ET_CORE: int = 4

_ET_NAMES: dict[int, str] = {
    ET_NONE: "ET_NONE",
    ET_REL: "ET_REL",
    ET_EXEC: "ET_EXEC",
    ET_DYN: "ET_DYN",
    ET_CORE: "ET_CORE",
}

# ---------------------------------------------------------------------------
# Machines
# ---------------------------------------------------------------------------

EM_NONE: int = 0x00
EM_SPARC: int = 0x02
EM_386: int = 0x03
EM_MIPS: int = 0x08
EM_PPC: int = 0x14
EM_PPC64: int = 0x15
EM_ARM: int = 0x28
EM_X86_64: int = 0x3E
EM_AARCH64: int = 0xB7
EM_RISCV: int = 0xF3

_EM_NAMES: dict[int, str] = {
    EM_NONE: "EM_NONE",
    EM_SPARC: "EM_SPARC",
    EM_386: "EM_386",
    EM_MIPS: "EM_MIPS",
    EM_PPC: "EM_PPC",
    EM_PPC64: "EM_PPC64",
    EM_ARM: "EM_ARM",
    EM_X86_64: "EM_X86_64",
    EM_AARCH64: "EM_AARCH64",
    EM_RISCV: "EM_RISCV",
}

# ---------------------------------------------------------------------------
# Section header types, flags and special indices
# ---------------------------------------------------------------------------

SHT_NULL: int = 0
SHT_PROGBITS: int = 1
SHT_SYMTAB: int = 2
SHT_STRTAB: int = 3
SHT_RELA: int = 4
SHT_HASH: int = 5
SHT_DYNAMIC: int = 6
SHT_NOTE: int = 7
SHT_NOBITS: int = 8
SHT_REL: int = 9
SHT_SHLIB: int = 10
SHT_DYNSYM: int = 11
SHT_INIT_ARRAY: int = 14
SHT_FINI_ARRAY: int = 15

_SHT_NAMES: dict[int, str] = {
    SHT_NULL: "NULL",
    SHT_PROGBITS: "PROGBITS",
    SHT_SYMTAB: "SYMTAB",
    SHT_STRTAB: "STRTAB",
    SHT_RELA: "RELA",
    SHT_HASH: "HASH",
    SHT_DYNAMIC: "DYNAMIC",
    SHT_NOTE: "NOTE",
    SHT_NOBITS: "NOBITS",
    SHT_REL: "REL",
    SHT_SHLIB: "SHLIB",
    SHT_DYNSYM: "DYNSYM",
    SHT_INIT_ARRAY: "INIT_ARRAY",
    SHT_FINI_ARRAY: "FINI_ARRAY",
}

SHF_WRITE: int = 0x1
SHF_ALLOC: int = 0x2
SHF_EXECINSTR: int = 0x4

SHN_UNDEF: int = 0
SHN_LORESERVE: int = 0xFF00
SHN_ABS: int = 0xFFF1
SHN_COMMON: int = 0xFFF2
SHN_XINDEX: int = 0xFFFF

# ---------------------------------------------------------------------------
# Program header types and flags
# ---------------------------------------------------------------------------

PT_NULL: int = 0
PT_LOAD: int = 1
PT_DYNAMIC: int = 2
PT_INTERP: int = 3
PT_NOTE: int = 4
PT_SHLIB: int = 5
PT_PHDR: int = 6
PT_TLS: int = 7
PT_GNU_EH_FRAME: int = 0x6474E550
PT_GNU_STACK: int = 0x6474E551
PT_GNU_RELRO: int = 0x6474E552

_PT_NAMES: dict[int, str] = {
    PT_NULL: "NULL",
    PT_LOAD: "LOAD",
    PT_DYNAMIC: "DYNAMIC",
    PT_INTERP: "INTERP",
    PT_NOTE: "NOTE",
    PT_SHLIB: "SHLIB",
    PT_PHDR: "PHDR",
    PT_TLS: "TLS",
    PT_GNU_EH_FRAME: "GNU_EH_FRAME",
    PT_GNU_STACK: "GNU_STACK",
    PT_GNU_RELRO: "GNU_RELRO",
}

PF_X: int = 0x1
PF_W: int = 0x2
PF_R: int = 0x4

# ---------------------------------------------------------------------------
# Symbols
# ---------------------------------------------------------------------------

STB_LOCAL: int = 0
STB_GLOBAL: int = 1
STB_WEAK: int = 2

_STB_NAMES: dict[int, str] = {
    STB_LOCAL: "STB_LOCAL",
    STB_GLOBAL: "STB_GLOBAL",
    STB_WEAK: "STB_WEAK",
}

STT_NOTYPE: int = 0
STT_OBJECT: int = 1
STT_FUNC: int = 2
STT_SECTION: int = 3
STT_FILE: int = 4
STT_COMMON: int = 5
STT_TLS: int = 6

_STT_NAMES: dict[int, str] = {
    STT_NOTYPE: "STT_NOTYPE",
    STT_OBJECT: "STT_OBJECT",
    STT_FUNC: "STT_FUNC",
    STT_SECTION: "STT_SECTION",
    STT_FILE: "STT_FILE",
    STT_COMMON: "STT_COMMON",
    STT_TLS: "STT_TLS",
}


# ---------------------------------------------------------------------------
# Label lookups
# ---------------------------------------------------------------------------

def describe_type(code: int) -> str:
    return _ET_NAMES.get(code, f"ET_UNKNOWN({code})")


def describe_machine(code: int) -> str:
    return _EM_NAMES.get(code, f"EM_UNKNOWN(0x{code:02x})")


def describe_osabi(code: int) -> str:
    return _OSABI_NAMES.get(code, f"ELFOSABI_UNKNOWN(0x{code:02x})")


def describe_section_type(code: int) -> str:
    return _SHT_NAMES.get(code, f"SHT_UNKNOWN(0x{code:x})")


def describe_segment_type(code: int) -> str:
    return _PT_NAMES.get(code, f"PT_UNKNOWN(0x{code:x})")


def describe_symbol_type(code: int) -> str:
    return _STT_NAMES.get(code, f"STT_UNKNOWN({code})")


def describe_symbol_binding(code: int) -> str:
    return _STB_NAMES.get(code, f"STB_UNKNOWN({code})")


def describe_class(code: int) -> str:
    """Return ``"ELF32"`` / ``"ELF64"`` for an ``EI_CLASS`` byte."""
    if code == ELFCLASS32:
        return "ELF32"
    if code == ELFCLASS64:
        return "ELF64"
    return f"ELFCLASS_UNKNOWN({code})"


def describe_data(code: int) -> str:
    """Return a human-readable byte order for an ``EI_DATA`` byte."""
    if code == ELFDATA2LSB:
        return "Little Endian"
    if code == ELFDATA2MSB:
        return "Big Endian"
    return f"ELFDATA_UNKNOWN({code})"


def section_flags_str(flags: int) -> str:
    """Convert section flags to a string like ``"WAX"``."""
    parts: list[str] = []
    if flags & SHF_WRITE:
        parts.append("W")
    if flags & SHF_ALLOC:
        parts.append("A")
    if flags & SHF_EXECINSTR:
        parts.append("X")
    return "".join(parts)


def segment_flags_str(flags: int) -> str:
    """Convert program header flags to a string like ``"RWE"``."""
    parts: list[str] = []
    if flags & PF_R:
        parts.append("R")
    if flags & PF_W:
        parts.append("W")
    if flags & PF_X:
        parts.append("E")
    return "".join(parts)
