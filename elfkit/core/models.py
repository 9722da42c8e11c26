"""
elfkit Data Models
===================

Pydantic-based models for the in-memory form of ELF object files and
``ar`` archives.  A parser builds an :class:`ElfFile` once; inspectors
only read it, while transformers and the linker work on a
``model_copy(deep=True)`` and hand the result to the serializer.

Integer fields keep the raw on-disk values so that a parse followed by a
serialize preserves everything the toolkit does not interpret.  Labels
are derived on demand from the closed tables in
:mod:`elfkit.core.constants`.

References:
    - TIS Committee. (1995). Tool Interface Standard (TIS) Executable and
      Linkable Format (ELF) Specification, Version 1.2.
    - IEEE Std 1003.1-2017, ``ar`` - create and maintain library archives.
"""

from __future__ import annotations

import enum
from typing import Optional

from pydantic import BaseModel, Field

from elfkit.core import constants as C
from elfkit.core.errors import FormatError


# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------

class ElfClass(enum.IntEnum):
    """Address width recorded in ``e_ident[EI_CLASS]``."""
    ELF32 = C.ELFCLASS32
    ELF64 = C.ELFCLASS64


class ElfData(enum.IntEnum):
    """Byte order recorded in ``e_ident[EI_DATA]``."""
    LSB = C.ELFDATA2LSB
    MSB = C.ELFDATA2MSB


# ---------------------------------------------------------------------------
# ELF structures
# ---------------------------------------------------------------------------

class ElfHeader(BaseModel):
    """The ELF file header, identification bytes included.

    Attributes:
        elf_class: ELF32 or ELF64.
        data: Byte order of every multi-byte field in the file.
        ident_version: ``e_ident[EI_VERSION]``.
        osabi: ``e_ident[EI_OSABI]``.
        abi_version: ``e_ident[EI_ABIVERSION]``.
        type: Object file type (``ET_*``).
        machine: Target architecture (``EM_*``).
        version: ``e_version``.
        entry: Entry point virtual address.
        phoff: File offset of the program header table.
        shoff: File offset of the section header table.
        flags: Processor-specific flags.
        ehsize: Size of this header in bytes.
        phentsize: Size of one program header record.
        phnum: Number of program headers.
        shentsize: Size of one section header record.
        shnum: Number of section headers.
        shstrndx: Index of the section-name string table.
    """
    elf_class: ElfClass = ElfClass.ELF64
    data: ElfData = ElfData.LSB
    ident_version: int = C.EV_CURRENT
    osabi: int = C.ELFOSABI_NONE
    abi_version: int = 0
    type: int = C.ET_NONE
    machine: int = C.EM_NONE
    version: int = C.EV_CURRENT
    entry: int = 0
    phoff: int = 0
    shoff: int = 0
    flags: int = 0
    ehsize: int = 0
    phentsize: int = 0
    phnum: int = 0
    shentsize: int = 0
    shnum: int = 0
    shstrndx: int = 0

    @property
    def is_64bit(self) -> bool:
        return self.elf_class == ElfClass.ELF64

    @property
    def endian(self) -> str:
        """``"little"`` or ``"big"``, suitable for :meth:`int.from_bytes`."""
        return "little" if self.data == ElfData.LSB else "big"

    @property
    def class_label(self) -> str:
        return C.describe_class(int(self.elf_class))

    @property
    def data_label(self) -> str:
        return C.describe_data(int(self.data))

    @property
    def type_label(self) -> str:
        return C.describe_type(self.type)

    @property
    def machine_label(self) -> str:
        return C.describe_machine(self.machine)

    @property
    def osabi_label(self) -> str:
        return C.describe_osabi(self.osabi)


class Section(BaseModel):
    """One section header plus its raw payload.

    Attributes:
        index: Position in the section header table.
        name: Name resolved through the section-name string table.
        name_offset: ``sh_name`` as read from disk.
        type: ``SHT_*`` code.
        flags: ``SHF_*`` bitmask.
        addr: Virtual address when loaded.
        offset: File offset of the payload.
        size: Payload size in bytes (for NOBITS, the in-memory size).
        link: Section index whose meaning depends on *type*.
        info: Extra information whose meaning depends on *type*.
        addralign: Required alignment of the payload.
        entsize: Size of one fixed-size entry, or 0.
        data: Raw payload; empty for NULL and NOBITS sections.
    """
    index: int = 0
    name: str = ""
    name_offset: int = 0
    type: int = C.SHT_NULL
    flags: int = 0
    addr: int = 0
    offset: int = 0
    size: int = 0
    link: int = 0
    info: int = 0
    addralign: int = 0
    entsize: int = 0
    data: bytes = Field(default=b"", repr=False)

    @property
    def type_label(self) -> str:
        return C.describe_section_type(self.type)

    @property
    def flags_str(self) -> str:
        return C.section_flags_str(self.flags)

    @property
    def has_payload(self) -> bool:
        """Whether the section occupies bytes in the file."""
        return self.type not in (C.SHT_NULL, C.SHT_NOBITS)


class Symbol(BaseModel):
    """One symbol table record.

    Attributes:
        name: Name resolved through the linked string table.
        name_offset: ``st_name`` as read from disk.
        value: Symbol value (usually an address or section offset).
        size: Size of the object the symbol describes.
        info: Packed binding (high nibble) and type (low nibble).
        other: Visibility byte.
        shndx: Index of the section the symbol is defined in.
    """
    name: str = ""
    name_offset: int = 0
    value: int = 0
    size: int = 0
    info: int = 0
    other: int = 0
    shndx: int = C.SHN_UNDEF

    @staticmethod
    def make_info(bind: int, sym_type: int) -> int:
        """Pack a binding and a type into an ``st_info`` byte."""
        return ((bind & 0xF) << 4) | (sym_type & 0xF)

    @property
    def st_type(self) -> int:
        return self.info & 0xF

    @property
    def st_bind(self) -> int:
        return (self.info >> 4) & 0xF

    @property
    def type_label(self) -> str:
        return C.describe_symbol_type(self.st_type)

    @property
    def bind_label(self) -> str:
        return C.describe_symbol_binding(self.st_bind)

    @property
    def is_undefined(self) -> bool:
        return self.shndx == C.SHN_UNDEF


class ProgramHeader(BaseModel):
    """One program header (segment) record."""
    type: int = C.PT_NULL
    flags: int = 0
    offset: int = 0
    vaddr: int = 0
    paddr: int = 0
    filesz: int = 0
    memsz: int = 0
    align: int = 0

    @property
    def type_label(self) -> str:
        return C.describe_segment_type(self.type)

    @property
    def flags_str(self) -> str:
        return C.segment_flags_str(self.flags)


class ElfFile(BaseModel):
    """A fully decoded ELF object.

    Attributes:
        header: The file header.
        sections: Every section header in table order, index 0 included.
        segments: Program headers in table order.
        symbols: Every record of the first symbol table, null entry
            included; empty when the file has no symbol table.
        section_string_table: Raw bytes of the section-name table.
        symbol_string_table: Raw bytes of the symbol-name table.
    """
    header: ElfHeader = Field(default_factory=ElfHeader)
    sections: list[Section] = Field(default_factory=list)
    segments: list[ProgramHeader] = Field(default_factory=list)
    symbols: list[Symbol] = Field(default_factory=list)
    section_string_table: bytes = Field(default=b"", repr=False)
    symbol_string_table: bytes = Field(default=b"", repr=False)

    def section_at(self, index: int) -> Section:
        """Return the section at *index*.

        Raises:
            FormatError: If *index* is outside the section table.
        """
        if index < 0 or index >= len(self.sections):
            raise FormatError(
                f"section index {index} out of range "
                f"(file has {len(self.sections)} sections)"
            )
        return self.sections[index]

    def find_section(self, name: str) -> Optional[Section]:
        """Return the first section called *name*, or ``None``."""
        for section in self.sections:
            if section.name == name:
                return section
        return None

    def symbol_table(self) -> Optional[Section]:
        """Return the first ``SHT_SYMTAB`` section, or ``None``."""
        for section in self.sections:
            if section.type == C.SHT_SYMTAB:
                return section
        return None

    def named_symbols(self) -> list[Symbol]:
        """Symbols with a non-empty name, in table order."""
        return [sym for sym in self.symbols if sym.name]


# ---------------------------------------------------------------------------
# Archive structures
# ---------------------------------------------------------------------------

class ArchiveMember(BaseModel):
    """One member of an ``ar`` archive.

    Attributes:
        name: Member name with GNU terminators and long-name references
            already resolved.  The symbol index is called ``"/"``.
        mtime: Modification time (seconds since the epoch).
        uid: Owner user id.
        gid: Owner group id.
        mode: File mode bits.
        data: Member payload, without the odd-size pad byte.
        offset: Position of the member header when read from disk.
    """
    name: str
    mtime: int = 0
    uid: int = 0
    gid: int = 0
    mode: int = 0o644
    data: bytes = Field(default=b"", repr=False)
    offset: int = 0

    @property
    def size(self) -> int:
        return len(self.data)

    @property
    def is_symbol_index(self) -> bool:
        return self.name in ("/", "__.SYMDEF", "__.SYMDEF SORTED")


class ArchiveSymbol(BaseModel):
    """A symbol-index entry: which member defines *name*."""
    name: str
    member: str
