"""
ELF Record Layouts
===================

The four combinations of address width and byte order differ only in
field widths, field order and endianness.  Each combination is captured
once as an :class:`ElfLayout` holding precompiled :class:`struct.Struct`
objects; the parser and the serializer pick one from the identification
bytes and route every record through it.

Record sizes::

                 ELF32   ELF64
    header        52      64     (16 identification bytes included)
    section       40      64
    symbol        16      24
    program hdr   32      56

References:
    - TIS Committee. (1995). Tool Interface Standard (TIS) Executable and
      Linkable Format (ELF) Specification, Version 1.2, Figures 1-3, 1-8,
      1-15 and 2-1.
    - ELF-64 Object File Format, Version 1.5 Draft 2 (1998).
"""

from __future__ import annotations

import struct
from dataclasses import dataclass
from functools import lru_cache

from elfkit.core import constants as C
from elfkit.core.errors import FormatError, ValidationError
from elfkit.core.models import (
    ElfClass,
    ElfData,
    ElfHeader,
    ProgramHeader,
    Section,
    Symbol,
)


# ---------------------------------------------------------------------------
# Struct formats (without byte-order prefix)
# ---------------------------------------------------------------------------

_HEADER_FMT: dict[ElfClass, str] = {
    ElfClass.ELF32: "HHIIIIIHHHHHH",
    ElfClass.ELF64: "HHIQQQIHHHHHH",
}

_SECTION_FMT: dict[ElfClass, str] = {
    ElfClass.ELF32: "IIIIIIIIII",
    ElfClass.ELF64: "IIQQQQIIQQ",
}

# Elf32_Sym: name, value, size, info, other, shndx
# Elf64_Sym: name, info, other, shndx, value, size
_SYMBOL_FMT: dict[ElfClass, str] = {
    ElfClass.ELF32: "IIIBBH",
    ElfClass.ELF64: "IBBHQQ",
}

# Elf32_Phdr: type, offset, vaddr, paddr, filesz, memsz, flags, align
# Elf64_Phdr: type, flags, offset, vaddr, paddr, filesz, memsz, align
_SEGMENT_FMT: dict[ElfClass, str] = {
    ElfClass.ELF32: "IIIIIIII",
    ElfClass.ELF64: "IIQQQQQQ",
}

_IDENT = struct.Struct("<4sBBBBB7x")


@dataclass(frozen=True, slots=True)
class ElfLayout:
    """Decode/encode strategy for one (class, byte order) combination."""

    elf_class: ElfClass
    data: ElfData
    header: struct.Struct
    section: struct.Struct
    symbol: struct.Struct
    segment: struct.Struct

    # ------------------------------------------------------------------ #
    #  Sizes
    # ------------------------------------------------------------------ #

    @property
    def is_64bit(self) -> bool:
        return self.elf_class == ElfClass.ELF64

    @property
    def ehsize(self) -> int:
        return C.EI_NIDENT + self.header.size

    @property
    def shentsize(self) -> int:
        return self.section.size

    @property
    def symentsize(self) -> int:
        return self.symbol.size

    @property
    def phentsize(self) -> int:
        return self.segment.size

    @property
    def word_align(self) -> int:
        """Natural alignment of address-sized fields."""
        return 8 if self.is_64bit else 4

    # ------------------------------------------------------------------ #
    #  Decoding
    # ------------------------------------------------------------------ #

    def decode_header(self, ident: bytes, body: bytes) -> ElfHeader:
        """Build an :class:`ElfHeader` from the identification bytes and
        the fixed header that follows them."""
        (
            e_type, machine, version, entry, phoff, shoff, flags,
            ehsize, phentsize, phnum, shentsize, shnum, shstrndx,
        ) = self.header.unpack(body)
        return ElfHeader(
            elf_class=self.elf_class,
            data=self.data,
            ident_version=ident[6],
            osabi=ident[7],
            abi_version=ident[8],
            type=e_type,
            machine=machine,
            version=version,
            entry=entry,
            phoff=phoff,
            shoff=shoff,
            flags=flags,
            ehsize=ehsize,
            phentsize=phentsize,
            phnum=phnum,
            shentsize=shentsize,
            shnum=shnum,
            shstrndx=shstrndx,
        )

    def decode_section(self, index: int, raw: bytes) -> Section:
        (
            name, sh_type, flags, addr, offset, size,
            link, info, addralign, entsize,
        ) = self.section.unpack(raw)
        return Section(
            index=index,
            name_offset=name,
            type=sh_type,
            flags=flags,
            addr=addr,
            offset=offset,
            size=size,
            link=link,
            info=info,
            addralign=addralign,
            entsize=entsize,
        )

    def decode_symbol(self, raw: bytes) -> Symbol:
        if self.is_64bit:
            name, info, other, shndx, value, size = self.symbol.unpack(raw)
        else:
            name, value, size, info, other, shndx = self.symbol.unpack(raw)
        return Symbol(
            name_offset=name,
            value=value,
            size=size,
            info=info,
            other=other,
            shndx=shndx,
        )

    def decode_segment(self, raw: bytes) -> ProgramHeader:
        if self.is_64bit:
            (
                p_type, flags, offset, vaddr, paddr, filesz, memsz, align,
            ) = self.segment.unpack(raw)
        else:
            (
                p_type, offset, vaddr, paddr, filesz, memsz, flags, align,
            ) = self.segment.unpack(raw)
        return ProgramHeader(
            type=p_type,
            flags=flags,
            offset=offset,
            vaddr=vaddr,
            paddr=paddr,
            filesz=filesz,
            memsz=memsz,
            align=align,
        )

    # ------------------------------------------------------------------ #
    #  Encoding
    # ------------------------------------------------------------------ #

    def encode_header(self, h: ElfHeader) -> bytes:
        ident = self._pack(
            _IDENT, "identification",
            C.ELF_MAGIC, int(self.elf_class), int(self.data),
            h.ident_version, h.osabi, h.abi_version,
        )
        body = self._pack(
            self.header, "file header",
            h.type, h.machine, h.version, h.entry, h.phoff, h.shoff,
            h.flags, h.ehsize, h.phentsize, h.phnum, h.shentsize,
            h.shnum, h.shstrndx,
        )
        return ident + body

    def encode_section(self, s: Section) -> bytes:
        return self._pack(
            self.section, f"section {s.name or s.index}",
            s.name_offset, s.type, s.flags, s.addr, s.offset, s.size,
            s.link, s.info, s.addralign, s.entsize,
        )

    def encode_symbol(self, sym: Symbol) -> bytes:
        what = f"symbol {sym.name or '<unnamed>'}"
        if self.is_64bit:
            return self._pack(
                self.symbol, what,
                sym.name_offset, sym.info, sym.other, sym.shndx,
                sym.value, sym.size,
            )
        return self._pack(
            self.symbol, what,
            sym.name_offset, sym.value, sym.size, sym.info, sym.other,
            sym.shndx,
        )

    def encode_segment(self, ph: ProgramHeader) -> bytes:
        if self.is_64bit:
            return self._pack(
                self.segment, "program header",
                ph.type, ph.flags, ph.offset, ph.vaddr, ph.paddr,
                ph.filesz, ph.memsz, ph.align,
            )
        return self._pack(
            self.segment, "program header",
            ph.type, ph.offset, ph.vaddr, ph.paddr, ph.filesz, ph.memsz,
            ph.flags, ph.align,
        )

    def _pack(self, st: struct.Struct, what: str, *values: int | bytes) -> bytes:
        try:
            return st.pack(*values)
        except struct.error as exc:
            raise ValidationError(
                f"{what}: value does not fit "
                f"{C.describe_class(int(self.elf_class))} layout ({exc})"
            ) from exc


# ---------------------------------------------------------------------------
# Layout selection
# ---------------------------------------------------------------------------

@lru_cache(maxsize=None)
def get_layout(elf_class: ElfClass, data: ElfData) -> ElfLayout:
    """Return the shared layout for one class / byte-order pair."""
    prefix = "<" if data == ElfData.LSB else ">"
    return ElfLayout(
        elf_class=elf_class,
        data=data,
        header=struct.Struct(prefix + _HEADER_FMT[elf_class]),
        section=struct.Struct(prefix + _SECTION_FMT[elf_class]),
        symbol=struct.Struct(prefix + _SYMBOL_FMT[elf_class]),
        segment=struct.Struct(prefix + _SEGMENT_FMT[elf_class]),
    )


def layout_from_ident(ident: bytes) -> ElfLayout:
    """Select a layout from the identification bytes.

    Raises:
        FormatError: If the class or data byte is not a known value.
    """
    try:
        elf_class = ElfClass(ident[4])
    except ValueError:
        raise FormatError(f"invalid ELF class {ident[4]}") from None
    try:
        data = ElfData(ident[5])
    except ValueError:
        raise FormatError(f"invalid ELF data encoding {ident[5]}") from None
    return get_layout(elf_class, data)
