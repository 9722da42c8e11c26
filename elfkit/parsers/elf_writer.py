"""
ELF Serializer
===============

Turns an :class:`~elfkit.core.models.ElfFile` back into bytes using the
model's own class and byte order.  Used by every tool that produces an
object file (strip, objcopy, elfedit, ld, as).

The writer owns the bookkeeping tables:
    - the section-name table and the symbol-name table are regenerated
      (with deduplication) from the ``name`` fields, so callers may rename,
      add or drop sections and symbols freely;
    - the symbol table payload is regenerated from ``ElfFile.symbols``;
    - file offsets, ``e_shoff`` and the table counts are recomputed.

Output layout::

    ELF header | program headers | section payloads (aligned) | section headers

Program header records are written verbatim: their offsets describe the
original file and are not rebased.

References:
    - TIS Committee. (1995). Tool Interface Standard (TIS) Executable and
      Linkable Format (ELF) Specification, Version 1.2, "Sections".
"""

from __future__ import annotations

from elfkit.core import constants as C
from elfkit.core.errors import ValidationError
from elfkit.core.models import ElfFile, Section, Symbol
from elfkit.parsers.layout import ElfLayout, get_layout

_MAX_ALIGN: int = 1 << 16


# ---------------------------------------------------------------------------
# String tables
# ---------------------------------------------------------------------------

class StringTableBuilder:
    """Accumulates NUL-terminated names, sharing identical entries.

    Offset 0 always holds the empty string.
    """

    def __init__(self) -> None:
        self._data = bytearray(b"\x00")
        self._offsets: dict[str, int] = {"": 0}

    def add(self, name: str) -> int:
        """Return the offset of *name*, appending it if new."""
        offset = self._offsets.get(name)
        if offset is None:
            offset = len(self._data)
            self._data += name.encode("utf-8") + b"\x00"
            self._offsets[name] = offset
        return offset

    def to_bytes(self) -> bytes:
        return bytes(self._data)

    def __len__(self) -> int:
        return len(self._data)


def _is_null_symbol(sym: Symbol) -> bool:
    return (
        not sym.name
        and sym.value == 0
        and sym.size == 0
        and sym.info == 0
        and sym.other == 0
        and sym.shndx == C.SHN_UNDEF
    )


def _align_up(value: int, align: int) -> int:
    if align <= 1:
        return value
    return (value + align - 1) // align * align


# ---------------------------------------------------------------------------
# Writer
# ---------------------------------------------------------------------------

class ELFWriter:
    """Serialize an :class:`ElfFile`.

    The input model is not modified; :attr:`model` holds the laid-out copy
    (final indices, offsets and name offsets) after :meth:`write`.

    Usage::

        data = ELFWriter(elf).write()
    """

    def __init__(self, elf: ElfFile) -> None:
        self._source = elf
        self.model: ElfFile | None = None

    def write(self) -> bytes:
        """Lay out and encode the object.

        Raises:
            ValidationError: If section 0 is not ``SHT_NULL``, an alignment
                is unusable, or a value does not fit the target class.
        """
        elf = self._source.model_copy(deep=True)
        header = elf.header
        layout = get_layout(header.elf_class, header.data)

        if elf.sections and elf.sections[0].type != C.SHT_NULL:
            raise ValidationError("section 0 must be of type SHT_NULL")
        if not elf.sections and elf.symbols:
            elf.sections.append(Section())

        if elf.sections:
            self._build_symbol_table(elf, layout)
            self._build_section_names(elf)

        data = self._emit(elf, layout)
        self.model = elf
        return data

    # ------------------------------------------------------------------ #
    #  Table regeneration
    # ------------------------------------------------------------------ #

    def _build_symbol_table(self, elf: ElfFile, layout: ElfLayout) -> None:
        symtab = elf.symbol_table()
        if not elf.symbols:
            if symtab is not None:
                symtab.data = b""
                symtab.info = 0
            return

        if not _is_null_symbol(elf.symbols[0]):
            elf.symbols.insert(0, Symbol())

        if symtab is None:
            symtab = Section(
                name=".symtab",
                type=C.SHT_SYMTAB,
                addralign=layout.word_align,
            )
            elf.sections.append(symtab)

        strtab: Section | None = None
        if (
            C.SHN_UNDEF < symtab.link < len(elf.sections)
            and symtab.link != elf.header.shstrndx
            and elf.sections[symtab.link].type == C.SHT_STRTAB
        ):
            strtab = elf.sections[symtab.link]
        if strtab is None:
            strtab = Section(name=".strtab", type=C.SHT_STRTAB, addralign=1)
            elf.sections.append(strtab)

        names = StringTableBuilder()
        for sym in elf.symbols:
            sym.name_offset = names.add(sym.name)
        strtab.data = names.to_bytes()
        elf.symbol_string_table = strtab.data

        symtab.link = next(
            i for i, section in enumerate(elf.sections) if section is strtab
        )
        symtab.entsize = layout.symentsize
        symtab.info = next(
            (i for i, sym in enumerate(elf.symbols) if sym.st_bind != C.STB_LOCAL),
            len(elf.symbols),
        )
        symtab.data = b"".join(layout.encode_symbol(sym) for sym in elf.symbols)

    def _build_section_names(self, elf: ElfFile) -> None:
        shstrndx = elf.header.shstrndx
        if (
            shstrndx == C.SHN_UNDEF
            or shstrndx >= len(elf.sections)
            or elf.sections[shstrndx].type != C.SHT_STRTAB
        ):
            elf.sections.append(
                Section(name=".shstrtab", type=C.SHT_STRTAB, addralign=1)
            )
            shstrndx = len(elf.sections) - 1
        elf.header.shstrndx = shstrndx

        names = StringTableBuilder()
        for section in elf.sections:
            section.name_offset = names.add(section.name)
        elf.sections[shstrndx].data = names.to_bytes()
        elf.section_string_table = elf.sections[shstrndx].data

    # ------------------------------------------------------------------ #
    #  Layout and encoding
    # ------------------------------------------------------------------ #

    def _emit(self, elf: ElfFile, layout: ElfLayout) -> bytes:
        header = elf.header
        out = bytearray()

        def pad_out(align: int) -> None:
            out.extend(b"\x00" * (_align_up(len(out), align) - len(out)))

        # Reserve the header; it is encoded last once offsets are known.
        out.extend(b"\x00" * layout.ehsize)

        header.phnum = len(elf.segments)
        header.phentsize = layout.phentsize if elf.segments else 0
        header.phoff = 0
        if elf.segments:
            pad_out(layout.word_align)
            header.phoff = len(out)
            for segment in elf.segments:
                out.extend(layout.encode_segment(segment))

        for index, section in enumerate(elf.sections):
            section.index = index
            if section.type == C.SHT_NULL:
                continue
            align = section.addralign if section.addralign > 1 else 1
            if align & (align - 1) or align > _MAX_ALIGN:
                raise ValidationError(
                    f"section {section.name or index}: unsupported "
                    f"alignment {section.addralign}"
                )
            pad_out(align)
            section.offset = len(out)
            if section.type != C.SHT_NOBITS:
                section.size = len(section.data)
                out.extend(section.data)

        header.shnum = len(elf.sections)
        header.shentsize = layout.shentsize if elf.sections else 0
        header.shoff = 0
        if elf.sections:
            pad_out(layout.word_align)
            header.shoff = len(out)
            for section in elf.sections:
                out.extend(layout.encode_section(section))
        else:
            header.shstrndx = C.SHN_UNDEF

        header.ehsize = layout.ehsize
        out[:layout.ehsize] = layout.encode_header(header)
        return bytes(out)


def serialize_elf(elf: ElfFile) -> bytes:
    """Encode *elf* into the bytes of an ELF file."""
    return ELFWriter(elf).write()
