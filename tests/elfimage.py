"""Struct-level ELF image builder, independent of elfkit's own writer."""

from __future__ import annotations

import struct
from dataclasses import dataclass
from typing import Sequence


SHT_PROGBITS = 1
SHT_SYMTAB = 2
SHT_STRTAB = 3
SHT_NOBITS = 8

STB_LOCAL = 0
STB_GLOBAL = 1
STB_WEAK = 2

STT_NOTYPE = 0
STT_OBJECT = 1
STT_FUNC = 2


@dataclass
class Sec:
    name: str
    type: int = SHT_PROGBITS
    flags: int = 0
    data: bytes = b""
    addr: int = 0
    size: int | None = None
    link: int = 0
    info: int = 0
    align: int = 1
    entsize: int = 0
    offset: int | None = None


@dataclass
class Sym:
    name: str
    value: int = 0
    size: int = 0
    bind: int = STB_GLOBAL
    type: int = STT_NOTYPE
    shndx: int = 0
    other: int = 0


@dataclass
class Seg:
    type: int = 1
    flags: int = 5
    offset: int = 0
    vaddr: int = 0
    paddr: int = 0
    filesz: int = 0
    memsz: int = 0
    align: int = 0x1000


class _Strtab:
    def __init__(self) -> None:
        self.data = bytearray(b"\x00")

    def add(self, name: str) -> int:
        if not name:
            return 0
        offset = len(self.data)
        self.data += name.encode() + b"\x00"
        return offset


def build_elf(
    *,
    bits: int = 64,
    little: bool = True,
    etype: int = 1,
    machine: int = 0x3E,
    entry: int = 0,
    osabi: int = 0,
    sections: Sequence[Sec] = (),
    symbols: Sequence[Sym] | None = None,
    segments: Sequence[Seg] = (),
    shnum_override: int | None = None,
) -> bytes:
    """Assemble an ELF image byte by byte.

    Section indices: 0 is null, user sections follow in order, then
    ``.symtab`` and ``.strtab`` when *symbols* is given, then
    ``.shstrtab`` last.
    """
    e = "<" if little else ">"
    is64 = bits == 64
    ehsize = 64 if is64 else 52
    phentsize = 56 if is64 else 32
    shentsize = 64 if is64 else 40
    symentsize = 24 if is64 else 16

    secs = list(sections)
    if symbols is not None:
        strtab = _Strtab()
        records = [b"\x00" * symentsize]
        locals_end = 1
        for n, sym in enumerate(symbols):
            name_off = strtab.add(sym.name)
            info = (sym.bind << 4) | sym.type
            if sym.bind == STB_LOCAL and locals_end == n + 1:
                locals_end = n + 2
            if is64:
                records.append(struct.pack(e + "IBBHQQ", name_off, info, sym.other, sym.shndx, sym.value, sym.size))
            else:
                records.append(struct.pack(e + "IIIBBH", name_off, sym.value, sym.size, info, sym.other, sym.shndx))
        symtab_index = len(secs) + 1
        secs.append(Sec(".symtab", SHT_SYMTAB, data=b"".join(records), link=symtab_index + 1,
                        info=locals_end, align=8 if is64 else 4, entsize=symentsize))
        secs.append(Sec(".strtab", SHT_STRTAB, data=bytes(strtab.data)))

    shstrtab = _Strtab()
    name_offsets = [shstrtab.add(s.name) for s in secs]
    shstr_name = shstrtab.add(".shstrtab")
    secs.append(Sec(".shstrtab", SHT_STRTAB, data=bytes(shstrtab.data)))
    name_offsets.append(shstr_name)

    phoff = ehsize if segments else 0
    offset = ehsize + phentsize * len(segments)
    payload = bytearray()
    sec_offsets = []
    for sec in secs:
        sec_offsets.append(offset + len(payload))
        if sec.type != SHT_NOBITS:
            payload += sec.data
    shoff = offset + len(payload)

    ident = b"\x7fELF" + bytes([2 if is64 else 1, 1 if little else 2, 1, osabi, 0]) + b"\x00" * 7
    shnum = len(secs) + 1
    hfmt = e + ("HHIQQQIHHHHHH" if is64 else "HHIIIIIHHHHHH")
    header = ident + struct.pack(
        hfmt, etype, machine, 1, entry, phoff, shoff, 0, ehsize,
        phentsize, len(segments), shentsize,
        shnum if shnum_override is None else shnum_override, shnum - 1,
    )

    phdrs = bytearray()
    for seg in segments:
        if is64:
            phdrs += struct.pack(e + "IIQQQQQQ", seg.type, seg.flags, seg.offset, seg.vaddr,
                                 seg.paddr, seg.filesz, seg.memsz, seg.align)
        else:
            phdrs += struct.pack(e + "IIIIIIII", seg.type, seg.offset, seg.vaddr, seg.paddr,
                                 seg.filesz, seg.memsz, seg.flags, seg.align)

    shdrs = bytearray(shentsize)
    sfmt = e + ("IIQQQQIIQQ" if is64 else "IIIIIIIIII")
    for sec, name_off, sec_off in zip(secs, name_offsets, sec_offsets):
        size = sec.size if sec.size is not None else len(sec.data)
        if sec.offset is not None:
            sec_off = sec.offset
        shdrs += struct.pack(sfmt, name_off, sec.type, sec.flags, sec.addr, sec_off, size,
                             sec.link, sec.info, sec.align, sec.entsize)

    return bytes(header) + bytes(phdrs) + bytes(payload) + bytes(shdrs)


