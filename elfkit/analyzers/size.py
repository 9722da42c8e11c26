"""
Section Size Reporter (size)
=============================

Buckets section sizes into text, data and bss by exact section name and
prints them in the Berkeley ``size`` format::

       text    data     bss     dec     hex filename
        100      50      25     175      af a.out
"""

from __future__ import annotations

from pydantic import BaseModel

from elfkit.core.models import ElfFile

TEXT_SECTIONS: frozenset[str] = frozenset({".text", ".init", ".fini"})
DATA_SECTIONS: frozenset[str] = frozenset({".data", ".rodata", ".sdata"})
BSS_SECTIONS: frozenset[str] = frozenset({".bss", ".sbss"})

SIZE_HEADER: str = "   text    data     bss     dec     hex filename"


class SizeReport(BaseModel):
    """Per-file totals.

    Attributes:
        filename: Name printed in the last column.
        text: Bytes in ``.text``, ``.init`` and ``.fini``.
        data: Bytes in ``.data``, ``.rodata`` and ``.sdata``.
        bss: Bytes in ``.bss`` and ``.sbss``.
    """
    filename: str = ""
    text: int = 0
    data: int = 0
    bss: int = 0

    @property
    def total(self) -> int:
        return self.text + self.data + self.bss

    def format(self) -> str:
        return (
            f"{self.text:7d} {self.data:7d} {self.bss:7d} "
            f"{self.total:7d} {self.total:7x} {self.filename}"
        )


def compute_size(elf: ElfFile, filename: str = "") -> SizeReport:
    """Sum section sizes of *elf* into a :class:`SizeReport`."""
    report = SizeReport(filename=filename)
    for section in elf.sections:
        if section.name in TEXT_SECTIONS:
            report.text += section.size
        elif section.name in DATA_SECTIONS:
            report.data += section.size
        elif section.name in BSS_SECTIONS:
            report.bss += section.size
    return report


def format_size_header() -> str:
    return SIZE_HEADER
