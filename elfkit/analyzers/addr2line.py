"""
Address-to-Section Resolver (addr2line)
========================================

Maps virtual addresses to the section whose ``[addr, addr + size)``
range contains them.  Source line resolution would need DWARF
``.debug_line`` decoding, which this toolkit does not provide; the
section name is the finest granularity reported.
"""

from __future__ import annotations

import re
from typing import Optional

from elfkit.core.errors import ValidationError
from elfkit.core.models import ElfFile

_HEX_ADDRESS = re.compile(r"[0-9a-fA-F]{1,16}")


def parse_address(text: str) -> int:
    """Parse a hexadecimal address with an optional ``0x`` prefix.

    Raises:
        ValidationError: If *text* is empty, not hexadecimal, or longer
            than 16 digits.
    """
    digits = text.strip()
    if digits[:2] in ("0x", "0X"):
        digits = digits[2:]
    if not _HEX_ADDRESS.fullmatch(digits):
        raise ValidationError(f"invalid address {text!r}")
    return int(digits, 16)


def resolve_address(elf: ElfFile, address: int) -> Optional[str]:
    """Return the name of the first section containing *address*."""
    for section in elf.sections:
        if section.size and section.addr <= address < section.addr + section.size:
            return section.name
    return None
