"""
elfkit Core Module
===================

Constants, the error taxonomy and the data models shared by every elfkit
parser and tool.
"""

from elfkit.core.errors import (
    ElfkitError,
    FormatError,
    LimitExceededError,
    LinkError,
    TruncatedError,
    ValidationError,
)
from elfkit.core.models import (
    ArchiveMember,
    ArchiveSymbol,
    ElfClass,
    ElfData,
    ElfFile,
    ElfHeader,
    ProgramHeader,
    Section,
    Symbol,
)

__all__ = [
    "ArchiveMember",
    "ArchiveSymbol",
    "ElfClass",
    "ElfData",
    "ElfFile",
    "ElfHeader",
    "ElfkitError",
    "FormatError",
    "LimitExceededError",
    "LinkError",
    "ProgramHeader",
    "Section",
    "Symbol",
    "TruncatedError",
    "ValidationError",
]
