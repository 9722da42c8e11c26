"""
elfkit Assembler
=================

Toy assembler producing a relocatable object with one ``.text`` section.
"""

from elfkit.assembler.assembler import (
    OPCODES,
    Instruction,
    assemble,
    assemble_file,
    build_object,
    parse_source,
)

__all__ = [
    "OPCODES",
    "Instruction",
    "assemble",
    "assemble_file",
    "build_object",
    "parse_source",
]
