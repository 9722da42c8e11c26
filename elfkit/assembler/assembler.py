"""
Toy Assembler (as)
===================

Turns line-oriented assembly text into a relocatable ELF64 x86-64 object
with a single ``.text`` section.

Source format::

    # comment            ; also a comment
    start:  nop
            syscall
    done:                (label on its own line)
            ret

Each non-blank line holds an optional ``label:`` prefix and an optional
instruction.  Operands are parsed but not encoded: the opcode alone
selects the bytes from a small closed table, and any opcode missing from
the table encodes as a single ``nop`` (``0x90``).  The mapping is total
and deterministic; it is not a real instruction encoder.

Labels become ``STB_LOCAL`` / ``STT_FUNC`` symbols in ``.text`` whose
value is the byte offset of the instruction they precede.
"""

from __future__ import annotations

import re
from pathlib import Path

from pydantic import BaseModel, Field

from elfkit.core import constants as C
from elfkit.core.errors import LimitExceededError, ValidationError
from elfkit.core.models import ElfClass, ElfData, ElfFile, ElfHeader, Section, Symbol
from elfkit.parsers.elf_writer import serialize_elf
from elfkit.transformers.atomic import atomic_write
from shared.config import ElfkitConfig, LimitsConfig
from shared.logger import ToolLogger

# ---------------------------------------------------------------------------
# Opcode table
# ---------------------------------------------------------------------------

OPCODES: dict[str, bytes] = {
    "nop": b"\x90",
    "ret": b"\xc3",
    "hlt": b"\xf4",
    "int3": b"\xcc",
    "leave": b"\xc9",
    "cld": b"\xfc",
    "std": b"\xfd",
    "clc": b"\xf8",
    "stc": b"\xf9",
    "cmc": b"\xf5",
    "pushf": b"\x9c",
    "popf": b"\x9d",
    "cqo": b"\x48\x99",
    "syscall": b"\x0f\x05",
    "ud2": b"\x0f\x0b",
}

DEFAULT_ENCODING: bytes = b"\x90"

_LABEL_RE = re.compile(r"^[A-Za-z_.$][\w.$]*$")
_OPERAND_SPLIT_RE = re.compile(r"[\s,]+")


class Instruction(BaseModel):
    """One parsed source instruction.

    Attributes:
        opcode: Lower-cased mnemonic.  Empty for the anchor that carries
            labels written after the last instruction.
        operands: Operand tokens, split on whitespace and commas.
        labels: Labels that name this instruction's address.
        line: 1-based source line of the mnemonic.
    """
    opcode: str = ""
    operands: list[str] = Field(default_factory=list)
    labels: list[str] = Field(default_factory=list)
    line: int = 0

    def encode(self) -> bytes:
        if not self.opcode:
            return b""
        return OPCODES.get(self.opcode, DEFAULT_ENCODING)


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------

def parse_source(text: str, limits: LimitsConfig | None = None) -> list[Instruction]:
    """Split assembly *text* into instructions.

    Raises:
        LimitExceededError: The source or one of its lines is too long.
        ValidationError: A label is malformed or defined twice.
    """
    limits = limits or LimitsConfig()
    size = len(text.encode("utf-8"))
    if size > limits.max_source_size:
        raise LimitExceededError(
            f"source size {size} exceeds limit {limits.max_source_size}"
        )

    instructions: list[Instruction] = []
    pending: list[str] = []
    seen: set[str] = set()

    for lineno, raw in enumerate(text.splitlines(), start=1):
        if len(raw) > limits.max_source_line:
            raise LimitExceededError(
                f"line {lineno}: length {len(raw)} exceeds limit {limits.max_source_line}"
            )
        line = raw.strip()
        if not line or line.startswith(("#", ";")):
            continue

        if ":" in line:
            label, line = (part.strip() for part in line.split(":", 1))
            if not _LABEL_RE.match(label):
                raise ValidationError(f"line {lineno}: invalid label {label!r}")
            if label in seen:
                raise ValidationError(f"line {lineno}: duplicate label {label!r}")
            seen.add(label)
            pending.append(label)

        fields = line.split(None, 1)
        if not fields:
            continue
        operands = []
        if len(fields) > 1:
            operands = [tok for tok in _OPERAND_SPLIT_RE.split(fields[1]) if tok]
        instructions.append(
            Instruction(
                opcode=fields[0].lower(),
                operands=operands,
                labels=pending,
                line=lineno,
            )
        )
        pending = []

    if pending:
        instructions.append(Instruction(labels=pending))
    return instructions


# ---------------------------------------------------------------------------
# Object generation
# ---------------------------------------------------------------------------

def build_object(
    instructions: list[Instruction],
    text_alignment: int = 16,
) -> ElfFile:
    """Encode *instructions* into a relocatable object model."""
    code = bytearray()
    symbols: list[Symbol] = [Symbol()]
    for inst in instructions:
        for label in inst.labels:
            symbols.append(
                Symbol(
                    name=label,
                    value=len(code),
                    info=Symbol.make_info(C.STB_LOCAL, C.STT_FUNC),
                    shndx=1,
                )
            )
        code += inst.encode()

    text = Section(
        index=1,
        name=".text",
        type=C.SHT_PROGBITS,
        flags=C.SHF_ALLOC | C.SHF_EXECINSTR,
        size=len(code),
        addralign=text_alignment,
        data=bytes(code),
    )
    header = ElfHeader(
        elf_class=ElfClass.ELF64,
        data=ElfData.LSB,
        osabi=C.ELFOSABI_LINUX,
        type=C.ET_REL,
        machine=C.EM_X86_64,
    )
    return ElfFile(header=header, sections=[Section(), text], symbols=symbols)


def assemble(text: str, config: ElfkitConfig | None = None) -> ElfFile:
    """Parse and encode assembly *text* in one step."""
    config = config or ElfkitConfig()
    instructions = parse_source(text, config.limits)
    return build_object(instructions, config.assembler.text_alignment)


def assemble_file(
    input_path: str | Path,
    output_path: str | Path,
    config: ElfkitConfig | None = None,
    logger: ToolLogger | None = None,
) -> ElfFile:
    """Assemble *input_path* and write the object to *output_path*.

    Raises:
        LimitExceededError: The source file is larger than allowed.
        ValidationError: The source has a bad or duplicate label.
        OSError: Reading or writing failed.
    """
    config = config or ElfkitConfig()
    source = Path(input_path)
    size = source.stat().st_size
    if size > config.limits.max_source_size:
        raise LimitExceededError(
            f"source size {size} exceeds limit {config.limits.max_source_size}",
            source=str(input_path),
        )

    text = source.read_text(encoding="utf-8", errors="replace")
    try:
        elf = assemble(text, config)
    except (LimitExceededError, ValidationError) as exc:
        raise exc.with_source(str(input_path)) from exc

    atomic_write(output_path, serialize_elf(elf))
    if logger is not None:
        logger.info(
            "Assembled %s: %d bytes of code, %d labels",
            input_path, elf.sections[1].size, len(elf.symbols) - 1,
        )
    return elf
