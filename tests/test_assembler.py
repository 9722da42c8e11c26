"""Tests for the toy assembler."""

from __future__ import annotations

import pytest

from elfkit.assembler import OPCODES, Instruction, assemble, assemble_file, build_object, parse_source
from elfkit.core import constants as C
from elfkit.core.errors import LimitExceededError, ValidationError
from elfkit.parsers.elf_parser import parse_elf_file
from shared.config import ElfkitConfig, LimitsConfig

SOURCE = """\
# entry point
start:  nop
        mov rax, 60
        syscall
; trailing comment
done:
        ret
end:
"""


class TestParseSource:
    def test_instructions_and_labels(self):
        instructions = parse_source(SOURCE)
        assert [i.opcode for i in instructions] == ["nop", "mov", "syscall", "ret", ""]
        assert instructions[0].labels == ["start"]
        assert instructions[1].operands == ["rax", "60"]
        assert instructions[1].line == 3
        assert instructions[3].labels == ["done"]
        assert instructions[4].labels == ["end"]

    def test_mnemonics_are_lowercased(self):
        assert parse_source("  SYSCALL\n")[0].opcode == "syscall"

    def test_blank_and_comment_lines_ignored(self):
        assert parse_source("\n   \n# x\n; y\n") == []

    @pytest.mark.parametrize("source", ["1bad: nop", "a b: nop", ": nop"])
    def test_invalid_label(self, source):
        with pytest.raises(ValidationError, match="invalid label"):
            parse_source(source)

    def test_duplicate_label(self):
        with pytest.raises(ValidationError, match="duplicate label"):
            parse_source("x: nop\nx: ret\n")

    def test_line_length_limit(self):
        with pytest.raises(LimitExceededError, match="line 2"):
            parse_source("nop\n" + "n" * 20 + "\n", LimitsConfig(max_source_line=10))

    def test_source_size_limit(self):
        with pytest.raises(LimitExceededError):
            parse_source("nop\n" * 10, LimitsConfig(max_source_size=16))


class TestEncoding:
    @pytest.mark.parametrize("opcode", sorted(OPCODES))
    def test_table(self, opcode):
        assert Instruction(opcode=opcode).encode() == OPCODES[opcode]

    def test_unknown_opcode_is_nop(self):
        assert Instruction(opcode="vpxord", operands=["zmm0"]).encode() == b"\x90"

    def test_anchor_encodes_nothing(self):
        assert Instruction(labels=["end"]).encode() == b""

    def test_object_layout(self):
        elf = assemble(SOURCE)
        text = elf.sections[1]
        # nop, mov (unknown -> nop), syscall, ret
        assert text.data == b"\x90\x90\x0f\x05\xc3"
        assert text.name == ".text"
        assert text.flags == C.SHF_ALLOC | C.SHF_EXECINSTR
        assert text.addralign == 16
        assert [(s.name, s.value) for s in elf.symbols[1:]] == [
            ("start", 0), ("done", 4), ("end", 5),
        ]
        for sym in elf.symbols[1:]:
            assert sym.st_bind == C.STB_LOCAL
            assert sym.st_type == C.STT_FUNC
            assert sym.shndx == 1

    def test_header(self):
        header = build_object([]).header
        assert header.type == C.ET_REL
        assert header.machine == C.EM_X86_64
        assert header.osabi == C.ELFOSABI_LINUX

    def test_configured_alignment(self):
        config = ElfkitConfig()
        config.assembler.text_alignment = 4
        assert assemble("ret\n", config).sections[1].addralign == 4


class TestAssembleFile:
    def test_writes_object(self, tmp_path):
        src = tmp_path / "prog.s"
        src.write_text(SOURCE, encoding="utf-8")
        out = tmp_path / "prog.o"
        assemble_file(src, out)
        elf = parse_elf_file(out)
        assert elf.header.type == C.ET_REL
        assert elf.find_section(".text").data == b"\x90\x90\x0f\x05\xc3"
        assert [s.name for s in elf.named_symbols()] == ["start", "done", "end"]

    def test_errors_name_the_source(self, tmp_path):
        src = tmp_path / "bad.s"
        src.write_text("a: nop\na: nop\n", encoding="utf-8")
        out = tmp_path / "bad.o"
        with pytest.raises(ValidationError) as info:
            assemble_file(src, out)
        assert info.value.source == str(src)
        assert not out.exists()

    def test_file_size_limit(self, tmp_path):
        src = tmp_path / "big.s"
        src.write_text("nop\n" * 100, encoding="utf-8")
        config = ElfkitConfig()
        config.limits.max_source_size = 64
        with pytest.raises(LimitExceededError):
            assemble_file(src, tmp_path / "big.o", config)
