"""Tests for the toy static linker."""

from __future__ import annotations

import pytest

from elfimage import STB_LOCAL, STT_FUNC, STT_OBJECT, Sec, Sym
from elfkit.core import constants as C
from elfkit.core.errors import ElfkitError, LimitExceededError, LinkError
from elfkit.core.models import ElfClass, ElfData
from elfkit.linker import Linker, link_files
from elfkit.parsers.elf_parser import parse_elf, parse_elf_file
from shared.config import ElfkitConfig, LimitsConfig


@pytest.fixture
def objects(make_elf):
    """Two objects: ``a`` defines ``foo``, ``b`` references it."""
    a = parse_elf(make_elf(
        sections=[
            Sec(".text", flags=0x6, data=bytes(range(10))),
            Sec(".data", flags=0x3, data=b"AAAA"),
        ],
        symbols=[Sym("foo", value=2, size=4, type=STT_FUNC, shndx=1)],
    ))
    b = parse_elf(make_elf(
        entry=0x401000,
        sections=[
            Sec(".data", flags=0x3, data=b"BB"),
            Sec(".text", flags=0x6, data=bytes(range(100, 120))),
        ],
        symbols=[
            Sym("foo"),
            Sym("table", value=1, size=1, type=STT_OBJECT, shndx=1),
            Sym("local_helper", bind=STB_LOCAL, type=STT_FUNC, shndx=2),
        ],
    ))
    return [("a.o", a), ("b.o", b)]


def _by_name(elf):
    return {s.name: s for s in elf.named_symbols()}


class TestResolution:
    def test_definition_replaces_placeholder(self, objects):
        linked = Linker().link(list(reversed(objects)))
        foos = [s for s in linked.symbols if s.name == "foo"]
        assert len(foos) == 1
        assert foos[0].st_type == STT_FUNC
        assert foos[0].value == 2

    def test_first_definition_kept_over_later_reference(self, objects):
        linked = Linker().link(objects)
        foo = _by_name(linked)["foo"]
        assert foo.st_type == STT_FUNC
        assert not foo.is_undefined

    def test_duplicate_keeps_first_by_default(self, make_elf):
        first = parse_elf(make_elf(
            sections=[Sec(".text", data=b"\x90" * 4)],
            symbols=[Sym("dup", value=1, type=STT_FUNC, shndx=1)],
        ))
        second = parse_elf(make_elf(
            sections=[Sec(".text", data=b"\x90" * 4)],
            symbols=[Sym("dup", value=3, type=STT_FUNC, shndx=1)],
        ))
        linked = Linker().link([("one.o", first), ("two.o", second)])
        assert _by_name(linked)["dup"].value == 1

    def test_duplicate_fatal_when_configured(self, make_elf):
        obj = make_elf(
            sections=[Sec(".text", data=b"\x90")],
            symbols=[Sym("dup", type=STT_FUNC, shndx=1)],
        )
        config = ElfkitConfig()
        config.linker.fatal_duplicates = True
        with pytest.raises(LinkError) as info:
            Linker(config).link([("one.o", parse_elf(obj)), ("two.o", parse_elf(obj))])
        assert info.value.source == "two.o"
        assert "dup" in str(info.value)

    def test_locals_precede_globals(self, objects):
        linked = Linker().link(objects)
        binds = [s.st_bind for s in linked.symbols[1:]]
        assert binds == sorted(binds, key=lambda bind: bind != C.STB_LOCAL)
        assert linked.symbols[1].name == "local_helper"


class TestMerging:
    def test_sections_concatenated_in_input_order(self, objects):
        linked = Linker().link(objects)
        text = linked.find_section(".text")
        assert text.size == 30
        assert text.data == bytes(range(10)) + bytes(range(100, 120))
        data = linked.find_section(".data")
        assert data.data == b"AAAABB"

    def test_first_appearance_fixes_order(self, objects):
        linked = Linker().link(objects)
        assert [s.name for s in linked.sections] == ["", ".text", ".data"]

    def test_symbols_point_at_merged_sections(self, objects):
        linked = Linker().link(objects)
        symbols = _by_name(linked)
        # b.o's .data was section 1 there; in the output it is section 2
        assert symbols["table"].shndx == 2
        assert symbols["local_helper"].shndx == 1
        assert symbols["foo"].shndx == 1

    def test_inputs_not_modified(self, objects):
        before = [(n, len(e.sections), e.find_section(".text").size) for n, e in objects]
        Linker().link(objects)
        after = [(n, len(e.sections), e.find_section(".text").size) for n, e in objects]
        assert before == after


class TestOutput:
    def test_header(self, objects):
        header = Linker().link(objects).header
        assert header.elf_class is ElfClass.ELF64
        assert header.data is ElfData.LSB
        assert header.type == C.ET_EXEC
        assert header.machine == C.EM_X86_64

    def test_first_nonzero_entry(self, objects, make_elf):
        third = parse_elf(make_elf(entry=0x500000, sections=[Sec(".text", data=b"\xc3")]))
        linked = Linker().link([*objects, ("c.o", third)])
        assert linked.header.entry == 0x401000

    def test_input_limit(self, objects):
        config = ElfkitConfig()
        config.limits = LimitsConfig(max_link_inputs=1)
        with pytest.raises(LimitExceededError):
            Linker(config).link(objects)


class TestLinkFiles:
    def test_writes_executable(self, tmp_path, write_elf):
        a = write_elf(
            "a.o",
            sections=[Sec(".text", flags=0x6, data=b"\x90" * 8)],
            symbols=[Sym("_start", type=STT_FUNC, shndx=1)],
        )
        b = write_elf("b.o", sections=[Sec(".text", flags=0x6, data=b"\xc3")])
        out = tmp_path / "a.out"
        link_files([a, b], out)
        linked = parse_elf_file(out)
        assert linked.header.type == C.ET_EXEC
        assert linked.find_section(".text").data == b"\x90" * 8 + b"\xc3"
        assert [s.name for s in linked.named_symbols()] == ["_start"]
        assert out.stat().st_mode & 0o111

    def test_bad_input_is_named_and_nothing_written(self, tmp_path, write_elf):
        good = write_elf("good.o", sections=[Sec(".text", data=b"\x90")])
        bad = tmp_path / "bad.o"
        bad.write_bytes(b"\x7fELF\x02\x01\x01")
        out = tmp_path / "a.out"
        with pytest.raises(ElfkitError) as info:
            link_files([good, bad], out)
        assert info.value.source == str(bad)
        assert not out.exists()

    def test_limit_checked_before_reading(self, tmp_path):
        config = ElfkitConfig()
        config.limits.max_link_inputs = 2
        missing = [tmp_path / f"{i}.o" for i in range(3)]
        with pytest.raises(LimitExceededError):
            link_files(missing, tmp_path / "a.out", config)
