"""Tests for the read-only inspectors: nm, size, addr2line, strings, c++filt, dumpers."""

from __future__ import annotations

import json

import pytest

from elfimage import STB_LOCAL, STT_FUNC, STT_OBJECT, Sec, Seg, Sym
from elfkit.analyzers.addr2line import parse_address, resolve_address
from elfkit.analyzers.demangle import demangle, is_mangled
from elfkit.analyzers.dumper import (
    format_all,
    format_file_header,
    format_objdump,
    format_program_headers,
    format_section_headers,
    format_summary,
    format_symbols,
    objdump_symbol_flags,
)
from elfkit.analyzers.size import compute_size, format_size_header
from elfkit.analyzers.strings import StringExtractor, extract_strings
from elfkit.analyzers.symbols import list_symbols, symbol_type_char
from elfkit.core.errors import ValidationError
from elfkit.core.models import Symbol
from elfkit.output.report import ElfReportGenerator
from elfkit.parsers.elf_parser import parse_elf


# ---------------------------------------------------------------------------
# nm
# ---------------------------------------------------------------------------

class TestSymbolLister:
    def test_orders_by_value(self, make_elf):
        elf = parse_elf(make_elf(
            sections=[Sec(".text", data=b"\x90" * 64)],
            symbols=[
                Sym("c", value=50, type=STT_FUNC, shndx=1),
                Sym("a", value=10, type=STT_FUNC, shndx=1),
                Sym("b", value=30, type=STT_FUNC, shndx=1),
            ],
        ))
        assert [line.split()[-1] for line in list_symbols(elf)] == ["a", "b", "c"]
        assert [int(line.split()[0], 16) for line in list_symbols(elf)] == [10, 30, 50]

    def test_sample_lines(self, sample_elf):
        assert list_symbols(parse_elf(sample_elf)) == [
            "0000000000000000 A start.c",
            "                 U printf",
            "000000000000000a D counter",
            "000000000000001e t helper",
            "0000000000000032 T main",
        ]

    def test_elf32_uses_eight_digits(self, make_elf):
        elf = parse_elf(make_elf(
            bits=32,
            sections=[Sec(".data", data=b"\x00" * 8)],
            symbols=[Sym("v", value=4, type=STT_OBJECT, shndx=1), Sym("ext")],
        ))
        assert list_symbols(elf) == ["         U ext", "00000004 D v"]

    @pytest.mark.parametrize(
        "bind,stype,shndx,expected",
        [
            (1, 0, 0, "U"),
            (2, 0, 0, "w"),
            (2, 1, 1, "d"),
            (0, 2, 1, "T"),
            (1, 3, 1, "S"),
            (1, 6, 1, "?"),
        ],
    )
    def test_type_chars(self, bind, stype, shndx, expected):
        sym = Symbol(name="s", info=Symbol.make_info(bind, stype), shndx=shndx)
        assert symbol_type_char(sym) == expected


# ---------------------------------------------------------------------------
# size
# ---------------------------------------------------------------------------

class TestSize:
    def test_buckets_and_total(self, sample_elf):
        report = compute_size(parse_elf(sample_elf), "sample.o")
        assert (report.text, report.data, report.bss) == (100, 50, 25)
        assert report.total == 175
        assert report.format() == "    100      50      25     175      af sample.o"

    def test_exact_name_match(self, make_elf):
        elf = parse_elf(make_elf(sections=[
            Sec(".text.startup", data=b"\x90" * 8),
            Sec(".rodata", data=b"\x00" * 4),
            Sec(".init", data=b"\x90" * 2),
        ]))
        report = compute_size(elf)
        assert (report.text, report.data, report.bss) == (2, 4, 0)

    def test_header(self):
        assert format_size_header() == "   text    data     bss     dec     hex filename"


# ---------------------------------------------------------------------------
# addr2line
# ---------------------------------------------------------------------------

class TestAddr2Line:
    @pytest.mark.parametrize(
        "text,value",
        [("0x401000", 0x401000), ("401000", 0x401000), ("0XfF", 0xFF), ("ffffffffffffffff", 2**64 - 1)],
    )
    def test_parse(self, text, value):
        assert parse_address(text) == value

    @pytest.mark.parametrize("text", ["", "0x", "xyz", "0x" + "1" * 17, "-1"])
    def test_parse_rejects(self, text):
        with pytest.raises(ValidationError):
            parse_address(text)

    def test_resolve(self, make_elf):
        elf = parse_elf(make_elf(
            etype=2,
            sections=[
                Sec(".text", flags=0x6, addr=0x401000, data=b"\x90" * 0x100),
                Sec(".data", flags=0x3, addr=0x402000, data=b"\x00" * 0x10),
            ],
        ))
        assert resolve_address(elf, 0x401000) == ".text"
        assert resolve_address(elf, 0x4010FF) == ".text"
        assert resolve_address(elf, 0x402008) == ".data"
        assert resolve_address(elf, 0x401100) is None


# ---------------------------------------------------------------------------
# strings
# ---------------------------------------------------------------------------

class TestStrings:
    def test_extracts_printable_runs(self):
        data = b"ab\x00hello\x01world!\xff\x7fabc"
        assert extract_strings(data) == ["hello", "world!"]
        assert extract_strings(data, min_length=2) == ["ab", "hello", "world!", "abc"]

    def test_offsets(self):
        assert StringExtractor(3).extract(b"\x00\x00abc\x00defg") == [(2, "abc"), (6, "defg")]

    def test_overlong_runs_are_discarded(self):
        data = b"A" * 20 + b"\x00" + b"short"
        assert extract_strings(data, min_length=4, max_run=10) == ["short"]

    @pytest.mark.parametrize("length", [0, 101, -3])
    def test_min_length_range(self, length):
        with pytest.raises(ValidationError):
            StringExtractor(length)


# ---------------------------------------------------------------------------
# c++filt
# ---------------------------------------------------------------------------

class TestDemangle:
    @pytest.mark.parametrize(
        "mangled,expected",
        [
            ("_Z4testv", "test()"),
            ("__Z4testv", "test()"),
            ("_Z3bar", "bar"),
            ("_ZN5Class6methodEv", "Class::method()"),
            ("_ZNK3Foo3getEv", "Foo::get() const"),
            ("_Z3fooPKci", "foo(char const*, int)"),
            ("_Z4swapRiOd", "swap(int&, double&&)"),
            ("_ZN3FooC1Ev", "Foo::Foo()"),
            ("_ZN3FooD2Ev", "Foo::~Foo()"),
            ("_ZNSt6vector4sizeEv", "std::vector::size()"),
            ("_Z5printPKcz", "print(char const*, ...)"),
            ("_Z3useN2ns4TypeE", "use(ns::Type)"),
        ],
    )
    def test_supported_forms(self, mangled, expected):
        assert demangle(mangled) == expected

    @pytest.mark.parametrize(
        "name",
        ["main", "_Z", "_ZN3FooE3", "_Z3fooIiEvv", "_Z99short", "_ZN3Foo"],
    )
    def test_unsupported_names_pass_through(self, name):
        assert demangle(name) == name

    def test_length_limit(self):
        name = "_Z" + "P" * 20_000 + "v"
        assert demangle(name) == name

    def test_deep_nesting_is_not_fatal(self):
        name = "_Z1f" + "P" * 5_000 + "i"
        assert demangle(name) in (name, "f(int" + "*" * 5_000 + ")")

    def test_is_mangled(self):
        assert is_mangled("_ZN1a1bEv")
        assert not is_mangled("printf")


# ---------------------------------------------------------------------------
# objdump / readelf views
# ---------------------------------------------------------------------------

class TestDumper:
    def test_summary(self, sample_elf):
        lines = format_summary(parse_elf(sample_elf), "sample.o")
        assert lines[0] == "sample.o:     file format ELF64-Little Endian"
        assert lines[1] == "architecture: EM_X86_64"

    def test_file_header_alignment(self, sample_elf):
        lines = format_file_header(parse_elf(sample_elf))
        assert lines[0] == "ELF Header:"
        assert lines[1] == "  Magic:   7f 45 4c 46 02 01 01 00 00 00 00 00 00 00 00 00"
        assert lines[2] == "  Class:".ljust(37) + "ELF64"
        assert "  Type:".ljust(37) + "ET_REL" in lines
        assert "  Number of section headers:".ljust(37) + "7" in lines

    def test_section_headers(self, sample_elf):
        lines = format_section_headers(parse_elf(sample_elf))
        assert lines[0].startswith("There are 7 section headers")
        text_line = next(line for line in lines if ".text" in line)
        assert "PROGBITS" in text_line
        assert text_line.split()[-4] == "AX"
        assert lines[-2] == "Key to Flags:"

    def test_symbols_view(self, sample_elf):
        lines = format_symbols(parse_elf(sample_elf))
        assert lines[0] == "Symbol table '.symtab' contains 6 entries:"
        by_name = {line.split()[-1]: line for line in lines[3:]}
        assert by_name["printf"].endswith("NOTYPE  GLOBAL DEFAULT UND printf")
        assert by_name["start.c"].endswith("FILE    LOCAL  DEFAULT ABS start.c")
        assert by_name["main"].endswith("FUNC    GLOBAL DEFAULT   1 main")

    def test_program_headers_view(self, make_elf, sample_elf):
        assert format_program_headers(parse_elf(sample_elf))[-1] == "No program headers found"
        elf = parse_elf(make_elf(
            etype=2,
            sections=[Sec(".text", data=b"\xc3")],
            segments=[Seg(type=1, flags=5, vaddr=0x400000, filesz=0x10, memsz=0x20)],
        ))
        lines = format_program_headers(elf)
        assert lines[0] == "Elf file type is ET_EXEC"
        assert any(line.strip().startswith("LOAD") for line in lines)

    def test_all_concatenates_views(self, sample_elf):
        elf = parse_elf(sample_elf)
        lines = format_all(elf)
        assert lines[0] == "ELF Header:"
        assert "Section Headers:" in lines
        assert "Symbol table '.symtab' contains 6 entries:" in lines

    def test_objdump_flags(self):
        assert objdump_symbol_flags(Symbol(info=Symbol.make_info(1, STT_FUNC))) == "gF"
        assert objdump_symbol_flags(Symbol(info=Symbol.make_info(2, STT_OBJECT))) == "wO"
        assert objdump_symbol_flags(Symbol(info=Symbol.make_info(STB_LOCAL, 0))) == "  "

    def test_objdump_view_selection(self, sample_elf):
        elf = parse_elf(sample_elf)
        only_syms = format_objdump(elf, "s.o", file_header=False, section_headers=False)
        assert "SYMBOL TABLE:" in only_syms
        assert "Sections:" not in only_syms
        assert "File Header:" not in only_syms
        assert "0000000000000032 gF main" in only_syms


# ---------------------------------------------------------------------------
# JSON report
# ---------------------------------------------------------------------------

class TestReport:
    def test_build(self, sample_elf):
        report = ElfReportGenerator(timestamp=False).build(parse_elf(sample_elf), "sample.o")
        assert report["file"] == "sample.o"
        assert report["header"]["class"] == "ELF64"
        assert report["header"]["machine"] == "EM_X86_64"
        assert [s["name"] for s in report["sections"]][1:4] == [".text", ".data", ".bss"]
        assert "data" not in report["sections"][1]
        assert report["symbols"][2]["type"] == "STT_FUNC"
        assert "generated_at" not in report

    def test_generate_json(self, sample_elf, tmp_path):
        out = tmp_path / "reports" / "sample.json"
        path = ElfReportGenerator().generate_json(parse_elf(sample_elf), "sample.o", out)
        document = json.loads(out.read_text(encoding="utf-8"))
        assert path == str(out.resolve())
        assert document["report_type"] == "elfkit_elf_report"
        assert "generated_at" in document
        assert len(document["symbols"]) == 6
