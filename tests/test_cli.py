"""End-to-end tests for the ``elfkit`` command group."""

from __future__ import annotations

import json

import pytest
from click.testing import CliRunner

from elfimage import STT_FUNC, Sec, Sym
from elfkit import __version__
from elfkit.cli import cli
from elfkit.parsers.archive import load_archive, read_symbol_index
from elfkit.parsers.elf_parser import parse_elf_file


@pytest.fixture
def runner() -> CliRunner:
    return CliRunner()


@pytest.fixture
def func_object(write_elf):
    def _make(name: str, symbol: str):
        return write_elf(
            name,
            sections=[Sec(".text", flags=0x6, data=b"\x90" * 4)],
            symbols=[Sym(symbol, type=STT_FUNC, shndx=1)],
        )

    return _make


class TestGroup:
    def test_version(self, runner):
        result = runner.invoke(cli, ["--version"])
        assert result.exit_code == 0
        assert __version__ in result.stdout

    def test_missing_config_file(self, runner, tmp_path):
        result = runner.invoke(cli, ["--config", str(tmp_path / "nope.toml"), "c++filt", "x"])
        assert result.exit_code == 1
        assert result.stderr.startswith("elfkit: ")

    def test_config_file_is_applied(self, runner, tmp_path):
        config = tmp_path / "elfkit.toml"
        config.write_text("[strings]\nmin_length = 6\n", encoding="utf-8")
        blob = tmp_path / "blob.bin"
        blob.write_bytes(b"short\x00longer!\x00")
        result = runner.invoke(cli, ["--config", str(config), "strings", str(blob)])
        assert result.exit_code == 0
        assert result.stdout.splitlines() == ["longer!"]


class TestInspectors:
    def test_nm(self, runner, sample_path):
        result = runner.invoke(cli, ["nm", str(sample_path)])
        assert result.exit_code == 0
        assert result.stdout.splitlines()[-1] == "0000000000000032 T main"

    def test_nm_continues_after_bad_file(self, runner, tmp_path, sample_path):
        bad = tmp_path / "bad.o"
        bad.write_bytes(b"\x00" * 64)
        result = runner.invoke(cli, ["nm", str(bad), str(sample_path)])
        assert result.exit_code == 1
        assert result.stderr.strip() == f"nm: {bad}: bad ELF magic number"
        assert f"\n{sample_path}:" in result.stdout
        assert "T main" in result.stdout

    def test_nm_missing_file(self, runner, tmp_path):
        missing = tmp_path / "absent.o"
        result = runner.invoke(cli, ["nm", str(missing)])
        assert result.exit_code == 1
        assert result.stderr.startswith(f"nm: {missing}: ")

    def test_size(self, runner, sample_path):
        result = runner.invoke(cli, ["size", str(sample_path), str(sample_path)])
        assert result.exit_code == 0
        lines = result.stdout.splitlines()
        assert lines[0].split() == ["text", "data", "bss", "dec", "hex", "filename"]
        assert len(lines) == 3
        assert lines[1].split()[:5] == ["100", "50", "25", "175", "af"]

    def test_objdump_symbols_only(self, runner, sample_path):
        result = runner.invoke(cli, ["objdump", "-t", str(sample_path)])
        assert result.exit_code == 0
        assert "SYMBOL TABLE:" in result.stdout
        assert "Sections:" not in result.stdout

    def test_readelf_default_is_header(self, runner, sample_path):
        result = runner.invoke(cli, ["readelf", str(sample_path)])
        assert result.exit_code == 0
        assert result.stdout.splitlines()[0] == "ELF Header:"
        assert "Section Headers:" not in result.stdout

    def test_readelf_sections_and_symbols(self, runner, sample_path):
        result = runner.invoke(cli, ["readelf", "-S", "-s", str(sample_path)])
        assert result.exit_code == 0
        assert "Section Headers:" in result.stdout
        assert "Symbol table '.symtab' contains 6 entries:" in result.stdout

    def test_readelf_json(self, runner, sample_path):
        result = runner.invoke(cli, ["readelf", "--json", str(sample_path)])
        assert result.exit_code == 0
        document = json.loads(result.stdout)
        assert document["header"]["class"] == "ELF64"
        assert document["file"] == str(sample_path)

    def test_readelf_pretty(self, runner, sample_path):
        result = runner.invoke(cli, ["readelf", "--pretty", str(sample_path)])
        assert result.exit_code == 0
        assert "Sections" in result.stdout
        assert "main" in result.stdout

    def test_addr2line(self, runner, sample_path):
        result = runner.invoke(cli, ["addr2line", "-e", str(sample_path), "0x10", "0xffffff"])
        assert result.exit_code == 0
        assert result.stdout.splitlines() == [".text", "unknown"]

    def test_addr2line_bad_address(self, runner, sample_path):
        result = runner.invoke(cli, ["addr2line", "-e", str(sample_path), "zz"])
        assert result.exit_code == 1
        assert result.stderr.startswith("addr2line: ")
        assert result.stdout == ""

    def test_strings(self, runner, tmp_path):
        blob = tmp_path / "blob.bin"
        blob.write_bytes(b"\x01abc\x00hello world\x02")
        result = runner.invoke(cli, ["strings", "-n", "3", str(blob)])
        assert result.exit_code == 0
        assert result.stdout.splitlines() == ["abc", "hello world"]

    def test_strings_rejects_bad_length(self, runner, tmp_path):
        blob = tmp_path / "blob.bin"
        blob.write_bytes(b"abcdef")
        result = runner.invoke(cli, ["strings", "-n", "0", str(blob)])
        assert result.exit_code == 1
        assert result.stderr.startswith("strings: ")

    def test_cppfilt(self, runner):
        result = runner.invoke(cli, ["c++filt", "_Z4testv", "main", "_ZN5Class6methodEv"])
        assert result.exit_code == 0
        assert result.stdout.splitlines() == ["test()", "main", "Class::method()"]


class TestTransformers:
    def test_strip_to_output(self, runner, tmp_path, sample_path):
        original = sample_path.read_bytes()
        out = tmp_path / "stripped.o"
        result = runner.invoke(cli, ["strip", "-o", str(out), str(sample_path)])
        assert result.exit_code == 0
        assert sample_path.read_bytes() == original
        assert parse_elf_file(out).symbols == []

    def test_strip_output_needs_single_input(self, runner, tmp_path, sample_path):
        result = runner.invoke(cli, ["strip", "-o", str(tmp_path / "o"), str(sample_path), str(sample_path)])
        assert result.exit_code == 1
        assert result.stderr.startswith("strip: ")

    def test_strip_bad_input_untouched(self, runner, tmp_path):
        bad = tmp_path / "bad.o"
        bad.write_bytes(b"garbage!" * 8)
        result = runner.invoke(cli, ["strip", str(bad)])
        assert result.exit_code == 1
        assert bad.read_bytes() == b"garbage!" * 8

    def test_objcopy(self, runner, tmp_path, sample_path):
        out = tmp_path / "copy.o"
        result = runner.invoke(
            cli, ["objcopy", "-N", "printf", "-R", ".bss", str(sample_path), str(out)]
        )
        assert result.exit_code == 0
        copied = parse_elf_file(out)
        assert copied.find_section(".bss") is None
        assert "printf" not in [s.name for s in copied.symbols]

    def test_elfedit(self, runner, sample_path):
        result = runner.invoke(cli, ["elfedit", "--output-osabi", "linux", str(sample_path)])
        assert result.exit_code == 0
        assert result.stdout.strip() == (
            f"ELF file {sample_path} modified (backup: {sample_path}.bak)"
        )
        assert parse_elf_file(sample_path).header.osabi_label == "ELFOSABI_LINUX"

    def test_elfedit_needs_exactly_one_option(self, runner, sample_path):
        none = runner.invoke(cli, ["elfedit", str(sample_path)])
        both = runner.invoke(
            cli, ["elfedit", "--output-osabi", "LINUX", "--output-type", "EXEC", str(sample_path)]
        )
        assert none.exit_code == 1
        assert both.exit_code == 1

    def test_elfedit_invalid_value(self, runner, sample_path):
        original = sample_path.read_bytes()
        result = runner.invoke(cli, ["elfedit", "--output-osabi", "AMIGA", str(sample_path)])
        assert result.exit_code == 1
        assert "invalid osabi value" in result.stderr
        assert sample_path.read_bytes() == original


class TestBuildTools:
    def test_as_then_ld(self, runner, tmp_path):
        src = tmp_path / "start.s"
        src.write_text("_start: nop\n syscall\n", encoding="utf-8")
        obj = tmp_path / "start.o"
        exe = tmp_path / "a.out"

        assembled = runner.invoke(cli, ["as", "-o", str(obj), str(src)])
        assert assembled.exit_code == 0
        linked = runner.invoke(cli, ["ld", "-o", str(exe), str(obj)])
        assert linked.exit_code == 0

        elf = parse_elf_file(exe)
        assert elf.header.type_label == "ET_EXEC"
        assert elf.find_section(".text").data == b"\x90\x0f\x05"

    def test_ld_fatal_duplicates(self, runner, tmp_path, func_object):
        a = func_object("a.o", "dup")
        b = func_object("b.o", "dup")
        exe = tmp_path / "a.out"
        result = runner.invoke(cli, ["ld", "--fatal-duplicates", "-o", str(exe), str(a), str(b)])
        assert result.exit_code == 1
        assert result.stderr.startswith(f"ld: {b}: duplicate definition of dup")
        assert not exe.exists()

    def test_ld_duplicates_warn_by_default(self, runner, tmp_path, func_object):
        a = func_object("a.o", "dup")
        b = func_object("b.o", "dup")
        exe = tmp_path / "a.out"
        result = runner.invoke(cli, ["ld", "-o", str(exe), str(a), str(b)])
        assert result.exit_code == 0
        assert exe.exists()

    def test_as_duplicate_label(self, runner, tmp_path):
        src = tmp_path / "dup.s"
        src.write_text("x: nop\nx: ret\n", encoding="utf-8")
        result = runner.invoke(cli, ["as", "-o", str(tmp_path / "dup.o"), str(src)])
        assert result.exit_code == 1
        assert result.stderr.startswith(f"as: {src}: line 2: duplicate label")


class TestArchiveCommands:
    def test_replace_list_extract_delete(self, runner, tmp_path, monkeypatch, func_object):
        foo = func_object("foo.o", "foo")
        bar = func_object("bar.o", "bar")
        archive = tmp_path / "libx.a"

        assert runner.invoke(cli, ["ar", "r", str(archive), str(foo), str(bar)]).exit_code == 0
        listed = runner.invoke(cli, ["ar", "t", str(archive)])
        assert listed.stdout.splitlines() == ["foo.o", "bar.o"]

        out = tmp_path / "out"
        out.mkdir()
        monkeypatch.chdir(out)
        extracted = runner.invoke(cli, ["ar", "x", str(archive), "bar.o"])
        assert extracted.exit_code == 0
        assert (out / "bar.o").read_bytes() == bar.read_bytes()
        assert not (out / "foo.o").exists()

        deleted = runner.invoke(cli, ["ar", "d", str(archive), "foo.o"])
        assert deleted.exit_code == 0
        assert runner.invoke(cli, ["ar", "t", str(archive)]).stdout.splitlines() == ["bar.o"]

    def test_missing_member_reported(self, runner, tmp_path, func_object):
        archive = tmp_path / "libx.a"
        runner.invoke(cli, ["ar", "r", str(archive), str(func_object("foo.o", "foo"))])
        result = runner.invoke(cli, ["ar", "d", str(archive), "nope.o"])
        assert result.exit_code == 1
        assert result.stderr.strip() == "ar: nope.o: not found in archive"

    def test_replace_requires_files(self, runner, tmp_path):
        result = runner.invoke(cli, ["ar", "r", str(tmp_path / "lib.a")])
        assert result.exit_code == 1
        assert result.stderr.startswith("ar: ")

    def test_ranlib(self, runner, tmp_path, func_object):
        archive = tmp_path / "libx.a"
        runner.invoke(cli, ["ar", "r", str(archive), str(func_object("foo.o", "foo"))])
        result = runner.invoke(cli, ["ranlib", str(archive)])
        assert result.exit_code == 0
        entries = read_symbol_index(load_archive(archive))
        assert [(e.name, e.member) for e in entries] == [("foo", "foo.o")]
