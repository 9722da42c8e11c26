"""
elfkit CLI -- ELF Binary Utilities
===================================

Click-based command-line interface exposing every elfkit tool as a
subcommand of a single ``elfkit`` group.

Usage::

    # List symbols
    elfkit nm prog.o lib.o

    # Header, sections and symbols as readelf would print them
    elfkit readelf -a prog.o

    # Strip in place, or to a new file
    elfkit strip prog.o
    elfkit strip -o prog.stripped prog.o

    # Link and assemble
    elfkit as -o start.o start.s
    elfkit ld -o a.out start.o main.o

    # Archive maintenance
    elfkit ar r libfoo.a foo.o bar.o
    elfkit ranlib libfoo.a

Reports go to standard output.  Every failure is reported on standard
error as ``tool: message`` and makes the command exit with status 1;
tools that take several files keep going after a failing file.

References:
    - Click documentation: https://click.palletsprojects.com/
    - GNU Binutils manual: https://sourceware.org/binutils/docs/binutils/
"""

from __future__ import annotations

import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Sequence

import click

from shared.config import ElfkitConfig
from shared.console import ToolConsole
from shared.logger import ToolLogger

from elfkit import __version__
from elfkit.analyzers.addr2line import parse_address, resolve_address
from elfkit.analyzers.demangle import demangle
from elfkit.analyzers.dumper import (
    format_all,
    format_file_header,
    format_objdump,
    format_program_headers,
    format_section_headers,
    format_symbols,
)
from elfkit.analyzers.size import compute_size, format_size_header
from elfkit.analyzers.strings import StringExtractor
from elfkit.analyzers.symbols import list_symbols
from elfkit.assembler.assembler import assemble_file
from elfkit.core.errors import ElfkitError, LimitExceededError
from elfkit.core.models import ElfFile
from elfkit.linker.linker import link_files
from elfkit.output.report import ElfReportGenerator
from elfkit.parsers.archive import (
    delete_members,
    extract_members,
    list_members,
    ranlib as ranlib_archive,
    replace_members,
)
from elfkit.parsers.elf_parser import parse_elf_file
from elfkit.transformers.elfedit import HeaderField, edit_file
from elfkit.transformers.objcopy import CopyOptions, copy_file
from elfkit.transformers.strip import strip_file


# ---------------------------------------------------------------------------
# Shared invocation state
# ---------------------------------------------------------------------------

@dataclass
class ToolContext:
    """State shared by every subcommand of one invocation."""

    config: ElfkitConfig
    console: ToolConsole
    verbose: bool = False
    _loggers: dict[str, ToolLogger] = field(default_factory=dict)

    def logger(self, tool: str) -> ToolLogger:
        if tool not in self._loggers:
            settings = self.config.global_settings
            self._loggers[tool] = ToolLogger(
                tool,
                log_level="DEBUG" if self.verbose else settings.log_level,
                log_file=settings.log_file,
                json_logs=settings.log_json,
            )
        return self._loggers[tool]


def describe_error(exc: BaseException, path: str | Path | None = None) -> str:
    """Render *exc* as the message part of a ``tool: message`` diagnostic."""
    if isinstance(exc, ElfkitError):
        if exc.source or path is None:
            return str(exc)
        return f"{path}: {exc}"
    if isinstance(exc, OSError):
        name = exc.filename or path
        reason = exc.strerror or str(exc)
        return f"{name}: {reason}" if name else reason
    return str(exc)


def _run_each(
    ctx: ToolContext,
    tool: str,
    paths: Sequence[str],
    action: Callable[[str], None],
) -> None:
    """Apply *action* to each path; report failures and exit 1 at the end."""
    failed = False
    for path in paths:
        try:
            action(path)
        except (ElfkitError, OSError) as exc:
            ctx.console.error(tool, describe_error(exc, path))
            ctx.logger(tool).debug("%s failed", path, exc_info=ctx.verbose)
            failed = True
    if failed:
        sys.exit(1)


def _run_once(ctx: ToolContext, tool: str, action: Callable[[], None]) -> None:
    """Run a single-target *action*; any failure exits with status 1."""
    try:
        action()
    except (ElfkitError, OSError) as exc:
        ctx.console.error(tool, describe_error(exc))
        ctx.logger(tool).debug("%s failed", tool, exc_info=ctx.verbose)
        sys.exit(1)


def _echo_lines(lines: Sequence[str]) -> None:
    for line in lines:
        click.echo(line)


# ---------------------------------------------------------------------------
# CLI group
# ---------------------------------------------------------------------------

@click.group("elfkit")
@click.option(
    "--config", "config_path",
    type=click.Path(dir_okay=False),
    default=None,
    help="TOML configuration file (default: config.toml in the project root).",
)
@click.option(
    "--verbose", "-v",
    is_flag=True,
    default=False,
    help="Enable debug logging on standard error.",
)
@click.version_option(__version__, prog_name="elfkit")
@click.pass_context
def cli(ctx: click.Context, config_path: str | None, verbose: bool) -> None:
    """elfkit -- binary utilities for ELF objects and ar archives."""
    console = ToolConsole()
    try:
        config = ElfkitConfig.load(config_path)
    except FileNotFoundError as exc:
        console.error("elfkit", str(exc))
        ctx.exit(1)
    except (ValueError, TypeError) as exc:
        console.error("elfkit", f"{config_path}: invalid configuration: {exc}")
        ctx.exit(1)
    ctx.obj = ToolContext(config=config, console=console, verbose=verbose)


pass_tool_context = click.make_pass_decorator(ToolContext)


# ---------------------------------------------------------------------------
# Inspectors
# ---------------------------------------------------------------------------

@cli.command("nm")
@click.argument("files", nargs=-1, required=True)
@pass_tool_context
def nm_cmd(ctx: ToolContext, files: tuple[str, ...]) -> None:
    """List the symbols of each FILE, sorted by value."""
    limits = ctx.config.limits

    def show(path: str) -> None:
        elf = parse_elf_file(path, limits)
        if len(files) > 1:
            click.echo(f"\n{path}:")
        _echo_lines(list_symbols(elf))

    _run_each(ctx, "nm", files, show)


@cli.command("objdump")
@click.option("-f", "--file-headers", "file_headers", is_flag=True, help="Display the file header summary.")
@click.option("-h", "--section-headers", "section_headers", is_flag=True, help="Display the section headers.")
@click.option("-t", "--syms", "syms", is_flag=True, help="Display the symbol table.")
@click.argument("files", nargs=-1, required=True)
@pass_tool_context
def objdump_cmd(
    ctx: ToolContext,
    file_headers: bool,
    section_headers: bool,
    syms: bool,
    files: tuple[str, ...],
) -> None:
    """Display information about each object FILE.

    Without a view flag every view is shown.
    """
    show_all = not (file_headers or section_headers or syms)
    limits = ctx.config.limits

    def show(path: str) -> None:
        elf = parse_elf_file(path, limits)
        _echo_lines(
            format_objdump(
                elf,
                path,
                file_header=show_all or file_headers,
                section_headers=show_all or section_headers,
                symbols=show_all or syms,
            )
        )

    _run_each(ctx, "objdump", files, show)


def _pretty_readelf(console: ToolConsole, elf: ElfFile, path: str) -> None:
    h = elf.header
    console.table(
        f"{path}: ELF header",
        ["Field", "Value"],
        [
            ("Class", h.class_label),
            ("Data", h.data_label),
            ("OS/ABI", h.osabi_label),
            ("Type", h.type_label),
            ("Machine", h.machine_label),
            ("Entry", f"0x{h.entry:x}"),
        ],
    )
    console.table(
        "Sections",
        ["Nr", "Name", "Type", "Addr", "Off", "Size", "Flg"],
        [
            (i, s.name, s.type_label, f"{s.addr:x}", f"{s.offset:x}", f"{s.size:x}", s.flags_str)
            for i, s in enumerate(elf.sections)
        ],
        styles=["dim", "bold", "", "", "", "", ""],
    )
    console.table(
        "Symbols",
        ["Num", "Value", "Size", "Type", "Bind", "Ndx", "Name"],
        [
            (i, f"{sym.value:x}", sym.size, sym.type_label, sym.bind_label, sym.shndx, sym.name)
            for i, sym in enumerate(elf.symbols)
        ],
        caption=f"{len(elf.symbols)} entries",
    )


@cli.command("readelf")
@click.option("-h", "--file-header", "file_header", is_flag=True, help="Display the ELF file header.")
@click.option("-S", "--section-headers", "section_headers", is_flag=True, help="Display the section headers.")
@click.option("-s", "--syms", "--symbols", "syms", is_flag=True, help="Display the symbol table.")
@click.option("-l", "--program-headers", "--segments", "segments", is_flag=True, help="Display the program headers.")
@click.option("-a", "--all", "show_all", is_flag=True, help="Equivalent to -h -S -s -l.")
@click.option("--json", "json_output", is_flag=True, help="Print a JSON report instead of text.")
@click.option("--pretty", is_flag=True, help="Render tables with Rich.")
@click.argument("files", nargs=-1, required=True)
@pass_tool_context
def readelf_cmd(
    ctx: ToolContext,
    file_header: bool,
    section_headers: bool,
    syms: bool,
    segments: bool,
    show_all: bool,
    json_output: bool,
    pretty: bool,
    files: tuple[str, ...],
) -> None:
    """Display ELF-level information about each FILE.

    Without a view flag the file header is shown.
    """
    limits = ctx.config.limits
    if not (file_header or section_headers or syms or segments or show_all):
        file_header = True
    report = ElfReportGenerator()

    def show(path: str) -> None:
        elf = parse_elf_file(path, limits)
        if json_output:
            click.echo(report.render(elf, path))
            return
        if pretty:
            _pretty_readelf(ctx.console, elf, path)
            return
        if len(files) > 1:
            click.echo(f"\nFile: {path}")
        if show_all:
            _echo_lines(format_all(elf))
            return
        views = []
        if file_header:
            views.append(format_file_header)
        if section_headers:
            views.append(format_section_headers)
        if syms:
            views.append(format_symbols)
        if segments:
            views.append(format_program_headers)
        for n, view in enumerate(views):
            if n:
                click.echo("")
            _echo_lines(view(elf))

    _run_each(ctx, "readelf", files, show)


@cli.command("size")
@click.argument("files", nargs=-1, required=True)
@pass_tool_context
def size_cmd(ctx: ToolContext, files: tuple[str, ...]) -> None:
    """Print text/data/bss sizes of each FILE."""
    limits = ctx.config.limits
    header_printed = False

    def show(path: str) -> None:
        nonlocal header_printed
        report = compute_size(parse_elf_file(path, limits), path)
        if not header_printed:
            click.echo(format_size_header())
            header_printed = True
        click.echo(report.format())

    _run_each(ctx, "size", files, show)


@cli.command("addr2line")
@click.option("-e", "--exe", "executable", required=True, help="Object file to search.")
@click.argument("addresses", nargs=-1, required=True)
@pass_tool_context
def addr2line_cmd(ctx: ToolContext, executable: str, addresses: tuple[str, ...]) -> None:
    """Print the section containing each ADDRESS of EXECUTABLE."""

    def run() -> None:
        parsed = [parse_address(text) for text in addresses]
        elf = parse_elf_file(executable, ctx.config.limits)
        for addr in parsed:
            click.echo(resolve_address(elf, addr) or "unknown")

    _run_once(ctx, "addr2line", run)


@cli.command("strings")
@click.option("-n", "--bytes", "min_length", type=int, default=None, help="Minimum string length (1-100).")
@click.argument("files", nargs=-1, required=True)
@pass_tool_context
def strings_cmd(ctx: ToolContext, min_length: int | None, files: tuple[str, ...]) -> None:
    """Print the printable character runs of each FILE."""
    settings = ctx.config.strings
    limits = ctx.config.limits

    try:
        extractor = StringExtractor(
            min_length if min_length is not None else settings.min_length,
            settings.max_run,
        )
    except ElfkitError as exc:
        ctx.console.error("strings", describe_error(exc))
        sys.exit(1)

    def show(path: str) -> None:
        size = Path(path).stat().st_size
        if size > limits.max_file_size:
            raise LimitExceededError(
                f"file size {size} exceeds limit {limits.max_file_size}",
                source=path,
            )
        for _, text in extractor.extract(Path(path).read_bytes()):
            click.echo(text)

    _run_each(ctx, "strings", files, show)


@cli.command("c++filt")
@click.argument("names", nargs=-1, required=True)
def cppfilt_cmd(names: tuple[str, ...]) -> None:
    """Demangle each C++ symbol NAME."""
    for name in names:
        click.echo(demangle(name))


# ---------------------------------------------------------------------------
# Transformers
# ---------------------------------------------------------------------------

@cli.command("strip")
@click.option("-o", "output", default=None, help="Write the result here instead of in place.")
@click.argument("files", nargs=-1, required=True)
@pass_tool_context
def strip_cmd(ctx: ToolContext, output: str | None, files: tuple[str, ...]) -> None:
    """Remove symbols and debug sections from each FILE."""
    if output is not None and len(files) > 1:
        ctx.console.error("strip", "-o may only be used with a single input file")
        sys.exit(1)
    logger = ctx.logger("strip")
    _run_each(
        ctx, "strip", files,
        lambda path: strip_file(path, output, ctx.config, logger),
    )


@cli.command("objcopy")
@click.argument("input_path", metavar="INPUT")
@click.argument("output_path", metavar="[OUTPUT]", required=False)
@click.option("--strip-all", "-S", is_flag=True, help="Remove all symbols and debug sections.")
@click.option("--strip-debug", "-g", is_flag=True, help="Remove debug sections only.")
@click.option("--strip-symbol", "-N", "strip_symbols", multiple=True, help="Remove symbol NAME.")
@click.option("--keep-symbol", "-K", "keep_symbols", multiple=True, help="Keep only the named symbols.")
@click.option("--remove-section", "-R", "remove_sections", multiple=True, help="Remove section NAME.")
@pass_tool_context
def objcopy_cmd(
    ctx: ToolContext,
    input_path: str,
    output_path: str | None,
    strip_all: bool,
    strip_debug: bool,
    strip_symbols: tuple[str, ...],
    keep_symbols: tuple[str, ...],
    remove_sections: tuple[str, ...],
) -> None:
    """Copy INPUT to OUTPUT (default: in place), applying edits."""
    options = CopyOptions(
        strip_all=strip_all,
        strip_debug=strip_debug,
        strip_symbols=list(strip_symbols),
        keep_symbols=list(keep_symbols),
        remove_sections=list(remove_sections),
    )
    logger = ctx.logger("objcopy")
    _run_once(
        ctx, "objcopy",
        lambda: copy_file(input_path, output_path, options, ctx.config, logger),
    )


_ELFEDIT_OPTIONS: tuple[tuple[str, HeaderField], ...] = (
    ("output_class", HeaderField.CLASS),
    ("output_data", HeaderField.DATA),
    ("output_osabi", HeaderField.OSABI),
    ("output_type", HeaderField.TYPE),
)


@cli.command("elfedit")
@click.option("--output-class", "output_class", default=None, help="ELF32 or ELF64.")
@click.option("--output-data", "output_data", default=None, help="ELFDATA2LSB or ELFDATA2MSB.")
@click.option("--output-osabi", "output_osabi", default=None, help="NONE, LINUX, FREEBSD, NETBSD, OPENBSD or SOLARIS.")
@click.option("--output-type", "output_type", default=None, help="NONE, REL, EXEC, DYN or CORE.")
@click.argument("file")
@pass_tool_context
def elfedit_cmd(ctx: ToolContext, file: str, **values: str | None) -> None:
    """Change one header field of FILE, keeping a backup copy."""
    chosen = [(fld, values[key]) for key, fld in _ELFEDIT_OPTIONS if values[key] is not None]
    if len(chosen) != 1:
        ctx.console.error(
            "elfedit",
            "exactly one of --output-class, --output-data, --output-osabi, "
            "--output-type is required",
        )
        sys.exit(1)
    fld, value = chosen[0]
    logger = ctx.logger("elfedit")

    def run() -> None:
        backup = edit_file(file, fld, value, ctx.config, logger)
        click.echo(f"ELF file {file} modified (backup: {backup})")

    _run_once(ctx, "elfedit", run)


# ---------------------------------------------------------------------------
# Linker and assembler
# ---------------------------------------------------------------------------

@cli.command("ld")
@click.option("-o", "output", required=True, help="Output executable.")
@click.option("--fatal-duplicates", is_flag=True, help="Treat duplicate definitions as errors.")
@click.argument("inputs", nargs=-1, required=True)
@pass_tool_context
def ld_cmd(ctx: ToolContext, output: str, fatal_duplicates: bool, inputs: tuple[str, ...]) -> None:
    """Link INPUTS into OUTPUT."""
    if fatal_duplicates:
        ctx.config.linker.fatal_duplicates = True
    logger = ctx.logger("ld")
    _run_once(ctx, "ld", lambda: link_files(list(inputs), output, ctx.config, logger))


@cli.command("as")
@click.option("-o", "output", required=True, help="Output object file.")
@click.argument("source")
@pass_tool_context
def as_cmd(ctx: ToolContext, output: str, source: str) -> None:
    """Assemble SOURCE into a relocatable object."""
    logger = ctx.logger("as")
    _run_once(ctx, "as", lambda: assemble_file(source, output, ctx.config, logger))


# ---------------------------------------------------------------------------
# Archives
# ---------------------------------------------------------------------------

@cli.command("ar")
@click.argument("operation", type=click.Choice(["r", "t", "x", "d"]))
@click.argument("archive")
@click.argument("files", nargs=-1)
@pass_tool_context
def ar_cmd(ctx: ToolContext, operation: str, archive: str, files: tuple[str, ...]) -> None:
    """Maintain ARCHIVE: r(eplace), t(able), x(tract) or d(elete) members."""
    limits = ctx.config.limits
    archive_config = ctx.config.archive
    logger = ctx.logger("ar")

    if operation in ("r", "d") and not files:
        ctx.console.error("ar", f"no files specified for operation '{operation}'")
        sys.exit(1)

    missing: list[str] = []

    def run() -> None:
        if operation == "r":
            replace_members(archive, files, limits, archive_config, logger)
        elif operation == "t":
            _echo_lines(list_members(archive, limits))
        elif operation == "x":
            _, not_found = extract_members(archive, files, ".", limits, logger)
            missing.extend(not_found)
        else:
            missing.extend(delete_members(archive, files, limits, archive_config, logger))

    _run_once(ctx, "ar", run)
    for name in missing:
        ctx.console.error("ar", f"{name}: not found in archive")
    if missing:
        sys.exit(1)


@cli.command("ranlib")
@click.argument("archives", nargs=-1, required=True)
@pass_tool_context
def ranlib_cmd(ctx: ToolContext, archives: tuple[str, ...]) -> None:
    """Regenerate the symbol index of each ARCHIVE."""
    logger = ctx.logger("ranlib")
    _run_each(
        ctx, "ranlib", archives,
        lambda path: ranlib_archive(path, ctx.config.limits, ctx.config.archive, logger),
    )


# ---------------------------------------------------------------------------
# Module entry point
# ---------------------------------------------------------------------------

def main() -> None:
    """Entry point for the ``elfkit`` console script."""
    cli()


if __name__ == "__main__":
    main()
