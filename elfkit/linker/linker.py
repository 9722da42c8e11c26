"""
Toy Static Linker (ld)
=======================

Combines already-parsed object files into a single ELF64 little-endian
x86-64 executable model.  The linker is intentionally small:

    - **Symbol resolution.**  Named symbols are scanned in input order.
      A name seen for the first time is recorded.  A recorded
      ``STT_NOTYPE`` placeholder is replaced by a later symbol of any
      other type; in every other case the first occurrence wins.  There
      is no weak or common-symbol precedence.
    - **Section merging.**  Sections that share a name are concatenated
      in input order and their sizes summed.  The first appearance of a
      name fixes its position in the output and its attributes.
    - **Entry point.**  The first non-zero ``e_entry`` among the inputs.

Relocations are not applied, so merged code keeps the addresses it was
assembled with.  Resolved symbols keep their values and are re-pointed
at the merged section of the same name.

References:
    - Levine, J. R. (1999). *Linkers and Loaders*. Morgan Kaufmann,
      ch. 4 "Storage allocation" and ch. 5 "Symbol management".
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Sequence

from elfkit.core import constants as C
from elfkit.core.errors import ElfkitError, LimitExceededError, LinkError
from elfkit.core.models import ElfClass, ElfData, ElfFile, ElfHeader, Section, Symbol
from elfkit.parsers.elf_parser import parse_elf_file
from elfkit.parsers.elf_writer import serialize_elf
from elfkit.transformers.atomic import atomic_write
from shared.config import ElfkitConfig
from shared.logger import ToolLogger

# Bookkeeping sections regenerated by the serializer.
_SKIPPED_TYPES: frozenset[int] = frozenset({C.SHT_NULL, C.SHT_SYMTAB, C.SHT_STRTAB})


@dataclass(slots=True)
class _Resolved:
    """A symbol picked by resolution and the input it came from."""

    symbol: Symbol
    origin: int


def _is_definition(sym: Symbol) -> bool:
    return not sym.is_undefined and sym.st_type != C.STT_NOTYPE


class Linker:
    """Merge a sequence of parsed objects into one executable model.

    Args:
        config: elfkit configuration.  Defaults are used if not provided.
        logger: Logger instance.  A new one is created if not provided.
    """

    def __init__(
        self,
        config: ElfkitConfig | None = None,
        logger: ToolLogger | None = None,
    ) -> None:
        self._config: ElfkitConfig = config or ElfkitConfig()
        self._logger: ToolLogger = logger or ToolLogger("ld")

    # ------------------------------------------------------------------ #
    #  Main entry point
    # ------------------------------------------------------------------ #

    def link(self, inputs: Sequence[tuple[str, ElfFile]]) -> ElfFile:
        """Link *inputs*, a sequence of ``(name, model)`` pairs.

        Returns:
            A new :class:`ElfFile`; the inputs are not modified.

        Raises:
            LimitExceededError: Too many inputs.
            LinkError: Two definitions of one name while
                ``fatal_duplicates`` is enabled.
        """
        limit = self._config.limits.max_link_inputs
        if len(inputs) > limit:
            raise LimitExceededError(
                f"{len(inputs)} input files exceed limit {limit}"
            )

        with self._logger.operation("link"), self._logger.timed(f"link of {len(inputs)} inputs"):
            resolved = self._resolve_symbols(inputs)
            sections, index_by_name = self._merge_sections(inputs)
            symbols = self._relocate_symbols(inputs, resolved, index_by_name)
            entry = self._find_entry(inputs)

        header = ElfHeader(
            elf_class=ElfClass.ELF64,
            data=ElfData.LSB,
            osabi=C.ELFOSABI_NONE,
            type=C.ET_EXEC,
            machine=C.EM_X86_64,
            version=C.EV_CURRENT,
            entry=entry,
        )
        self._logger.info(
            "Linked %d inputs: %d sections, %d symbols, entry 0x%x",
            len(inputs), len(sections) - 1, len(symbols) - 1, entry,
        )
        return ElfFile(header=header, sections=sections, symbols=symbols)

    # ------------------------------------------------------------------ #
    #  Symbol resolution
    # ------------------------------------------------------------------ #

    def _resolve_symbols(
        self, inputs: Sequence[tuple[str, ElfFile]]
    ) -> dict[str, _Resolved]:
        table: dict[str, _Resolved] = {}
        for origin, (name, elf) in enumerate(inputs):
            for sym in elf.named_symbols():
                current = table.get(sym.name)
                if current is None:
                    table[sym.name] = _Resolved(sym, origin)
                    continue

                if current.symbol.st_type == C.STT_NOTYPE and sym.st_type != C.STT_NOTYPE:
                    self._logger.debug(
                        "%s: %s resolves placeholder for %s",
                        name, sym.type_label, sym.name,
                    )
                    table[sym.name] = _Resolved(sym, origin)
                elif _is_definition(current.symbol) and _is_definition(sym):
                    self._report_duplicate(sym.name, inputs[current.origin][0], name)
        return table

    def _report_duplicate(self, symbol: str, first: str, second: str) -> None:
        message = f"duplicate definition of {symbol} (first in {first})"
        if self._config.linker.fatal_duplicates:
            raise LinkError(message, source=second)
        self._logger.warning("%s: %s; keeping the first", second, message)

    # ------------------------------------------------------------------ #
    #  Section merging
    # ------------------------------------------------------------------ #

    def _merge_sections(
        self, inputs: Sequence[tuple[str, ElfFile]]
    ) -> tuple[list[Section], dict[str, int]]:
        merged: list[Section] = [Section()]
        index_by_name: dict[str, int] = {}
        payloads: dict[str, bytearray] = {}

        for _, elf in inputs:
            for position, section in enumerate(elf.sections):
                if position == 0 or section.type in _SKIPPED_TYPES:
                    continue
                target = index_by_name.get(section.name)
                if target is None:
                    index_by_name[section.name] = len(merged)
                    payloads[section.name] = bytearray(section.data)
                    merged.append(
                        section.model_copy(update={"link": 0, "info": 0, "offset": 0})
                    )
                    continue
                payloads[section.name] += section.data
                merged[target].size += section.size

        for name, index in index_by_name.items():
            merged[index].index = index
            merged[index].data = bytes(payloads[name])
            self._logger.debug("Merged %s: %d bytes", name, merged[index].size)
        return merged, index_by_name

    # ------------------------------------------------------------------ #
    #  Output symbols
    # ------------------------------------------------------------------ #

    @staticmethod
    def _relocate_symbols(
        inputs: Sequence[tuple[str, ElfFile]],
        resolved: dict[str, _Resolved],
        index_by_name: dict[str, int],
    ) -> list[Symbol]:
        """Copy resolved symbols, re-pointing ``shndx`` at merged sections.

        Locals are placed before globals, as ``sh_info`` requires.
        """
        out: list[Symbol] = []
        for entry in resolved.values():
            sym = entry.symbol.model_copy()
            if sym.shndx != C.SHN_UNDEF and sym.shndx < C.SHN_LORESERVE:
                sections = inputs[entry.origin][1].sections
                owner = sections[sym.shndx].name if sym.shndx < len(sections) else None
                sym.shndx = index_by_name.get(owner, C.SHN_UNDEF)
            out.append(sym)

        out.sort(key=lambda s: s.st_bind != C.STB_LOCAL)
        return [Symbol()] + out

    @staticmethod
    def _find_entry(inputs: Sequence[tuple[str, ElfFile]]) -> int:
        for _, elf in inputs:
            if elf.header.entry:
                return elf.header.entry
        return 0


# ---------------------------------------------------------------------------
# File-level convenience
# ---------------------------------------------------------------------------

def link_files(
    paths: Sequence[str | Path],
    output: str | Path,
    config: ElfkitConfig | None = None,
    logger: ToolLogger | None = None,
) -> ElfFile:
    """Parse every path, link them and write *output* atomically.

    No output is created unless every input parses.

    Raises:
        LimitExceededError: Too many inputs (checked before any read).
        ElfkitError: An input failed to parse; ``source`` names it.
        OSError: Reading an input or writing the output failed.
    """
    config = config or ElfkitConfig()
    limit = config.limits.max_link_inputs
    if len(paths) > limit:
        raise LimitExceededError(f"{len(paths)} input files exceed limit {limit}")

    inputs: list[tuple[str, ElfFile]] = []
    for path in paths:
        try:
            inputs.append((str(path), parse_elf_file(path, config.limits)))
        except ElfkitError as exc:
            if exc.source:
                raise
            raise exc.with_source(str(path)) from exc

    linked = Linker(config, logger).link(inputs)
    atomic_write(output, serialize_elf(linked), mode=0o755)
    return linked
