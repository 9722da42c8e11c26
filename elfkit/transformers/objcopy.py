"""
Composable Object Copier (objcopy)
===================================

Copies an object file while applying any combination of edits.  The
edits always run in the same order, whatever order the options were
given in:

    1. strip-all         symbols and debug sections
    2. strip-debug       debug sections only
    3. strip-symbol      drop the named symbols
    4. keep-symbol       keep only the named symbols
    5. remove-section    drop the named sections

The null symbol at index 0 is never removed.
"""

from __future__ import annotations

from pathlib import Path

from pydantic import BaseModel, Field

from elfkit.core.models import ElfFile
from elfkit.parsers.elf_parser import parse_elf_file
from elfkit.parsers.elf_writer import serialize_elf
from elfkit.transformers.atomic import atomic_write
from elfkit.transformers.sections import remove_sections_named
from elfkit.transformers.strip import strip_debug, strip_model
from shared.config import ElfkitConfig
from shared.logger import ToolLogger


class CopyOptions(BaseModel):
    """Edits applied by :func:`apply_copy_options`.

    Attributes:
        strip_all: Remove all symbols and debug sections.
        strip_debug: Remove debug sections only.
        strip_symbols: Names of symbols to remove.
        keep_symbols: If non-empty, names of the only symbols to keep.
        remove_sections: Names of sections to remove.
    """
    strip_all: bool = False
    strip_debug: bool = False
    strip_symbols: list[str] = Field(default_factory=list)
    keep_symbols: list[str] = Field(default_factory=list)
    remove_sections: list[str] = Field(default_factory=list)


def apply_copy_options(elf: ElfFile, options: CopyOptions) -> ElfFile:
    """Return a copy of *elf* with *options* applied."""
    result = elf.model_copy(deep=True)

    if options.strip_all:
        result = strip_model(result)
    if options.strip_debug:
        strip_debug(result)
    if options.strip_symbols:
        drop = set(options.strip_symbols)
        result.symbols = [
            sym for i, sym in enumerate(result.symbols)
            if i == 0 or sym.name not in drop
        ]
    if options.keep_symbols:
        keep = set(options.keep_symbols)
        result.symbols = [
            sym for i, sym in enumerate(result.symbols)
            if i == 0 or sym.name in keep
        ]
    if options.remove_sections:
        remove_sections_named(result, frozenset(options.remove_sections))
    return result


def copy_file(
    input_path: str | Path,
    output_path: str | Path | None,
    options: CopyOptions,
    config: ElfkitConfig | None = None,
    logger: ToolLogger | None = None,
) -> Path:
    """Parse *input_path*, apply *options* and write *output_path*.

    Without an output path the input is replaced atomically.
    """
    config = config or ElfkitConfig()
    elf = parse_elf_file(input_path, config.limits)
    copied = apply_copy_options(elf, options)
    target = atomic_write(output_path or input_path, serialize_elf(copied))
    if logger is not None:
        logger.info(
            "Copied %s to %s (%d sections, %d symbols)",
            input_path, target, len(copied.sections), len(copied.symbols),
        )
    return target
