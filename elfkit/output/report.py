"""
elfkit Report Generator
========================

Renders a parsed :class:`~elfkit.core.models.ElfFile` as a structured
JSON document for machine consumption (``readelf --json``).

Section payloads are omitted; every numeric field is emitted as a plain
integer next to its decoded label so that consumers need no ELF tables
of their own.
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from elfkit import __version__
from elfkit.core.models import ElfFile, ElfHeader


class ElfReportGenerator:
    """Build and write JSON reports of parsed object files.

    Usage::

        generator = ElfReportGenerator()
        document = generator.build(elf, "a.out")
        generator.generate_json(elf, "a.out", "a.out.json")
    """

    def __init__(self, *, timestamp: bool = True) -> None:
        self._timestamp = timestamp

    def build(self, elf: ElfFile, path: str) -> dict[str, Any]:
        """Return the report for *elf* as a JSON-compatible dictionary."""
        report: dict[str, Any] = {
            "report_type": "elfkit_elf_report",
            "version": __version__,
            "file": path,
            "header": self._header(elf.header),
            "sections": [
                {
                    "index": position,
                    "name": s.name,
                    "type": s.type,
                    "type_label": s.type_label,
                    "flags": s.flags,
                    "flags_str": s.flags_str,
                    "addr": s.addr,
                    "offset": s.offset,
                    "size": s.size,
                    "link": s.link,
                    "info": s.info,
                    "addralign": s.addralign,
                    "entsize": s.entsize,
                }
                for position, s in enumerate(elf.sections)
            ],
            "segments": [
                {
                    "type": seg.type,
                    "type_label": seg.type_label,
                    "flags": seg.flags,
                    "flags_str": seg.flags_str,
                    "offset": seg.offset,
                    "vaddr": seg.vaddr,
                    "paddr": seg.paddr,
                    "filesz": seg.filesz,
                    "memsz": seg.memsz,
                    "align": seg.align,
                }
                for seg in elf.segments
            ],
            "symbols": [
                {
                    "name": sym.name,
                    "value": sym.value,
                    "size": sym.size,
                    "type": sym.type_label,
                    "bind": sym.bind_label,
                    "other": sym.other,
                    "shndx": sym.shndx,
                }
                for sym in elf.symbols
            ],
        }
        if self._timestamp:
            report["generated_at"] = datetime.now(timezone.utc).isoformat()
        return report

    def render(self, elf: ElfFile, path: str) -> str:
        """Return the report as indented JSON text."""
        return json.dumps(self.build(elf, path), indent=2, ensure_ascii=False)

    def generate_json(self, elf: ElfFile, path: str, output_path: str | Path) -> str:
        """Write the report for *elf* to *output_path*.

        Returns:
            The absolute path of the generated report.
        """
        target = Path(output_path)
        target.parent.mkdir(parents=True, exist_ok=True)

        with open(target, "w", encoding="utf-8") as f:
            json.dump(self.build(elf, path), f, indent=2, ensure_ascii=False)

        return str(target.resolve())

    # ------------------------------------------------------------------ #
    #  Section builders
    # ------------------------------------------------------------------ #

    @staticmethod
    def _header(header: ElfHeader) -> dict[str, Any]:
        return {
            "class": header.class_label,
            "data": header.data_label,
            "ident_version": header.ident_version,
            "osabi": header.osabi_label,
            "abi_version": header.abi_version,
            "type": header.type_label,
            "machine": header.machine_label,
            "version": header.version,
            "entry": header.entry,
            "phoff": header.phoff,
            "shoff": header.shoff,
            "flags": header.flags,
            "ehsize": header.ehsize,
            "phentsize": header.phentsize,
            "phnum": header.phnum,
            "shentsize": header.shentsize,
            "shnum": header.shnum,
            "shstrndx": header.shstrndx,
        }
