"""Shared pytest fixtures."""

from __future__ import annotations

from pathlib import Path
from typing import Callable

import pytest

from elfimage import (
    SHT_NOBITS,
    STB_LOCAL,
    STB_WEAK,
    STT_FUNC,
    STT_OBJECT,
    Sec,
    Sym,
    build_elf,
)


@pytest.fixture
def make_elf() -> Callable[..., bytes]:
    return build_elf


@pytest.fixture
def write_elf(tmp_path: Path) -> Callable[..., Path]:
    """Build an image with :func:`build_elf` and write it under *tmp_path*."""

    def _write(name: str, **kwargs) -> Path:
        path = tmp_path / name
        path.write_bytes(build_elf(**kwargs))
        return path

    return _write


@pytest.fixture
def sample_elf(make_elf) -> bytes:
    """A small ELF64 relocatable with code, data, bss and five named symbols."""
    return make_elf(
        sections=[
            Sec(".text", flags=0x6, data=b"\x90" * 100, align=16),
            Sec(".data", flags=0x3, data=b"\x01" * 50, align=8),
            Sec(".bss", SHT_NOBITS, flags=0x3, size=25, align=8),
        ],
        symbols=[
            Sym("start.c", bind=STB_LOCAL, type=4, shndx=0xFFF1),
            Sym("main", value=50, size=10, type=STT_FUNC, shndx=1),
            Sym("counter", value=10, size=4, type=STT_OBJECT, shndx=2),
            Sym("helper", value=30, size=8, bind=STB_WEAK, type=STT_FUNC, shndx=1),
            Sym("printf"),
        ],
    )


@pytest.fixture
def sample_path(tmp_path: Path, sample_elf: bytes) -> Path:
    path = tmp_path / "sample.o"
    path.write_bytes(sample_elf)
    return path
