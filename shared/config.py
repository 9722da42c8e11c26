"""
elfkit Configuration Management
================================

Centralized configuration for every elfkit tool using Python dataclasses
and TOML-based persistence.

The most important section is :class:`LimitsConfig`: object files and
archives are untrusted input, so every count or size field read from disk
is checked against one of these ceilings *before* anything is allocated.

References:
    - TOML v1.0.0 Specification. https://toml.io/en/v1.0.0
    - PEP 681 -- Data Class Transforms (2022).
"""

from __future__ import annotations

import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib


# ---------------------------------------------------------------------------
# Default configuration file path relative to the project root
# ---------------------------------------------------------------------------
_DEFAULT_CONFIG_PATH: Path = Path(__file__).resolve().parent.parent / "config.toml"

_MIB: int = 1024 * 1024


# ========================== Tool-Specific Configs ==========================


@dataclass(frozen=False, slots=True)
class LimitsConfig:
    """Hard safety ceilings applied while decoding untrusted input.

    Exceeding any of them is a hard failure (``LimitExceededError``),
    never a silent truncation: a truncated table would desynchronise the
    offset arithmetic used by every later field.
    """

    max_table_size: int = 100 * _MIB
    max_symbols: int = 100_000
    max_sections: int = 10_000
    max_program_headers: int = 10_000
    max_member_size: int = 100 * _MIB
    max_members: int = 100_000
    max_index_entries: int = 100_000
    max_index_name_length: int = 4096
    max_file_size: int = 100 * _MIB
    max_source_size: int = 10 * _MIB
    max_source_line: int = 10_000
    max_link_inputs: int = 1000


@dataclass(frozen=False, slots=True)
class StringsConfig:
    """Defaults for the printable-string extractor."""

    min_length: int = 4
    max_run: int = 10_000


@dataclass(frozen=False, slots=True)
class ArchiveConfig:
    """Defaults used when new members are added to an archive."""

    default_mode: int = 0o644
    default_uid: int = 0
    default_gid: int = 0
    deterministic: bool = False


@dataclass(frozen=False, slots=True)
class LinkerConfig:
    """Linker behaviour switches."""

    fatal_duplicates: bool = False


@dataclass(frozen=False, slots=True)
class AssemblerConfig:
    """Assembler output parameters."""

    text_alignment: int = 16


# =========================== Global Settings ===============================


@dataclass(frozen=False, slots=True)
class GlobalConfig:
    """Global settings shared across all elfkit tools."""

    log_level: str = "WARNING"
    log_file: str | None = None
    log_json: bool = False
    backup_suffix: str = ".bak"
    version: str = "1.0.0"


# =========================== Master Config =================================


@dataclass(frozen=False, slots=True)
class ElfkitConfig:
    """Master configuration aggregating all tool-specific and global settings.

    Usage:
        >>> config = ElfkitConfig.load()                  # from default path
        >>> config = ElfkitConfig.load("custom.toml")     # from custom path
        >>> config.limits.max_symbols
        100000
    """

    global_settings: GlobalConfig = field(default_factory=GlobalConfig)
    limits: LimitsConfig = field(default_factory=LimitsConfig)
    strings: StringsConfig = field(default_factory=StringsConfig)
    archive: ArchiveConfig = field(default_factory=ArchiveConfig)
    linker: LinkerConfig = field(default_factory=LinkerConfig)
    assembler: AssemblerConfig = field(default_factory=AssemblerConfig)

    # ------------------------------------------------------------------ #
    #  TOML Loading
    # ------------------------------------------------------------------ #

    @classmethod
    def load(cls, path: str | Path | None = None) -> ElfkitConfig:
        """Load configuration from a TOML file.

        If *path* is ``None`` the loader looks for ``config.toml`` in the
        project root.  Missing keys fall back to dataclass defaults.

        Args:
            path: Filesystem path to a TOML configuration file.

        Returns:
            A fully-populated :class:`ElfkitConfig` instance.

        Raises:
            FileNotFoundError: If the specified path does not exist
                *and* was explicitly provided by the caller.
        """
        config_path = Path(path) if path is not None else _DEFAULT_CONFIG_PATH

        if not config_path.exists():
            if path is not None:
                raise FileNotFoundError(
                    f"Configuration file not found: {config_path}"
                )
            return cls()

        with open(config_path, "rb") as fh:
            raw: dict[str, Any] = tomllib.load(fh)

        return cls(
            global_settings=cls._build_section(GlobalConfig, raw.get("global", {})),
            limits=cls._build_section(LimitsConfig, raw.get("limits", {})),
            strings=cls._build_section(StringsConfig, raw.get("strings", {})),
            archive=cls._build_section(ArchiveConfig, raw.get("archive", {})),
            linker=cls._build_section(LinkerConfig, raw.get("linker", {})),
            assembler=cls._build_section(AssemblerConfig, raw.get("assembler", {})),
        )

    # ------------------------------------------------------------------ #
    #  Internal helpers
    # ------------------------------------------------------------------ #

    @staticmethod
    def _build_section(cls: type, data: dict[str, Any]) -> Any:
        """Instantiate a dataclass *cls* using only the keys it declares.

        Unknown keys in the TOML source are ignored so that newer config
        files keep working with older code.
        """
        valid_keys = {f.name for f in cls.__dataclass_fields__.values()}  # type: ignore[attr-defined]
        filtered = {k: v for k, v in data.items() if k in valid_keys}
        return cls(**filtered)
