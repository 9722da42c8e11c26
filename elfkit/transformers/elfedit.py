"""
ELF Header Editor (elfedit)
============================

Changes one identification or header field of an object file.  Every
field accepts only an enumerated whitelist of values; matching is
case-insensitive and the conventional prefix (``ELFOSABI_``, ``ET_``)
is optional.

OS/ABI and type are patched in place: the bytes of the file are kept
and only ``e_ident[EI_OSABI]`` or ``e_type`` change.  Class and data
encoding change the width or byte order of every field, so the parsed
model is re-serialized with the new layout.  Word-sized payloads other
than the symbol table (relocations, dynamic entries) are copied
unchanged in that case.

The original file is always copied to a backup before it is rewritten.
"""

from __future__ import annotations

import enum
from pathlib import Path

from elfkit.core import constants as C
from elfkit.core.errors import ElfkitError, LimitExceededError, ValidationError
from elfkit.core.models import ElfClass, ElfData
from elfkit.parsers.elf_parser import parse_elf
from elfkit.parsers.elf_writer import serialize_elf
from elfkit.transformers.atomic import atomic_write, backup_file
from shared.config import ElfkitConfig, LimitsConfig
from shared.logger import ToolLogger

_EI_OSABI: int = 7
_E_TYPE: int = C.EI_NIDENT


class HeaderField(str, enum.Enum):
    """Header fields that can be edited."""
    CLASS = "class"
    DATA = "data"
    OSABI = "osabi"
    TYPE = "type"


_CLASS_VALUES: dict[str, int] = {
    "ELF32": C.ELFCLASS32,
    "ELF64": C.ELFCLASS64,
}

_DATA_VALUES: dict[str, int] = {
    "ELFDATA2LSB": C.ELFDATA2LSB,
    "ELFDATA2MSB": C.ELFDATA2MSB,
    "LSB": C.ELFDATA2LSB,
    "MSB": C.ELFDATA2MSB,
    "LITTLE": C.ELFDATA2LSB,
    "BIG": C.ELFDATA2MSB,
}

_OSABI_VALUES: dict[str, int] = {
    "NONE": C.ELFOSABI_NONE,
    "LINUX": C.ELFOSABI_LINUX,
    "FREEBSD": C.ELFOSABI_FREEBSD,
    "NETBSD": C.ELFOSABI_NETBSD,
    "OPENBSD": C.ELFOSABI_OPENBSD,
    "SOLARIS": C.ELFOSABI_SOLARIS,
}

_TYPE_VALUES: dict[str, int] = {
    "NONE": C.ET_NONE,
    "REL": C.ET_REL,
    "EXEC": C.ET_EXEC,
    "DYN": C.ET_DYN,
    "CORE": C.ET_CORE,
}

_WHITELISTS: dict[HeaderField, tuple[str, dict[str, int]]] = {
    HeaderField.CLASS: ("", _CLASS_VALUES),
    HeaderField.DATA: ("", _DATA_VALUES),
    HeaderField.OSABI: ("ELFOSABI_", _OSABI_VALUES),
    HeaderField.TYPE: ("ET_", _TYPE_VALUES),
}


def normalize_value(field: HeaderField | str, value: str) -> int:
    """Map a user-supplied *value* for *field* to its numeric code.

    Raises:
        ValidationError: If *field* is unknown or *value* is not in the
            field's whitelist.
    """
    try:
        field = HeaderField(field)
    except ValueError:
        raise ValidationError(f"unknown header field {field!r}") from None

    prefix, allowed = _WHITELISTS[field]
    key = value.strip().upper()
    if prefix and key.startswith(prefix):
        key = key[len(prefix):]
    if key not in allowed:
        choices = ", ".join(prefix + name for name in allowed)
        raise ValidationError(
            f"invalid {field.value} value {value!r} (expected one of: {choices})"
        )
    return allowed[key]


def apply_header_edit(
    data: bytes,
    field: HeaderField | str,
    value: str,
    limits: LimitsConfig | None = None,
) -> bytes:
    """Return the bytes of *data* with one header field changed.

    The input must parse completely; parser errors propagate unchanged.
    """
    code = normalize_value(field, value)
    field = HeaderField(field)
    elf = parse_elf(data, limits)

    if field is HeaderField.OSABI:
        patched = bytearray(data)
        patched[_EI_OSABI] = code
        return bytes(patched)

    if field is HeaderField.TYPE:
        patched = bytearray(data)
        patched[_E_TYPE:_E_TYPE + 2] = code.to_bytes(2, elf.header.endian)
        return bytes(patched)

    edited = elf.model_copy(deep=True)
    if field is HeaderField.CLASS:
        if edited.header.elf_class == code:
            return data
        edited.header.elf_class = ElfClass(code)
    else:
        if edited.header.data == code:
            return data
        edited.header.data = ElfData(code)
    return serialize_elf(edited)


def edit_file(
    path: str | Path,
    field: HeaderField | str,
    value: str,
    config: ElfkitConfig | None = None,
    logger: ToolLogger | None = None,
) -> Path:
    """Edit *path* in place, keeping a backup of the original.

    Returns:
        The backup path.

    Raises:
        ValidationError: The value is not allowed; nothing is written.
        ElfkitError: The file did not parse; nothing is written.
        OSError: Reading, backing up or writing failed.
    """
    config = config or ElfkitConfig()
    target = Path(path)
    size = target.stat().st_size
    if size > config.limits.max_file_size:
        raise LimitExceededError(
            f"file size {size} exceeds limit {config.limits.max_file_size}",
            source=str(path),
        )

    original = target.read_bytes()
    try:
        updated = apply_header_edit(original, field, value, config.limits)
    except ElfkitError as exc:
        if isinstance(exc, ValidationError) or exc.source:
            raise
        raise exc.with_source(str(path)) from exc

    suffix = config.global_settings.backup_suffix
    backup = backup_file(target, suffix)
    atomic_write(target, updated)
    if logger is not None:
        logger.info("Set %s of %s to %s (backup: %s)", HeaderField(field).value, path, value, backup)
    return backup
