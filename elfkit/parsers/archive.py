"""
ar Archive Codec
=================

Reads and writes the Unix ``ar`` container in its GNU/SysV flavour and
maintains the archive symbol index used by linkers.

File structure::

    "!<arch>\\n"
    repeated:
        60-byte header  name[16] mtime[12] uid[6] gid[6] mode[8] size[10] "`\\n"
        payload         size bytes, plus one "\\n" pad byte when size is odd

GNU conventions handled here:
    - regular names are terminated with ``/`` inside the 16-byte field;
    - names longer than 15 bytes live in the ``//`` member and are
      referenced as ``/<offset>``;
    - the ``/`` member is the symbol index: a big-endian 32-bit count,
      that many 32-bit member header offsets, then the NUL-terminated
      symbol names in the same order.

Every size and count read from disk is checked against
:class:`~shared.config.LimitsConfig` before the payload is sliced.

References:
    - Wikipedia, "ar (Unix)". https://en.wikipedia.org/wiki/Ar_(Unix)
    - OpenSolaris ar.h(3HEAD) manual page.
    - GNU binutils documentation, "ar".
"""

from __future__ import annotations

import re
import struct
import time
from pathlib import Path
from typing import BinaryIO, Iterable, Sequence, Union

from elfkit.core import constants as C
from elfkit.core.errors import (
    ElfkitError,
    FormatError,
    LimitExceededError,
    TruncatedError,
    ValidationError,
)
from elfkit.core.models import ArchiveMember, ArchiveSymbol
from elfkit.parsers.elf_parser import is_elf, parse_elf
from elfkit.transformers.atomic import atomic_write
from shared.config import ArchiveConfig, LimitsConfig
from shared.logger import ToolLogger

ARCHIVE_MAGIC: bytes = b"!<arch>\n"
HEADER_SIZE: int = 60
HEADER_END: bytes = b"`\n"

SYMBOL_INDEX_NAME: str = "/"
LONG_NAMES_NAME: str = "//"

_MAX_SHORT_NAME: int = 15
_NUMBER = re.compile(rb"-?[0-9]+")
_OCTAL = re.compile(rb"-?[0-7]+")

ArchiveSource = Union[bytes, bytearray, memoryview, BinaryIO]


# ---------------------------------------------------------------------------
# Reading
# ---------------------------------------------------------------------------

class ArchiveReader:
    """Decode an ``ar`` archive into an ordered list of members.

    The long-name member ``//`` is consumed while reading and is not part
    of the result; the symbol index ``/`` is returned as a regular member
    so that callers can inspect or rebuild it.

    Usage::

        members = ArchiveReader(raw_bytes).read()
        for member in members:
            print(member.name, member.size)
    """

    def __init__(
        self, source: ArchiveSource, limits: LimitsConfig | None = None
    ) -> None:
        if isinstance(source, (bytes, bytearray, memoryview)):
            self._data = bytes(source)
        else:
            self._data = source.read()
        self._limits = limits or LimitsConfig()
        self._long_names: bytes | None = None

    def read(self) -> list[ArchiveMember]:
        """Decode every member.

        Raises:
            FormatError: Bad magic, header terminator or numeric field.
            TruncatedError: A header or payload reaches past the end.
            LimitExceededError: Too many members or a member too large.
        """
        data = self._data
        if len(data) < len(ARCHIVE_MAGIC):
            raise TruncatedError("file too short to hold an archive magic")
        if data[:len(ARCHIVE_MAGIC)] != ARCHIVE_MAGIC:
            raise FormatError("bad archive magic")

        members: list[ArchiveMember] = []
        pos = len(ARCHIVE_MAGIC)
        while pos < len(data):
            if len(members) >= self._limits.max_members:
                raise LimitExceededError(
                    f"member count exceeds limit {self._limits.max_members}"
                )
            member, pos = self._read_member(pos)
            if member is not None:
                members.append(member)
        return members

    # ------------------------------------------------------------------ #
    #  Member decoding
    # ------------------------------------------------------------------ #

    def _read_member(self, pos: int) -> tuple[ArchiveMember | None, int]:
        data = self._data
        header = data[pos:pos + HEADER_SIZE]
        if len(header) < HEADER_SIZE:
            raise TruncatedError(
                f"member header at offset {pos} is truncated "
                f"({len(header)} of {HEADER_SIZE} bytes)"
            )
        if header[58:60] != HEADER_END:
            raise FormatError(f"bad member header terminator at offset {pos}")

        raw_name = header[0:16].rstrip(b" ")
        mtime = _parse_field(header[16:28], "mtime", pos)
        uid = _parse_field(header[28:34], "uid", pos)
        gid = _parse_field(header[34:40], "gid", pos)
        mode = _parse_field(header[40:48], "mode", pos, octal=True)
        size = _parse_field(header[48:58], "size", pos)

        if size < 0:
            raise FormatError(f"negative member size {size} at offset {pos}")
        if size > self._limits.max_member_size:
            raise LimitExceededError(
                f"member size {size} at offset {pos} exceeds limit "
                f"{self._limits.max_member_size}"
            )

        start = pos + HEADER_SIZE
        end = start + size
        if end > len(data):
            raise TruncatedError(
                f"member at offset {pos} declares {size} bytes but only "
                f"{len(data) - start} remain"
            )
        payload = data[start:end]

        next_pos = end
        # A missing pad byte at the very end of the file is tolerated.
        if size % 2 and next_pos < len(data):
            next_pos += 1

        if raw_name == LONG_NAMES_NAME.encode():
            self._long_names = payload
            return None, next_pos

        member = ArchiveMember(
            name=self._resolve_name(raw_name, pos),
            mtime=mtime,
            uid=uid,
            gid=gid,
            mode=mode,
            data=payload,
            offset=pos,
        )
        return member, next_pos

    def _resolve_name(self, raw_name: bytes, pos: int) -> str:
        """Apply the GNU terminator and long-name conventions."""
        if raw_name == b"/":
            return SYMBOL_INDEX_NAME
        if raw_name.startswith(b"/") and raw_name[1:].isdigit():
            if self._long_names is None:
                raise FormatError(
                    f"member at offset {pos} references a long name but the "
                    f"archive has no long-name table"
                )
            offset = int(raw_name[1:])
            if offset >= len(self._long_names):
                raise FormatError(
                    f"long-name offset {offset} outside table of "
                    f"{len(self._long_names)} bytes"
                )
            end = self._long_names.find(b"\n", offset)
            if end == -1:
                end = len(self._long_names)
            raw_name = self._long_names[offset:end]
        if raw_name.endswith(b"/"):
            raw_name = raw_name[:-1]
        return raw_name.decode("utf-8", errors="replace")


def _parse_field(raw: bytes, what: str, pos: int, *, octal: bool = False) -> int:
    """Decode one space-padded numeric header field (blank is 0)."""
    text = raw.strip(b" ")
    if not text:
        return 0
    pattern = _OCTAL if octal else _NUMBER
    if not pattern.fullmatch(text):
        raise FormatError(
            f"invalid {what} field {raw!r} in member header at offset {pos}"
        )
    return int(text, 8 if octal else 10)


def read_archive(
    source: ArchiveSource, limits: LimitsConfig | None = None
) -> list[ArchiveMember]:
    """Decode an archive held in memory or behind a binary stream."""
    return ArchiveReader(source, limits).read()


def is_archive(data: bytes) -> bool:
    return data[:len(ARCHIVE_MAGIC)] == ARCHIVE_MAGIC


# ---------------------------------------------------------------------------
# Writing
# ---------------------------------------------------------------------------

def _arrange(members: Sequence[ArchiveMember]) -> list[tuple[bytes, ArchiveMember]]:
    """Return ``(name field, member)`` pairs in on-disk order.

    The symbol index comes first, then a generated long-name member when
    any name needs one, then the remaining members in list order.
    """
    index = [m for m in members if m.name == SYMBOL_INDEX_NAME]
    regular = [m for m in members if m.name not in (SYMBOL_INDEX_NAME, LONG_NAMES_NAME)]

    long_table = bytearray()
    named: list[tuple[bytes, ArchiveMember]] = []
    for member in regular:
        encoded = member.name.encode("utf-8")
        if len(encoded) > _MAX_SHORT_NAME:
            named.append((b"/%d" % len(long_table), member))
            long_table += encoded + b"/\n"
        else:
            named.append((encoded + b"/", member))

    arranged: list[tuple[bytes, ArchiveMember]] = [(b"/", m) for m in index]
    if long_table:
        arranged.append(
            (b"//", ArchiveMember(name=LONG_NAMES_NAME, mode=0, data=bytes(long_table)))
        )
    arranged.extend(named)
    return arranged


def _member_offsets(
    arranged: Sequence[tuple[bytes, ArchiveMember]]
) -> list[int]:
    """Header offsets of each arranged member in the written file."""
    offsets: list[int] = []
    pos = len(ARCHIVE_MAGIC)
    for _, member in arranged:
        offsets.append(pos)
        pos += HEADER_SIZE + member.size + (member.size & 1)
    return offsets


def _format_field(value: int, width: int, what: str, name: str, *, octal: bool = False) -> bytes:
    text = (b"%o" if octal else b"%d") % value
    if len(text) > width:
        raise ValidationError(
            f"member {name}: {what} value {value} does not fit a "
            f"{width}-byte header field"
        )
    return text.ljust(width)


def _format_header(name_field: bytes, member: ArchiveMember) -> bytes:
    if len(name_field) > 16:
        raise ValidationError(f"member name field {name_field!r} is too long")
    if member.name == LONG_NAMES_NAME:
        # GNU leaves every field but the size blank for the name table.
        meta = b" " * 32
    else:
        meta = b"".join((
            _format_field(member.mtime, 12, "mtime", member.name),
            _format_field(member.uid, 6, "uid", member.name),
            _format_field(member.gid, 6, "gid", member.name),
            _format_field(member.mode, 8, "mode", member.name, octal=True),
        ))
    return (
        name_field.ljust(16)
        + meta
        + _format_field(member.size, 10, "size", member.name)
        + HEADER_END
    )


def write_archive(members: Sequence[ArchiveMember]) -> bytes:
    """Encode *members* as an ``ar`` archive.

    Raises:
        ValidationError: If a header field value does not fit its width.
    """
    out = bytearray(ARCHIVE_MAGIC)
    for name_field, member in _arrange(members):
        out += _format_header(name_field, member)
        out += member.data
        if member.size % 2:
            out += b"\n"
    return bytes(out)


# ---------------------------------------------------------------------------
# Symbol index
# ---------------------------------------------------------------------------

def read_symbol_index(
    members: Sequence[ArchiveMember], limits: LimitsConfig | None = None
) -> list[ArchiveSymbol]:
    """Decode the GNU ``/`` index member into ``(symbol, member)`` pairs.

    Offsets are matched against the header positions recorded while
    reading; members built in memory are matched against the layout
    :func:`write_archive` would produce.

    Returns:
        The index entries in stored order; empty if there is no index.
    """
    limits = limits or LimitsConfig()
    index = next((m for m in members if m.name == SYMBOL_INDEX_NAME), None)
    if index is None:
        return []

    payload = index.data
    if len(payload) < 4:
        raise TruncatedError("symbol index is shorter than its count field")
    (count,) = struct.unpack_from(">I", payload, 0)
    if count > limits.max_index_entries:
        raise LimitExceededError(
            f"symbol index entry count {count} exceeds limit "
            f"{limits.max_index_entries}"
        )
    names_start = 4 + 4 * count
    if names_start > len(payload):
        raise TruncatedError(
            f"symbol index declares {count} entries but holds "
            f"{len(payload)} bytes"
        )
    offsets = struct.unpack_from(f">{count}I", payload, 4)
    names = payload[names_start:].split(b"\x00")
    if len(names) < count + (1 if count else 0):
        raise FormatError(
            f"symbol index declares {count} entries but holds "
            f"{max(len(names) - 1, 0)} names"
        )

    by_offset = {m.offset: m.name for m in members if m.offset}
    if not by_offset:
        arranged = _arrange(members)
        by_offset = {
            pos: member.name
            for pos, (_, member) in zip(_member_offsets(arranged), arranged)
        }

    symbols: list[ArchiveSymbol] = []
    for offset, raw_name in zip(offsets, names):
        member_name = by_offset.get(offset)
        if member_name is None:
            raise FormatError(
                f"symbol index entry {raw_name!r} points at offset {offset} "
                f"where no member starts"
            )
        symbols.append(
            ArchiveSymbol(
                name=raw_name.decode("utf-8", errors="replace"),
                member=member_name,
            )
        )
    return symbols


def collect_index_symbols(
    members: Iterable[ArchiveMember], limits: LimitsConfig | None = None
) -> list[tuple[str, ArchiveMember]]:
    """Parse each ELF member and list the symbols it exports.

    A symbol is exported when it is named, defined and not local.

    Raises:
        ElfkitError: A member that starts with the ELF magic failed to
            parse; the error is tagged with the member name.
        LimitExceededError: Too many entries or a name too long.
    """
    limits = limits or LimitsConfig()
    entries: list[tuple[str, ArchiveMember]] = []
    for member in members:
        if member.is_symbol_index or not is_elf(member.data):
            continue
        try:
            elf = parse_elf(member.data, limits)
        except ElfkitError as exc:
            raise exc.with_source(member.name) from exc

        for sym in elf.symbols:
            if not sym.name or sym.is_undefined or sym.st_bind == C.STB_LOCAL:
                continue
            if len(sym.name.encode("utf-8")) > limits.max_index_name_length:
                raise LimitExceededError(
                    f"symbol name of {len(sym.name)} bytes exceeds limit "
                    f"{limits.max_index_name_length}",
                    source=member.name,
                )
            entries.append((sym.name, member))
            if len(entries) > limits.max_index_entries:
                raise LimitExceededError(
                    f"symbol index entry count exceeds limit "
                    f"{limits.max_index_entries}"
                )
    return entries


def build_symbol_index(
    members: Sequence[ArchiveMember],
    limits: LimitsConfig | None = None,
    *,
    mtime: int = 0,
) -> ArchiveMember:
    """Build a GNU ``/`` index member for *members*.

    The offsets stored in the index refer to the layout that
    :func:`write_archive` produces for ``[index, *members]``.
    """
    regular = [
        m for m in members
        if not m.is_symbol_index and m.name != LONG_NAMES_NAME
    ]
    entries = collect_index_symbols(regular, limits)

    names_blob = b"".join(name.encode("utf-8") + b"\x00" for name, _ in entries)
    placeholder = ArchiveMember(
        name=SYMBOL_INDEX_NAME,
        mtime=mtime,
        mode=0,
        data=bytes(4 + 4 * len(entries) + len(names_blob)),
    )

    arranged = _arrange([placeholder, *regular])
    position = {
        id(member): pos
        for pos, (_, member) in zip(_member_offsets(arranged), arranged)
    }
    offsets = [position[id(member)] for _, member in entries]
    try:
        table = struct.pack(f">I{len(offsets)}I", len(offsets), *offsets)
    except struct.error as exc:
        raise LimitExceededError("archive too large for a 32-bit symbol index") from exc

    return placeholder.model_copy(update={"data": table + names_blob})


def rebuild_index(
    members: Sequence[ArchiveMember],
    limits: LimitsConfig | None = None,
    logger: ToolLogger | None = None,
    *,
    mtime: int = 0,
) -> list[ArchiveMember]:
    """Return *members* with any prior index replaced by a fresh one."""
    regular = [
        m for m in members
        if not m.is_symbol_index and m.name != LONG_NAMES_NAME
    ]
    index = build_symbol_index(regular, limits, mtime=mtime)
    if logger is not None:
        logger.debug(
            "Rebuilt symbol index over %d members (%d bytes)",
            len(regular), index.size,
        )
    return [index, *regular]


# ---------------------------------------------------------------------------
# File helpers
# ---------------------------------------------------------------------------

def load_archive(
    path: str | Path, limits: LimitsConfig | None = None
) -> list[ArchiveMember]:
    """Read the archive at *path*; decode errors are tagged with the path.

    Raises:
        LimitExceededError: The file is larger than ``max_file_size``;
            nothing is read.
    """
    limits = limits or LimitsConfig()
    try:
        size = Path(path).stat().st_size
        if size > limits.max_file_size:
            raise LimitExceededError(
                f"file size {size} exceeds limit {limits.max_file_size}"
            )
        with open(path, "rb") as fh:
            return ArchiveReader(fh, limits).read()
    except ElfkitError as exc:
        if exc.source:
            raise
        raise exc.with_source(str(path)) from exc


def save_archive(path: str | Path, members: Sequence[ArchiveMember]) -> Path:
    """Encode *members* and replace *path* atomically."""
    return atomic_write(path, write_archive(members))


def member_from_file(
    path: str | Path,
    limits: LimitsConfig | None = None,
    archive_config: ArchiveConfig | None = None,
) -> ArchiveMember:
    """Build a member from a file on disk, named after its basename."""
    limits = limits or LimitsConfig()
    archive_config = archive_config or ArchiveConfig()
    file_path = Path(path)

    stat = file_path.stat()
    if stat.st_size > limits.max_member_size:
        raise LimitExceededError(
            f"file size {stat.st_size} exceeds member limit "
            f"{limits.max_member_size}",
            source=str(path),
        )
    return ArchiveMember(
        name=file_path.name,
        mtime=0 if archive_config.deterministic else int(stat.st_mtime),
        uid=archive_config.default_uid,
        gid=archive_config.default_gid,
        mode=archive_config.default_mode,
        data=file_path.read_bytes(),
    )


# ---------------------------------------------------------------------------
# ar operations
# ---------------------------------------------------------------------------

def _has_index(members: Sequence[ArchiveMember]) -> bool:
    return any(m.is_symbol_index for m in members)


def _index_mtime(archive_config: ArchiveConfig) -> int:
    return 0 if archive_config.deterministic else int(time.time())


def is_safe_member_name(name: str) -> bool:
    """Whether *name* can be extracted without escaping the target directory."""
    return bool(name) and "/" not in name and "\\" not in name and ".." not in name


def replace_members(
    archive_path: str | Path,
    files: Sequence[str | Path],
    limits: LimitsConfig | None = None,
    archive_config: ArchiveConfig | None = None,
    logger: ToolLogger | None = None,
) -> list[ArchiveMember]:
    """``ar r``: insert *files*, replacing members of the same name.

    A missing archive is created.  New members are appended; existing
    ones keep their position.  The symbol index is rebuilt when the
    archive already had one.
    """
    archive_config = archive_config or ArchiveConfig()
    target = Path(archive_path)
    members: list[ArchiveMember] = []
    if target.exists():
        members = load_archive(target, limits)
    elif logger is not None:
        logger.info("Creating %s", target)

    new_members = [member_from_file(f, limits, archive_config) for f in files]
    for new in new_members:
        for pos, old in enumerate(members):
            if old.name == new.name:
                members[pos] = new
                break
        else:
            members.append(new)

    if _has_index(members):
        members = rebuild_index(
            members, limits, logger, mtime=_index_mtime(archive_config)
        )
    save_archive(target, members)
    return members


def list_members(
    archive_path: str | Path, limits: LimitsConfig | None = None
) -> list[str]:
    """``ar t``: names of the regular members, in archive order."""
    return [
        m.name for m in load_archive(archive_path, limits)
        if not m.is_symbol_index
    ]


def extract_members(
    archive_path: str | Path,
    names: Sequence[str] = (),
    destination: str | Path = ".",
    limits: LimitsConfig | None = None,
    logger: ToolLogger | None = None,
) -> tuple[list[Path], list[str]]:
    """``ar x``: write members to *destination*.

    Members whose names could escape the destination directory are
    skipped with a warning.

    Returns:
        ``(written paths, requested names that were not found)``.
    """
    members = load_archive(archive_path, limits)
    wanted = set(names)
    dest = Path(destination)

    written: list[Path] = []
    found: set[str] = set()
    for member in members:
        if member.is_symbol_index:
            continue
        if wanted and member.name not in wanted:
            continue
        found.add(member.name)
        if not is_safe_member_name(member.name):
            if logger is not None:
                logger.warning("Refusing to extract unsafe member name %r", member.name)
            continue
        written.append(
            atomic_write(dest / member.name, member.data, mode=member.mode & 0o777 or 0o644)
        )
    missing = [name for name in names if name not in found]
    return written, missing


def delete_members(
    archive_path: str | Path,
    names: Sequence[str],
    limits: LimitsConfig | None = None,
    archive_config: ArchiveConfig | None = None,
    logger: ToolLogger | None = None,
) -> list[str]:
    """``ar d``: remove the named members.

    Returns:
        Requested names that were not found.
    """
    archive_config = archive_config or ArchiveConfig()
    members = load_archive(archive_path, limits)
    wanted = set(names)
    kept = [m for m in members if m.is_symbol_index or m.name not in wanted]
    present = {m.name for m in members}
    missing = [name for name in names if name not in present]

    if _has_index(kept):
        kept = rebuild_index(
            kept, limits, logger, mtime=_index_mtime(archive_config)
        )
    save_archive(archive_path, kept)
    return missing


def ranlib(
    archive_path: str | Path,
    limits: LimitsConfig | None = None,
    archive_config: ArchiveConfig | None = None,
    logger: ToolLogger | None = None,
) -> list[ArchiveMember]:
    """Regenerate the symbol index of the archive at *archive_path*."""
    archive_config = archive_config or ArchiveConfig()
    members = rebuild_index(
        load_archive(archive_path, limits),
        limits,
        logger,
        mtime=_index_mtime(archive_config),
    )
    save_archive(archive_path, members)
    return members
