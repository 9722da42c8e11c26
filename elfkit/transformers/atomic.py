"""
Atomic File Replacement
========================

Every tool that rewrites a file goes through :func:`atomic_write`: the new
contents are written to a temporary file in the destination directory,
flushed to disk, and renamed over the target in one step.  An
interrupted run therefore leaves either the old file or the new one,
never a half-written artifact.

References:
    - POSIX rename(2): the replacement of *newpath* is atomic.
"""

from __future__ import annotations

import os
import shutil
import tempfile
from pathlib import Path


def backup_file(path: str | Path, suffix: str = ".bak") -> Path:
    """Copy *path* to ``path + suffix`` (metadata included).

    Returns:
        The backup path.
    """
    source = Path(path)
    backup = source.with_name(source.name + suffix)
    shutil.copy2(source, backup)
    return backup


def atomic_write(
    path: str | Path,
    data: bytes,
    *,
    backup: bool = False,
    backup_suffix: str = ".bak",
    mode: int | None = None,
) -> Path:
    """Replace the contents of *path* with *data* atomically.

    Args:
        path: Destination file; created if it does not exist.
        data: New file contents.
        backup: Copy the existing file to ``path + backup_suffix`` first.
        backup_suffix: Suffix used for the backup copy.
        mode: Permission bits for the new file.  Defaults to the mode of
            the file being replaced, or ``0o644`` for a new file.

    Returns:
        The destination path.

    Raises:
        OSError: On any file-system failure.  The temporary file is
            removed and the destination is left untouched.
    """
    target = Path(path)
    existing = target.exists()

    if backup and existing:
        backup_file(target, backup_suffix)

    if mode is None:
        mode = target.stat().st_mode & 0o7777 if existing else 0o644

    fd, tmp_name = tempfile.mkstemp(
        prefix=f".{target.name}.", suffix=".tmp", dir=target.parent
    )
    try:
        with os.fdopen(fd, "wb") as fh:
            fh.write(data)
            fh.flush()
            os.fsync(fh.fileno())
        os.chmod(tmp_name, mode)
        os.replace(tmp_name, target)
    except BaseException:
        try:
            os.unlink(tmp_name)
        except FileNotFoundError:
            pass
        raise
    return target
