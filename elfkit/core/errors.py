"""
elfkit Error Taxonomy
======================

Every failure that originates in untrusted input or a rejected option is
one of the classes below.  File-system failures are left as the builtin
:class:`OSError`.

The parser never recovers from these internally: a structural problem
aborts the whole parse, and callers decide whether to skip the file
(multi-file inspectors) or abort the operation (linker, transformers).
"""

from __future__ import annotations


class ElfkitError(Exception):
    """Base class for all elfkit failures.

    Args:
        message: Human-readable cause.
        source:  Optional file or archive-member name the error refers to.
    """

    def __init__(self, message: str, *, source: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.source = source

    def with_source(self, source: str) -> ElfkitError:
        """Return a copy of this error (same class) tagged with *source*."""
        tagged = type(self)(self.message, source=source)
        tagged.__cause__ = self
        return tagged

    def __str__(self) -> str:
        if self.source:
            return f"{self.source}: {self.message}"
        return self.message


class FormatError(ElfkitError):
    """Bad magic number or structurally invalid content."""


class TruncatedError(ElfkitError):
    """A declared size or offset reaches past the available bytes."""


class LimitExceededError(ElfkitError):
    """An untrusted size or count field exceeds a hard safety ceiling."""


class ValidationError(ElfkitError):
    """A tool option or value is outside its allowed set."""


class LinkError(ElfkitError):
    """Symbol resolution failed (only raised for fatal duplicate definitions)."""
