"""
C++ Symbol Demangler (c++filt)
===============================

A small recursive-descent decoder for the most common shapes of the
Itanium C++ ABI mangling:

    - plain and nested names (``_Z3foo``, ``_ZN3ns5Class6methodE``)
    - ``St`` (``std::``) prefixes
    - constructors / destructors (``C1``, ``C2``, ``D0``..``D2``)
    - builtin parameter types, ``P`` (pointer), ``R`` / ``O`` (references),
      ``K`` (const) and class-type parameters
    - const member functions (``NK...E``)

Anything outside that subset (templates, substitutions, operators) makes
:func:`demangle` return its input unchanged, the same way ``c++filt``
passes through names it does not recognise.

References:
    - Itanium C++ ABI, section 5.1 "External Names".
      https://itanium-cxx-abi.github.io/cxx-abi/abi.html#mangling
"""

from __future__ import annotations

MAX_MANGLED_LENGTH: int = 10_000

_BUILTIN_TYPES: dict[str, str] = {
    "v": "void",
    "w": "wchar_t",
    "b": "bool",
    "c": "char",
    "a": "signed char",
    "h": "unsigned char",
    "s": "short",
    "t": "unsigned short",
    "i": "int",
    "j": "unsigned int",
    "l": "long",
    "m": "unsigned long",
    "x": "long long",
    "y": "unsigned long long",
    "n": "__int128",
    "o": "unsigned __int128",
    "f": "float",
    "d": "double",
    "e": "long double",
    "z": "...",
}


class _DemangleError(Exception):
    """The input left the supported subset."""


class _Demangler:
    def __init__(self, text: str) -> None:
        self._text = text
        self._pos = 0

    # ------------------------------------------------------------------ #
    #  Cursor helpers
    # ------------------------------------------------------------------ #

    def _peek(self) -> str:
        return self._text[self._pos] if self._pos < len(self._text) else ""

    def _take(self, prefix: str) -> bool:
        if self._text.startswith(prefix, self._pos):
            self._pos += len(prefix)
            return True
        return False

    def _at_end(self) -> bool:
        return self._pos >= len(self._text)

    # ------------------------------------------------------------------ #
    #  Grammar
    # ------------------------------------------------------------------ #

    def demangle(self) -> str:
        if not (self._take("_Z") or self._take("__Z")):
            raise _DemangleError("not a mangled name")

        name, const_method = self._name()
        if self._at_end():
            return name

        params = self._bare_function_type()
        return f"{name}({params})" + (" const" if const_method else "")

    def _name(self) -> tuple[str, bool]:
        if self._take("N"):
            const_method = self._take("K")
            return self._nested_name(), const_method
        if self._take("St"):
            return "std::" + self._source_name(), False
        return self._source_name(), False

    def _nested_name(self) -> str:
        parts: list[str] = []
        if self._take("St"):
            parts.append("std")
        while not self._take("E"):
            if self._at_end():
                raise _DemangleError("unterminated nested name")
            if self._peek() == "C" and parts:
                self._ctor_dtor_code("C", "123")
                parts.append(parts[-1])
            elif self._peek() == "D" and parts:
                self._ctor_dtor_code("D", "012")
                parts.append("~" + parts[-1])
            else:
                parts.append(self._source_name())
        if not parts:
            raise _DemangleError("empty nested name")
        return "::".join(parts)

    def _ctor_dtor_code(self, kind: str, variants: str) -> None:
        self._pos += 1
        if self._peek() not in variants or not self._peek():
            raise _DemangleError(f"unsupported {kind} variant")
        self._pos += 1

    def _source_name(self) -> str:
        start = self._pos
        while self._peek().isdigit():
            self._pos += 1
        if start == self._pos:
            raise _DemangleError("expected a length-prefixed name")
        length = int(self._text[start:self._pos])
        if length == 0 or self._pos + length > len(self._text):
            raise _DemangleError("bad identifier length")
        ident = self._text[self._pos:self._pos + length]
        if not (ident[0].isalpha() or ident[0] == "_"):
            raise _DemangleError("bad identifier")
        if not all(ch.isalnum() or ch == "_" for ch in ident):
            raise _DemangleError("bad identifier")
        self._pos += length
        return ident

    def _bare_function_type(self) -> str:
        params: list[str] = []
        while not self._at_end():
            params.append(self._type())
        if params == ["void"]:
            return ""
        return ", ".join(params)

    def _type(self) -> str:
        ch = self._peek()
        if ch in _BUILTIN_TYPES:
            self._pos += 1
            return _BUILTIN_TYPES[ch]
        if self._take("P"):
            return self._type() + "*"
        if self._take("R"):
            return self._type() + "&"
        if self._take("O"):
            return self._type() + "&&"
        if self._take("K"):
            return self._type() + " const"
        if self._take("N"):
            return self._nested_name()
        if self._take("St"):
            return "std::" + self._source_name()
        if ch.isdigit():
            return self._source_name()
        raise _DemangleError(f"unsupported type code {ch!r}")


def is_mangled(name: str) -> bool:
    return name.startswith(("_Z", "__Z"))


def demangle(name: str) -> str:
    """Demangle *name*, or return it unchanged if it is not understood."""
    if len(name) > MAX_MANGLED_LENGTH or not is_mangled(name):
        return name
    try:
        return _Demangler(name).demangle()
    except (_DemangleError, RecursionError):
        return name
