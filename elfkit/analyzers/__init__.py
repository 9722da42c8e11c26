"""
elfkit Analyzers
=================

Read-only inspector tools: each takes a parsed model (or raw bytes) and
returns report lines or values without touching the input file.
"""

from elfkit.analyzers.addr2line import parse_address, resolve_address
from elfkit.analyzers.demangle import demangle
from elfkit.analyzers.size import SizeReport, compute_size, format_size_header
from elfkit.analyzers.strings import StringExtractor, extract_strings
from elfkit.analyzers.symbols import list_symbols, symbol_type_char

__all__ = [
    "SizeReport",
    "StringExtractor",
    "compute_size",
    "demangle",
    "extract_strings",
    "format_size_header",
    "list_symbols",
    "parse_address",
    "resolve_address",
    "symbol_type_char",
]
