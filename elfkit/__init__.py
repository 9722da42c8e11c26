"""
elfkit
======

A binary-utilities toolkit for ELF object files and ``ar`` archives:
inspectors (nm, objdump, readelf, size, addr2line, strings, c++filt),
transformers (strip, objcopy, elfedit), archive maintenance (ar, ranlib)
and a toy linker and assembler, all sharing one bounded parser.
"""

__version__ = "1.0.0"
