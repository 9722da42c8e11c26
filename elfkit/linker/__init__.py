"""
elfkit Linker
==============

Toy static linker: symbol resolution, same-name section merging and
entry-point selection over already-parsed object files.
"""

from elfkit.linker.linker import Linker, link_files

__all__ = ["Linker", "link_files"]
