"""
elfkit Transformers
====================

Mutating tools.  Each one parses its input completely, edits a copy of
the model, serializes it and replaces the target atomically.
"""

from elfkit.transformers.atomic import atomic_write, backup_file
from elfkit.transformers.sections import remove_sections
from elfkit.transformers.strip import is_debug_section, strip_file, strip_model
from elfkit.transformers.objcopy import CopyOptions, apply_copy_options, copy_file
from elfkit.transformers.elfedit import HeaderField, apply_header_edit, edit_file

__all__ = [
    "CopyOptions",
    "HeaderField",
    "apply_copy_options",
    "apply_header_edit",
    "atomic_write",
    "backup_file",
    "copy_file",
    "edit_file",
    "is_debug_section",
    "remove_sections",
    "strip_file",
    "strip_model",
]
