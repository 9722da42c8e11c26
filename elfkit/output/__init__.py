"""
elfkit Output
==============

Machine-readable reports of parsed object files.
"""

from elfkit.output.report import ElfReportGenerator

__all__ = ["ElfReportGenerator"]
