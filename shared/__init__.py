"""
elfkit Shared Module
====================

Configuration, logging, and console helpers shared by every elfkit tool.
"""

from shared.config import ElfkitConfig, LimitsConfig

__all__ = ["ElfkitConfig", "LimitsConfig"]
