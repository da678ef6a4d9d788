"""
eabitools Shared Module
=======================

Configuration, logging, console and result models shared by the eabitools
commands.
"""

from shared.config import EabiConfig

__all__ = ["EabiConfig"]
