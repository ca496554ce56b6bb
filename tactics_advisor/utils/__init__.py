"""Utilities module - JSON file helpers and debug crop saving."""

from .file_utils import FileUtils
from .debug_utils import DebugUtils

__all__ = ["FileUtils", "DebugUtils"]
