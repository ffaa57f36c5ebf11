"""Utilities for tenx."""

from tenx.utils.diff_generator import generate_unified_diff
from tenx.utils.fs import atomic_write, read_to_string, write_file

__all__ = [
    "atomic_write",
    "generate_unified_diff",
    "read_to_string",
    "write_file",
]
