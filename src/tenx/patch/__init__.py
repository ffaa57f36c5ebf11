"""Patch engine: change variants and the atomic apply protocol."""

from tenx.patch.changes import Change, Replace, Smart, UDiff, WriteFile, normalise_path
from tenx.patch.patch import Patch
from tenx.patch.smart import smart_merge
from tenx.patch.udiff import FilePatch, Hunk, apply_file_patch, parse_unified_diff

__all__ = [
    "Change",
    "FilePatch",
    "Hunk",
    "Patch",
    "Replace",
    "Smart",
    "UDiff",
    "WriteFile",
    "apply_file_patch",
    "normalise_path",
    "parse_unified_diff",
    "smart_merge",
]
