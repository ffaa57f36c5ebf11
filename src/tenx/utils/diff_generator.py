"""Utilities for rendering file changes as unified diffs."""

import difflib


def generate_unified_diff(
    file_path: str,
    original_content: str | None,
    modified_content: str | None,
) -> str:
    """Generate a git-compatible unified diff.

    Args:
        file_path: Relative path from project root (e.g. "src/main.rs").
        original_content: File content before the change, None if the file
            did not exist.
        modified_content: File content after the change, None if the file
            was deleted.

    Returns:
        Unified diff string with a/ b/ prefixes. Empty string if no changes.
    """
    if original_content == modified_content:
        return ""

    original_lines = (original_content or "").splitlines(keepends=True)
    modified_lines = (modified_content or "").splitlines(keepends=True)

    fromfile = f"a/{file_path}" if original_content is not None else "/dev/null"
    tofile = f"b/{file_path}" if modified_content is not None else "/dev/null"

    diff_gen = difflib.unified_diff(
        original_lines,
        modified_lines,
        fromfile=fromfile,
        tofile=tofile,
        lineterm="",
    )

    # Lines keep their own newline from keepends=True; strip before joining
    diff_lines = []
    for line in diff_gen:
        if line.endswith("\n"):
            diff_lines.append(line[:-1])
        else:
            diff_lines.append(line)

    return "\n".join(diff_lines)
