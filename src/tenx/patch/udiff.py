"""Parsing and tolerant application of unified diffs."""

import re
from dataclasses import dataclass, field

from tenx.exceptions import HunkNotApplicableError, ParseError

HUNK_HEADER = re.compile(r"^@@ -(\d+)(?:,(\d+))? \+(\d+)(?:,(\d+))? @@")
NO_NEWLINE_MARKER = "\\"


@dataclass
class Hunk:
    """One hunk: ``lines`` holds (op, text) pairs with op in ' ', '-', '+'.

    ``old_count`` is the source length from the ``@@`` header, if it had one.
    ``no_eol`` holds the indices of lines followed by a
    ``\\ No newline at end of file`` marker.
    """

    old_start: int | None = None
    old_count: int | None = None
    lines: list[tuple[str, str]] = field(default_factory=list)
    no_eol: set[int] = field(default_factory=set)

    def old_lines(self) -> list[str]:
        return [text for op, text in self.lines if op != "+"]

    def close(self) -> None:
        """Drop trailing blank context lines past the declared source length.

        Blank lines between the sections of a multi-file diff are not part
        of the preceding hunk.
        """
        while self.lines and self.lines[-1] == (" ", ""):
            if self.old_count is not None and len(self.old_lines()) <= self.old_count:
                break
            self.lines.pop()


@dataclass
class FilePatch:
    """All hunks for one file. A path of None stands for /dev/null."""

    old_path: str | None
    new_path: str | None
    hunks: list[Hunk] = field(default_factory=list)

    @property
    def path(self) -> str:
        return self.new_path if self.new_path is not None else self.old_path  # type: ignore[return-value]

    @property
    def is_creation(self) -> bool:
        return self.old_path is None

    @property
    def is_deletion(self) -> bool:
        return self.new_path is None


def _header_path(raw: str) -> str | None:
    path = raw.split("\t")[0].strip()
    if path == "/dev/null":
        return None
    if path.startswith(("a/", "b/")):
        path = path[2:]
    if not path:
        raise ParseError(
            f"Diff header has no file path: {raw.strip()!r}",
            "Every ---/+++ header in a udiff block must name a file.",
        )
    return path


def parse_unified_diff(text: str) -> list[FilePatch]:
    """Parse a unified diff document into per-file hunk lists.

    Args:
        text: Diff text, possibly spanning several files

    Returns:
        List of FilePatch in document order

    Raises:
        ParseError: If the document has no file headers, a hunk appears
            before any header, or a hunk is empty
    """
    lines = text.rstrip("\n").splitlines()
    files: list[FilePatch] = []
    current: FilePatch | None = None
    hunk: Hunk | None = None

    i = 0
    while i < len(lines):
        line = lines[i]

        if line.startswith("--- ") and i + 1 < len(lines) and lines[i + 1].startswith("+++ "):
            old_path = _header_path(line[4:])
            new_path = _header_path(lines[i + 1][4:])
            if old_path is None and new_path is None:
                raise ParseError("Diff header has /dev/null on both sides")
            if hunk is not None:
                hunk.close()
            current = FilePatch(old_path=old_path, new_path=new_path)
            files.append(current)
            hunk = None
            i += 2
            continue

        if line.startswith("@@"):
            if current is None:
                raise ParseError(
                    "Hunk found before any file header",
                    "Every hunk in a udiff block must follow a ---/+++ file header.",
                )
            if hunk is not None:
                hunk.close()
            match = HUNK_HEADER.match(line)
            if match:
                old_count = int(match.group(2)) if match.group(2) is not None else 1
                hunk = Hunk(old_start=int(match.group(1)), old_count=old_count)
            else:
                hunk = Hunk()
            current.hunks.append(hunk)
            i += 1
            continue

        if hunk is not None:
            if line == "":
                hunk.lines.append((" ", ""))
            elif line[0] in " -+":
                hunk.lines.append((line[0], line[1:]))
            elif line.startswith(NO_NEWLINE_MARKER):
                if hunk.lines:
                    hunk.no_eol.add(len(hunk.lines) - 1)
            else:
                hunk.close()
                hunk = None
        i += 1

    if hunk is not None:
        hunk.close()

    if not files:
        raise ParseError("Diff contains no file headers", "The udiff block must contain ---/+++ file headers.")
    for fp in files:
        for h in fp.hunks:
            if not h.lines:
                raise ParseError(f"Empty hunk in diff for {fp.path}")
    return files


def _strip_eol(line: str) -> str:
    return line.rstrip("\r\n")


def _collapse(line: str) -> str:
    return " ".join(line.split())


# Tolerance levels, tried in order
_NORMALISERS = (
    lambda line: line,
    str.rstrip,
    _collapse,
)


def _locate(lines: list[str], old: list[str], cursor: int, hint: int) -> int | None:
    if not old:
        return max(cursor, min(hint, len(lines)))
    for normalise in _NORMALISERS:
        haystack = [normalise(_strip_eol(line)) for line in lines]
        needle = [normalise(line) for line in old]
        candidates = [
            pos
            for pos in range(cursor, len(lines) - len(old) + 1)
            if haystack[pos : pos + len(old)] == needle
        ]
        if candidates:
            return min(candidates, key=lambda pos: (abs(pos - hint), pos))
    return None


def apply_file_patch(content: str | None, file_patch: FilePatch) -> str | None:
    """Apply one file's hunks to *content*.

    Hunks are applied in order, each anchored at or after the end of the
    previous one. Context lines keep the file's own text.

    Args:
        content: Current file content, or None if the file does not exist
        file_patch: Parsed hunks for the file

    Returns:
        The new content, or None if the patch deletes the file

    Raises:
        HunkNotApplicableError: If a hunk cannot be anchored
    """
    if file_patch.is_deletion:
        return None

    lines = [] if content is None else content.splitlines(keepends=True)
    eol = "\r\n" if lines and lines[0].endswith("\r\n") else "\n"
    cursor = 0
    drift = 0

    for number, hunk in enumerate(file_patch.hunks, 1):
        old = hunk.old_lines()
        hint = cursor if hunk.old_start is None else max(hunk.old_start - 1 + drift, 0)
        pos = _locate(lines, old, cursor, hint)
        if pos is None:
            preview = "\n".join(old[:3])
            raise HunkNotApplicableError(
                f"Hunk {number} does not apply to {file_patch.path}",
                f"Hunk {number} for {file_patch.path} could not be located. "
                f"The context and removed lines must match the file. Hunk starts with:\n{preview}",
            )

        # The no-newline marker only holds when the hunk runs to the end of the file
        at_end = pos + len(old) == len(lines)
        replacement: list[str] = []
        src = pos
        for index, (op, text) in enumerate(hunk.lines):
            if op == "-":
                src += 1
                continue
            if replacement and not replacement[-1].endswith("\n"):
                replacement[-1] += eol
            if op == " ":
                replacement.append(lines[src])
                src += 1
            elif at_end and index in hunk.no_eol:
                replacement.append(text)
            else:
                replacement.append(text + eol)

        if replacement and 0 < pos == len(lines) and not lines[-1].endswith("\n"):
            lines[-1] += eol
        lines[pos : pos + len(old)] = replacement
        if hunk.old_start is not None:
            drift = pos - (hunk.old_start - 1) + len(replacement) - len(old)
        cursor = pos + len(replacement)

    return "".join(lines)
