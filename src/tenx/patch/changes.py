"""Change variants: the individual mutations a patch is made of."""

from pathlib import PurePosixPath
from typing import Annotated, Any, Literal, Union

from pydantic import AfterValidator, BaseModel, ConfigDict, Field, model_validator

from tenx.exceptions import AmbiguousMatchError, NoMatchError, ReadFailureError
from tenx.patch.smart import smart_merge
from tenx.patch.udiff import apply_file_patch, parse_unified_diff


def normalise_path(path: str) -> str:
    """Normalise a project-relative path to POSIX form (``./a.txt`` -> ``a.txt``)."""
    if not path or not path.strip():
        raise ValueError("path must not be empty")
    return str(PurePosixPath(path.strip().replace("\\", "/")))


ProjectPath = Annotated[str, AfterValidator(normalise_path)]


def _current(scratch: dict[str, str | None], path: str) -> str:
    content = scratch.get(path)
    if content is None:
        raise ReadFailureError(f"{path} does not exist", f"The file {path} does not exist.")
    return content


class WriteFile(BaseModel):
    """Replace the entire content of a file, creating it if needed."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["write"] = "write"
    path: ProjectPath
    content: str

    def changed_files(self) -> list[str]:
        return [self.path]

    def created_files(self) -> list[str]:
        return [self.path]

    def description(self) -> str:
        return f"Write to {self.path}"

    def apply_to_cache(self, scratch: dict[str, str | None]) -> None:
        scratch[self.path] = self.content


class Replace(BaseModel):
    """Replace a unique exact occurrence of ``old`` with ``new``."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["replace"] = "replace"
    path: ProjectPath
    old: str
    new: str

    def changed_files(self) -> list[str]:
        return [self.path]

    def created_files(self) -> list[str]:
        return []

    def description(self) -> str:
        return f"Replace in {self.path}"

    def apply_to_cache(self, scratch: dict[str, str | None]) -> None:
        """Substitute the single occurrence of ``old``.

        Raises:
            NoMatchError: If ``old`` is empty or absent
            AmbiguousMatchError: If ``old`` occurs more than once
            ReadFailureError: If the file does not exist
        """
        content = _current(scratch, self.path)
        count = content.count(self.old) if self.old else 0
        if count == 0:
            raise NoMatchError(
                f"Could not find text to replace in {self.path}",
                f"Could not find the following text in {self.path}:\n{self.old}\n"
                "The old text must match the file exactly, including whitespace.",
            )
        if count > 1:
            raise AmbiguousMatchError(
                f"Text to replace occurs {count} times in {self.path}",
                f"The following text occurs {count} times in {self.path}:\n{self.old}\n"
                "Include more surrounding lines so that it matches exactly once.",
            )
        scratch[self.path] = content.replace(self.old, self.new, 1)


class Smart(BaseModel):
    """Structurally merge declarations into a source file."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["smart"] = "smart"
    path: ProjectPath
    text: str

    def changed_files(self) -> list[str]:
        return [self.path]

    def created_files(self) -> list[str]:
        return []

    def description(self) -> str:
        return f"Smart in {self.path}"

    def apply_to_cache(self, scratch: dict[str, str | None]) -> None:
        scratch[self.path] = smart_merge(self.path, _current(scratch, self.path), self.text)


def _diff_files(patch: str) -> list[str]:
    files: list[str] = []
    for fp in parse_unified_diff(patch):
        for path in (fp.old_path, fp.new_path):
            if path is not None:
                path = normalise_path(path)
                if path not in files:
                    files.append(path)
    return files


class UDiff(BaseModel):
    """A unified diff spanning one or more files.

    ``modified_files`` is derived from the diff when omitted and must
    otherwise name exactly the files the diff touches.
    """

    model_config = ConfigDict(frozen=True)

    kind: Literal["udiff"] = "udiff"
    patch: str
    modified_files: list[str] = Field(default_factory=list)

    @model_validator(mode="before")
    @classmethod
    def _declare_files(cls, data: Any) -> Any:
        if not isinstance(data, dict) or not isinstance(data.get("patch"), str):
            return data
        files = _diff_files(data["patch"])
        declared = data.get("modified_files")
        if not declared:
            return {**data, "modified_files": files}
        declared = [normalise_path(path) for path in declared]
        if set(declared) != set(files):
            raise ValueError(f"modified_files {declared} does not match the files in the diff {files}")
        return {**data, "modified_files": declared}

    @classmethod
    def from_patch(cls, patch: str) -> "UDiff":
        """Build a UDiff from diff text, recording every file it touches.

        Raises:
            ParseError: If the diff cannot be parsed
        """
        return cls(patch=patch)

    def changed_files(self) -> list[str]:
        return list(self.modified_files)

    def created_files(self) -> list[str]:
        """Files that may be absent before the diff: creations and rename targets."""
        return [
            normalise_path(fp.new_path)
            for fp in parse_unified_diff(self.patch)
            if fp.new_path is not None and fp.old_path != fp.new_path
        ]

    def description(self) -> str:
        return f"UDiff for {len(self.modified_files)} files"

    def apply_to_cache(self, scratch: dict[str, str | None]) -> None:
        # Work on a copy so a failing hunk leaves scratch untouched
        updated: dict[str, str | None] = {}
        for fp in parse_unified_diff(self.patch):
            source = normalise_path(fp.old_path) if fp.old_path is not None else None
            target = normalise_path(fp.new_path) if fp.new_path is not None else None
            key = source if source is not None else target
            content = updated[key] if key in updated else scratch.get(key)
            if source is not None and content is None:
                raise ReadFailureError(f"{source} does not exist", f"The file {source} does not exist.")
            result = apply_file_patch(content, fp)
            if source is not None and target is not None and source != target:
                updated[source] = None
            updated[target if target is not None else source] = result
        scratch.update(updated)


Change = Annotated[Union[WriteFile, Replace, Smart, UDiff], Field(discriminator="kind")]
