"""Patch: an ordered set of changes applied atomically, with a pre-image cache."""

import logging
from typing import TYPE_CHECKING

from pydantic import BaseModel, ConfigDict, Field

from tenx.exceptions import PatchError, ReadFailureError, WriteFailureError
from tenx.patch.changes import Change
from tenx.utils.diff_generator import generate_unified_diff
from tenx.utils.fs import read_to_string, write_file

if TYPE_CHECKING:
    from tenx.config import Config

logger = logging.getLogger(__name__)


class Patch(BaseModel):
    """An ordered collection of changes plus the pre-image of every file they touch.

    ``cache`` maps project-relative paths to their content before the patch
    was first applied. ``None`` records that the file did not exist. Entries
    are only ever added, never overwritten, so the cache stays valid across
    repeated apply attempts and is the sole basis for ``revert``.
    """

    model_config = ConfigDict(frozen=False)

    changes: list[Change] = Field(default_factory=list)
    comment: str | None = None
    cache: dict[str, str | None] = Field(default_factory=dict)

    def changed_files(self) -> list[str]:
        """Return every path touched by the patch, in first-seen order."""
        files: list[str] = []
        for change in self.changes:
            for path in change.changed_files():
                if path not in files:
                    files.append(path)
        return files

    def created_files(self) -> set[str]:
        files: set[str] = set()
        for change in self.changes:
            files.update(change.created_files())
        return files

    def is_empty(self) -> bool:
        return not self.changes

    def change_description(self) -> str:
        return "\n".join(change.description() for change in self.changes)

    def cache_files(self, config: "Config") -> None:
        """Record the on-disk content of every changed file not yet cached.

        Idempotent: paths already in the cache are never re-read.

        Raises:
            ReadFailureError: If a file that must already exist cannot be read
            ResolveError: If a path escapes the project root
        """
        created = self.created_files()
        for path in self.changed_files():
            if path in self.cache:
                continue
            abspath = config.abspath(path)
            try:
                content: str | None = read_to_string(abspath)
            except FileNotFoundError as e:
                if path not in created:
                    raise ReadFailureError(
                        f"Could not read {path}: file not found",
                        f"The file {path} does not exist.",
                    ) from e
                content = None
            except (OSError, UnicodeDecodeError) as e:
                raise ReadFailureError(f"Could not read {path}: {e}") from e
            logger.debug("cached pre-image of %s", path)
            self.cache[path] = content

    def transform(self) -> dict[str, str | None]:
        """Apply every change in order to a copy of the cache.

        Returns:
            The scratch mapping holding the post-patch content of each file

        Raises:
            PatchError: The first failing change's error, annotated with
                ``change_index`` and ``change``
        """
        scratch = dict(self.cache)
        for index, change in enumerate(self.changes):
            try:
                change.apply_to_cache(scratch)
            except PatchError as e:
                e.change_index = index
                e.change = change.description()
                raise
        return scratch

    def commit(self, config: "Config", scratch: dict[str, str | None]) -> None:
        """Write the scratch content of every changed file to disk.

        Raises:
            WriteFailureError: If a write fails; ``written`` lists the paths
                already modified
        """
        written: list[str] = []
        for path in self.changed_files():
            content = scratch.get(path)
            abspath = config.abspath(path)
            try:
                if content is None:
                    abspath.unlink(missing_ok=True)
                else:
                    write_file(abspath, content)
            except OSError as e:
                raise WriteFailureError(
                    f"Failed to write {path}: {e}",
                    written=written,
                ) from e
            written.append(path)

    def apply(self, config: "Config") -> None:
        """Apply the patch: cache, transform in memory, then commit.

        Nothing is written unless every change succeeds.
        """
        self.cache_files(config)
        scratch = self.transform()
        self.commit(config, scratch)
        logger.info("applied patch to %d file(s)", len(self.changed_files()))

    def revert(self, config: "Config") -> None:
        """Restore every cached file to its pre-image."""
        for path in self.changed_files():
            if path not in self.cache:
                continue
            content = self.cache[path]
            abspath = config.abspath(path)
            if content is None:
                abspath.unlink(missing_ok=True)
            else:
                write_file(abspath, content)
            logger.debug("reverted %s", path)

    def diff(self) -> str:
        """Render the patch as a unified diff against its cached pre-images."""
        scratch = self.transform()
        diffs = [
            generate_unified_diff(path, self.cache.get(path), scratch.get(path))
            for path in self.changed_files()
        ]
        return "\n".join(d for d in diffs if d)
