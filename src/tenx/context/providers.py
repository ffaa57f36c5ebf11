"""Context providers: reference material rendered into the prompt."""

import glob
import logging
from typing import TYPE_CHECKING, Annotated, Literal, Union

from pydantic import BaseModel, Field

from tenx.exceptions import ResolveError, TenxError
from tenx.models import ContextItem
from tenx.utils.fs import read_to_string

if TYPE_CHECKING:
    from tenx.config import Config

logger = logging.getLogger(__name__)


class PathContext(BaseModel):
    """One file, or every included file matching a glob pattern."""

    kind: Literal["path"] = "path"
    pattern: str

    def is_glob(self) -> bool:
        return glob.has_magic(self.pattern)

    def paths(self, config: "Config") -> list[str]:
        if self.is_glob():
            return config.match_files_with_glob(self.pattern)
        return [config.relpath(self.pattern)]

    def contexts(self, config: "Config") -> list[ContextItem]:
        """Read every matching file.

        Raises:
            ResolveError: If the path is outside the project or unreadable
        """
        items = []
        for path in self.paths(config):
            try:
                body = read_to_string(config.abspath(path))
            except (OSError, UnicodeDecodeError) as e:
                raise ResolveError(f"Could not read context file {path}: {e}") from e
            items.append(ContextItem(ty="file", name=path, body=body))
        return items

    def human(self) -> str:
        return f"path: {self.pattern}"

    def count(self, config: "Config") -> int:
        return len(self.paths(config))


class TextContext(BaseModel):
    """A named, pre-rendered blob of text."""

    kind: Literal["text"] = "text"
    name: str
    text: str

    def contexts(self, config: "Config") -> list[ContextItem]:
        return [ContextItem(ty="text", name=self.name, body=self.text)]

    def human(self) -> str:
        return f"text: {self.name} ({len(self.text)} chars)"

    def count(self, config: "Config") -> int:
        return 1


ContextSpec = Annotated[Union[PathContext, TextContext], Field(discriminator="kind")]


def render_contexts(config: "Config", specs: list[ContextSpec]) -> list[ContextItem]:
    """Resolve all context specs into items, in order."""
    items: list[ContextItem] = []
    for spec in specs:
        try:
            items.extend(spec.contexts(config))
        except TenxError:
            logger.warning("failed to render context %s", spec.human())
            raise
    return items
