"""Base classes for validators and formatters."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from tenx.config import Config
    from tenx.session import Session


@dataclass(frozen=True)
class Runnable:
    """Whether a check's tooling is available, and why not if it isn't."""

    ok: bool = True
    reason: str | None = None

    @classmethod
    def error(cls, reason: str) -> "Runnable":
        return cls(ok=False, reason=reason)


class Check(ABC):
    """A validator or formatter run after a patch is applied."""

    #: Human-readable name, e.g. "rust: cargo check"
    name: str = ""
    #: Short identifier used in ``checks.disabled``
    key: str = ""
    formatter: bool = False

    def is_configured(self, config: "Config") -> bool:
        if not config.checks.enabled or self.key in config.checks.disabled:
            return False
        return config.checks.formatters or not self.formatter

    @abstractmethod
    def is_relevant(self, config: "Config", session: "Session") -> bool:
        """Return True if the session's files are in this check's language."""

    def runnable(self) -> Runnable:
        return Runnable()

    @abstractmethod
    def run(self, config: "Config", session: "Session") -> None:
        """Run the check.

        Raises:
            CheckError: If the check fails
            WorkspaceNotFoundError: If there is no project for the check to run in
        """


def has_extension(config: "Config", session: "Session", suffix: str) -> bool:
    """True if any editable, or failing that any included file, ends in *suffix*."""
    paths = session.editable or config.included_files()
    return any(path.endswith(suffix) for path in paths)
