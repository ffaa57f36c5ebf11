"""Exceptions for tenx operations.

Every error carries a human-readable ``user`` message and an optional
``model`` message that is fed back to the model on a follow-up step.
"""


class TenxError(Exception):
    """Base exception for all tenx operations."""

    def __init__(self, user: str, model: str | None = None) -> None:
        super().__init__(user)
        self.user = user
        self.model = model

    @property
    def model_message(self) -> str:
        """Text suitable for sending back to the model."""
        return self.model or self.user


class ResolveError(TenxError):
    """Raised when a path cannot be resolved inside the project root."""


class PatchError(TenxError):
    """Base exception for patch application failures."""

    def __init__(self, user: str, model: str | None = None) -> None:
        super().__init__(user, model)
        self.change_index: int | None = None
        self.change: str | None = None


class ReadFailureError(PatchError):
    """Raised when a pre-image file cannot be read."""


class NoMatchError(PatchError):
    """Raised when a replace target does not occur in the file."""


class AmbiguousMatchError(PatchError):
    """Raised when a replace target occurs more than once."""


class ParseError(PatchError):
    """Raised when smart-merge text or a unified diff cannot be parsed."""


class AmbiguousTargetError(PatchError):
    """Raised when a structural key matches more than one declaration."""


class HunkNotApplicableError(PatchError):
    """Raised when a diff hunk cannot be anchored in the target file."""


class WriteFailureError(PatchError):
    """Raised when committing a patch to disk fails part way through.

    Some files may already have been written; they are listed in ``written``.
    """

    def __init__(self, user: str, model: str | None = None, written: list[str] | None = None) -> None:
        super().__init__(user, model)
        self.written: list[str] = list(written or [])


class ModelError(TenxError):
    """Raised when the model provider fails."""


class ResponseParseError(TenxError):
    """Raised when a model response cannot be turned into a patch."""


class CheckError(TenxError):
    """Raised when a validator or formatter fails."""

    def __init__(self, name: str, user: str, model: str | None = None) -> None:
        super().__init__(user, model)
        self.name = name

    def __str__(self) -> str:
        return f"{self.name}: {self.user}"


class WorkspaceNotFoundError(TenxError):
    """Raised when no project workspace applies to a check."""


class SessionError(TenxError):
    """Raised when a session operation is not valid in the current state."""


class SessionStoreError(TenxError):
    """Raised when a session cannot be loaded or saved."""


class OrchestratorError(TenxError):
    """Raised when the step pipeline cannot be built or run."""
