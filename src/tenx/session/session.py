"""Session: the ordered history of steps for one working tree."""

import glob
import logging
from pathlib import Path
from typing import TYPE_CHECKING

from pydantic import BaseModel, ConfigDict, Field

from tenx.context import ContextSpec
from tenx.exceptions import PatchError, SessionError, WriteFailureError
from tenx.models import ModelResponse, ModelSpec, Step, StepError, StepType
from tenx.patch import Patch

if TYPE_CHECKING:
    from tenx.config import Config

logger = logging.getLogger(__name__)


class Session(BaseModel):
    """Steps, context and editable files for one project root.

    Steps are append-only except through ``reset``. At most one step is in
    flight at a time, and it is always the last one.
    """

    model_config = ConfigDict(frozen=False)

    root: Path
    steps: list[Step] = Field(default_factory=list)
    contexts: list[ContextSpec] = Field(default_factory=list)
    editable: list[str] = Field(default_factory=list)
    model: ModelSpec | None = None

    def last_step(self) -> Step | None:
        return self.steps[-1] if self.steps else None

    def add_prompt(self, prompt: str, step_type: StepType = StepType.CODE) -> Step:
        """Start a new in-flight step.

        Raises:
            SessionError: If the last step is still in flight
        """
        last = self.last_step()
        if last is not None and last.is_pending():
            raise SessionError("The last step is still in progress")
        step = Step(prompt=prompt, step_type=step_type)
        self.steps.append(step)
        logger.debug("added %s step %d", step_type.value, len(self.steps) - 1)
        return step

    def _pending_step(self) -> Step:
        last = self.last_step()
        if last is None or not last.is_pending():
            raise SessionError("No step is in progress")
        return last

    def add_context(self, spec: ContextSpec) -> bool:
        """Add a context spec unless an identical one is present."""
        if spec in self.contexts:
            return False
        self.contexts.append(spec)
        return True

    def add_editable(self, config: "Config", path: str) -> int:
        """Mark a path, or every included file matching a glob, as editable.

        Returns:
            Number of files newly added
        """
        if glob.has_magic(path):
            matches = config.match_files_with_glob(path)
        else:
            matches = [config.relpath(path)]
        added = 0
        for match in matches:
            if match not in self.editable:
                self.editable.append(match)
                added += 1
        return added

    def abs_editables(self, config: "Config") -> list[Path]:
        return [config.abspath(path) for path in self.editable]

    def apply_patch(self, config: "Config", patch: Patch, response: ModelResponse | None = None) -> None:
        """Apply *patch* and complete the in-flight step with it.

        On failure the step is marked failed but keeps the response, so the
        attempted patch and its pre-image cache stay in the session.

        Raises:
            SessionError: If no step is in flight
            PatchError: If the patch cannot be applied
        """
        step = self._pending_step()
        response = response.model_copy() if response is not None else ModelResponse()
        response.patch = patch
        response.comment = response.comment or patch.comment
        try:
            patch.apply(config)
        except PatchError as exc:
            step.err = StepError.from_exception(exc)
            step.model_response = response
            logger.warning("step %d failed: %s", len(self.steps) - 1, step.err.user)
            raise
        step.model_response = response
        for path in patch.changed_files():
            if path not in self.editable and config.abspath(path).exists():
                self.editable.append(path)

    def set_response(self, response: ModelResponse) -> None:
        """Complete the in-flight step with a response that carries no patch."""
        self._pending_step().model_response = response

    def record_error(self, exc: Exception) -> None:
        """Mark the in-flight step as failed with *exc*."""
        step = self._pending_step()
        step.err = StepError.from_exception(exc)
        logger.warning("step %d failed: %s", len(self.steps) - 1, step.err.user)

    def discard_pending(self) -> Step | None:
        """Drop the last step if it is still in flight."""
        last = self.last_step()
        if last is not None and last.is_pending():
            return self.steps.pop()
        return None

    def retry(self) -> Step:
        """Start a new step that retries the last one.

        A failed model call is retried with the same prompt. Any other
        failure becomes an error step whose prompt is the model-readable
        error. An in-flight last step is replaced.

        Returns:
            The new in-flight step

        Raises:
            SessionError: If there is nothing to retry
        """
        last = self.last_step()
        if last is None:
            raise SessionError("No steps to retry")
        if last.is_pending():
            self.steps.pop()
            return self.add_prompt(last.prompt, last.step_type)
        if last.err is None:
            raise SessionError("The last step succeeded; nothing to retry")
        if last.err.kind == "ModelError":
            return self.add_prompt(last.prompt, last.step_type)
        return self.add_prompt(last.err.model_message(), StepType.ERROR)

    def reset(self, config: "Config", offset: int) -> None:
        """Revert and drop every step from *offset* onward, last step first.

        Failed steps are only reverted if their patch was partly written.

        Raises:
            SessionError: If offset is out of range
        """
        if offset < 0 or offset > len(self.steps):
            raise SessionError(f"Invalid step offset {offset}; session has {len(self.steps)} steps")
        for index in range(len(self.steps) - 1, offset - 1, -1):
            step = self.steps[index]
            patch = step.patch
            if patch is None:
                continue
            if step.err is None or step.err.kind == WriteFailureError.__name__:
                logger.info("reverting step %d", index)
                patch.revert(config)
        del self.steps[offset:]
