"""Tenx: the entry point that drives sessions through the step pipeline."""

import asyncio
import logging
from pathlib import Path

from tenx.checks import run_validators
from tenx.config import Config
from tenx.exceptions import CheckError, SessionError
from tenx.models import ModelSpec, StepType
from tenx.orchestrator import build_graph, make_initial_state
from tenx.providers import ModelProvider, Sender, build_provider
from tenx.session import Session, SessionStore

logger = logging.getLogger(__name__)


class Tenx:
    """Runs prompts, retries and resets against a persisted session."""

    def __init__(
        self,
        config: Config,
        store: SessionStore | None = None,
        provider: ModelProvider | None = None,
    ) -> None:
        """Initialize tenx.

        Args:
            config: Project configuration
            store: Session store; defaults to one at ``config.session_dir()``
            provider: Model provider; defaults to one built from the
                session's model binding on each call
        """
        self.config = config
        self.store = store if store is not None else SessionStore(config.session_dir())
        self.provider = provider

    def new_session(self, root: Path | None = None, model: ModelSpec | None = None) -> Session:
        """Create and save an empty session for the project root."""
        session = Session(
            root=Path(root or self.config.project_root).absolute(),
            model=model or ModelSpec(**self.config.model.model_dump()),
        )
        self.save_session(session)
        return session

    def load_session(self, root: Path | None = None) -> Session:
        return self.store.load(Path(root or self.config.project_root).absolute())

    def save_session(self, session: Session) -> None:
        self.store.save(session)

    async def code(self, session: Session, prompt: str, sender: Sender | None = None) -> Session:
        """Start a code step with *prompt* and run it to completion.

        Raises:
            TenxError: The error that ended the step, after it was recorded
            asyncio.CancelledError: If cancelled; the step is removed first
        """
        provider = self._provider(session)
        session.add_prompt(prompt, StepType.CODE)
        return await self._run(session, provider, sender)

    async def fix(self, session: Session, prompt: str | None = None, sender: Sender | None = None) -> Session:
        """Run the validators and ask the model to fix what they report.

        Raises:
            SessionError: If every check passes and no prompt was given
        """
        failure = self._preflight(session)
        if failure is None and prompt is None:
            raise SessionError("All checks passed; nothing to fix")
        parts = [p for p in (prompt, failure.model_message if failure else None) if p]
        provider = self._provider(session)
        session.add_prompt("\n\n".join(parts), StepType.FIX)
        return await self._run(session, provider, sender)

    async def retry(self, session: Session, sender: Sender | None = None) -> Session:
        """Retry the last step; see Session.retry."""
        provider = self._provider(session)
        session.retry()
        return await self._run(session, provider, sender)

    def reset(self, session: Session, offset: int) -> Session:
        """Revert and drop steps from *offset* onward, then save."""
        session.reset(self.config, offset)
        self.save_session(session)
        return session

    def check(self, session: Session) -> list[str]:
        """Run the validators.

        Returns:
            Names of the checks that ran

        Raises:
            CheckError: From the first failing check
        """
        return run_validators(self.config, session)

    def _preflight(self, session: Session) -> CheckError | None:
        try:
            run_validators(self.config, session)
        except CheckError as exc:
            return exc
        return None

    def _provider(self, session: Session) -> ModelProvider:
        return self.provider or build_provider(self.config, session.model)

    async def _run(self, session: Session, provider: ModelProvider, sender: Sender | None) -> Session:
        graph = build_graph(provider, self.config, self.store, sender)
        try:
            state = await graph.ainvoke(
                make_initial_state(session, self.config.step_limit),
                {"recursion_limit": 10 + 4 * max(self.config.step_limit, 1)},
            )
        except asyncio.CancelledError:
            dropped = session.discard_pending()
            if dropped is not None:
                logger.info("cancelled; removed in-flight step")
            raise
        finally:
            if sender is not None:
                sender.put_nowait(None)

        if state["error"] is not None:
            raise state["error"]
        return session
