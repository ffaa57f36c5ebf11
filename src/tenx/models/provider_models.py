"""Serialisable model bindings stored on a session."""

from typing import Literal

from pydantic import BaseModel


class ModelSpec(BaseModel):
    """Which provider and model a session talks to.

    Only the binding is persisted. API keys come from the Config at runtime.
    """

    provider: Literal["claude", "openai", "dummy"] = "claude"
    name: str = "claude-sonnet-4-20250514"
    max_tokens: int = 8192

    def human(self) -> str:
        return f"{self.provider}:{self.name}"
