"""Model provider interface."""

import asyncio
from typing import TYPE_CHECKING, Protocol

from tenx.models import ModelResponse

if TYPE_CHECKING:
    from tenx.config import Config
    from tenx.session import Session

# Text chunks stream through this queue; None marks the end of the stream
Sender = asyncio.Queue


class ModelProvider(Protocol):
    """Anything that can turn a session into a model response."""

    name: str

    async def prompt(
        self,
        config: "Config",
        session: "Session",
        sender: Sender | None = None,
    ) -> ModelResponse:
        """Send the session's transcript and parse the reply.

        Raises:
            ModelError: If the provider call fails
            ResponseParseError: If the reply cannot be parsed
        """
        ...


async def send(sender: Sender | None, chunk: str) -> None:
    if sender is not None and chunk:
        await sender.put(chunk)
