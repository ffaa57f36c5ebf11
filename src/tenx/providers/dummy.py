"""Offline provider that replays canned replies."""

from typing import TYPE_CHECKING

from tenx import dialect
from tenx.exceptions import ModelError
from tenx.models import ModelResponse
from tenx.providers.base import Sender, send

if TYPE_CHECKING:
    from tenx.config import Config
    from tenx.session import Session


class Dummy:
    """Returns queued replies in order. An exception in the queue is raised instead."""

    name = "dummy"

    def __init__(self, replies: list[str | Exception] | None = None) -> None:
        self.replies: list[str | Exception] = list(replies or [])
        self.calls = 0

    async def prompt(
        self,
        config: "Config",
        session: "Session",
        sender: Sender | None = None,
    ) -> ModelResponse:
        self.calls += 1
        if not self.replies:
            raise ModelError("Dummy provider has no replies left")
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        await send(sender, reply)
        return dialect.parse(reply)
