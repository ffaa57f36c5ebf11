"""Anthropic Claude provider, using the streaming messages API."""

import logging
from typing import TYPE_CHECKING, Any

import anthropic
from anthropic import AsyncAnthropic

from tenx import dialect
from tenx.exceptions import ModelError
from tenx.models import ModelResponse, Usage
from tenx.providers.base import Sender, send

if TYPE_CHECKING:
    from tenx.config import Config
    from tenx.session import Session

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "claude-sonnet-4-20250514"
MAX_TOKENS = 8192


class Claude:
    """Talks to Claude through ``AsyncAnthropic``."""

    name = "claude"

    def __init__(
        self,
        model: str = DEFAULT_MODEL,
        max_tokens: int = MAX_TOKENS,
        api_key: str | None = None,
        client: Any | None = None,
    ) -> None:
        """Initialize the provider.

        Args:
            model: Claude model ID
            max_tokens: Maximum tokens in a reply
            api_key: Anthropic API key
            client: Pre-built client, mainly for tests

        Raises:
            ModelError: If no client is given and no API key is available
        """
        self.model = model
        self.max_tokens = max_tokens
        if client is None:
            if not api_key:
                raise ModelError(
                    "No Anthropic API key found. Set ANTHROPIC_API_KEY or anthropic_api_key in the config."
                )
            client = AsyncAnthropic(api_key=api_key)
        self.client = client

    async def prompt(
        self,
        config: "Config",
        session: "Session",
        sender: Sender | None = None,
    ) -> ModelResponse:
        messages = dialect.build_messages(config, session)
        logger.debug("sending %d messages to %s", len(messages), self.model)
        try:
            async with self.client.messages.stream(
                model=self.model,
                max_tokens=self.max_tokens,
                system=dialect.SYSTEM,
                messages=messages,
            ) as stream:
                async for text in stream.text_stream:
                    await send(sender, text)
                message = await stream.get_final_message()
        except anthropic.APIError as e:
            raise ModelError(f"Claude request failed: {e}") from e

        text = "".join(block.text for block in message.content if block.type == "text")
        response = dialect.parse(text)
        response.usage = Usage(
            input_tokens=message.usage.input_tokens or 0,
            output_tokens=message.usage.output_tokens or 0,
            cache_creation_input_tokens=getattr(message.usage, "cache_creation_input_tokens", None) or 0,
            cache_read_input_tokens=getattr(message.usage, "cache_read_input_tokens", None) or 0,
        )
        return response
