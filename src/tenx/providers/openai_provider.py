"""OpenAI provider, using streaming chat completions."""

import logging
from typing import TYPE_CHECKING, Any

import openai

from tenx import dialect
from tenx.exceptions import ModelError
from tenx.models import ModelResponse, Usage
from tenx.providers.base import Sender, send

if TYPE_CHECKING:
    from tenx.config import Config
    from tenx.session import Session

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "gpt-4o"


class OpenAI:
    """Talks to OpenAI through ``openai.AsyncOpenAI``."""

    name = "openai"

    def __init__(
        self,
        model: str = DEFAULT_MODEL,
        max_tokens: int = 8192,
        api_key: str | None = None,
        client: Any | None = None,
    ) -> None:
        self.model = model
        self.max_tokens = max_tokens
        if client is None:
            if not api_key:
                raise ModelError("No OpenAI API key found. Set OPENAI_API_KEY or openai_api_key in the config.")
            client = openai.AsyncOpenAI(api_key=api_key)
        self.client = client

    async def prompt(
        self,
        config: "Config",
        session: "Session",
        sender: Sender | None = None,
    ) -> ModelResponse:
        messages = [{"role": "system", "content": dialect.SYSTEM}, *dialect.build_messages(config, session)]
        logger.debug("sending %d messages to %s", len(messages), self.model)
        parts: list[str] = []
        usage = Usage()
        try:
            stream = await self.client.chat.completions.create(
                model=self.model,
                messages=messages,
                max_completion_tokens=self.max_tokens,
                stream=True,
                stream_options={"include_usage": True},
            )
            async for chunk in stream:
                if chunk.choices:
                    delta = chunk.choices[0].delta.content
                    if delta:
                        parts.append(delta)
                        await send(sender, delta)
                if chunk.usage is not None:
                    usage = Usage(
                        input_tokens=chunk.usage.prompt_tokens or 0,
                        output_tokens=chunk.usage.completion_tokens or 0,
                    )
        except openai.OpenAIError as e:
            raise ModelError(f"OpenAI request failed: {e}") from e

        response = dialect.parse("".join(parts))
        response.usage = usage
        return response
