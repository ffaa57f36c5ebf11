"""Model providers for tenx."""

from typing import TYPE_CHECKING

from tenx.models import ModelSpec
from tenx.providers.base import ModelProvider, Sender
from tenx.providers.claude import Claude
from tenx.providers.dummy import Dummy
from tenx.providers.openai_provider import OpenAI

if TYPE_CHECKING:
    from tenx.config import Config


def build_provider(config: "Config", spec: ModelSpec | None = None) -> ModelProvider:
    """Build the runtime provider for a session's model binding.

    Falls back to the model configured in *config* when *spec* is None.
    """
    if spec is None:
        spec = ModelSpec(**config.model.model_dump())
    if spec.provider == "claude":
        return Claude(model=spec.name, max_tokens=spec.max_tokens, api_key=config.anthropic_api_key)
    if spec.provider == "openai":
        return OpenAI(model=spec.name, max_tokens=spec.max_tokens, api_key=config.openai_api_key)
    return Dummy()


__all__ = [
    "Claude",
    "Dummy",
    "ModelProvider",
    "OpenAI",
    "Sender",
    "build_provider",
]
