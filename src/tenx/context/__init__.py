"""Context providers for tenx."""

from tenx.context.providers import ContextSpec, PathContext, TextContext, render_contexts

__all__ = [
    "ContextSpec",
    "PathContext",
    "TextContext",
    "render_contexts",
]
