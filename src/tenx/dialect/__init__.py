"""Model dialects: prompt rendering and response parsing."""

from tenx.dialect.tags import SYSTEM, build_messages, parse, render_context, render_editables

__all__ = [
    "SYSTEM",
    "build_messages",
    "parse",
    "render_context",
    "render_editables",
]
