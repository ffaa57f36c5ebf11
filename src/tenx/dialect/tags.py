"""XML-ish tag dialect spoken between tenx and the model.

The model receives editable files as ``<editable path="...">`` blocks and
reference material as ``<context ...>`` blocks, and answers with operation
tags that are parsed into a Patch.
"""

import html
import re
from typing import TYPE_CHECKING

from tenx.context import render_contexts
from tenx.exceptions import ParseError, ResolveError, ResponseParseError, SessionError
from tenx.models import ModelResponse, Operation
from tenx.patch import Patch, Replace, Smart, UDiff, WriteFile
from tenx.utils.fs import read_to_string

if TYPE_CHECKING:
    from tenx.config import Config
    from tenx.session import Session

SYSTEM = """\
You are an expert programmer working on a user's project. You make careful,
minimal changes that do exactly what is asked and keep the surrounding code
style.

Files you may edit are given in <editable path="..."> tags. Reference material
is given in <context type="..." name="..."> tags and must not be edited.

Reply with a short explanation of what you did in a <comment> tag, followed by
one or more operation tags:

<write_file path="src/main.rs">
complete new content of the file
</write_file>

<replace path="src/main.rs">
<old>
exact text currently in the file, matching exactly once
</old>
<new>
replacement text
</new>
</replace>

<smart path="src/main.rs">
one or more complete declarations (functions, types, impl blocks, classes)
that replace declarations with the same name or are added if new
</smart>

<udiff>
--- a/src/main.rs
+++ b/src/main.rs
@@ -1,3 +1,3 @@
 unified diff with context lines
</udiff>

If you need to see or edit a file that is not editable, request it with
<edit path="src/other.rs"/> and do not make other changes in that reply.

Never elide code with comments such as "rest of file unchanged". Only edit
files you were given as editable or asked for with <edit>.
"""

OPEN_TAG = re.compile(r"<(\w+)((?:\s+\w+\s*=\s*\"[^\"]*\")*)\s*(/?)>")
ATTR = re.compile(r"(\w+)\s*=\s*\"([^\"]*)\"")
OPERATION_TAGS = {"comment", "write_file", "replace", "smart", "udiff", "edit"}


def _strip_block(text: str) -> str:
    """Drop the newline that follows an opening tag and precedes a closing one."""
    if text.startswith("\n"):
        text = text[1:]
    if text.endswith("\n"):
        text = text[:-1]
    return text


def _strip_fence(text: str) -> str:
    lines = text.splitlines()
    if len(lines) >= 2 and lines[0].startswith("```") and lines[-1].startswith("```"):
        return "\n".join(lines[1:-1])
    return text


def _tags(text: str) -> list[tuple[str, dict[str, str], str]]:
    """Return the top-level operation tags in *text* as (name, attrs, body)."""
    found = []
    pos = 0
    while True:
        match = OPEN_TAG.search(text, pos)
        if match is None:
            return found
        name, raw_attrs, self_closing = match.groups()
        if name not in OPERATION_TAGS:
            pos = match.end()
            continue
        attrs = {k: html.unescape(v) for k, v in ATTR.findall(raw_attrs)}
        if self_closing:
            found.append((name, attrs, ""))
            pos = match.end()
            continue
        close = text.find(f"</{name}>", match.end())
        if close == -1:
            raise ResponseParseError(
                f"Unclosed <{name}> tag in model response",
                f"Your response has an unclosed <{name}> tag.",
            )
        found.append((name, attrs, text[match.end() : close]))
        pos = close + len(name) + 3


def _child(body: str, name: str, parent: str) -> str:
    match = re.search(rf"<{name}>(.*?)</{name}>", body, re.DOTALL)
    if match is None:
        raise ResponseParseError(
            f"<{parent}> tag without <{name}> in model response",
            f"Each <{parent}> tag must contain an <{name}> tag.",
        )
    return _strip_block(match.group(1))


def _path(attrs: dict[str, str], tag: str) -> str:
    path = attrs.get("path", "").strip()
    if not path:
        raise ResponseParseError(
            f"<{tag}> tag without a path in model response",
            f'Every <{tag}> tag needs a path attribute, e.g. <{tag} path="src/lib.rs">.',
        )
    return path


def parse(response: str) -> ModelResponse:
    """Parse a model reply into a ModelResponse.

    Args:
        response: Full text of the model reply

    Returns:
        ModelResponse with a patch if the reply contained any changes

    Raises:
        ResponseParseError: If a recognised tag is malformed
    """
    patch = Patch()
    operations: list[Operation] = []
    comments: list[str] = []

    for name, attrs, body in _tags(response):
        if name == "comment":
            comments.append(body.strip())
        elif name == "write_file":
            content = body[1:] if body.startswith("\n") else body
            patch.changes.append(WriteFile(path=_path(attrs, name), content=content))
        elif name == "replace":
            patch.changes.append(
                Replace(
                    path=_path(attrs, name),
                    old=_child(body, "old", name),
                    new=_child(body, "new", name),
                )
            )
        elif name == "smart":
            patch.changes.append(Smart(path=_path(attrs, name), text=_strip_fence(_strip_block(body))))
        elif name == "udiff":
            try:
                patch.changes.append(UDiff.from_patch(_strip_fence(_strip_block(body))))
            except ParseError as e:
                raise ResponseParseError(f"Malformed <udiff> in model response: {e.user}", e.model_message) from e
        elif name == "edit":
            operations.append(Operation(path=_path(attrs, name)))

    comment = "\n\n".join(comments) or None
    patch.comment = comment
    return ModelResponse(
        patch=None if patch.is_empty() else patch,
        operations=operations,
        comment=comment,
        response_text=response,
    )


def render_editables(config: "Config", session: "Session") -> str:
    """Render every editable file as an ``<editable>`` block."""
    blocks = []
    for path in session.editable:
        abspath = config.abspath(path)
        try:
            body = read_to_string(abspath) if abspath.exists() else ""
        except (OSError, UnicodeDecodeError) as e:
            raise ResolveError(f"Could not read editable file {path}: {e}") from e
        blocks.append(f'<editable path="{html.escape(path)}">\n{body}\n</editable>')
    return "\n\n".join(blocks)


def render_context(config: "Config", session: "Session") -> str:
    """Render the session's context items as ``<context>`` blocks."""
    return "\n\n".join(
        f'<context type="{item.ty}" name="{html.escape(item.name)}">\n{item.body}\n</context>'
        for item in render_contexts(config, session.contexts)
    )


def render_step_prompt(step_type: str, prompt: str) -> str:
    if step_type == "error":
        return f"Applying your last change failed:\n\n{prompt}\n\nPlease fix the problem."
    return prompt


def build_messages(config: "Config", session: "Session") -> list[dict[str, str]]:
    """Build the alternating user/assistant transcript for the model.

    Context is prepended to the first user turn and the current editable
    files to the last one. Consecutive user turns, such as those left by
    failed steps, are merged.

    Raises:
        ResolveError: If a context or editable file cannot be read
    """
    messages: list[dict[str, str]] = []

    def push(role: str, content: str) -> None:
        if messages and messages[-1]["role"] == role:
            messages[-1]["content"] += "\n\n" + content
        else:
            messages.append({"role": role, "content": content})

    for step in session.steps:
        push("user", render_step_prompt(step.step_type.value, step.prompt))
        response = step.model_response
        if response is not None and response.response_text:
            push("assistant", response.response_text)

    if not messages or messages[-1]["role"] != "user":
        raise SessionError("Session has no pending prompt to send")

    editables = render_editables(config, session)
    if editables:
        messages[-1]["content"] = f"{editables}\n\n{messages[-1]['content']}"
    context = render_context(config, session)
    if context:
        messages[0]["content"] = f"{context}\n\n{messages[0]['content']}"
    return messages
