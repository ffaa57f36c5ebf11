"""Plain-text rendering of sessions for the terminal."""

import shutil
import textwrap

from tenx.exceptions import PatchError
from tenx.models import Step
from tenx.patch import Patch
from tenx.session import Session

INDENT = "  "


def term_width() -> int:
    return shutil.get_terminal_size((120, 24)).columns


def _wrapped(text: str, width: int, indent: int) -> str:
    prefix = " " * indent
    lines = []
    for line in text.splitlines() or [""]:
        wrapped = textwrap.wrap(
            line,
            width=max(width, indent + 20),
            initial_indent=prefix,
            subsequent_indent=prefix,
        )
        lines.extend(wrapped or [prefix])
    return "\n".join(lines)


def _first_line(text: str) -> str:
    return text.splitlines()[0] if text.strip() else ""


def render_patch(patch: Patch, full: bool) -> str:
    out = [f"{INDENT * 2}modified:"]
    for path in patch.changed_files():
        out.append(f"{INDENT * 3}- {path}")
    if full:
        try:
            diff = patch.diff()
        except PatchError as e:
            out.append(f"{INDENT * 2}diff unavailable: {e.user}")
        else:
            if diff:
                out.append(f"{INDENT * 2}diff:")
                out.append(textwrap.indent(diff, INDENT * 3))
    return "\n".join(out)


def render_step(index: int, step: Step, full: bool, width: int) -> str:
    """Render one step: prompt, response details and any error."""
    out = ["", "=" * width, f"Step {index} [{step.step_type.value}, {step.status.value}]", "=" * width]
    prompt = step.prompt if full else _first_line(step.prompt)
    out.append(f"{INDENT}prompt:")
    out.append(_wrapped(prompt, width, len(INDENT) * 2))

    response = step.model_response
    if response is not None:
        if response.comment:
            out.append(f"{INDENT * 2}comment:")
            comment = response.comment if full else _first_line(response.comment)
            out.append(_wrapped(comment, width, len(INDENT) * 3))
        if full and response.response_text:
            out.append(f"{INDENT * 2}text:")
            out.append(textwrap.indent(response.response_text, INDENT * 3))
        if response.operations:
            out.append(f"{INDENT * 2}operations:")
            for op in response.operations:
                out.append(f"{INDENT * 3}- {op.kind}: {op.path}")
        if response.patch is not None:
            out.append(render_patch(response.patch, full))
        if response.usage is not None:
            out.append(f"{INDENT * 2}usage:")
            for key, value in sorted(response.usage.values().items()):
                out.append(f"{INDENT * 3}{key}: {value}")

    if step.err is not None:
        out.append(f"{INDENT * 2}error: {step.err.kind}")
        out.append(_wrapped(step.err.user, width, len(INDENT) * 3))
        if full and step.err.model:
            out.append(f"{INDENT * 2}model error:")
            out.append(_wrapped(step.err.model, width, len(INDENT) * 3))
    return "\n".join(out)


def render_session(session: Session, full: bool = False, width: int | None = None) -> str:
    """Render a session summary: root, model, context, editables and steps."""
    width = width or term_width()
    out = [f"root: {session.root}"]
    if session.model is not None:
        out.append(f"model: {session.model.human()}")
    if session.contexts:
        out.append("context:")
        out.extend(f"{INDENT}- {spec.human()}" for spec in session.contexts)
    if session.editable:
        out.append("edit:")
        out.extend(f"{INDENT}- {path}" for path in session.editable)
    for index, step in enumerate(session.steps):
        out.append(render_step(index, step, full, width))
    return "\n".join(out) + "\n"
