"""Structural merge of code declarations into an existing source file.

Each top-level item of the merge text is located in the target by its
structural key (see ``tenx.utils.ast_parser.declaration_key``). A match is
replaced in place, a container present on both sides is merged member by
member, and anything unmatched is appended to its enclosing scope. The
target is re-parsed after every item so that byte offsets stay valid.
"""

import logging

from tree_sitter import Node

from tenx.exceptions import AmbiguousTargetError, ParseError
from tenx.utils.ast_parser import (
    LanguageSpec,
    ScopeItem,
    container_body,
    get_language_for_file,
    get_language_spec,
    parse_source,
    scope_items,
)

logger = logging.getLogger(__name__)

DEFAULT_INDENT = b"    "


def smart_merge(path: str, original: str, text: str) -> str:
    """Merge the declarations in *text* into *original*.

    Args:
        path: Project-relative path, used to pick the grammar
        original: Current content of the target file
        text: Declarations to merge

    Returns:
        The merged file content

    Raises:
        ParseError: If the file type is unsupported, either side fails to
            parse, or *text* holds something other than declarations and imports
        AmbiguousTargetError: If a key matches more than one declaration
    """
    try:
        language = get_language_for_file(path)
    except ValueError as e:
        raise ParseError(
            f"Smart merge is not supported for {path}",
            f"Smart merge is not supported for {path}. Use a replace or write_file block instead.",
        ) from e
    spec = get_language_spec(language)

    src = text.encode("utf-8")
    src_root = _parse(src, language, f"smart block for {path}")
    items = scope_items(src_root, spec)
    if not items:
        raise ParseError(f"Smart block for {path} contains no declarations")
    for item in items:
        if item.kind == "other":
            snippet = src[item.start_byte : item.end_byte].decode("utf-8").splitlines()[0]
            raise ParseError(
                f"Smart block for {path} contains a non-declaration: {snippet}",
                f"The smart block for {path} may only contain declarations and imports, found: {snippet}",
            )

    data = original.encode("utf-8")
    for item in items:
        data = _merge(data, language, spec, [], src, item, path)
    return data.decode("utf-8")


def _parse(data: bytes, language: str, what: str) -> Node:
    root = parse_source(data, language).root_node
    if root.has_error:
        raise ParseError(f"Syntax error in {what}", f"The {what} does not parse as valid code.")
    return root


def _find_scope(root: Node, spec: LanguageSpec, scope_path: list[tuple[str, str]]) -> Node:
    scope = root
    for key in scope_path:
        matches = [i for i in scope_items(scope, spec) if i.key == key]
        body = container_body(matches[0].node, spec) if len(matches) == 1 else None
        if body is None:
            raise ParseError(f"Lost enclosing scope {key[1]} while merging")
        scope = body
    return scope


def _merge(
    data: bytes,
    language: str,
    spec: LanguageSpec,
    scope_path: list[tuple[str, str]],
    src: bytes,
    item: ScopeItem,
    path: str,
) -> bytes:
    root = _parse(data, language, path)
    scope = _find_scope(root, spec, scope_path)
    targets = scope_items(scope, spec)

    if item.kind == "import":
        return _merge_import(data, targets, src, item)

    matches = [t for t in targets if t.key == item.key]
    if len(matches) > 1:
        raise AmbiguousTargetError(
            f"{item.key[1]} matches {len(matches)} declarations in {path}",
            f"The declaration {item.key[1]} matches more than one declaration in {path}. "
            "Use a replace block to edit it.",
        )
    if not matches:
        logger.debug("smart: appending %s to %s", item.key, path)
        return _append(data, scope, not scope_path, src, item)

    target = matches[0]
    src_body = container_body(item.node, spec)
    tgt_body = container_body(target.node, spec)
    if src_body is not None and tgt_body is not None and item.inner.type == target.inner.type:
        members = scope_items(src_body, spec)
        if all(m.kind != "other" for m in members):
            logger.debug("smart: merging members of %s in %s", item.key, path)
            for member in members:
                data = _merge(data, language, spec, scope_path + [item.key], src, member, path)
            return data

    logger.debug("smart: replacing %s in %s", item.key, path)
    return _replace(data, target, src, item)


def _indent_at(data: bytes, offset: int) -> bytes:
    """Return the leading whitespace of the line containing *offset*."""
    line_start = data.rfind(b"\n", 0, offset) + 1
    line = data[line_start:offset]
    return line if not line.strip() else line[: len(line) - len(line.lstrip())]


def _reindent(block: bytes, old: bytes, new: bytes) -> bytes:
    if old == new:
        return block
    lines = block.split(b"\n")
    out = [lines[0]]
    for line in lines[1:]:
        if line.startswith(old):
            line = new + line[len(old) :]
        out.append(line)
    return b"\n".join(out)


def _item_text(src: bytes, item: ScopeItem, indent: bytes) -> bytes:
    block = src[item.start_byte : item.end_byte]
    return _reindent(block, _indent_at(src, item.start_byte), indent)


def _replace(data: bytes, target: ScopeItem, src: bytes, item: ScopeItem) -> bytes:
    # Keep the target's doc comments unless the new text brings its own
    has_preamble = item.start_byte < item.node.start_byte
    start = target.start_byte if has_preamble else target.node.start_byte
    block = src[item.start_byte if has_preamble else item.node.start_byte : item.end_byte]
    block = _reindent(block, _indent_at(src, item.start_byte), _indent_at(data, start))
    return data[:start] + block + data[target.end_byte :]


def _append(data: bytes, scope: Node, top_level: bool, src: bytes, item: ScopeItem) -> bytes:
    if top_level:
        block = _item_text(src, item, b"")
        head = data.rstrip()
        if not head:
            return block + b"\n"
        return head + b"\n\n" + block + b"\n"

    members = scope.named_children
    if members:
        last = members[-1]
        indent = _indent_at(data, last.start_byte)
        block = _item_text(src, item, indent)
        return data[: last.end_byte] + b"\n\n" + indent + block + data[last.end_byte :]

    # Empty braced body such as `impl Foo {}`
    outer = _indent_at(data, scope.start_byte)
    indent = outer + DEFAULT_INDENT
    block = _item_text(src, item, indent)
    inner = b"\n" + indent + block + b"\n" + outer
    return data[: scope.start_byte + 1] + inner + data[scope.end_byte - 1 :]


def _squash(data: bytes) -> bytes:
    return b"".join(data.split())


def _merge_import(data: bytes, targets: list[ScopeItem], src: bytes, item: ScopeItem) -> bytes:
    wanted = _squash(src[item.node.start_byte : item.end_byte])
    imports = [t for t in targets if t.kind == "import"]
    for existing in imports:
        if _squash(data[existing.node.start_byte : existing.end_byte]) == wanted:
            return data

    if imports:
        last = imports[-1]
        indent = _indent_at(data, last.node.start_byte)
        block = _item_text(src, item, indent)
        return data[: last.end_byte] + b"\n" + indent + block + data[last.end_byte :]

    block = _item_text(src, item, b"")
    if targets:
        first = targets[0]
        indent = _indent_at(data, first.start_byte)
        return data[: first.start_byte] + block + b"\n\n" + indent + data[first.start_byte :]
    if not data.strip():
        return block + b"\n"
    return block + b"\n\n" + data
