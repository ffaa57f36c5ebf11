"""AST parser utility for structural merges using tree-sitter."""

from dataclasses import dataclass, field
from pathlib import Path

import tree_sitter_javascript as tsjs
import tree_sitter_python as tspy
import tree_sitter_rust as tsrust
import tree_sitter_typescript as tsts
from tree_sitter import Language, Node, Parser, Tree

# Initialize language objects
RUST_LANGUAGE = Language(tsrust.language())
PYTHON_LANGUAGE = Language(tspy.language())
JS_LANGUAGE = Language(tsjs.language())
TS_LANGUAGE = Language(tsts.language_typescript())
TSX_LANGUAGE = Language(tsts.language_tsx())


@dataclass(frozen=True)
class LanguageSpec:
    """Node types that drive structural merges for one grammar."""

    name: str
    language: Language
    # declaration node type -> key category; same category means same namespace
    declarations: dict[str, str]
    # declaration node types whose body is merged member by member
    containers: frozenset[str]
    imports: frozenset[str]
    # comment/attribute nodes that attach to the item directly below them
    preamble: frozenset[str]
    # wrapper node type -> field holding the wrapped declaration
    wrappers: dict[str, str] = field(default_factory=dict)


RUST = LanguageSpec(
    name="rust",
    language=RUST_LANGUAGE,
    declarations={
        "function_item": "fn",
        "function_signature_item": "fn",
        "struct_item": "type",
        "enum_item": "type",
        "union_item": "type",
        "type_item": "type",
        "associated_type": "type",
        "trait_item": "trait",
        "impl_item": "impl",
        "mod_item": "mod",
        "const_item": "value",
        "static_item": "value",
        "macro_definition": "macro",
    },
    containers=frozenset({"impl_item", "trait_item", "mod_item"}),
    imports=frozenset({"use_declaration", "extern_crate_declaration"}),
    preamble=frozenset({"line_comment", "block_comment", "attribute_item"}),
)

PYTHON = LanguageSpec(
    name="python",
    language=PYTHON_LANGUAGE,
    declarations={
        "function_definition": "def",
        "class_definition": "def",
        "expression_statement": "def",
    },
    containers=frozenset({"class_definition"}),
    imports=frozenset({"import_statement", "import_from_statement", "future_import_statement"}),
    preamble=frozenset({"comment"}),
    wrappers={"decorated_definition": "definition"},
)

_JS_DECLARATIONS = {
    "function_declaration": "decl",
    "generator_function_declaration": "decl",
    "class_declaration": "decl",
    "lexical_declaration": "decl",
    "variable_declaration": "decl",
    "method_definition": "member",
    "field_definition": "member",
}

JAVASCRIPT = LanguageSpec(
    name="javascript",
    language=JS_LANGUAGE,
    declarations=dict(_JS_DECLARATIONS),
    containers=frozenset({"class_declaration"}),
    imports=frozenset({"import_statement"}),
    preamble=frozenset({"comment"}),
    wrappers={"export_statement": "declaration"},
)

_TS_DECLARATIONS = {
    **_JS_DECLARATIONS,
    "abstract_class_declaration": "decl",
    "enum_declaration": "decl",
    "function_signature": "decl",
    "interface_declaration": "type",
    "type_alias_declaration": "type",
    "public_field_definition": "member",
    "method_signature": "member",
    "abstract_method_signature": "member",
}

TYPESCRIPT = LanguageSpec(
    name="typescript",
    language=TS_LANGUAGE,
    declarations=dict(_TS_DECLARATIONS),
    containers=frozenset({"class_declaration", "abstract_class_declaration"}),
    imports=frozenset({"import_statement"}),
    preamble=frozenset({"comment"}),
    wrappers={"export_statement": "declaration"},
)

TSX = LanguageSpec(
    name="tsx",
    language=TSX_LANGUAGE,
    declarations=dict(_TS_DECLARATIONS),
    containers=frozenset({"class_declaration", "abstract_class_declaration"}),
    imports=frozenset({"import_statement"}),
    preamble=frozenset({"comment"}),
    wrappers={"export_statement": "declaration"},
)

_SPECS = {spec.name: spec for spec in (RUST, PYTHON, JAVASCRIPT, TYPESCRIPT, TSX)}


def get_language_for_file(file_path: str) -> str:
    """Map file extension to tree-sitter language name.

    Args:
        file_path: Path to the file

    Returns:
        Language name ("rust", "python", "javascript", "typescript", "tsx")

    Raises:
        ValueError: If file extension is not supported
    """
    ext = Path(file_path).suffix
    mapping = {
        ".rs": "rust",
        ".py": "python",
        ".pyi": "python",
        ".js": "javascript",
        ".jsx": "javascript",
        ".mjs": "javascript",
        ".cjs": "javascript",
        ".ts": "typescript",
        ".tsx": "tsx",
    }
    if ext not in mapping:
        raise ValueError(f"Unsupported file extension: {ext}")
    return mapping[ext]


def get_language_spec(language: str) -> LanguageSpec:
    """Return the merge spec for a language name."""
    if language not in _SPECS:
        raise ValueError(f"Unsupported language: {language}")
    return _SPECS[language]


def get_parser(language: str) -> Parser:
    """Return a tree-sitter Parser for the given language name.

    Args:
        language: Language name, see get_language_for_file

    Returns:
        Configured Parser instance
    """
    parser = Parser()
    parser.language = get_language_spec(language).language
    return parser


def parse_source(source: bytes, language: str) -> Tree:
    """Parse source bytes with the grammar for *language*."""
    return get_parser(language).parse(source)


@dataclass
class ScopeItem:
    """A top-level child of a scope, with any attached preamble."""

    node: Node
    inner: Node
    start_byte: int
    end_byte: int
    kind: str  # "declaration", "import" or "other"
    key: tuple[str, str] | None = None


def unwrap(node: Node, spec: LanguageSpec) -> Node:
    """Return the declaration inside wrapper nodes such as decorators or exports."""
    field_name = spec.wrappers.get(node.type)
    if field_name is None:
        return node
    inner = node.child_by_field_name(field_name)
    return inner if inner is not None else node


def _squash(node: Node | None) -> str:
    if node is None or node.text is None:
        return ""
    return "".join(node.text.decode("utf-8").split())


def _node_name(node: Node) -> str | None:
    if node.type == "impl_item":
        trait = node.child_by_field_name("trait")
        self_type = _squash(node.child_by_field_name("type"))
        return f"{_squash(trait)} for {self_type}" if trait is not None else self_type
    if node.type in ("lexical_declaration", "variable_declaration"):
        for child in node.named_children:
            if child.type == "variable_declarator":
                return _squash(child.child_by_field_name("name")) or None
        return None
    if node.type == "expression_statement":
        # Only plain `name = value` assignments count as declarations
        if not node.named_children or node.named_children[0].type != "assignment":
            return None
        left = node.named_children[0].child_by_field_name("left")
        if left is None or left.type != "identifier":
            return None
        return _squash(left)
    name_node = node.child_by_field_name("name") or node.child_by_field_name("property")
    return _squash(name_node) or None


def declaration_key(node: Node, spec: LanguageSpec) -> tuple[str, str] | None:
    """Return the structural identity key of a declaration node.

    The key is (category, name) where nodes in the same category share a
    namespace. Returns None if the node is not a declaration.
    """
    inner = unwrap(node, spec)
    category = spec.declarations.get(inner.type)
    if category is None:
        return None
    name = _node_name(inner)
    if not name:
        return None
    return category, name


def container_body(node: Node, spec: LanguageSpec) -> Node | None:
    """Return the body node of a container declaration, or None."""
    inner = unwrap(node, spec)
    if inner.type not in spec.containers:
        return None
    return inner.child_by_field_name("body")


def scope_items(scope: Node, spec: LanguageSpec) -> list[ScopeItem]:
    """Group the named children of *scope* into items.

    Comments and attributes on the lines directly above an item are folded
    into its span. Comments trailing another item on the same line are not.
    """
    items: list[ScopeItem] = []
    pending: list[Node] = []
    last_end_row = -1

    for child in scope.named_children:
        if child.type in spec.preamble:
            if child.start_point[0] == last_end_row:
                continue
            if pending and child.start_point[0] > pending[-1].end_point[0] + 1:
                pending = []
            pending.append(child)
            continue

        start = child.start_byte
        if pending and child.start_point[0] <= pending[-1].end_point[0] + 1:
            start = pending[0].start_byte
        pending = []
        last_end_row = child.end_point[0]

        inner = unwrap(child, spec)
        key = declaration_key(child, spec)
        if inner.type in spec.imports:
            kind = "import"
        elif key is not None:
            kind = "declaration"
        else:
            kind = "other"
        items.append(
            ScopeItem(
                node=child,
                inner=inner,
                start_byte=start,
                end_byte=child.end_byte,
                kind=kind,
                key=key,
            )
        )

    return items
