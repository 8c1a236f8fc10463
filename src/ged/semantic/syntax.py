"""Helpers for walking Go syntax trees produced by Tree-sitter."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Iterator

import tree_sitter

# Leaf nodes that name something.
IDENT_TYPES = frozenset(
    {"identifier", "type_identifier", "field_identifier", "package_identifier"}
)

# Nodes of the form base.member. Qualified types are package-qualified names
# in type position and never carry a selection.
SELECTOR_TYPES = frozenset({"selector_expression", "qualified_type"})

# Stable reference to a node: (module-relative file path, start byte, end byte).
NodeRef = tuple[str, int, int]


@dataclass
class SourceFile:
    """A parsed Go source file.

    Attributes:
        path: Module-relative POSIX path, used in reported positions.
        abs_path: Absolute filesystem path.
        source: Raw file contents.
        tree: Tree-sitter syntax tree.
    """

    path: str
    abs_path: Path
    source: bytes
    tree: tree_sitter.Tree

    @property
    def root(self) -> tree_sitter.Node:
        return self.tree.root_node

    def ref(self, node: tree_sitter.Node) -> NodeRef:
        return (self.path, node.start_byte, node.end_byte)

    def text(self, node: tree_sitter.Node) -> str:
        return self.source[node.start_byte : node.end_byte].decode()


def walk(node: tree_sitter.Node) -> Iterator[tree_sitter.Node]:
    """Yield node and all of its descendants in source order."""
    stack = [node]
    while stack:
        current = stack.pop()
        yield current
        stack.extend(reversed(current.children))


def selector_parts(
    node: tree_sitter.Node,
) -> tuple[tree_sitter.Node, tree_sitter.Node] | None:
    """Split a member access into (base, member), or None for other nodes."""
    if node.type == "selector_expression":
        base = node.child_by_field_name("operand")
        member = node.child_by_field_name("field")
    elif node.type == "qualified_type":
        base = node.child_by_field_name("package")
        member = node.child_by_field_name("name")
    else:
        return None
    if base is None or member is None:
        return None
    return base, member


def find_syntax_error(node: tree_sitter.Node) -> tree_sitter.Node | None:
    """Return the first ERROR or missing node below node, if any."""
    if not node.has_error:
        return None
    for current in walk(node):
        if current.type == "ERROR" or current.is_missing:
            return current
    return node


def string_value(text: str) -> str:
    """Strip the quotes from a Go string literal used as an import path."""
    if len(text) >= 2 and text[0] in "\"`" and text[-1] == text[0]:
        return text[1:-1]
    return text


def field_children(node: tree_sitter.Node, name: str) -> list[tree_sitter.Node]:
    """All children bound to a grammar field (for repeated fields like names)."""
    return list(node.children_by_field_name(name))
