"""Canonical spec text for AST nodes.

Serialization is the inverse of parsing: compiled sub-nodes are serialized
to hand to the provider and to persist as spec artifacts.
"""

import re

from aidef.models import (
    COMBINATOR_SYMBOLS,
    CommentNode,
    ConstraintNode,
    IncludeNode,
    ModuleNode,
    ParamNode,
    ProseNode,
    RootNode,
)

INDENT = "  "

_BARE_VALUE = re.compile(r"^(?:\d+(?:\.\d+)?|[A-Za-z_][A-Za-z0-9_-]*)$")


def escape_string(value: str) -> str:
    return value.replace("\\", "\\\\").replace('"', '\\"')


def format_param_value(value: str) -> str:
    """Bare numbers and identifiers stay unquoted; everything else is quoted."""
    if _BARE_VALUE.match(value):
        return value
    return f'"{escape_string(value)}"'


def selector(node: ModuleNode) -> str:
    """``[comb ]name.tags:pseudos(args)``"""
    parts = [node.name]
    parts.extend(f".{tag}" for tag in node.tags)
    for pseudo in node.pseudos:
        parts.append(f":{pseudo.name}({', '.join(pseudo.args)})" if pseudo.args else f":{pseudo.name}")
    text = "".join(parts)
    if node.combinator:
        text = f"{COMBINATOR_SYMBOLS[node.combinator]} {text}"
    return text


def _with_importance(text: str, important: bool) -> str:
    return f"{text} !important" if important else text


def serialize_statement(node) -> str:
    """Text of a single non-module statement."""
    if isinstance(node, ProseNode):
        return _with_importance(node.text, node.important)

    if isinstance(node, ConstraintNode):
        return _with_importance(node.text, node.important) + ";"

    if isinstance(node, ParamNode):
        return f"{node.name}={format_param_value(node.value)};"

    if isinstance(node, IncludeNode):
        return f"include {node.path};"

    if isinstance(node, CommentNode):
        return node.text

    raise TypeError(f"Cannot serialize {type(node).__name__}")


def _render(node, depth: int) -> str:
    # Only the first line of a statement is indented; the rest of a
    # multi-line statement (code, strings, prose) is emitted verbatim
    pad = INDENT * depth
    if isinstance(node, ModuleNode):
        head = f"{pad}{selector(node)} {{"
        body = _render_children(node.children, depth + 1)
        if not body:
            return f"{head}\n{pad}}}"
        return f"{head}\n{body}\n{pad}}}"

    text = serialize_statement(node)
    return pad + text if text else ""


def _render_children(children, depth: int) -> str:
    return "\n".join(filter(None, (_render(child, depth) for child in children)))


def serialize(node) -> str:
    """
    Reproduce canonical spec text for any AST node.

    Serializing the result of parsing serialized text gives the same text.

    Raises:
        TypeError: For objects that are not AST nodes
    """
    if isinstance(node, RootNode):
        return _render_children(node.children, 0)
    return _render(node, 0)


def serialize_body(node) -> str:
    """Spec text of a container's children, without its own selector line."""
    if isinstance(node, (RootNode, ModuleNode)):
        return _render_children(node.children, 0)
    return serialize(node)
